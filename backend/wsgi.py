from shiftguard import create_app

app = create_app()
