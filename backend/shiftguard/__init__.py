# backend/shiftguard/__init__.py
from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(config_object=Config) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.shifts import shifts_bp
    from .routes.breaks import breaks_bp
    from .routes.cash_drawer import cash_drawer_bp
    from .routes.validation import validation_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(shifts_bp)
    app.register_blueprint(breaks_bp)
    app.register_blueprint(cash_drawer_bp)
    app.register_blueprint(validation_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
