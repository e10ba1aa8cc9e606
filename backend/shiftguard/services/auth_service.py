# Overview: PIN credentials and approval rights for manager overrides.

"""
Manager credential checks.

PINs are stored as bcrypt hashes on the user row. A cash-variance approval
needs an active user in the same business whose role grants
can_approve_cash_variance and whose PIN verifies.
"""

import bcrypt

from ..extensions import db
from ..models import User
from .errors import NotFoundError, ValidationError

PIN_MIN_LENGTH = 4
PIN_MAX_LENGTH = 8


def hash_pin(pin: str) -> str:
    if not pin or not pin.isdigit() or not (PIN_MIN_LENGTH <= len(pin) <= PIN_MAX_LENGTH):
        raise ValidationError(f"PIN must be {PIN_MIN_LENGTH}-{PIN_MAX_LENGTH} digits")
    return bcrypt.hashpw(pin.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_pin(pin: str | None, pin_hash: str | None) -> bool:
    if not pin or not pin_hash:
        return False
    try:
        return bcrypt.checkpw(pin.encode("utf-8"), pin_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


def set_pin(user_id: int, pin: str) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    user.pin_hash = hash_pin(pin)
    db.session.commit()
    return user


def can_approve_cash_variance(user: User | None) -> bool:
    return bool(user and user.is_active and user.role and user.role.can_approve_cash_variance)


def verify_manager_pin(manager_id: int | None, pin: str | None, *, business_id: int) -> User | None:
    """Return the approving manager when the credential checks out, else None."""
    if manager_id is None or not pin:
        return None
    manager = db.session.get(User, manager_id)
    if not manager or manager.business_id != business_id:
        return None
    if not can_approve_cash_variance(manager):
        return None
    if not verify_pin(pin, manager.pin_hash):
        return None
    return manager
