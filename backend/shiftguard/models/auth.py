from __future__ import annotations

from ..extensions import db
from ..time_utils import now_ms


class Role(db.Model):
    """
    Business role (admin, manager, cashier, ...).

    shift_required is a nullable default: NULL means "defer to the system
    default". Users may override it individually.
    """
    __tablename__ = "roles"
    __table_args__ = (
        db.UniqueConstraint("business_id", "name", name="uq_roles_business_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    name = db.Column(db.String(64), nullable=False)

    shift_required = db.Column(db.Boolean, nullable=True)
    can_approve_cash_variance = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.BigInteger, nullable=False, default=now_ms)

    business = db.relationship("Business", backref=db.backref("roles", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "name": self.name,
            "shift_required": self.shift_required,
            "can_approve_cash_variance": self.can_approve_cash_variance,
        }


class User(db.Model):
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("business_id", "username", name="uq_users_business_username"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    role_id = db.Column(db.Integer, db.ForeignKey("roles.id"), nullable=True, index=True)

    username = db.Column(db.String(64), nullable=False)
    display_name = db.Column(db.String(128), nullable=True)

    # bcrypt hash of the manager/cashier PIN (never the PIN itself)
    pin_hash = db.Column(db.String(255), nullable=True)

    # Explicit per-user override; NULL defers to the role default
    shift_required = db.Column(db.Boolean, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.BigInteger, nullable=False, default=now_ms)

    business = db.relationship("Business", backref=db.backref("users", lazy=True))
    role = db.relationship("Role", backref=db.backref("users", lazy=True))

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "role_id": self.role_id,
            "username": self.username,
            "display_name": self.display_name,
            "shift_required": self.shift_required,
            "has_pin": self.pin_hash is not None,
            "is_active": self.is_active,
        }
