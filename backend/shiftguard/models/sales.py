from __future__ import annotations

from ..extensions import db
from ..money import from_cents

TX_SALE = "sale"
TX_REFUND = "refund"
TX_VOID = "void"
TX_TYPES = (TX_SALE, TX_REFUND, TX_VOID)

CASH_PAYMENT_METHODS = ("cash", "mixed")


class Transaction(db.Model):
    """
    Sales transaction owned by the external sales subsystem.

    READ-ONLY here: the shift core sums these for shift totals and cash
    reconciliation and inspects them during validation, but never writes.
    Refunds point at the transaction they reverse (original_transaction_id).
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_shift_type", "shift_id", "type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id"), nullable=True, index=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)

    tx_type = db.Column("type", db.String(16), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="completed")
    payment_method = db.Column(db.String(16), nullable=False, default="cash")

    # Amounts in cents
    total_cents = db.Column(db.Integer, nullable=False, default=0)
    cash_amount_cents = db.Column(db.Integer, nullable=True)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)

    void_reason = db.Column(db.String(255), nullable=True)
    manager_approval_id = db.Column(db.Integer, nullable=True)
    is_partial_refund = db.Column(db.Boolean, nullable=False, default=False)
    original_transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=True)

    timestamp = db.Column(db.BigInteger, nullable=False)

    original_transaction = db.relationship("Transaction", remote_side=[id])

    @property
    def cash_portion_cents(self) -> int:
        """Cash actually moved through the drawer by this transaction."""
        if self.payment_method not in CASH_PAYMENT_METHODS:
            return 0
        if self.cash_amount_cents is not None:
            return self.cash_amount_cents
        # Pure cash payments may omit the split
        return self.total_cents if self.payment_method == "cash" else 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shift_id": self.shift_id,
            "business_id": self.business_id,
            "type": self.tx_type,
            "status": self.status,
            "payment_method": self.payment_method,
            "total": from_cents(self.total_cents),
            "cash_amount": from_cents(self.cash_amount_cents),
            "discount_amount": from_cents(self.discount_cents),
            "void_reason": self.void_reason,
            "manager_approval_id": self.manager_approval_id,
            "is_partial_refund": self.is_partial_refund,
            "original_transaction_id": self.original_transaction_id,
            "timestamp": self.timestamp,
        }
