from __future__ import annotations

import enum

from ..extensions import db
from ..time_utils import now_ms


class IssueCode(str, enum.Enum):
    """
    Closed registry of validation issue codes.

    Shared by the rule engine and the persistence layer; the column only
    accepts these values.
    """
    # Attendance
    LATE_CLOCK_IN = "LATE_CLOCK_IN"
    MISSED_CLOCK_OUT = "MISSED_CLOCK_OUT"
    SHIFT_OVERLAP = "SHIFT_OVERLAP"

    # Cash management
    CASH_VARIANCE_HIGH = "CASH_VARIANCE_HIGH"
    MISSING_END_SHIFT_COUNT = "MISSING_END_SHIFT_COUNT"
    MULTIPLE_END_SHIFT_COUNTS = "MULTIPLE_END_SHIFT_COUNTS"

    # Transactions
    VOIDED_TRANSACTION_NO_REASON = "VOIDED_TRANSACTION_NO_REASON"
    REFUND_WITHOUT_APPROVAL = "REFUND_WITHOUT_APPROVAL"
    SUSPICIOUS_DISCOUNT = "SUSPICIOUS_DISCOUNT"
    REFUND_CHAIN_INVALID = "REFUND_CHAIN_INVALID"

    # Compliance
    MISSING_BREAK = "MISSING_BREAK"
    MISSED_REQUIRED_BREAK = "MISSED_REQUIRED_BREAK"
    BREAK_TOO_SHORT = "BREAK_TOO_SHORT"
    BREAK_TOO_LONG = "BREAK_TOO_LONG"
    EXCESSIVE_OVERTIME = "EXCESSIVE_OVERTIME"

    # System
    BREAK_DURATION_MISMATCH = "BREAK_DURATION_MISMATCH"


class IssueType(str, enum.Enum):
    VIOLATION = "violation"
    WARNING = "warning"


class Severity(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}


class Category(str, enum.Enum):
    ATTENDANCE = "attendance"
    CASH_MANAGEMENT = "cash_management"
    TRANSACTIONS = "transactions"
    COMPLIANCE = "compliance"
    SYSTEM = "system"


class Resolution(str, enum.Enum):
    PENDING = "pending"
    NEEDS_REVIEW = "needs_review"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in (Resolution.APPROVED, Resolution.REJECTED)


# pending -> {needs_review, approved, rejected}; needs_review -> {approved, rejected}
RESOLUTION_TRANSITIONS = {
    Resolution.PENDING: {Resolution.NEEDS_REVIEW, Resolution.APPROVED, Resolution.REJECTED},
    Resolution.NEEDS_REVIEW: {Resolution.APPROVED, Resolution.REJECTED},
    Resolution.APPROVED: set(),
    Resolution.REJECTED: set(),
}

VALIDATION_METHODS = ("auto", "manual")


def _enum_column(enum_cls, length: int = 32):
    return db.Enum(
        enum_cls,
        native_enum=False,
        length=length,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


class ShiftValidation(db.Model):
    """
    Verdict for one shift (1:1).

    Counts are recomputed on every run; the issue set is replaced wholesale.
    Resolution is only ever moved by an explicit call, never automatically.
    """
    __tablename__ = "shift_validations"
    __table_args__ = (
        db.Index("ix_shift_validations_review", "requires_review", "resolution"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id"), nullable=False, unique=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)

    valid = db.Column(db.Boolean, nullable=False)
    requires_review = db.Column(db.Boolean, nullable=False)

    violation_count = db.Column(db.Integer, nullable=False, default=0)
    warning_count = db.Column(db.Integer, nullable=False, default=0)
    critical_issue_count = db.Column(db.Integer, nullable=False, default=0)
    unresolved_issue_count = db.Column(db.Integer, nullable=False, default=0)

    validated_at = db.Column(db.BigInteger, nullable=True)
    validated_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    validation_method = db.Column(db.String(16), nullable=False, default="auto")

    resolution = db.Column(_enum_column(Resolution, 16), nullable=False, default=Resolution.PENDING)
    resolved_at = db.Column(db.BigInteger, nullable=True)
    resolved_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    resolution_notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.BigInteger, nullable=False, default=now_ms)

    shift = db.relationship("Shift", backref=db.backref("validation", uselist=False, lazy=True))
    issues = db.relationship(
        "ShiftValidationIssue",
        back_populates="validation",
        cascade="all, delete-orphan",
        order_by="ShiftValidationIssue.position",
        lazy=True,
    )

    def to_dict(self, include_issues: bool = False) -> dict:
        data = {
            "id": self.id,
            "shift_id": self.shift_id,
            "business_id": self.business_id,
            "valid": self.valid,
            "requires_review": self.requires_review,
            "violation_count": self.violation_count,
            "warning_count": self.warning_count,
            "critical_issue_count": self.critical_issue_count,
            "unresolved_issue_count": self.unresolved_issue_count,
            "validated_at": self.validated_at,
            "validated_by": self.validated_by,
            "validation_method": self.validation_method,
            "resolution": self.resolution.value if self.resolution else None,
            "resolved_at": self.resolved_at,
            "resolved_by": self.resolved_by,
            "resolution_notes": self.resolution_notes,
        }
        if include_issues:
            data["issues"] = [issue.to_dict() for issue in self.issues]
        return data


class ShiftValidationIssue(db.Model):
    __tablename__ = "shift_validation_issues"
    __table_args__ = (
        db.Index("ix_validation_issues_resolved_severity", "resolved", "severity"),
        db.Index("ix_validation_issues_related_entity", "related_entity_type", "related_entity_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    validation_id = db.Column(
        db.Integer, db.ForeignKey("shift_validations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)

    # Rank within the validation run (0 = most severe)
    position = db.Column(db.Integer, nullable=False, default=0)

    issue_type = db.Column("type", _enum_column(IssueType, 16), nullable=False)
    code = db.Column(_enum_column(IssueCode, 64), nullable=False, index=True)
    message = db.Column(db.Text, nullable=False)
    severity = db.Column(_enum_column(Severity, 16), nullable=False, default=Severity.MEDIUM)
    category = db.Column(_enum_column(Category, 32), nullable=False, index=True)

    resolved = db.Column(db.Boolean, nullable=False, default=False)
    resolved_at = db.Column(db.BigInteger, nullable=True)
    resolved_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    resolution_notes = db.Column(db.Text, nullable=True)

    related_entity_id = db.Column(db.Integer, nullable=True)
    related_entity_type = db.Column(db.String(32), nullable=True)
    data_snapshot = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.BigInteger, nullable=False, default=now_ms)

    validation = db.relationship("ShiftValidation", back_populates="issues")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "validation_id": self.validation_id,
            "type": self.issue_type.value,
            "code": self.code.value,
            "message": self.message,
            "severity": self.severity.value,
            "category": self.category.value,
            "resolved": self.resolved,
            "resolved_at": self.resolved_at,
            "resolved_by": self.resolved_by,
            "resolution_notes": self.resolution_notes,
            "related_entity_id": self.related_entity_id,
            "related_entity_type": self.related_entity_type,
            "data_snapshot": self.data_snapshot,
        }
