from .tenancy import Business
from .auth import Role, User
from .timekeeping import Schedule, ClockEvent, Shift, Break
from .cash import CashDrawerCount
from .sales import Transaction
from .validation import (
    ShiftValidation,
    ShiftValidationIssue,
    IssueCode,
    IssueType,
    Severity,
    Category,
    Resolution,
)
from .audit import AuditEvent

__all__ = [
    'Business',
    'Role', 'User',
    'Schedule', 'ClockEvent', 'Shift', 'Break',
    'CashDrawerCount',
    'Transaction',
    'ShiftValidation', 'ShiftValidationIssue',
    'IssueCode', 'IssueType', 'Severity', 'Category', 'Resolution',
    'AuditEvent',
]
