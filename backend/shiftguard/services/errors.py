"""
Typed errors raised by the shift core.

Invariant failures surface synchronously and are never retried here.
Compliance findings are NOT errors: they become ShiftValidationIssue rows.
"""


class ShiftGuardError(Exception):
    """Base class for shift core errors."""
    pass


class InvalidStateError(ShiftGuardError):
    """Operation not allowed in the current state (e.g. double clock-in)."""
    pass


class ConflictError(ShiftGuardError):
    """Uniqueness conflict (e.g. second end-shift count)."""
    pass


class ValidationError(ShiftGuardError):
    """Input rejected; the caller must correct it."""
    pass


class NotFoundError(ShiftGuardError):
    """Referenced shift/break/issue does not exist."""
    pass


class StorageError(ShiftGuardError):
    """Underlying store unavailable. No recovery inside the core."""
    pass
