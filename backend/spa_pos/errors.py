# backend/spa_pos/errors.py
"""
Ledger error taxonomy.

Every error here is a recoverable, caller-facing outcome. Routes translate
them to JSON with the matching HTTP status; anything else is an internal
error (500) and is safe to retry.
"""


class LedgerError(Exception):
    """Base class for expected ledger outcomes."""
    code = "error"
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": self.message, "code": self.code}
        if self.details:
            payload["details"] = self.details
        return payload


class UnauthenticatedError(LedgerError):
    """No valid identity could be resolved."""
    code = "unauthenticated"
    status_code = 401


class ForbiddenError(LedgerError):
    """Role or business-day window violation."""
    code = "forbidden"
    status_code = 403


class NotFoundError(LedgerError):
    code = "not_found"
    status_code = 404


class InvalidValueError(LedgerError):
    code = "invalid_value"


class InvalidQuantityError(LedgerError):
    code = "invalid_quantity"


class MissingInputError(LedgerError):
    code = "missing_input"


class NoOpError(LedgerError):
    """Well-formed request that would change nothing."""
    code = "no_op"


class ConflictError(LedgerError):
    """409-level uniqueness conflict (e.g., duplicate SKU)."""
    code = "conflict"
    status_code = 409
