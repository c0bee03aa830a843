# Overview: Domain error taxonomy shared by services and routes.

from __future__ import annotations


class LedgerError(Exception):
    """
    Base class for expected, user-reportable failures.

    Routes translate these into JSON errors using status_code and code;
    anything that is not a LedgerError is treated as an internal error.
    """
    status_code = 400
    code = "ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(LedgerError):
    """Missing sale, invoice, quotation or rule."""
    status_code = 404
    code = "NOT_FOUND"


class Unauthorized(LedgerError):
    """No authenticated session for an operation that requires one."""
    status_code = 401
    code = "UNAUTHORIZED"


class InvalidState(LedgerError):
    """Operation attempted from a status that does not permit it."""
    status_code = 409
    code = "INVALID_STATE"


class InvalidAmount(LedgerError):
    """Non-positive or inconsistent payment amount."""
    status_code = 400
    code = "INVALID_AMOUNT"


class InvalidSignature(LedgerError):
    """Webhook body does not match its signature, or the signature is missing."""
    status_code = 400
    code = "INVALID_SIGNATURE"


class ConfigurationError(LedgerError):
    """Server is missing configuration required to process the request."""
    status_code = 500
    code = "CONFIGURATION_ERROR"


class ValidationError(LedgerError, ValueError):
    """400-level input problem."""
    status_code = 400
    code = "VALIDATION_ERROR"


def error_response_body(exc: LedgerError) -> dict:
    return {"error": exc.message, "code": exc.code}


_ERROR_CLASSES = (
    NotFound,
    Unauthorized,
    InvalidState,
    InvalidAmount,
    InvalidSignature,
    ConfigurationError,
    ValidationError,
)


def status_for_code(code: str | None) -> int:
    """HTTP status for an error code reported by a non-raising action."""
    for cls in _ERROR_CLASSES:
        if cls.code == code:
            return cls.status_code
    return 500
