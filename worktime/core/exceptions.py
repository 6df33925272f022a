"""
Fachliche Fehler des Compliance-Kerns.

Services werfen diese Exceptions, main.py übersetzt sie in HTTP-Antworten.
"""


class ComplianceError(Exception):
    """Base exception for compliance rule and persistence errors."""

    status_code = 400
    code = "COMPLIANCE_ERROR"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFoundError(ComplianceError):
    """Raised when a rule set, violation or report does not exist for the tenant."""

    status_code = 404
    code = "NOT_FOUND"


class InvalidRangeError(ComplianceError):
    """Raised when a period ends before it starts or exceeds the allowed span."""

    status_code = 422
    code = "INVALID_RANGE"


class ValidationError(ComplianceError):
    """Raised when a rule-set patch produces a malformed configuration."""

    status_code = 422
    code = "VALIDATION_ERROR"


class ConflictError(ComplianceError):
    """Raised when stored state contradicts the request (e.g. tampered report artifact)."""

    status_code = 409
    code = "CONFLICT"
