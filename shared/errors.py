"""
Shared error handling for the Loop access control services.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class AccessLayerException(Exception):
    """Base exception for access control services."""

    status_code = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self, request_id: Optional[str] = None) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class ValidationError(AccessLayerException):
    """Validation-related errors."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None,
                 code: str = "VALIDATION_ERROR"):
        super().__init__(code, message, details)


class RuleValidationError(ValidationError):
    """One or more token rules failed their subtype schema."""

    def __init__(self, errors: Dict[str, str]):
        self.errors = errors
        super().__init__(
            "Access control rules failed validation",
            details={"errors": errors},
            code="RULE_VALIDATION_ERROR"
        )


class UnknownRuleTypeError(ValidationError):
    """A rule was requested with an unknown type/subtype discriminator."""

    def __init__(self, rule_type: Any, subtype: Any = None):
        super().__init__(
            f"Unknown rule type: {rule_type!r} (subtype {subtype!r})",
            details={"type": rule_type, "subtype": subtype},
            code="UNKNOWN_RULE_TYPE"
        )


class ConditionFormatError(ValidationError):
    """Wire-format conditions could not be read."""

    def __init__(self, message: str = "Malformed access control conditions",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details, code="CONDITION_FORMAT_ERROR")

