"""
Service Errors

HTTPException subclasses raised by the services. Each carries a stable machine
readable `code` next to the HTTP status, plus optional context that is merged
into the error body by the application's exception handler.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException


class VoidAIError(HTTPException):
    """Base class for handled service errors."""

    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, **context: Any):
        super().__init__(
            status_code=self.status_code, detail=message or self.default_message
        )
        self.context: Dict[str, Any] = context

    @property
    def message(self) -> str:
        return self.detail

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message, **self.context}


class InvalidInput(VoidAIError):
    status_code = 400
    code = "invalid_input"
    default_message = "Invalid input"


class Unauthorized(VoidAIError):
    status_code = 401
    code = "unauthorized"
    default_message = "Not authenticated"


class InsufficientCredits(VoidAIError):
    status_code = 402
    code = "insufficient_credits"
    default_message = "Insufficient credits"

    def __init__(self, required: int, available: int):
        super().__init__(
            f"This action needs {required} credits but only {available} are available",
            required=required,
            available=available,
        )


class Forbidden(VoidAIError):
    status_code = 403
    code = "forbidden"
    default_message = "Forbidden"


class NotFound(VoidAIError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class MissingPrerequisite(VoidAIError):
    status_code = 422
    code = "missing_prerequisite"
    default_message = "A required resource is missing"


class ProviderRejected(VoidAIError):
    status_code = 502
    code = "provider_rejected"
    default_message = "The provider rejected the request"

    def __init__(self, message: Optional[str] = None, provider_message: str = ""):
        super().__init__(message, provider_message=provider_message)


class ProviderUnavailable(VoidAIError):
    status_code = 503
    code = "provider_unavailable"
    default_message = "The provider is unavailable"


# Promo code redemption
class CodeNotFound(VoidAIError):
    status_code = 404
    code = "code_not_found"
    default_message = "Promo code not found"


class CodeInactive(VoidAIError):
    status_code = 400
    code = "code_inactive"
    default_message = "Promo code is no longer active"


class CodeExpired(VoidAIError):
    status_code = 400
    code = "code_expired"
    default_message = "Promo code has expired"


class CodeExhausted(VoidAIError):
    status_code = 409
    code = "code_exhausted"
    default_message = "Promo code has reached its maximum uses"


class AlreadyRedeemed(VoidAIError):
    status_code = 409
    code = "already_redeemed"
    default_message = "You have already redeemed this code"
