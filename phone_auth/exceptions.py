from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from typing import Optional


class AuthError(Exception):
    """Base class for expected failures of the phone auth flow.

    Each subclass carries the HTTP status and the client-safe message the
    routes render into the response body.
    """

    status_code: int = 400
    message: str = "Request failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.message
        super().__init__(self.message)


class InvalidInput(AuthError):
    status_code = 400
    message = "Invalid request"


class InvalidPhoneFormat(InvalidInput):
    message = "Invalid phone number format"


class OtpError(AuthError):
    status_code = 400
    message = "Invalid or expired OTP"


class OtpNotFound(OtpError):
    message = "No valid OTP found for this phone number"


class OtpExpired(OtpError):
    message = "Verification code has expired"


class OtpMismatch(OtpError):
    message = "Invalid OTP code"


class OtpAlreadyUsed(OtpError):
    message = "Verification code has already been used"


class OtpTooManyAttempts(OtpError):
    message = "Maximum verification attempts exceeded. Please request a new code."


class AccountNotFound(AuthError):
    status_code = 404
    message = "No account found with this phone number. Please sign up first."


class AccountAlreadyExists(AuthError):
    status_code = 409
    message = "Account already exists with this phone number. Please login instead."


class RateLimited(AuthError):
    status_code = 429
    message = "Too many OTP requests. Please try again later."


class SessionError(AuthError):
    status_code = 401
    message = "Invalid token"


class SessionMalformed(SessionError):
    message = "Invalid token"


class SessionExpired(SessionError):
    message = "Session expired"


class IdentityNotFound(AuthError):
    status_code = 404
    message = "User not found"


class UpstreamFailure(AuthError):
    """A datastore or gateway call failed; details stay in the server log."""

    status_code = 500
    message = "Service temporarily unavailable. Please try again."


def create_error_response(error_message: str) -> dict:
    """Create a standardized error response"""
    return {
        "success": False,
        "error": error_message
    }


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies as 400 instead of FastAPI's 422"""
    errors = exc.errors()
    detail = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    if request.url.path.endswith("/validate-session"):
        return JSONResponse(status_code=400, content={"valid": False, "error": detail})
    return JSONResponse(status_code=400, content=create_error_response(detail))
