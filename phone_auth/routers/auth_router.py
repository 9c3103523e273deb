# phone_auth/routers/auth_router.py
import logging
import uuid
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ..application.ports.user_repo import IdentityDto
from ..application.services.auth_service import AuthService
from ..exceptions import AuthError, create_error_response
from ..schemas import (
    SendOTPRequest, SendOTPResponse, VerifyOTPRequest, VerifyOTPResponse,
    ValidateSessionRequest, ValidateSessionResponse, UserResponse, SessionResponse,
    ProviderSessionResponse, ErrorResponse, SessionErrorResponse,
)
from ..utils import to_epoch_ms

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["Authentication"])

INTERNAL_ERROR = "Internal server error"


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def error_response(exc: AuthError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=create_error_response(exc.message))


def session_error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"valid": False, "error": message})


def user_payload(identity: IdentityDto) -> UserResponse:
    return UserResponse(id=identity.id, phone=identity.phone, name=identity.name, email=identity.email)


ERROR_RESPONSES: Dict[int, dict] = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


@router.post("/send-otp", response_model=SendOTPResponse, response_model_exclude_none=True, responses=ERROR_RESPONSES)
def send_otp(payload: SendOTPRequest, request: Request, auth_service: AuthService = Depends(get_auth_service)):
    """
    Send a login or signup code to a phone number
    """
    if not payload.phone:
        return JSONResponse(status_code=400, content=create_error_response("Phone number is required"))

    try:
        dispatch = auth_service.send_otp(
            payload.phone,
            payload.isSignup,
            request_id=str(uuid.uuid4()),
            ip_address=get_client_ip(request),
        )
    except AuthError as e:
        return error_response(e)
    except Exception:
        logger.exception("Send OTP error")
        return JSONResponse(status_code=500, content=create_error_response(INTERNAL_ERROR))

    if dispatch.is_demo:
        return SendOTPResponse(
            message=f"Demo OTP sent (use {auth_service.otp_service.demo_code})",
            isDemo=True,
        )
    return SendOTPResponse(message="Verification code sent successfully")


@router.post("/verify-otp", response_model=VerifyOTPResponse, response_model_exclude_none=True, responses=ERROR_RESPONSES)
def verify_otp(payload: VerifyOTPRequest, request: Request, auth_service: AuthService = Depends(get_auth_service)):
    """
    Verify the code, then log the user in or create the account
    """
    if not payload.phone or not payload.otp:
        return JSONResponse(status_code=400, content=create_error_response("Phone number and OTP are required"))

    try:
        result = auth_service.verify_otp(
            payload.phone,
            payload.otp,
            payload.isSignup,
            request_id=str(uuid.uuid4()),
            ip_address=get_client_ip(request),
        )
    except AuthError as e:
        return error_response(e)
    except Exception:
        logger.exception("Verify OTP error")
        return JSONResponse(status_code=500, content=create_error_response(INTERNAL_ERROR))

    session = result.session
    provider_session = None
    if session.backing.ok and session.backing.token:
        provider_session = ProviderSessionResponse(token=session.backing.token)

    return VerifyOTPResponse(
        message="Authentication successful",
        user=user_payload(result.identity),
        session=SessionResponse(token=session.token, expiresAt=to_epoch_ms(session.expires_at)),
        providerSession=provider_session,
    )


@router.post(
    "/validate-session",
    response_model=ValidateSessionResponse,
    responses={400: {"model": SessionErrorResponse}, 401: {"model": SessionErrorResponse}, 404: {"model": SessionErrorResponse}},
)
def validate_session(payload: ValidateSessionRequest, auth_service: AuthService = Depends(get_auth_service)):
    """
    Check a session token and return the user it belongs to
    """
    if not payload.token:
        return session_error_response(400, "Token is required")

    try:
        identity = auth_service.validate_session(payload.token)
    except AuthError as e:
        return session_error_response(e.status_code, e.message)
    except Exception:
        logger.exception("Validate session error")
        return session_error_response(500, INTERNAL_ERROR)

    return ValidateSessionResponse(user=user_payload(identity))
