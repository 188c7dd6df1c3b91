"""Auth API router — password / OTP registration and login.

Endpoints
---------
POST /api/auth/request-otp   → email a fresh one-time code
POST /api/auth/register      → create an identity, returns a session token
POST /api/auth/login         → authenticate an identity, returns a session token

Every error response is a flat ``{"message": ...}`` body.  Infrastructure
failures are logged in full and answered with a generic message.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError as ModelValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from otp_auth.config import settings
from otp_auth.database.engine import get_session
from otp_auth.database.repository import OTPRepository, UserRepository
from otp_auth.errors import AuthError, InfrastructureError
from otp_auth.services.authenticator import Authenticator
from otp_auth.services.credentials import parse_credential
from otp_auth.services.otp_issuer import OTPIssuer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


# ── Request / response models ────────────────────────────

class OTPRequest(BaseModel):
    email: str | None = None


class RegisterRequest(BaseModel):
    email: str | None = None
    password: str | None = None
    otp: str | int | None = None
    name: str | None = None


class LoginRequest(BaseModel):
    email: str | None = None
    password: str | None = None
    otp: str | int | None = None


class MessageResponse(BaseModel):
    message: str


class TokenResponse(BaseModel):
    token: str
    message: str


# ── Dependencies ─────────────────────────────────────────

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


def parsed_body(model: type[BaseModel]):
    """Build a dependency that reads *model* from a JSON or HTML-form body.

    Unreadable or mistyped bodies raise ``RequestValidationError``, which the
    app answers with the flat ``{message}`` shape.
    """

    async def _parse(request: Request) -> BaseModel:
        content_type = request.headers.get("content-type", "")
        try:
            if content_type.startswith(FORM_CONTENT_TYPES):
                data = dict(await request.form())
            else:
                data = await request.json()
        except ValueError as exc:
            raise RequestValidationError(
                [{"type": "body_invalid", "loc": ("body",), "msg": str(exc), "input": None}]
            ) from exc

        try:
            return model.model_validate(data)
        except ModelValidationError as exc:
            raise RequestValidationError(exc.errors()) from exc

    return _parse


def get_otp_issuer(
    request: Request, session: AsyncSession = Depends(get_session)
) -> OTPIssuer:
    """Build an issuer bound to this request's session and the app's collaborators."""
    state = request.app.state
    return OTPIssuer(
        otps=OTPRepository(session),
        notifier=state.notifier,
        locks=state.otp_locks,
        ttl_seconds=settings.otp_ttl_seconds,
    )


def get_authenticator(
    request: Request, session: AsyncSession = Depends(get_session)
) -> Authenticator:
    """Build an authenticator bound to this request's session and the app's collaborators."""
    state = request.app.state
    return Authenticator(
        users=UserRepository(session),
        otps=OTPRepository(session),
        tokens=state.token_issuer,
        locks=state.otp_locks,
        bcrypt_rounds=settings.bcrypt_rounds,
    )


def _error_response(exc: AuthError, fallback: str) -> JSONResponse:
    """Map a core error onto the flat ``{message}`` contract."""
    if isinstance(exc, InfrastructureError):
        logger.error("%s: %s (%s)", fallback, type(exc).__name__, exc.message, exc_info=exc)
        return JSONResponse(status_code=exc.status_code, content={"message": fallback})
    logger.info("%s → %d %s", type(exc).__name__, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


# ── Endpoints ────────────────────────────────────────────

@router.post("/request-otp", response_model=MessageResponse)
async def request_otp(
    body: OTPRequest = Depends(parsed_body(OTPRequest)),
    issuer: OTPIssuer = Depends(get_otp_issuer),
):
    """Generate a one-time code for the email and deliver it."""
    try:
        await issuer.issue_otp(body.email or "")
    except AuthError as exc:
        return _error_response(exc, fallback="Failed to send OTP")
    return MessageResponse(message="OTP sent to your email")


@router.post("/register", response_model=TokenResponse)
async def register(
    body: RegisterRequest = Depends(parsed_body(RegisterRequest)),
    authenticator: Authenticator = Depends(get_authenticator),
):
    """Register with either a password or a previously requested OTP."""
    try:
        credential = parse_credential(body.password, body.otp)
        token = await authenticator.register(body.email or "", credential, name=body.name)
    except AuthError as exc:
        return _error_response(exc, fallback="Registration failed")
    return TokenResponse(token=token, message="Registration successful")


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest = Depends(parsed_body(LoginRequest)),
    authenticator: Authenticator = Depends(get_authenticator),
):
    """Log in with either a password or a previously requested OTP."""
    try:
        credential = parse_credential(body.password, body.otp)
        token = await authenticator.login(body.email or "", credential)
    except AuthError as exc:
        return _error_response(exc, fallback="Login failed")
    return TokenResponse(token=token, message="Login successful")
