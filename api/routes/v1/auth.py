"""
api/routes/v1/auth.py -- Account lifecycle REST endpoints.

Routes:
  POST /api/v1/auth/register         -- create account; returns session token (201)
  POST /api/v1/auth/login            -- password login; returns session token
  POST /api/v1/auth/activate         -- confirm email with an activation token
  POST /api/v1/auth/forgot-password  -- email a reset link (same answer either way)
  POST /api/v1/auth/reset-password   -- set a new password with a reset token
  GET  /api/v1/auth/me               -- profile of the authenticated user
  GET  /api/v1/auth/information      -- alias of /me kept for the web client

Handlers are thin: parse the body, call AccountService, wrap the result in
the envelope. Errors are raised as GatekeeperError subclasses and rendered by
the exception handlers in api/main.py.

Security:
  [C1] login() delegates to AccountService.login(), which equalizes timing
       and merges "no such user" with "wrong password". Do not inline a
       find_by_email() check here.
  [M5] Cache-Control: no-store on every response that carries a token.
  Enumeration: forgot-password answers with one fixed message whether or
       not the email is registered.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from accounts.service import AccountService
from api.models import (
    ActivateRequest,
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ProfileResponse,
    RegisterRequest,
    RegisterResponse,
    RegistrationData,
    ResetPasswordRequest,
    SessionData,
    UserResponse,
)
from auth.dependencies import require_identity
from auth.models import Identity

# Auth policy:
# - POST /auth/register, /login, /activate, /forgot-password, /reset-password: public
# - GET  /auth/me, /auth/information: requires a session token (require_identity)
router = APIRouter()

FORGOT_PASSWORD_MESSAGE = "if an account exists for this email, a reset link has been sent"


def _service(request: Request) -> AccountService:
    return request.app.state.account_service


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=RegisterResponse, status_code=201)
async def register(request: Request, response: Response, body: RegisterRequest) -> RegisterResponse:
    """Create an unverified account and email an activation link.

    The account is created even if the activation email cannot be sent.
    """
    result = await _service(request).register(
        body.email,
        body.password,
        body.first_name,
        body.last_name,
        gender=body.gender,
    )
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return RegisterResponse(
        message="user successfully registered",
        data=RegistrationData(
            token=result.session.token,
            expires_in=result.session.expires_in,
            user=UserResponse.from_profile(result.user),
        ),
    )


@router.post("/auth/login", response_model=LoginResponse)
async def login(request: Request, response: Response, body: LoginRequest) -> LoginResponse:
    """Authenticate with email and password. Unverified accounts may log in."""
    session = await _service(request).login(body.email, body.password)
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return LoginResponse(
        message="authentication was successful",
        data=SessionData(token=session.token, expires_in=session.expires_in),
    )


@router.post("/auth/activate", response_model=ProfileResponse)
async def activate(request: Request, body: ActivateRequest) -> ProfileResponse:
    """Verify the account named by an activation token. Repeating it is harmless."""
    profile = await _service(request).activate(body.token)
    return ProfileResponse(message="account successfully activated", data=UserResponse.from_profile(profile))


@router.post("/auth/forgot-password", response_model=MessageResponse)
async def forgot_password(request: Request, body: ForgotPasswordRequest) -> MessageResponse:
    await _service(request).forgot_password(body.email)
    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post("/auth/reset-password", response_model=MessageResponse)
async def reset_password(request: Request, body: ResetPasswordRequest) -> MessageResponse:
    await _service(request).reset_password(body.token, body.password)
    return MessageResponse(message="password successfully reset")


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=ProfileResponse)
async def me(request: Request, identity: Identity = Depends(require_identity)) -> ProfileResponse:
    """Return the profile of the caller identified by the session token."""
    profile = await _service(request).get_profile(identity.user_id)
    return ProfileResponse(message="user information successfully fetched", data=UserResponse.from_profile(profile))


@router.get("/auth/information", response_model=ProfileResponse, include_in_schema=False)
async def information(request: Request, identity: Identity = Depends(require_identity)) -> ProfileResponse:
    return await me(request, identity)
