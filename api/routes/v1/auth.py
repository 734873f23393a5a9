"""
api/routes/v1/auth.py -- Registration, login, and session endpoints.

Routes:
  POST /api/v1/auth/register   -- self-service signup; 201 {user, token}
  POST /api/v1/auth/login      -- password login; {user, token} + JWT cookie
  POST /api/v1/auth/logout     -- clears cookie; 200
  GET  /api/v1/auth/me         -- decoded identity of the caller (requires auth)

Security:
  register and login are rate-limited per client IP (LOGIN_RATE_LIMIT).
  login goes through UserDirectory.login(), which uses the timing-equalized
  authenticate_user(). Do NOT inline get_by_username() + verify_password().
  Cache-Control: no-store on every response that carries a token.
  register always creates a non-admin; admins are created via POST /users
  or the CLI.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import CREDENTIAL_RATE_LIMIT, limiter
from api.models import LoginRequest, MeResponse, UserRegister, UserResponse, UserTokenEnvelope
from auth.dependencies import get_current_identity
from auth.models import Identity
from auth.tokens import set_auth_cookie
from core.config import get_settings
from core.errors import Forbidden
from library.directory import UserDirectory

# Auth policy:
# - POST /api/v1/auth/register: public (unless SELF_REGISTRATION_ENABLED=false)
# - POST /api/v1/auth/login:    public -- login endpoint must be unauthenticated
# - POST /api/v1/auth/logout:   public -- clearing a cookie needs no prior auth
# - GET  /api/v1/auth/me:       requires auth (get_current_identity)
router = APIRouter()


def _token_response(status_code: int, envelope: UserTokenEnvelope) -> JSONResponse:
    resp = JSONResponse(status_code=status_code, content=envelope.model_dump())
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/register", response_model=UserTokenEnvelope, status_code=201)
@limiter.limit(CREDENTIAL_RATE_LIMIT)
def register(request: Request, body: UserRegister) -> JSONResponse:
    """Create an account for the caller and return it with a token."""
    if not get_settings().self_registration_enabled:
        raise Forbidden("Self-registration is disabled. Ask an administrator for an account.")
    directory: UserDirectory = request.app.state.directory
    user, token = directory.register(
        username=body.username,
        name=body.name,
        email=body.email,
        password=body.password,
    )
    return _token_response(201, UserTokenEnvelope(user=UserResponse.from_user(user), token=token))


@router.post("/auth/login", response_model=UserTokenEnvelope)
@limiter.limit(CREDENTIAL_RATE_LIMIT)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username and password; return a token and set the cookie.

    Wrong username and wrong password produce the same 401.
    """
    directory: UserDirectory = request.app.state.directory
    user, token = directory.login(body.username, body.password)
    resp = _token_response(200, UserTokenEnvelope(user=UserResponse.from_user(user), token=token))
    set_auth_cookie(resp, token)
    return resp


@router.post("/auth/logout")
async def logout() -> JSONResponse:
    """Clear the JWT cookie. Bearer tokens cannot be revoked server-side."""
    resp = JSONResponse(content={"message": "Logged out."})
    resp.delete_cookie("access_token")
    return resp


@router.get("/auth/me", response_model=MeResponse)
async def me(identity: Identity = Depends(get_current_identity)) -> MeResponse:
    """Return the identity carried by the caller's token."""
    return MeResponse(username=identity.username, isAdmin=identity.is_admin)
