"""
auth/tokens.py -- JWT issue/decode and password hashing.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       the username and the isAdmin flag. There is no exp claim and no
       server-side revocation list: a token is valid for as long as the
       secret is unchanged. Rotating SECRET_KEY invalidates every token.
       Verification returns None on any failure -- the dependency layer
       turns that into Unauthorized.

  Passwords: bcrypt, used directly. Each hash gets its own salt from
       bcrypt.gensalt(), so hashing the same password twice yields two
       different strings that both verify. The cost factor comes from
       Settings.bcrypt_rounds. The _DUMMY_HASH constant enables timing
       equalization in authenticate_user() so response time does not reveal
       whether a username exists.

  SECRET_KEY: sourced from core.config.get_settings() at import time. A
       missing or short key raises while the settings are built, so the
       process refuses to start instead of failing per request.

Layer rule: no imports from api/, library/, or cache/. Import from core/
is allowed -- core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

from auth.models import Identity
from core.config import get_settings
from core.errors import ValidationError

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("sheetshelf.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"

PASSWORD_MAX_BYTES = 72

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    bcrypt accepts at most 72 bytes. Longer input raises ValidationError
    rather than being truncated; the API models reject it earlier with 400.
    """
    if len(plain.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValidationError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes when UTF-8 encoded.")
    salt = bcrypt.gensalt(rounds=_settings.bcrypt_rounds)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    Fails closed: a malformed or empty stored hash, or a candidate longer
    than bcrypt accepts, returns False.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except (ValueError, TypeError, AttributeError):
        return False


# Timing equalization dummy hash.
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("sheetshelf_timing_dummy")


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def create_access_token(username: str, is_admin: bool) -> str:
    """Encode a signed JWT carrying the caller's identity.

    Claim names follow the public contract ({username, isAdmin}); sub is
    set as well so standard JWT tooling shows who the token belongs to.
    """
    payload = {
        "sub": username,
        "username": username,
        "isAdmin": bool(is_admin),
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def create_token_for(user: User) -> str:
    return create_access_token(user.username, user.is_admin)


def decode_access_token(token: str) -> Identity | None:
    """Decode and verify a JWT. Returns the Identity or None on any failure.

    Failure covers a bad signature, a token that is not a JWT at all, and a
    payload missing the username or isAdmin claims.
    """
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    username = payload.get("username")
    is_admin = payload.get("isAdmin")
    if not isinstance(username, str) or not username or not isinstance(is_admin, bool):
        return None
    return Identity(username=username, is_admin=is_admin)


# ---------------------------------------------------------------------------
# User authentication (constant-time)
# ---------------------------------------------------------------------------


def authenticate_user(store: UserStore, username: str, password: str) -> User | None:
    """Authenticate a username/password login with timing equalization.

    Always runs bcrypt whether or not the user exists:
    - Unknown username: bcrypt runs against _DUMMY_HASH (same cost as real check)
    - Wrong password: bcrypt runs against the real hash (same cost)

    Returns the User on success, None on any failure.
    """
    user = store.get_by_username(username)
    if user is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


# ---------------------------------------------------------------------------
# Cookie helper
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str) -> None:
    """Write the JWT access token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie.
    samesite="lax": not sent on cross-site POST.
    secure: only sent over HTTPS when SECURE_COOKIES=true.
    No max_age: tokens do not expire, so neither does the cookie beyond the
    browser session.
    """
    response.set_cookie(
        "access_token",
        value=token,
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
    )
