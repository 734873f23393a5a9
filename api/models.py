"""
API request and response models for SheetShelf REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
library/models.py, which own the internal domain representation. Route
handlers map between the two.

Every request shape is validated here, at the boundary, before any domain
component runs. Response models never declare a password field, so password
material cannot leak through serialization.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from auth.models import User
from auth.tokens import PASSWORD_MAX_BYTES
from library.directory import normalize_email
from library.models import LibraryEntry, Work

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

USERNAME_PATTERN = r"^[A-Za-z0-9_.-]+$"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

# ---------------------------------------------------------------------------
# Users -- request models
# ---------------------------------------------------------------------------


def _strip(value):
    return value.strip() if isinstance(value, str) else value


def _normalize_email(value):
    return normalize_email(value) if isinstance(value, str) else value


def _check_password_bytes(value: str) -> str:
    # bcrypt reads at most 72 bytes and bcrypt>=5 raises past that.
    if len(value.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValueError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes when UTF-8 encoded.")
    return value


class UserRegister(BaseModel):
    """Request body for POST /api/v1/auth/register (self-service).

    username, name and email are stripped; email is lower-cased so uniqueness
    is case-insensitive. The password is taken exactly as sent.
    """

    model_config = ConfigDict(extra="forbid")

    username: str = Field(min_length=1, max_length=30, pattern=USERNAME_PATTERN)
    name: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=6, max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=5, max_length=PASSWORD_MAX_BYTES)

    @field_validator("username", "name", mode="before")
    @classmethod
    def strip_text(cls, value):
        return _strip(value)

    @field_validator("email", mode="before")
    @classmethod
    def lower_email(cls, value):
        return _normalize_email(value)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)


class UserCreate(UserRegister):
    """Request body for POST /api/v1/users (admin creates a user, possibly another admin)."""

    is_admin: bool = Field(default=False, alias="isAdmin")

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class UserUpdate(BaseModel):
    """Request body for PATCH /api/v1/users/{username}.

    password is the current password and is required on every update.
    At least one of name/email must be present.
    """

    model_config = ConfigDict(extra="forbid")

    password: str = Field(min_length=1, max_length=PASSWORD_MAX_BYTES)
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[str] = Field(default=None, min_length=6, max_length=255, pattern=EMAIL_PATTERN)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return _strip(value)

    @field_validator("email", mode="before")
    @classmethod
    def lower_email(cls, value):
        return _normalize_email(value)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)

    @model_validator(mode="after")
    def require_a_change(self) -> "UserUpdate":
        if self.name is None and self.email is None:
            raise ValueError("Provide at least one of: name, email.")
        return self


class LoginRequest(BaseModel):
    username: str = Field(min_length=1, max_length=30)
    password: str = Field(min_length=1, max_length=PASSWORD_MAX_BYTES)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)


# ---------------------------------------------------------------------------
# Library -- request models
# ---------------------------------------------------------------------------


class LibraryEntryCreate(BaseModel):
    """Optional body for POST /api/v1/users/{username}/userLib/{work_id}."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid", populate_by_name=True)

    owned: bool = False
    played: bool = False
    digital: bool = False
    physical: bool = False
    notes: str = Field(default="", max_length=2000)
    loaned_out: bool = Field(default=False, alias="loanedOut")
    borrower: Optional[str] = Field(default=None, max_length=255)


class LibraryEntryUpdate(BaseModel):
    """Body for PATCH /api/v1/users/{username}/userLib/{work_id}. Only set fields change."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid", populate_by_name=True)

    owned: Optional[bool] = None
    played: Optional[bool] = None
    digital: Optional[bool] = None
    physical: Optional[bool] = None
    notes: Optional[str] = Field(default=None, max_length=2000)
    loaned_out: Optional[bool] = Field(default=None, alias="loanedOut")
    borrower: Optional[str] = Field(default=None, max_length=255)

    @model_validator(mode="after")
    def require_a_change(self) -> "LibraryEntryUpdate":
        if not self.model_fields_set:
            raise ValueError("No fields to update.")
        return self


class WorkCreate(BaseModel):
    """Request body for POST /api/v1/works."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid", populate_by_name=True)

    external_id: Optional[str] = Field(default=None, alias="externalId", max_length=32, pattern=r"^\d+$")
    title: Optional[str] = Field(default=None, min_length=1, max_length=500)
    composer: Optional[str] = Field(default=None, min_length=1, max_length=255)

    @model_validator(mode="after")
    def require_reference(self) -> "WorkCreate":
        if self.external_id is None and self.title is None:
            raise ValueError("A work needs an externalId or a title.")
        return self


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of a user. No password material, by construction."""

    model_config = ConfigDict(frozen=True)

    username: str
    name: str
    email: str
    isAdmin: bool

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(username=user.username, name=user.name, email=user.email, isAdmin=user.is_admin)


class LibraryEntryResponse(BaseModel):
    """One library entry as returned inside GET /users/{username}.

    title/composer are None when neither the local record nor the catalog
    supplied them.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    workId: int
    externalId: Optional[str]
    title: Optional[str]
    composer: Optional[str]
    owned: bool
    played: bool
    digital: bool
    physical: bool
    notes: str
    loanedOut: bool
    borrower: Optional[str]
    addedAt: str

    @classmethod
    def from_entry(cls, entry: LibraryEntry) -> "LibraryEntryResponse":
        return cls(
            id=entry.id,
            workId=entry.work_id,
            externalId=entry.external_id,
            title=entry.title,
            composer=entry.composer,
            owned=entry.owned,
            played=entry.played,
            digital=entry.digital,
            physical=entry.physical,
            notes=entry.notes,
            loanedOut=entry.loaned_out,
            borrower=entry.borrower,
            addedAt=entry.added_at,
        )


class UserDetailResponse(UserResponse):
    works: list[LibraryEntryResponse] = Field(default_factory=list)


class WorkResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    externalId: Optional[str]
    title: Optional[str]
    composer: Optional[str]

    @classmethod
    def from_work(cls, work: Work) -> "WorkResponse":
        return cls(id=work.id, externalId=work.external_id, title=work.title, composer=work.composer)


class UserTokenEnvelope(BaseModel):
    """{user, token} -- returned by register, admin create, and login."""

    user: UserResponse
    token: str


class UserEnvelope(BaseModel):
    user: UserResponse


class UserDetailEnvelope(BaseModel):
    user: UserDetailResponse


class UserListEnvelope(BaseModel):
    users: list[UserResponse]


class DeletedEnvelope(BaseModel):
    deleted: str


class AddedEnvelope(BaseModel):
    added: int


class RemovedEnvelope(BaseModel):
    removed: int


class EntryEnvelope(BaseModel):
    entry: LibraryEntryResponse


class WorkEnvelope(BaseModel):
    work: WorkResponse


class WorkListEnvelope(BaseModel):
    works: list[WorkResponse]


class WorkDeletedEnvelope(BaseModel):
    deleted: int


class MeResponse(BaseModel):
    username: str
    isAdmin: bool


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
