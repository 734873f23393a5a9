"""
core/errors.py -- Domain error taxonomy for SheetShelf.

Domain components (auth/, library/) fail fast by raising one of these. The
HTTP boundary (api/main.py) owns the single mapping from error kind to status
code and JSON envelope, so no route handler builds error responses by hand.

Layer rule: core/ is the kernel. No imports from api/, auth/, library/, cache/.
"""

from __future__ import annotations


class SheetShelfError(Exception):
    """Base class for every expected, client-facing failure."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str, detail: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail


class ValidationError(SheetShelfError):
    """Malformed or missing input."""

    status_code = 400
    code = "validation_error"


class Unauthorized(SheetShelfError):
    """No credential, an invalid token, or a failed password check."""

    status_code = 401
    code = "unauthorized"


class Forbidden(SheetShelfError):
    """Authenticated, but not entitled to act on this resource."""

    status_code = 403
    code = "forbidden"


class NotFound(SheetShelfError):
    status_code = 404
    code = "not_found"


class Conflict(SheetShelfError):
    """A uniqueness rule (username, email, or user/work pair) would be violated."""

    status_code = 409
    code = "conflict"
