"""
api/limiter.py -- The one slowapi Limiter for SheetShelf.

api/main.py mounts it (app.state.limiter + SlowAPIMiddleware) and
api/routes/v1/auth.py decorates register and login with it. Counters live in
process memory and are keyed by client IP, so there must be exactly one
instance; a second Limiter would count separately and never trip.

Only the credential endpoints are limited. Every other route needs a token,
and guessing one is not a rate problem.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")

# Read once at import: the decorator argument is fixed when routes are defined.
CREDENTIAL_RATE_LIMIT: str = get_settings().login_rate_limit
