"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in api/main.py (to mount as middleware) and in
api/routes/v1/users.py (to apply per-route limits with @limiter.limit()).

A single shared instance means every route shares the same in-memory counter
store. Instantiating one per module would give each module its own counters
and limits would never trigger.

RATE_LIMIT_ENABLED=false switches limiting off entirely (used by the tests,
which send every request from the same client address).
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    enabled=get_settings().rate_limit_enabled,
)
