"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in api/main.py (to mount as middleware) and in the route modules
under api/routes/v1/ (to apply per-route limits with @limiter.limit()).

All routes must share this one instance so they share one in-memory counter
store; a limiter per module would never trigger.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")

# Upload routes parse and store whole exports; they get a tighter, configurable limit.
UPLOAD_LIMIT = get_settings().upload_rate_limit
