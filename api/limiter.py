"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in api/main.py (to mount on app.state) and in the route modules
(to apply per-route limits with @limiter.limit()).

A single shared instance means every route shares the same in-memory counter
store. Instantiated per module, each module would get its own isolated
counters and limits would never trigger.

Credential endpoints take their limit from the Settings the app was built
with. slowapi hands a limit provider that declares a `key` parameter the
result of the route's key function, so login_rate_key() folds the configured
limit into the bucket key and login_rate_limit() reads it back out:

    @router.post("/auth/login")
    @limiter.limit(login_rate_limit, key_func=login_rate_key)
    def login(request: Request, ...): ...
"""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")

_KEY_SEPARATOR = "|"


def login_rate_key(request: Request) -> str:
    """Bucket key for credential endpoints: configured limit + client address."""
    return f"{request.app.state.settings.login_rate_limit}{_KEY_SEPARATOR}{get_remote_address(request)}"


def login_rate_limit(key: str) -> str:
    return key.split(_KEY_SEPARATOR, 1)[0]
