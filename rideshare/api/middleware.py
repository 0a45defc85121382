"""Per-client rate limiting shared by all routers."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from rideshare.config import settings

RATE_LIMIT = settings.rate_limit

limiter = Limiter(key_func=get_remote_address)
