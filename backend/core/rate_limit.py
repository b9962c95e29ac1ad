from slowapi import Limiter
from slowapi.util import get_remote_address

from config import settings

# Shared by main.py (state + handler) and the routers (decorators)
limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)
