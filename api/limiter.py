"""
api/limiter.py -- Shared slowapi rate limiter instance.

api/main.py mounts it as middleware; the route modules under api/routes/v1/
apply per-route limits with @limiter.limit(). A single instance means every
route shares one in-memory counter store.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")

# Per-route budgets, per client address.
READ_LIMIT = "120/minute"
WRITE_LIMIT = "60/minute"
