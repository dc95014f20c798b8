"""Rate limiting configuration."""
import os
from slowapi import Limiter
from slowapi.util import get_remote_address


def get_client_ip(request):
    """Get client IP for rate limiting, considering proxies."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # X-Forwarded-For can contain multiple IPs, take the first one
        return forwarded.split(",")[0].strip()

    return get_remote_address(request)


limiter = Limiter(
    key_func=get_client_ip,
    default_limits=["120/minute"],
    storage_uri=os.getenv("REDIS_URL", "memory://"),
    strategy="fixed-window"
)

# Writes spend gas from the server wallet; reads scan the whole ledger
RATE_LIMITS = {
    "read": "120/minute",
    "check_in": "30/minute",
    "create_meeting": "10/minute",
    "end_meeting": "10/minute",
}
