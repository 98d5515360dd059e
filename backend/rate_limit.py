"""
Startup Dashboard - Rate Limiting

Shared slowapi limiter for the credential endpoints. Disable with
RATE_LIMIT_ENABLED=false.
"""
import os
import logging

from slowapi import Limiter
from slowapi.util import get_remote_address

logger = logging.getLogger(__name__)

RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"

# Login, signup and password recovery
AUTH_LIMIT = os.getenv("AUTH_RATE_LIMIT", "20/minute")

limiter = Limiter(key_func=get_remote_address, enabled=RATE_LIMIT_ENABLED)
