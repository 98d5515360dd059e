"""
Startup Dashboard - Shared Constants

Centralizes version string, roles, quarter labels and cache lifetimes
used across multiple modules.
"""

__version__ = "1.0.0"

APP_NAME = "Startup Dashboard"

# =============================================================================
# ROLES
# =============================================================================
ROLE_USER = "user"
ROLE_VC = "vc"
ROLE_ADMIN = "admin"
ROLE_MODERATOR = "moderator"

# =============================================================================
# QUARTERS
# =============================================================================
QUARTER_LABELS = ("Q1", "Q2", "Q3", "Q4")
MAX_YEAR = 9999

# Largest id an INTEGER primary key column holds
MAX_ID = 2**31 - 1

# =============================================================================
# CACHE TTLs (seconds)
# =============================================================================
COMPANY_CACHE_TTL = 120
QUARTER_CACHE_TTL = 180
USER_CACHE_TTL = 180

# =============================================================================
# TOKENS
# =============================================================================
ACCESS_TOKEN_EXPIRE_HOURS = 6
DEFAULT_RESET_TOKEN_EXPIRY_MINUTES = 15

# Unlinked user accounts older than this are purged by the scheduler.
UNLINKED_USER_MAX_AGE_HOURS = 6
CLEANUP_INTERVAL_HOURS = 6

# A single write is retried at most once after a version conflict.
MAX_APPEND_RETRIES = 1
