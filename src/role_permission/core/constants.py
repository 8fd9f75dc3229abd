"""Package-wide constants.

This module defines constants used throughout the package
to avoid magic numbers and ensure consistency.
"""

# Configuration defaults
DEFAULT_MASTER_ROLE_SLUG = "master-admin"
DEFAULT_CACHE_TTL_SECONDS = 3600  # 1 hour
DEFAULT_CACHE_KEY_PREFIX = "role_permission"

# String field lengths
MAX_NAME_LENGTH = 255
MAX_SLUG_LENGTH = 255
MAX_DESCRIPTION_LENGTH = 255
MAX_ROUTE_KEY_LENGTH = 255
MAX_PERMISSION_KIND_LENGTH = 20

# Cache
CACHE_GRANTED = "1"
CACHE_DENIED = "0"
CACHE_SCAN_BATCH_SIZE = 100
