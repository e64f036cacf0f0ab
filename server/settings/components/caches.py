"""Cache settings for folder and file metadata projections.

The cache only holds derived data; losing Redis never loses state.
"""

from server.settings.components import config

# Redis instance holding folder/file projections
FILES_CACHE_URL = config(
    'FILES_CACHE_URL',
    default='redis://localhost:6379/0',
)

# Default expiry for cached projections, in seconds
FILES_CACHE_TTL = config('FILES_CACHE_TTL', cast=int, default=3600)
