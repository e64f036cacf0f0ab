"""Redis-backed cache for folder and file metadata projections.

The cache is derived state only. Every read falls back to the database
on a miss or on any Redis error, and writes invalidate after commit.
"""

import logging
import pickle  # noqa: S403
from collections.abc import Iterable
from functools import partial
from typing import Any, Final

import redis
from django.conf import settings
from django.db import transaction

logger = logging.getLogger(__name__)

# Batch size for SCAN when invalidating by pattern
_SCAN_COUNT: Final = 500


class CacheLayer:
    """Key/value cache with TTL expiry and pattern invalidation.

    Values are pickled, so dicts with datetimes survive a round trip.
    Redis failures are logged and reported as misses, never raised.
    """

    def __init__(self, client: redis.Redis | None = None) -> None:
        """Initialize CacheLayer.

        Args:
            client: Redis client; created from FILES_CACHE_URL on first
                use when omitted.
        """
        self._client = client

    @property
    def client(self) -> redis.Redis:
        """Redis client, connected lazily."""
        if self._client is None:
            self._client = redis.Redis.from_url(
                settings.FILES_CACHE_URL,
                socket_timeout=5,
                socket_connect_timeout=5,
            )
        return self._client

    def get(self, key: str) -> Any | None:
        """Return the cached value for key, or None on miss."""
        try:
            raw_value = self.client.get(key)
        except redis.RedisError:
            logger.exception('Cache get failed for key %s', key)
            return None
        if raw_value is None:
            return None
        return pickle.loads(raw_value)  # noqa: S301

    def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """Store value under key for ttl seconds.

        Args:
            key: Cache key.
            value: Picklable value.
            ttl: Expiry in seconds, FILES_CACHE_TTL when omitted.

        Returns:
            True if the value was stored.
        """
        expiry = ttl or settings.FILES_CACHE_TTL
        try:
            payload = pickle.dumps(value)
        except RecursionError:
            # Very deep folder trees exceed the pickler's nesting limit
            logger.warning('Value for key %s too deeply nested to cache', key)
            return False
        try:
            return bool(self.client.setex(key, expiry, payload))
        except redis.RedisError:
            logger.exception('Cache set failed for key %s', key)
            return False

    def delete(self, *keys: str) -> int:
        """Delete exact keys; absent keys are ignored.

        Returns:
            Number of keys that existed.
        """
        if not keys:
            return 0
        try:
            return int(self.client.delete(*keys))
        except redis.RedisError:
            logger.exception('Cache delete failed for keys %s', keys)
            return 0

    def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern such as 'user:1:tree*'.

        Returns:
            Number of keys deleted.
        """
        try:
            keys = list(self.client.scan_iter(match=pattern, count=_SCAN_COUNT))
            if not keys:
                return 0
            return int(self.client.delete(*keys))
        except redis.RedisError:
            logger.exception('Cache delete failed for pattern %s', pattern)
            return 0

    def invalidate(
        self,
        keys: Iterable[str] = (),
        patterns: Iterable[str] = (),
    ) -> None:
        """Delete exact keys and pattern matches right away."""
        self.delete(*keys)
        for pattern in patterns:
            self.delete_pattern(pattern)

    def invalidate_on_commit(
        self,
        keys: Iterable[str] = (),
        patterns: Iterable[str] = (),
    ) -> None:
        """Schedule invalidation for after the current transaction commits.

        Outside a transaction the invalidation runs immediately. Inside
        nested atomic blocks it waits for the outermost commit and is
        dropped if the transaction rolls back.
        """
        transaction.on_commit(
            partial(self.invalidate, tuple(keys), tuple(patterns)),
        )


cache_layer = CacheLayer()


# Key builders. Every key starts with the owner, so projections are
# never shared between owners and owner-wide patterns stay exact.

def _scope(owner_id: int, folder_id: int | None) -> str:
    if folder_id is None:
        return f'user:{owner_id}:root'
    return f'user:{owner_id}:folder:{folder_id}'


def folder_key(owner_id: int, folder_id: int) -> str:
    """Single folder record."""
    return f'user:{owner_id}:folder:{folder_id}'


def subfolders_key(owner_id: int, folder_id: int | None) -> str:
    """Direct subfolders of a folder, or of the owner's root."""
    return f'{_scope(owner_id, folder_id)}:subfolders'


def contents_key(owner_id: int, folder_id: int | None) -> str:
    """Merged subfolders and files of a folder, or of the owner's root."""
    return f'{_scope(owner_id, folder_id)}:contents'


def files_key(owner_id: int, folder_id: int | None) -> str:
    """Files directly inside a folder, or at the owner's root."""
    return f'{_scope(owner_id, folder_id)}:files'


def folder_list_key(owner_id: int) -> str:
    """Flat list of all the owner's folders."""
    return f'user:{owner_id}:folders'


def folder_tree_key(owner_id: int) -> str:
    """Materialized folder forest of the owner."""
    return f'user:{owner_id}:folder_tree'


def folder_tree_pattern(owner_id: int) -> str:
    """Pattern matching every tree projection of the owner."""
    return f'{folder_tree_key(owner_id)}*'


def file_key(owner_id: int, file_id: int) -> str:
    """Single file record."""
    return f'user:{owner_id}:file:{file_id}'


def listing_keys(owner_id: int, folder_id: int | None) -> tuple[str, ...]:
    """Every listing projection scoped to one folder (or the root)."""
    return (
        subfolders_key(owner_id, folder_id),
        contents_key(owner_id, folder_id),
        files_key(owner_id, folder_id),
    )
