"""DID document cache.

DidCache is the port the resolver reads and writes through. The freshness
policy belongs to the cache: an entry is classified as fresh, stale (usable
but due for revalidation) or expired (unusable) and the resolver only reacts
to that classification.

Two implementations are provided, both using a stale TTL and a max TTL:

- MemoryCache: per-process dictionary, suitable for a single worker
- RedisCache: shared across workers, one JSON value per DID
"""

from abc import ABC, abstractmethod
from enum import IntEnum
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, ValidationError
from redis import asyncio as redis
import sentry_sdk

from social.graze.did.document import DidDocument

logger = logging.getLogger(__name__)

DEFAULT_STALE_TTL = 60 * 60  # 1 hour
DEFAULT_MAX_TTL = 24 * 60 * 60  # 1 day

GetDocument = Callable[[], Awaitable[Optional[DidDocument]]]


class CacheStatus(IntEnum):
    """Freshness classification of a cache entry."""

    fresh = 1
    stale = 2
    expired = 3


class CacheResult(BaseModel):
    """A cache hit.

    A None document is a tombstone: the DID was resolved and had no document.
    """

    model_config = ConfigDict(frozen=True)

    did: str
    document: Optional[DidDocument]
    status: CacheStatus
    updated_at: float

    @property
    def stale(self) -> bool:
        return self.status == CacheStatus.stale

    @property
    def expired(self) -> bool:
        return self.status == CacheStatus.expired


class DidCache(ABC):
    """Storage port for resolved DID documents.

    Implementations must tolerate concurrent reads and writes for the same DID;
    the last write wins.
    """

    @abstractmethod
    async def check_cache(self, did: str) -> Optional[CacheResult]:
        """Return the entry for a DID, or None when nothing is cached."""
        pass

    async def refresh_cache(
        self, did: str, get_doc: GetDocument, prev_result: Optional[CacheResult] = None
    ) -> None:
        """Refetch a stale entry and store the result.

        A None outcome leaves the previous entry in place to age out. Errors
        raised by get_doc propagate to the caller of refresh_cache.
        """
        document = await get_doc()
        if document is not None:
            await self.cache_did(did, document, prev_result)

    @abstractmethod
    async def cache_did(
        self,
        did: str,
        document: Optional[DidDocument],
        prev_result: Optional[CacheResult] = None,
    ) -> None:
        """Store a document, or a tombstone when document is None."""
        pass

    @abstractmethod
    async def clear_entry(self, did: str) -> None:
        pass

    @abstractmethod
    async def clear(self) -> None:
        pass


class TTLDidCache(DidCache):
    """Base for caches classifying entries by age against two TTLs.

    Args:
        stale_ttl: Seconds after which an entry is served but revalidated
        max_ttl: Seconds after which an entry is no longer served
        clock: Source of the current time in seconds
    """

    def __init__(
        self,
        stale_ttl: int = DEFAULT_STALE_TTL,
        max_ttl: int = DEFAULT_MAX_TTL,
        clock: Callable[[], float] = time.time,
    ):
        if stale_ttl > max_ttl:
            raise ValueError("stale_ttl must not be greater than max_ttl")
        self.stale_ttl = stale_ttl
        self.max_ttl = max_ttl
        self.clock = clock

    def classify(self, updated_at: float) -> CacheStatus:
        age = self.clock() - updated_at
        if age > self.max_ttl:
            return CacheStatus.expired
        if age > self.stale_ttl:
            return CacheStatus.stale
        return CacheStatus.fresh


class MemoryCache(TTLDidCache):
    """In-process DID cache."""

    def __init__(
        self,
        stale_ttl: int = DEFAULT_STALE_TTL,
        max_ttl: int = DEFAULT_MAX_TTL,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(stale_ttl=stale_ttl, max_ttl=max_ttl, clock=clock)
        self.entries: Dict[str, Tuple[Optional[DidDocument], float]] = {}

    async def check_cache(self, did: str) -> Optional[CacheResult]:
        entry = self.entries.get(did)
        if entry is None:
            return None
        document, updated_at = entry
        return CacheResult(
            did=did,
            document=document,
            status=self.classify(updated_at),
            updated_at=updated_at,
        )

    async def cache_did(
        self,
        did: str,
        document: Optional[DidDocument],
        prev_result: Optional[CacheResult] = None,
    ) -> None:
        self.entries[did] = (document, self.clock())

    async def clear_entry(self, did: str) -> None:
        self.entries.pop(did, None)

    async def clear(self) -> None:
        self.entries.clear()


class RedisCacheEntry(BaseModel):
    """Serialized form of a RedisCache value."""

    document: Optional[Dict[str, Any]]
    updated_at: float


class RedisCache(TTLDidCache):
    """DID cache stored in Redis.

    Values are written with an expiry of max_ttl so Redis evicts entries that
    are no longer servable. Values that fail to decode are deleted and treated
    as a miss.
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        key_prefix: str = "did:doc:",
        stale_ttl: int = DEFAULT_STALE_TTL,
        max_ttl: int = DEFAULT_MAX_TTL,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(stale_ttl=stale_ttl, max_ttl=max_ttl, clock=clock)
        self.redis_client = redis_client
        self.key_prefix = key_prefix

    def key(self, did: str) -> str:
        return f"{self.key_prefix}{did}"

    async def check_cache(self, did: str) -> Optional[CacheResult]:
        raw = await self.redis_client.get(self.key(did))
        if raw is None:
            return None
        try:
            entry = RedisCacheEntry.model_validate_json(raw)
            document = (
                DidDocument.model_validate(entry.document)
                if entry.document is not None
                else None
            )
        except ValidationError as e:
            sentry_sdk.capture_exception(e)
            logger.warning("Dropping corrupt DID cache entry for %s", did)
            await self.redis_client.delete(self.key(did))
            return None
        return CacheResult(
            did=did,
            document=document,
            status=self.classify(entry.updated_at),
            updated_at=entry.updated_at,
        )

    async def cache_did(
        self,
        did: str,
        document: Optional[DidDocument],
        prev_result: Optional[CacheResult] = None,
    ) -> None:
        entry = RedisCacheEntry(
            document=document.to_json_dict() if document is not None else None,
            updated_at=self.clock(),
        )
        await self.redis_client.set(
            self.key(did), entry.model_dump_json(), ex=self.max_ttl
        )

    async def clear_entry(self, did: str) -> None:
        await self.redis_client.delete(self.key(did))

    async def clear(self) -> None:
        async for key in self.redis_client.scan_iter(match=f"{self.key_prefix}*"):
            await self.redis_client.delete(key)
