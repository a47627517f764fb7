"""DID resolver with stale-while-revalidate caching.

The resolver dispatches on the DID method, validates what comes back, and
keeps the optional cache in step with the outcome:

1. A fresh cache entry is returned as is.
2. A stale entry is returned immediately and revalidated in a detached task.
   The caller never waits on the refresh and never sees its errors.
3. A miss or an expired entry is resolved synchronously. Documents are
   cached, "no document" is cached as a tombstone (or clears the entry), and
   errors leave the cache untouched and propagate.

Concurrent resolutions of the same DID are not coordinated; whichever cache
write lands last wins.
"""

import asyncio
import logging
from time import time
from typing import Awaitable, Optional, Set, TypeVar

from aiohttp import ClientSession
import sentry_sdk

from social.graze.did.cache import CacheResult, DidCache
from social.graze.did.document import AtprotoData, DidDocument, parse_atproto_data
from social.graze.did.errors import (
    DidNotFoundError,
    DidResolutionError,
    ResolutionTimeoutError,
)
from social.graze.did.methods import (
    DEFAULT_PLC_DIRECTORY,
    DEFAULT_TIMEOUT_MS,
    DidMethod,
    parse_did,
    resolve_did_plc,
    resolve_did_web,
)
from social.graze.did.metrics import MetricsClient, NoOpMetricsClient

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DidResolver:
    """Resolve did:plc and did:web DIDs to DID documents.

    Args:
        session: HTTP client session used for every fetch
        plc_directory: Base URL of the PLC directory
        timeout_ms: Budget for each network fetch and cache call
        cache: Optional document cache
        metrics: Optional metrics client
        cache_not_found: Store a tombstone when a DID has no document. When
            False the cache entry is cleared instead.
    """

    def __init__(
        self,
        session: ClientSession,
        plc_directory: str = DEFAULT_PLC_DIRECTORY,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        cache: Optional[DidCache] = None,
        metrics: Optional[MetricsClient] = None,
        cache_not_found: bool = True,
    ):
        self.session = session
        self.plc_directory = plc_directory
        self.timeout_ms = timeout_ms
        self.cache = cache
        self.metrics = metrics if metrics is not None else NoOpMetricsClient()
        self.cache_not_found = cache_not_found
        self._background_tasks: Set[asyncio.Task[None]] = set()

    async def resolve(self, did: str) -> Optional[DidDocument]:
        """Resolve a DID, serving from the cache when possible.

        Returns:
            DidDocument, or None when the DID has no (valid) document

        Raises:
            UnsupportedMethodError: DID method is not plc or web
            UnsupportedDidFormatError: DID shape is not supported
            ResolutionTimeoutError: fetch or cache call exceeded timeout_ms
            DirectoryError: PLC directory returned an error status
            FetchError: transport failure
        """
        parse_did(did)

        if self.cache is not None:
            cached = await self._bounded(did, self.cache.check_cache(did))
            if cached is not None and not cached.expired:
                if cached.stale:
                    self.metrics.increment(
                        "did.resolve.cache", tag_dict={"status": "stale"}
                    )
                    self._schedule_refresh(self.cache, did, cached)
                else:
                    self.metrics.increment(
                        "did.resolve.cache", tag_dict={"status": "fresh"}
                    )
                return cached.document
            self.metrics.increment(
                "did.resolve.cache",
                tag_dict={"status": "expired" if cached is not None else "miss"},
            )

        document = await self.resolve_no_cache(did)
        await self._update_cache(did, document)
        return document

    async def resolve_no_cache(self, did: str) -> Optional[DidDocument]:
        """Fetch and validate a DID document, bypassing the cache entirely."""
        parsed = parse_did(did)
        method = parsed.method.name.removeprefix("did_method_")

        start_time = time()
        try:
            if parsed.method == DidMethod.did_method_plc:
                document = await resolve_did_plc(
                    self.session, self.plc_directory, did, self.timeout_ms
                )
            else:
                document = await resolve_did_web(self.session, did, self.timeout_ms)
        except DidResolutionError as e:
            logger.info("Error resolving %s: %s", did, e)
            self.metrics.increment(
                "did.resolve.count", tag_dict={"method": method, "outcome": "error"}
            )
            raise
        finally:
            self.metrics.timer(
                "did.resolve.time", time() - start_time, tag_dict={"method": method}
            )

        self.metrics.increment(
            "did.resolve.count",
            tag_dict={
                "method": method,
                "outcome": "found" if document is not None else "not_found",
            },
        )
        return document

    async def refresh(self, did: str) -> Optional[DidDocument]:
        """Resolve a DID synchronously, ignoring any cached entry, and store the outcome."""
        document = await self.resolve_no_cache(did)
        await self._update_cache(did, document)
        return document

    async def ensure_resolve(self, did: str) -> DidDocument:
        """Resolve a DID, raising DidNotFoundError when it has no document."""
        document = await self.resolve(did)
        if document is None:
            raise DidNotFoundError(did)
        return document

    async def resolve_atproto_data(self, did: str) -> Optional[AtprotoData]:
        """Resolve a DID and extract its handle, PDS and signing key.

        Returns:
            AtprotoData, or None when the DID has no document or the document
            lacks a handle or PDS
        """
        document = await self.resolve(did)
        if document is None:
            return None
        return parse_atproto_data(document)

    async def wait_for_background(self) -> None:
        """Wait for in-flight background revalidations to finish."""
        if self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    async def _bounded(self, did: str, awaitable: Awaitable[T]) -> T:
        # Cache calls share the fetch budget.
        try:
            async with asyncio.timeout(self.timeout_ms / 1000):
                return await awaitable
        except TimeoutError as e:
            raise ResolutionTimeoutError(did, self.timeout_ms) from e

    async def _update_cache(self, did: str, document: Optional[DidDocument]) -> None:
        if self.cache is None:
            return
        if document is not None or self.cache_not_found:
            await self._bounded(did, self.cache.cache_did(did, document))
        else:
            await self._bounded(did, self.cache.clear_entry(did))

    def _schedule_refresh(self, cache: DidCache, did: str, cached: CacheResult) -> None:
        # Detached from the caller's task so the caller's timeout or
        # cancellation never reaches the refresh.
        task = asyncio.create_task(self._background_refresh(cache, did, cached))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        self.metrics.gauge("did.refresh.pending", len(self._background_tasks))

    async def _background_refresh(
        self, cache: DidCache, did: str, cached: CacheResult
    ) -> None:
        try:
            await cache.refresh_cache(did, lambda: self.resolve_no_cache(did), cached)
        except Exception as e:
            self.metrics.increment("did.refresh.error")
            sentry_sdk.capture_exception(e)
            logger.warning("Background refresh failed for %s", did, exc_info=True)
