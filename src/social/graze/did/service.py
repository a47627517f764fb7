"""
Resolver wiring.

DidResolverService builds a DidResolver from Settings together with the
resources it needs (HTTP session, cache backend, metrics client, Sentry) and
releases them on exit:

    async with DidResolverService(settings) as resolver:
        document = await resolver.resolve("did:plc:ewvi7nxzyoun6zhxrhs64oiz")
"""

import logging
from typing import Optional

import aiohttp
from aiohttp import ClientSession
from redis import asyncio as redis
import sentry_sdk
from sentry_sdk.integrations.aiohttp import AioHttpIntegration

from social.graze.did.cache import DidCache, MemoryCache, RedisCache
from social.graze.did.config import Settings
from social.graze.did.metrics import MetricsClient, create_metrics_client
from social.graze.did.resolver import DidResolver

logger = logging.getLogger(__name__)


def create_trace_config(debug: bool) -> aiohttp.TraceConfig:
    trace_config = aiohttp.TraceConfig()

    if debug:

        async def on_request_start(
            session, trace_config_ctx, params: aiohttp.TraceRequestStartParams
        ):
            logger.info("Starting request: %s %s", params.method, params.url)

        async def on_request_end(
            session, trace_config_ctx, params: aiohttp.TraceRequestEndParams
        ):
            logger.info(
                "Ending request: %s %s %d",
                params.method,
                params.url,
                params.response.status,
            )

        trace_config.on_request_start.append(on_request_start)
        trace_config.on_request_end.append(on_request_end)

    return trace_config


class DidResolverService:
    """Owns a DidResolver and the resources behind it.

    Args:
        settings: Resolver settings, loaded from the environment when omitted
        session: Existing HTTP session to use. The service only closes
            sessions it created itself.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        session: Optional[ClientSession] = None,
    ):
        self.settings = settings if settings is not None else Settings()  # type: ignore
        self.session = session
        self.owns_session = session is None
        self.redis_pool: Optional[redis.ConnectionPool] = None
        self.redis_client: Optional[redis.Redis] = None
        self.metrics: Optional[MetricsClient] = None
        self.resolver: Optional[DidResolver] = None

    def create_cache(self) -> Optional[DidCache]:
        settings = self.settings
        if settings.cache_backend == "none":
            return None
        if settings.cache_backend == "redis":
            self.redis_pool = redis.ConnectionPool.from_url(str(settings.redis_dsn))
            self.redis_client = redis.Redis(connection_pool=self.redis_pool)
            return RedisCache(
                self.redis_client,
                key_prefix=settings.redis_key_prefix,
                stale_ttl=settings.cache_stale_ttl,
                max_ttl=settings.cache_max_ttl,
            )
        return MemoryCache(
            stale_ttl=settings.cache_stale_ttl, max_ttl=settings.cache_max_ttl
        )

    async def start(self) -> DidResolver:
        logger.info("Starting up")
        settings = self.settings

        if settings.sentry_dsn:
            sentry_sdk.init(
                dsn=settings.sentry_dsn,
                integrations=[AioHttpIntegration()],
            )

        if self.session is None:
            self.session = ClientSession(
                trace_configs=[create_trace_config(settings.debug)]
            )

        self.metrics = create_metrics_client(
            settings.metrics_backend,
            host=settings.statsd_host,
            port=settings.statsd_port,
            prefix=settings.statsd_prefix,
            debug=settings.debug,
        )
        await self.metrics.connect()

        self.resolver = DidResolver(
            self.session,
            plc_directory=settings.plc_directory,
            timeout_ms=settings.timeout_ms,
            cache=self.create_cache(),
            metrics=self.metrics,
            cache_not_found=settings.cache_not_found,
        )

        logger.info("Startup complete")
        return self.resolver

    async def close(self) -> None:
        if self.resolver is not None:
            await self.resolver.wait_for_background()
        if self.owns_session and self.session is not None:
            await self.session.close()
        if self.redis_client is not None:
            await self.redis_client.aclose()
        if self.redis_pool is not None:
            await self.redis_pool.aclose()
        if self.metrics is not None:
            await self.metrics.close()

    async def __aenter__(self) -> DidResolver:
        return await self.start()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
