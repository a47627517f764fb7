"""
DID Resolution

This package resolves AT Protocol DIDs to their DID documents.

Key Components:
- resolver.py: DidResolver, cache-first resolution with background revalidation
- methods.py: did:web and did:plc fetching
- document.py: DID document models, validation and AT Protocol helpers
- cache.py: Cache port with in-memory and Redis implementations
- errors.py: Resolution error types
- config.py: Settings loaded from the environment
- metrics.py: Metrics abstraction (Telegraf or no-op)
- service.py: Wiring of a resolver and its resources from Settings

Resolution Methods:
1. did:web
   - Only bare-domain identifiers, fetched from https://{domain}/.well-known/did.json
   - Any non-2xx answer means "no document"

2. did:plc
   - Fetched from the PLC directory
   - 404 means "no document", other error statuses raise DirectoryError

Redirects are never followed for either method, and a document is only accepted
when its id is the DID that was requested.
"""

from social.graze.did.cache import (
    CacheResult,
    CacheStatus,
    DidCache,
    MemoryCache,
    RedisCache,
)
from social.graze.did.document import AtprotoData, DidDocument
from social.graze.did.errors import (
    DidNotFoundError,
    DidResolutionError,
    DirectoryError,
    FetchError,
    ResolutionTimeoutError,
    UnsupportedDidFormatError,
    UnsupportedMethodError,
)
from social.graze.did.resolver import DidResolver

__all__ = [
    "AtprotoData",
    "CacheResult",
    "CacheStatus",
    "DidCache",
    "DidDocument",
    "DidNotFoundError",
    "DidResolutionError",
    "DidResolver",
    "DirectoryError",
    "FetchError",
    "MemoryCache",
    "RedisCache",
    "ResolutionTimeoutError",
    "UnsupportedDidFormatError",
    "UnsupportedMethodError",
]
