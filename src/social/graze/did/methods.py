"""did:web and did:plc document fetching.

Each resolver issues exactly one GET for a DID and never follows redirects:
a 3xx answer is treated as "no document" so a host that redirects cannot
substitute a document served from somewhere else.

The two methods treat error statuses differently. A did:web host that does
not serve a document is a routine condition and yields None. The PLC
directory is expected to be reachable, so only 404 means "no document" and
any other error status raises DirectoryError.
"""

import asyncio
from enum import IntEnum
import logging
from typing import Any, NamedTuple, Optional
from urllib.parse import quote, unquote

from aiohttp import ClientError, ClientSession
from pydantic import BaseModel
from yarl import URL

from social.graze.did.document import DidDocument, validate_did_document
from social.graze.did.errors import (
    DirectoryError,
    FetchError,
    ResolutionTimeoutError,
    UnsupportedDidFormatError,
    UnsupportedMethodError,
)

logger = logging.getLogger(__name__)

DEFAULT_PLC_DIRECTORY = "https://plc.directory"
DEFAULT_TIMEOUT_MS = 3000
ACCEPT = "application/did+ld+json,application/json"


class DidMethod(IntEnum):
    """Supported DID methods."""

    did_method_plc = 1
    did_method_web = 2


class ParsedDid(BaseModel):
    did: str
    method: DidMethod
    identifier: str


class FetchResponse(NamedTuple):
    status: int
    reason: Optional[str]
    payload: Any

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def redirect(self) -> bool:
        return 300 <= self.status < 400


def parse_did(did: str) -> ParsedDid:
    """Split a DID into its method and method-specific identifier.

    Raises:
        UnsupportedMethodError: method is not plc or web
        UnsupportedDidFormatError: method-specific identifier is empty
    """
    if did.startswith("did:plc:"):
        method = DidMethod.did_method_plc
    elif did.startswith("did:web:"):
        method = DidMethod.did_method_web
    else:
        raise UnsupportedMethodError(did)

    identifier = did.split(":", 2)[2]
    if not identifier:
        raise UnsupportedDidFormatError(did, "empty method-specific identifier")
    return ParsedDid(did=did, method=method, identifier=identifier)


def did_web_url(did: str) -> str:
    """Build the did.json URL for a did:web DID.

    Only bare-domain did:web identifiers are supported. Port numbers arrive
    percent-encoded (did:web:localhost%3A3000). localhost is fetched over
    plain http for local development.

    Raises:
        UnsupportedDidFormatError: identifier is empty, carries a path or
            does not decode to a host
    """
    parts = did.removeprefix("did:web:").split(":")
    if parts[0] == "":
        raise UnsupportedDidFormatError(did, "empty method-specific identifier")
    if len(parts) > 1:
        raise UnsupportedDidFormatError(did, "did:web with path")

    domain = unquote(parts[0])
    if "/" in domain:
        raise UnsupportedDidFormatError(did, "did:web with path")
    try:
        url = URL(f"https://{domain}/.well-known/did.json")
    except ValueError as e:
        raise UnsupportedDidFormatError(did, "invalid domain") from e
    if (
        not url.host
        or url.path != "/.well-known/did.json"
        or url.query_string
        or url.fragment
    ):
        raise UnsupportedDidFormatError(did, "invalid domain")

    if url.host == "localhost":
        url = url.with_scheme("http")
    return str(url)


def did_plc_url(plc_directory: str, did: str) -> str:
    return "{base}/{did}".format(base=plc_directory.rstrip("/"), did=quote(did, safe=""))


async def fetch_document(
    session: ClientSession, did: str, url: str, timeout_ms: int
) -> FetchResponse:
    """Issue a single GET for a DID document without following redirects.

    The JSON body is only read for 2xx answers. A body that is not valid
    JSON is returned as a None payload and fails validation downstream.

    Raises:
        ResolutionTimeoutError: request did not finish within timeout_ms
        FetchError: transport level failure
    """
    try:
        async with asyncio.timeout(timeout_ms / 1000):
            async with session.get(
                url, headers={"Accept": ACCEPT}, allow_redirects=False
            ) as resp:
                if not 200 <= resp.status < 300:
                    return FetchResponse(resp.status, resp.reason, None)
                try:
                    payload = await resp.json(content_type=None)
                except ValueError:
                    logger.debug("Invalid JSON in DID document for %s at %s", did, url)
                    payload = None
                return FetchResponse(resp.status, resp.reason, payload)
    except TimeoutError as e:
        raise ResolutionTimeoutError(did, timeout_ms) from e
    except ClientError as e:
        raise FetchError(did, url, e) from e


async def resolve_did_web(
    session: ClientSession, did: str, timeout_ms: int = DEFAULT_TIMEOUT_MS
) -> Optional[DidDocument]:
    """Resolve a did:web DID from https://{domain}/.well-known/did.json.

    Args:
        session: HTTP client session
        did: did:web DID to resolve
        timeout_ms: Budget for the whole request

    Returns:
        DidDocument if the host serves a valid document for the DID, None for
        redirects, error statuses and invalid documents
    """
    url = did_web_url(did)
    response = await fetch_document(session, did, url, timeout_ms)

    if response.redirect:
        logger.warning("Refusing redirect (%d) resolving %s", response.status, did)
        return None
    if not response.ok:
        logger.debug("No DID document for %s: %s returned %d", did, url, response.status)
        return None

    return validate_did_document(did, response.payload)


async def resolve_did_plc(
    session: ClientSession,
    plc_directory: str,
    did: str,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
) -> Optional[DidDocument]:
    """Resolve a did:plc DID through a PLC directory.

    Args:
        session: HTTP client session
        plc_directory: Base URL of the PLC directory
        did: did:plc DID to resolve
        timeout_ms: Budget for the whole request

    Returns:
        DidDocument if the directory has a valid document for the DID, None for
        redirects, 404 and invalid documents

    Raises:
        DirectoryError: directory answered with any other error status
    """
    url = did_plc_url(plc_directory, did)
    response = await fetch_document(session, did, url, timeout_ms)

    if response.redirect:
        logger.warning("Refusing redirect (%d) resolving %s", response.status, did)
        return None
    if response.status == 404:
        return None
    if not response.ok:
        raise DirectoryError(did, response.status, response.reason)

    return validate_did_document(did, response.payload)
