"""
Shared test configuration and fixtures for DID resolver tests.

Provides a mocked aiohttp session, canned responses, sample DID documents,
a controllable clock for cache freshness, and a fake Redis client.
"""

import asyncio
from typing import Any, Callable, Dict, Optional
from unittest.mock import AsyncMock

import fakeredis.aioredis
import pytest
import pytest_asyncio
from aiohttp import ClientResponse, ClientSession


def build_did_document(
    did: str,
    handle: str = "alice.example.com",
    pds: str = "https://pds.example.com",
) -> Dict[str, Any]:
    """Build a DID document payload as served by a PLC directory."""
    return {
        "@context": [
            "https://www.w3.org/ns/did/v1",
            "https://w3id.org/security/multikey/v1",
        ],
        "id": did,
        "alsoKnownAs": [f"at://{handle}"],
        "verificationMethod": [
            {
                "id": f"{did}#atproto",
                "type": "Multikey",
                "controller": did,
                "publicKeyMultibase": "zQ3shXjHeiBuRCKmM36cuYnm7YEMzhGnCmCyW92sRJ9pribSF",
            }
        ],
        "service": [
            {
                "id": "#atproto_pds",
                "type": "AtprotoPersonalDataServer",
                "serviceEndpoint": pds,
            }
        ],
    }


class FakeClock:
    """Manually advanced clock for cache freshness tests."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def did_document() -> Callable[..., Dict[str, Any]]:
    return build_did_document


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def mock_session():
    """Mocked aiohttp ClientSession."""
    return AsyncMock(spec=ClientSession)


@pytest.fixture
def respond(mock_session):
    """Configure the next response returned by mock_session.get.

    Pass delay to make the response arrive after that many seconds.
    """

    def _respond(
        status: int,
        payload: Any = None,
        reason: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        delay: Optional[float] = None,
    ):
        mock_response = AsyncMock(spec=ClientResponse)
        mock_response.status = status
        mock_response.reason = reason
        mock_response.headers = headers or {}
        mock_response.json.return_value = payload

        if delay is None:
            mock_session.get.return_value.__aenter__.return_value = mock_response
        else:

            async def _delayed(*args, **kwargs):
                await asyncio.sleep(delay)
                return mock_response

            mock_session.get.return_value.__aenter__.side_effect = _delayed
        return mock_response

    return _respond


@pytest_asyncio.fixture
async def fake_redis_client():
    """Provide fake Redis client for unit tests."""
    client = fakeredis.aioredis.FakeRedis(decode_responses=False)
    yield client
    await client.flushall()
    await client.aclose()
