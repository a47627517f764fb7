"""DID resolution error types.

Hard failures raised by the resolver. A DID with no document is not an error:
resolvers return None for it and callers decide what absence means.
"""

from typing import Optional


class DidResolutionError(Exception):
    """Base class for all DID resolution failures."""

    def __init__(self, did: str, message: str):
        super().__init__(message)
        self.did = did


class UnsupportedMethodError(DidResolutionError):
    """DID method is neither did:web nor did:plc."""

    def __init__(self, did: str):
        super().__init__(did, f"Unsupported DID method: {did}")


class UnsupportedDidFormatError(DidResolutionError):
    """DID uses a supported method but a shape we do not resolve."""

    def __init__(self, did: str, reason: str):
        super().__init__(did, f"Unsupported DID format ({reason}): {did}")
        self.reason = reason


class ResolutionTimeoutError(DidResolutionError):
    """Network fetch or cache call did not complete within the configured timeout."""

    def __init__(self, did: str, timeout_ms: int):
        super().__init__(did, f"Timed out after {timeout_ms}ms resolving {did}")
        self.timeout_ms = timeout_ms


class DirectoryError(DidResolutionError):
    """PLC directory answered with an error status other than 404."""

    def __init__(self, did: str, status: int, reason: Optional[str] = None):
        message = f"PLC directory error: {status}"
        if reason:
            message = f"{message} {reason}"
        super().__init__(did, message)
        self.status = status
        self.reason = reason


class FetchError(DidResolutionError):
    """Transport level failure (DNS, TLS, connection) while fetching a document."""

    def __init__(self, did: str, url: str, cause: Exception):
        super().__init__(did, f"Error fetching {url}: {cause}")
        self.url = url


class DidNotFoundError(DidResolutionError):
    def __init__(self, did: str):
        super().__init__(did, f"Could not resolve DID: {did}")
