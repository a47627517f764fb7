"""DID document models and validation.

A fetched payload is only accepted as a DID document when it has the expected
shape and its ``id`` is exactly the DID that was requested. Unknown fields are
kept so documents written against newer revisions of the DID core vocabulary
still validate.
"""

from typing import Any, Dict, List, Optional, Union
from urllib.parse import urlparse
import logging

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

ATPROTO_PDS_SERVICE_ID = "#atproto_pds"
ATPROTO_PDS_SERVICE_TYPE = "AtprotoPersonalDataServer"
ATPROTO_SIGNING_KEY_ID = "#atproto"


class VerificationMethod(BaseModel):
    """Public key entry of a DID document."""

    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    id: str
    type: str
    controller: str
    public_key_multibase: Optional[str] = Field(
        default=None, alias="publicKeyMultibase"
    )


class Service(BaseModel):
    """Service endpoint entry of a DID document."""

    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    id: str
    type: str
    service_endpoint: Union[str, Dict[str, Any]] = Field(alias="serviceEndpoint")


class DidDocument(BaseModel):
    """Validated DID document.

    Only ``id`` is required. ``alsoKnownAs``, ``verificationMethod`` and
    ``service`` are typed when present, anything else is carried through
    untouched. Instances are immutable.
    """

    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    id: str = Field(strict=True)
    context: Optional[Union[str, List[Any]]] = Field(default=None, alias="@context")
    also_known_as: List[str] = Field(default_factory=list, alias="alsoKnownAs")
    verification_method: List[VerificationMethod] = Field(
        default_factory=list, alias="verificationMethod"
    )
    service: List[Service] = Field(default_factory=list)

    def to_json_dict(self) -> Dict[str, Any]:
        """Dump the document using its wire field names, as it was received."""
        return self.model_dump(by_alias=True, exclude_unset=True, mode="json")


class AtprotoData(BaseModel):
    """AT Protocol identity details extracted from a DID document."""

    did: str
    handle: str
    pds: str
    signing_key: Optional[str] = None


def validate_did_document(expected_did: str, payload: Any) -> Optional[DidDocument]:
    """Check a fetched payload against the DID it was fetched for.

    Args:
        expected_did: DID that was requested
        payload: Decoded JSON body

    Returns:
        DidDocument when the payload is a well formed document for expected_did,
        None otherwise. Never raises.
    """
    try:
        document = DidDocument.model_validate(payload)
    except ValidationError as e:
        logger.debug(
            "Rejecting malformed DID document for %s: %d validation errors",
            expected_did,
            e.error_count(),
        )
        return None
    if document.id != expected_did:
        logger.debug(
            "Rejecting DID document for %s: document id is %s",
            expected_did,
            document.id,
        )
        return None
    return document


def _matches_id(document: DidDocument, entry_id: str, fragment: str) -> bool:
    return entry_id == fragment or entry_id == f"{document.id}{fragment}"


def get_handle(document: DidDocument) -> Optional[str]:
    """Return the first at:// alias of the document, without the prefix."""
    handle = next(
        filter(lambda value: value.startswith("at://"), document.also_known_as),
        None,
    )
    if handle is None:
        return None
    return handle.removeprefix("at://")


def get_pds_endpoint(document: DidDocument) -> Optional[str]:
    """Return the AT Protocol PDS endpoint declared by the document.

    The service must carry the #atproto_pds id (relative or absolute) and the
    AtprotoPersonalDataServer type, and its endpoint must be an http(s) URL.
    """
    for service in document.service:
        if not _matches_id(document, service.id, ATPROTO_PDS_SERVICE_ID):
            continue
        if service.type != ATPROTO_PDS_SERVICE_TYPE:
            return None
        endpoint = service.service_endpoint
        if not isinstance(endpoint, str):
            return None
        parsed = urlparse(endpoint)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            return None
        return endpoint
    return None


def get_signing_key(document: DidDocument) -> Optional[VerificationMethod]:
    for method in document.verification_method:
        if _matches_id(document, method.id, ATPROTO_SIGNING_KEY_ID):
            return method
    return None


def parse_atproto_data(document: DidDocument) -> Optional[AtprotoData]:
    """Extract handle, PDS and signing key from a DID document.

    Returns:
        AtprotoData if both a handle and a PDS endpoint are present, None otherwise
    """
    handle = get_handle(document)
    pds = get_pds_endpoint(document)
    if handle is None or pds is None:
        return None
    signing_key = get_signing_key(document)
    return AtprotoData(
        did=document.id,
        handle=handle,
        pds=pds,
        signing_key=(
            signing_key.public_key_multibase if signing_key is not None else None
        ),
    )
