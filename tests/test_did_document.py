"""
Unit tests for social.graze.did.document

Tests cover DID document shape and identity validation, forward compatible
handling of unknown fields, and the AT Protocol handle/PDS/key helpers.
"""

import pytest
from pydantic import ValidationError

from social.graze.did.document import (
    AtprotoData,
    DidDocument,
    get_handle,
    get_pds_endpoint,
    get_signing_key,
    parse_atproto_data,
    validate_did_document,
)

DID = "did:plc:ewvi7nxzyoun6zhxrhs64oiz"


class TestValidateDidDocument:
    """Test suite for validate_did_document."""

    def test_valid_document(self, did_document):
        """Test a well formed document for the requested DID is accepted."""
        result = validate_did_document(DID, did_document(DID))

        assert isinstance(result, DidDocument)
        assert result.id == DID
        assert result.also_known_as == ["at://alice.example.com"]
        assert result.service[0].service_endpoint == "https://pds.example.com"

    def test_minimal_document(self):
        """Test only the id field is required."""
        result = validate_did_document(DID, {"id": DID})

        assert result is not None
        assert result.also_known_as == []
        assert result.verification_method == []
        assert result.service == []

    def test_id_mismatch(self, did_document):
        """Test a document declaring another DID is rejected."""
        result = validate_did_document(DID, did_document("did:plc:someoneelse"))
        assert result is None

    def test_id_match_is_exact(self, did_document):
        """Test id comparison is exact string equality."""
        assert validate_did_document(DID, did_document(DID.upper())) is None
        assert validate_did_document(DID, did_document(f"{DID} ")) is None

    @pytest.mark.parametrize(
        "payload",
        [None, "did:plc:abc", [], 42, {}, {"id": 123}, {"id": None}],
    )
    def test_malformed_payload(self, payload):
        """Test payloads without a string id are rejected without raising."""
        assert validate_did_document(DID, payload) is None

    def test_malformed_service(self):
        """Test a service entry missing its endpoint rejects the document."""
        payload = {"id": DID, "service": [{"id": "#atproto_pds", "type": "X"}]}
        assert validate_did_document(DID, payload) is None

    def test_malformed_also_known_as(self):
        """Test a non-list alsoKnownAs rejects the document."""
        payload = {"id": DID, "alsoKnownAs": "at://alice.example.com"}
        assert validate_did_document(DID, payload) is None

    def test_unknown_fields_are_kept(self, did_document):
        """Test unknown top level and nested fields survive validation."""
        payload = did_document(DID)
        payload["controller"] = DID
        payload["service"][0]["priority"] = 1

        result = validate_did_document(DID, payload)

        assert result is not None
        dumped = result.to_json_dict()
        assert dumped["controller"] == DID
        assert dumped["service"][0]["priority"] == 1

    def test_to_json_dict_round_trips_wire_names(self, did_document):
        """Test dumping uses wire names and omits fields absent on input."""
        payload = did_document(DID)
        result = validate_did_document(DID, payload)
        assert result.to_json_dict() == payload

        minimal = validate_did_document(DID, {"id": DID})
        assert minimal.to_json_dict() == {"id": DID}

    def test_document_is_immutable(self):
        """Test validated documents cannot be modified."""
        result = validate_did_document(DID, {"id": DID})
        with pytest.raises(ValidationError):
            result.id = "did:plc:other"

    def test_service_endpoint_may_be_a_map(self):
        """Test service endpoints given as objects are accepted."""
        payload = {
            "id": DID,
            "service": [
                {
                    "id": "#hub",
                    "type": "Hub",
                    "serviceEndpoint": {"uri": "https://hub.example.com"},
                }
            ],
        }
        result = validate_did_document(DID, payload)
        assert result.service[0].service_endpoint == {"uri": "https://hub.example.com"}


class TestAtprotoHelpers:
    """Test suite for AT Protocol document helpers."""

    def test_get_handle(self, did_document):
        """Test handle is taken from the first at:// alias."""
        document = DidDocument.model_validate(did_document(DID))
        assert get_handle(document) == "alice.example.com"

    def test_get_handle_skips_other_aliases(self):
        """Test non at:// aliases are ignored."""
        document = DidDocument.model_validate(
            {
                "id": DID,
                "alsoKnownAs": ["https://alice.example.com", "at://alice.test"],
            }
        )
        assert get_handle(document) == "alice.test"

    def test_get_handle_missing(self):
        """Test None is returned without an at:// alias."""
        document = DidDocument.model_validate({"id": DID})
        assert get_handle(document) is None

    def test_get_pds_endpoint(self, did_document):
        """Test PDS endpoint is found by relative service id."""
        document = DidDocument.model_validate(did_document(DID))
        assert get_pds_endpoint(document) == "https://pds.example.com"

    def test_get_pds_endpoint_absolute_id(self, did_document):
        """Test PDS endpoint is found by absolute service id."""
        payload = did_document(DID)
        payload["service"][0]["id"] = f"{DID}#atproto_pds"
        document = DidDocument.model_validate(payload)
        assert get_pds_endpoint(document) == "https://pds.example.com"

    def test_get_pds_endpoint_wrong_type(self, did_document):
        """Test a #atproto_pds service with another type is not a PDS."""
        payload = did_document(DID)
        payload["service"][0]["type"] = "SomeOtherService"
        document = DidDocument.model_validate(payload)
        assert get_pds_endpoint(document) is None

    @pytest.mark.parametrize(
        "endpoint", ["pds.example.com", "ftp://pds.example.com", "https://"]
    )
    def test_get_pds_endpoint_invalid_url(self, did_document, endpoint):
        """Test endpoints that are not http(s) URLs are rejected."""
        document = DidDocument.model_validate(did_document(DID, pds=endpoint))
        assert get_pds_endpoint(document) is None

    def test_get_signing_key(self, did_document):
        """Test the #atproto verification method is returned."""
        document = DidDocument.model_validate(did_document(DID))
        signing_key = get_signing_key(document)
        assert signing_key is not None
        assert signing_key.type == "Multikey"
        assert signing_key.public_key_multibase.startswith("zQ3sh")

    def test_parse_atproto_data(self, did_document):
        """Test handle, PDS and signing key are extracted together."""
        document = DidDocument.model_validate(did_document(DID))

        result = parse_atproto_data(document)

        assert result == AtprotoData(
            did=DID,
            handle="alice.example.com",
            pds="https://pds.example.com",
            signing_key="zQ3shXjHeiBuRCKmM36cuYnm7YEMzhGnCmCyW92sRJ9pribSF",
        )

    def test_parse_atproto_data_requires_pds(self):
        """Test documents without a PDS yield None."""
        document = DidDocument.model_validate(
            {"id": DID, "alsoKnownAs": ["at://alice.example.com"]}
        )
        assert parse_atproto_data(document) is None
