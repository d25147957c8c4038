"""Unit tests for validation.py - desired-state documents."""

import pytest

from errors import ValidationError
from validation import descriptor_from_document, validate_desired_state

VALID_DOCUMENT = {
    "serviceclass_id": "ENTERPRISE_250_STANDALONE",
    "name": "ocs-prov-test",
    "datacenter_id": "aks-germanywestcentral",
}


class TestValidateDesiredState:
    """Tests for validate_desired_state()."""

    def test_minimal_document(self):
        validate_desired_state(VALID_DOCUMENT)

    def test_full_document(self):
        validate_desired_state(
            {
                **VALID_DOCUMENT,
                "msg_vpn_name": "vpn-a",
                "cluster_name": "cluster-a",
                "custom_router_name": "router-a",
                "event_broker_version": "10.8.1.152-7",
                "max_spool_usage": 20,
            }
        )

    def test_null_version_allowed(self):
        validate_desired_state({**VALID_DOCUMENT, "event_broker_version": None})

    def test_missing_required_fields(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_desired_state({"name": "ocs-prov-test"})

        message = exc_info.value.message
        assert "'serviceclass_id' is a required property" in message
        assert "'datacenter_id' is a required property" in message
        assert message.startswith("(root): ")

    def test_wrong_types(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_desired_state({**VALID_DOCUMENT, "max_spool_usage": "big"})

        assert "max_spool_usage:" in exc_info.value.message

    def test_negative_spool_usage(self):
        with pytest.raises(ValidationError):
            validate_desired_state({**VALID_DOCUMENT, "max_spool_usage": -1})

    @pytest.mark.parametrize("field_name", ["name", "serviceclass_id", "msg_vpn_name"])
    def test_blank_string_rejected(self, field_name):
        with pytest.raises(ValidationError, match=field_name):
            validate_desired_state({**VALID_DOCUMENT, field_name: "   "})

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError, match="unexpected"):
            validate_desired_state({**VALID_DOCUMENT, "replicas": 3})

    def test_not_an_object(self):
        with pytest.raises(ValidationError):
            validate_desired_state(["not", "an", "object"])


class TestDescriptorFromDocument:
    """Tests for descriptor_from_document()."""

    def test_maps_attributes(self):
        service = descriptor_from_document(
            {**VALID_DOCUMENT, "msg_vpn_name": "vpn-a", "max_spool_usage": 40}
        )

        assert service.name == "ocs-prov-test"
        assert service.service_class_id == "ENTERPRISE_250_STANDALONE"
        assert service.datacenter_id == "aks-germanywestcentral"
        assert service.msg_vpn_name == "vpn-a"
        assert service.max_spool_usage == 40
        assert service.event_broker_version is None
        assert service.id is None

    def test_invalid_document_raises(self):
        with pytest.raises(ValidationError):
            descriptor_from_document({})
