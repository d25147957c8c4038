"""
Desired-state validation.

Validates desired-state documents (as written by operators in YAML or
JSON) against the resource attribute schema and converts them into
ServiceDescriptor objects.
"""

from typing import Any, Dict

from jsonschema import Draft7Validator

from errors import ValidationError
from models import ServiceDescriptor

_STRING = {"type": "string", "minLength": 1, "pattern": r"\S"}

DESIRED_STATE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["serviceclass_id", "name", "datacenter_id"],
    "additionalProperties": False,
    "properties": {
        "serviceclass_id": _STRING,
        "name": _STRING,
        "datacenter_id": _STRING,
        "msg_vpn_name": _STRING,
        "cluster_name": _STRING,
        "custom_router_name": _STRING,
        "event_broker_version": {"type": ["string", "null"]},
        "max_spool_usage": {"type": "integer", "minimum": 0},
    },
}


def validate_desired_state(document: Any) -> None:
    """
    Validate a desired-state document against the attribute schema.

    Raises:
        ValidationError: Listing every problem as "path: message".
    """
    validator = Draft7Validator(DESIRED_STATE_SCHEMA)
    errors = sorted(validator.iter_errors(document), key=lambda e: list(e.path))

    if not errors:
        return

    error_messages = []
    for error in errors:
        path = ".".join(str(p) for p in error.absolute_path) or "(root)"
        error_messages.append(f"{path}: {error.message}")

    raise ValidationError("; ".join(error_messages))


def descriptor_from_document(document: Any) -> ServiceDescriptor:
    """Validate a desired-state document and build the desired descriptor."""
    validate_desired_state(document)
    return ServiceDescriptor(
        name=document["name"],
        service_class_id=document["serviceclass_id"],
        datacenter_id=document["datacenter_id"],
        msg_vpn_name=document.get("msg_vpn_name"),
        cluster_name=document.get("cluster_name"),
        custom_router_name=document.get("custom_router_name"),
        event_broker_version=document.get("event_broker_version"),
        max_spool_usage=document.get("max_spool_usage"),
    )
