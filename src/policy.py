"""
Immutability Policy - classifies desired vs. current field differences.

Pure functions only. The reconciler uses the classification to pick
between a no-op, an in-place update and a destroy-and-recreate.
"""

from enum import Enum
from typing import Dict, List

from models import ServiceDescriptor


class FieldChange(Enum):
    """How a single field differs between desired and current state."""

    UNCHANGED = "unchanged"
    MUTABLE = "mutable"
    REPLACE = "replace"


# Fields the backend can change in place
MUTABLE_FIELDS = ("name", "max_spool_usage")

# Fields that can only change by recreating the service
REPLACE_FIELDS = (
    "service_class_id",
    "datacenter_id",
    "msg_vpn_name",
    "cluster_name",
    "custom_router_name",
)

# Replace-triggering, but ignored while the desired value is unset
VERSION_FIELD = "event_broker_version"

CLASSIFIED_FIELDS = ("id",) + MUTABLE_FIELDS + REPLACE_FIELDS + (VERSION_FIELD,)


def classify(
    desired: ServiceDescriptor, current: ServiceDescriptor
) -> Dict[str, FieldChange]:
    """
    Classify every managed field of ``desired`` against ``current``.

    Read-only attributes (status, timestamps, credentials) are not part of
    the result.

    Args:
        desired: The state the operator wants.
        current: The last observed state.

    Returns:
        Mapping of field name to FieldChange.
    """
    changes: Dict[str, FieldChange] = {}

    # Desired state normally carries no identity; only compare one if given
    if desired.id is not None and desired.id != current.id:
        changes["id"] = FieldChange.REPLACE
    else:
        changes["id"] = FieldChange.UNCHANGED

    for name in MUTABLE_FIELDS:
        changed = getattr(desired, name) != getattr(current, name)
        changes[name] = FieldChange.MUTABLE if changed else FieldChange.UNCHANGED

    for name in REPLACE_FIELDS:
        changed = getattr(desired, name) != getattr(current, name)
        changes[name] = FieldChange.REPLACE if changed else FieldChange.UNCHANGED

    # Unset desired version opts out of version drift detection
    desired_version = getattr(desired, VERSION_FIELD)
    if desired_version is None or desired_version == getattr(current, VERSION_FIELD):
        changes[VERSION_FIELD] = FieldChange.UNCHANGED
    else:
        changes[VERSION_FIELD] = FieldChange.REPLACE

    return changes


def requires_replace(changes: Dict[str, FieldChange]) -> bool:
    """True if any field forces a destroy-and-recreate."""
    return any(change == FieldChange.REPLACE for change in changes.values())


def changed_fields(changes: Dict[str, FieldChange], kind: FieldChange) -> List[str]:
    """Names of the fields classified as ``kind``, in classification order."""
    return [name for name, change in changes.items() if change == kind]
