"""
Core resource types.

ServiceDescriptor is the one resource under management: it describes both
desired state (built from configuration) and current state (read back from
the backend).
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from errors import ValidationError
from schemas import CreateServiceRequest, ServiceData, UpdateServiceRequest

logger = logging.getLogger(__name__)


def _describe_errors(error: PydanticValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
        for err in error.errors()
    )


class ServiceStatus(Enum):
    """Provisioning status reported by the backend."""

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ServiceStatus":
        """Map a backend status string, falling back to UNKNOWN."""
        if not value:
            return cls.UNKNOWN
        try:
            return cls(value.upper())
        except ValueError:
            logger.debug(f"Unrecognised service status: {value}")
            return cls.UNKNOWN


@dataclass
class Credentials:
    """Client login credentials, available once provisioning completed."""

    username: str
    password: str = field(repr=False)


@dataclass
class CreateServiceResult:
    """Backend answer to a create request."""

    id: str
    operation_id: str
    status: ServiceStatus = ServiceStatus.PENDING
    created_time: Optional[datetime] = None


@dataclass
class ServiceDescriptor:
    """An event broker service, desired or observed."""

    name: Optional[str] = None
    service_class_id: Optional[str] = None
    datacenter_id: Optional[str] = None
    msg_vpn_name: Optional[str] = None
    cluster_name: Optional[str] = None
    custom_router_name: Optional[str] = None
    event_broker_version: Optional[str] = None
    max_spool_usage: Optional[int] = None

    # Assigned by the backend
    id: Optional[str] = None
    status: ServiceStatus = ServiceStatus.UNKNOWN
    created_time: Optional[datetime] = None
    updated_time: Optional[datetime] = None
    credentials: Optional[Credentials] = None

    @property
    def is_completed(self) -> bool:
        return self.status == ServiceStatus.COMPLETED

    def to_create_request(self) -> CreateServiceRequest:
        """
        Build the create body from this descriptor.

        Raises:
            ValidationError: If a required field is missing or blank, or a
                value is out of range.
        """
        required = {
            "name": self.name,
            "service_class_id": self.service_class_id,
            "datacenter_id": self.datacenter_id,
        }
        missing = [k for k, v in required.items() if not v or not v.strip()]
        if missing:
            raise ValidationError(f"Service must define fields: {', '.join(missing)}")

        try:
            return CreateServiceRequest(
                name=self.name,
                serviceClassId=self.service_class_id,
                datacenterId=self.datacenter_id,
                msgVpnName=self.msg_vpn_name,
                eventBrokerVersion=self.event_broker_version,
                customRouterName=self.custom_router_name,
                clusterName=self.cluster_name,
                maxSpoolUsage=self.max_spool_usage,
            )
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid service definition: {_describe_errors(e)}"
            ) from e

    def to_update_request(self) -> UpdateServiceRequest:
        """Build the update body carrying only the mutable attributes."""
        if not self.name or not self.name.strip():
            raise ValidationError("Service must define fields: name")
        try:
            return UpdateServiceRequest(
                name=self.name, maxSpoolUsage=self.max_spool_usage
            )
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid service definition: {_describe_errors(e)}"
            ) from e

    @classmethod
    def from_service_data(cls, data: ServiceData) -> "ServiceDescriptor":
        """Build a descriptor from a GET/PATCH response payload."""
        status = ServiceStatus.parse(data.creationState)
        broker = data.broker
        cluster = broker.cluster if broker else None
        vpn = broker.msgVpns[0] if broker and broker.msgVpns else None

        credentials = None
        # Credentials are only meaningful once provisioning completed
        if status == ServiceStatus.COMPLETED and vpn and vpn.serviceLoginCredential:
            credentials = Credentials(
                username=vpn.serviceLoginCredential.username,
                password=vpn.serviceLoginCredential.password,
            )

        return cls(
            id=data.id,
            name=data.name,
            service_class_id=data.serviceClassId,
            datacenter_id=data.datacenterId,
            msg_vpn_name=vpn.msgVpnName if vpn else None,
            cluster_name=cluster.name if cluster else None,
            custom_router_name=cluster.primaryRouterName if cluster else None,
            event_broker_version=data.eventBrokerServiceVersion,
            max_spool_usage=broker.maxSpoolUsage if broker else None,
            status=status,
            created_time=data.createdTime,
            updated_time=data.updatedTime,
            credentials=credentials,
        )
