"""
Wire schemas for the Mission Control event broker service API.

Every request and response body exchanged with the backend has a typed
model here. Both the HTTP client and the fake backend validate payloads
through these models instead of poking at loose dictionaries.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _not_blank(value: Optional[str], field_name: str) -> Optional[str]:
    if value is not None and not value.strip():
        raise ValueError(f"{field_name} cannot be empty")
    return value


# Request models


class CreateServiceRequest(BaseModel):
    """Request body for creating an event broker service."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., description="Display name of the service")
    serviceClassId: str = Field(..., description="Service class, e.g. ENTERPRISE_250_STANDALONE")
    datacenterId: str = Field(..., description="Datacenter the service runs in")
    msgVpnName: Optional[str] = Field(None, description="Message VPN name")
    eventBrokerVersion: Optional[str] = Field(None, description="Event broker version")
    customRouterName: Optional[str] = Field(None, description="Primary router name")
    clusterName: Optional[str] = Field(None, description="Cluster name")
    maxSpoolUsage: Optional[int] = Field(None, ge=0, description="Message spool size in GB")

    @field_validator("name", "serviceClassId", "datacenterId")
    @classmethod
    def validate_required(cls, v: str, info) -> str:
        return _not_blank(v, info.field_name)


class UpdateServiceRequest(BaseModel):
    """Request body for updating the mutable attributes of a service."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., description="New display name")
    maxSpoolUsage: Optional[int] = Field(None, ge=0, description="New spool size in GB")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _not_blank(v, "name")


# Response models


class ServiceLoginCredential(BaseModel):
    username: str
    password: str = Field(..., repr=False)


class MsgVpn(BaseModel):
    msgVpnName: Optional[str] = None
    serviceLoginCredential: Optional[ServiceLoginCredential] = None


class Cluster(BaseModel):
    name: Optional[str] = None
    primaryRouterName: Optional[str] = None


class Broker(BaseModel):
    cluster: Optional[Cluster] = None
    msgVpns: List[MsgVpn] = Field(default_factory=list)
    maxSpoolUsage: Optional[int] = None


class ServiceData(BaseModel):
    """Full representation of a service, returned by GET and PATCH."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    serviceClassId: Optional[str] = None
    datacenterId: Optional[str] = None
    createdTime: Optional[datetime] = None
    updatedTime: Optional[datetime] = None
    creationState: Optional[str] = None
    eventBrokerServiceVersion: Optional[str] = None
    broker: Optional[Broker] = None


class OperationData(BaseModel):
    """Asynchronous operation record, returned by POST and DELETE."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., description="Identifier of the operation")
    resourceId: str = Field(..., description="Identifier of the service")
    name: Optional[str] = None
    createdTime: Optional[datetime] = None
    creationState: Optional[str] = None
    status: Optional[str] = None


class ServiceEnvelope(BaseModel):
    data: ServiceData
    meta: Dict[str, Any] = Field(default_factory=dict)


class OperationEnvelope(BaseModel):
    data: OperationData
    meta: Dict[str, Any] = Field(default_factory=dict)


def envelope(data: BaseModel) -> Dict[str, Any]:
    """Wrap a response model in the API's data/meta envelope."""
    return {
        "data": data.model_dump(mode="json", exclude_none=True),
        "meta": {"additionalProp": {}},
    }
