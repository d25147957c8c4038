"""
Fake Mission Control backend for offline testing.

Simulates the asynchronous provisioning of event broker services: a service
stays PENDING after create or update until a fixed threshold has elapsed,
then flips to COMPLETED on the next read. Exposed three ways:

* FakeBackend: the state machine itself, backed by an explicit ServiceStore.
* create_app(): a FastAPI app serving the same routes as the real API.
* InMemoryServiceClient: a ServiceClient that calls the backend in-process.
"""

import json
import logging
import threading
import time
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from client import SERVICES_PATH, ServiceClient
from errors import NotFoundError
from models import CreateServiceResult, ServiceDescriptor, ServiceStatus
from schemas import (
    Broker,
    Cluster,
    CreateServiceRequest,
    MsgVpn,
    OperationData,
    ServiceData,
    ServiceLoginCredential,
    UpdateServiceRequest,
    envelope,
)

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 5.0  # seconds until a pending service completes

DEFAULT_CLUSTER_NAME = "test-cluster1"
DEFAULT_MSG_VPN_NAME = "test-vpn1"
DEFAULT_BROKER_VERSION = "1.0.0"
DEFAULT_ROUTER_NAME = "test-router1"
DEFAULT_MAX_SPOOL_USAGE = 20
CLIENT_USERNAME = "client-user"
CLIENT_PASSWORD = "client-passwd"


@dataclass(frozen=True)
class ServiceRecord:
    """Stored state of one fake service."""

    id: str
    name: str
    service_class_id: str
    datacenter_id: str
    msg_vpn_name: str
    cluster_name: str
    custom_router_name: str
    event_broker_version: str
    max_spool_usage: int
    state: ServiceStatus
    created_time: datetime
    updated_time: Optional[datetime]
    # Monotonic time of the last create or update
    changed_at: float
    client_username: str = CLIENT_USERNAME
    client_password: str = CLIENT_PASSWORD


class ServiceStore:
    """
    Thread-safe mapping of identity to ServiceRecord.

    Records are immutable; every write swaps the whole record, so a read
    ordered after a write always sees that write in full.
    """

    def __init__(self):
        self._records: Dict[str, ServiceRecord] = {}
        self._lock = threading.Lock()

    def get(self, service_id: str) -> Optional[ServiceRecord]:
        with self._lock:
            return self._records.get(service_id)

    def put(self, record: ServiceRecord) -> None:
        with self._lock:
            self._records[record.id] = record

    def pop(self, service_id: str) -> Optional[ServiceRecord]:
        with self._lock:
            return self._records.pop(service_id, None)

    def update(
        self, service_id: str, change: Callable[[ServiceRecord], ServiceRecord]
    ) -> ServiceRecord:
        """Atomically replace a record with ``change(record)``."""
        with self._lock:
            record = self._records.get(service_id)
            if record is None:
                raise NotFoundError(service_id)
            record = change(record)
            self._records[service_id] = record
            return record

    def ids(self) -> List[str]:
        with self._lock:
            return list(self._records)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class FakeBackend:
    """In-memory state machine mirroring the real backend's semantics."""

    def __init__(
        self,
        threshold: float = DEFAULT_THRESHOLD,
        store: Optional[ServiceStore] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.threshold = threshold
        self.store = store if store is not None else ServiceStore()
        self._clock = clock

    def create(self, request: CreateServiceRequest) -> ServiceRecord:
        record = ServiceRecord(
            id=str(uuid.uuid4()),
            name=request.name,
            service_class_id=request.serviceClassId,
            datacenter_id=request.datacenterId,
            msg_vpn_name=request.msgVpnName or DEFAULT_MSG_VPN_NAME,
            cluster_name=request.clusterName or DEFAULT_CLUSTER_NAME,
            custom_router_name=request.customRouterName or DEFAULT_ROUTER_NAME,
            event_broker_version=request.eventBrokerVersion or DEFAULT_BROKER_VERSION,
            max_spool_usage=(
                request.maxSpoolUsage
                if request.maxSpoolUsage is not None
                else DEFAULT_MAX_SPOOL_USAGE
            ),
            state=ServiceStatus.PENDING,
            created_time=datetime.now(timezone.utc),
            updated_time=None,
            changed_at=self._clock(),
        )
        self.store.put(record)
        logger.info(f"Fake backend created service {record.id} ({record.name})")
        return record

    def get(self, service_id: str) -> ServiceRecord:
        """Read a service, completing it if the threshold has elapsed."""

        def advance(record: ServiceRecord) -> ServiceRecord:
            if record.state != ServiceStatus.PENDING:
                return record
            if self._clock() - record.changed_at > self.threshold:
                logger.debug(f"Fake backend completed service {record.id}")
                return replace(
                    record,
                    state=ServiceStatus.COMPLETED,
                    updated_time=datetime.now(timezone.utc),
                )
            return record

        return self.store.update(service_id, advance)

    def update(self, service_id: str, request: UpdateServiceRequest) -> ServiceRecord:
        def apply(record: ServiceRecord) -> ServiceRecord:
            return replace(
                record,
                name=request.name,
                max_spool_usage=(
                    request.maxSpoolUsage
                    if request.maxSpoolUsage is not None
                    else record.max_spool_usage
                ),
                state=ServiceStatus.PENDING,
                updated_time=datetime.now(timezone.utc),
                changed_at=self._clock(),
            )

        record = self.store.update(service_id, apply)
        logger.info(f"Fake backend updated service {service_id}")
        return record

    def delete(self, service_id: str) -> ServiceRecord:
        record = self.store.pop(service_id)
        if record is None:
            raise NotFoundError(service_id)
        logger.info(f"Fake backend deleted service {service_id}")
        return record


# Response builders


def operation_data(record: ServiceRecord, deleting: bool = False) -> OperationData:
    """Operation payload returned by create and delete."""
    return OperationData(
        id="O" + record.id,
        resourceId=record.id,
        name=record.name,
        createdTime=record.created_time,
        creationState=None if deleting else record.state.value,
        status=ServiceStatus.PENDING.value if deleting else None,
    )


def service_data(record: ServiceRecord) -> ServiceData:
    """Full service payload returned by get and update."""
    credential = None
    if record.state == ServiceStatus.COMPLETED:
        credential = ServiceLoginCredential(
            username=record.client_username, password=record.client_password
        )

    return ServiceData(
        id=record.id,
        name=record.name,
        serviceClassId=record.service_class_id,
        datacenterId=record.datacenter_id,
        createdTime=record.created_time,
        updatedTime=record.updated_time,
        creationState=record.state.value,
        eventBrokerServiceVersion=record.event_broker_version,
        broker=Broker(
            cluster=Cluster(
                name=record.cluster_name,
                primaryRouterName=record.custom_router_name,
            ),
            msgVpns=[
                MsgVpn(
                    msgVpnName=record.msg_vpn_name,
                    serviceLoginCredential=credential,
                )
            ],
            maxSpoolUsage=record.max_spool_usage,
        ),
    )


# HTTP surface


async def _read_body(request: Request, model):
    """Parse and validate a JSON body, rejecting anything malformed with 500."""
    raw = await request.body()
    try:
        return model.model_validate(json.loads(raw or b"null"))
    except (ValueError, PydanticValidationError) as e:
        logger.warning(f"Fake backend rejected malformed body: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")


def create_app(backend: Optional[FakeBackend] = None) -> FastAPI:
    """
    Build the FastAPI app serving the fake Mission Control API.

    Args:
        backend: Backend to serve; a fresh one is created if omitted.
    """
    backend = backend if backend is not None else FakeBackend()
    app = FastAPI(title="Fake Mission Control API")
    app.state.backend = backend

    def lookup(action: Callable[[], ServiceRecord]) -> ServiceRecord:
        try:
            return action()
        except NotFoundError as e:
            logger.info(f"Fake backend: {e.message}")
            raise HTTPException(status_code=404, detail="Not Found")

    @app.post(SERVICES_PATH, status_code=202)
    async def create_service(request: Request):
        body = await _read_body(request, CreateServiceRequest)
        record = backend.create(body)
        return JSONResponse(envelope(operation_data(record)), status_code=202)

    @app.get(SERVICES_PATH + "/{service_id}")
    async def get_service(service_id: str):
        record = lookup(lambda: backend.get(service_id))
        return envelope(service_data(record))

    @app.patch(SERVICES_PATH + "/{service_id}")
    async def update_service(service_id: str, request: Request):
        body = await _read_body(request, UpdateServiceRequest)
        record = lookup(lambda: backend.update(service_id, body))
        return envelope(service_data(record))

    @app.delete(SERVICES_PATH + "/{service_id}", status_code=202)
    async def delete_service(service_id: str):
        record = lookup(lambda: backend.delete(service_id))
        return JSONResponse(
            envelope(operation_data(record, deleting=True)), status_code=202
        )

    return app


class InMemoryServiceClient(ServiceClient):
    """ServiceClient that drives a FakeBackend directly, without HTTP."""

    def __init__(self, backend: FakeBackend):
        self.backend = backend

    async def create_service(self, body: CreateServiceRequest) -> CreateServiceResult:
        record = self.backend.create(body)
        operation = operation_data(record)
        return CreateServiceResult(
            id=operation.resourceId,
            operation_id=operation.id,
            status=ServiceStatus.parse(operation.creationState),
            created_time=operation.createdTime,
        )

    async def get_service(self, service_id: str) -> ServiceDescriptor:
        record = self.backend.get(service_id)
        return ServiceDescriptor.from_service_data(service_data(record))

    async def update_service(
        self, service_id: str, body: UpdateServiceRequest
    ) -> ServiceStatus:
        record = self.backend.update(service_id, body)
        return record.state

    async def delete_service(self, service_id: str) -> None:
        self.backend.delete(service_id)
