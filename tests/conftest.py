"""Pytest configuration and fixtures."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from fakeserver import FakeBackend, InMemoryServiceClient
from models import (
    CreateServiceResult,
    Credentials,
    ServiceDescriptor,
    ServiceStatus,
)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def backend(clock):
    """Fake backend with a manual clock and the reference 5s threshold."""
    return FakeBackend(threshold=5.0, clock=clock)


@pytest.fixture
def fast_backend():
    """Fake backend on the real clock that completes almost immediately."""
    return FakeBackend(threshold=0.05)


@pytest.fixture
def fast_client(fast_backend):
    return InMemoryServiceClient(fast_backend)


@pytest.fixture
def desired_service():
    """Desired state with only the required attributes set."""
    return ServiceDescriptor(
        name="ocs-prov-test",
        service_class_id="ENTERPRISE_250_STANDALONE",
        datacenter_id="aks-germanywestcentral",
    )


@pytest.fixture
def current_service():
    """Completed service as read back from the backend."""
    return ServiceDescriptor(
        id="svc-1",
        name="ocs-prov-test",
        service_class_id="ENTERPRISE_250_STANDALONE",
        datacenter_id="aks-germanywestcentral",
        msg_vpn_name="test-vpn1",
        cluster_name="test-cluster1",
        custom_router_name="test-router1",
        event_broker_version="10.8.1.152-7",
        max_spool_usage=20,
        status=ServiceStatus.COMPLETED,
        created_time=datetime(2026, 1, 1, tzinfo=timezone.utc),
        credentials=Credentials(username="client-user", password="client-passwd"),
    )


@pytest.fixture
def mock_client():
    """AsyncMock standing in for a ServiceClient."""
    client = AsyncMock()
    client.create_service = AsyncMock(
        return_value=CreateServiceResult(id="svc-2", operation_id="Osvc-2")
    )
    client.get_service = AsyncMock()
    client.update_service = AsyncMock(return_value=ServiceStatus.PENDING)
    client.delete_service = AsyncMock(return_value=None)
    return client
