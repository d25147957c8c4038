"""
Mission Control Client - transport boundary for the event broker service API.

ServiceClient is the narrow interface the reconciler depends on.
MissionControlClient implements it over aiohttp against the real API.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import aiohttp
from pydantic import ValidationError as PydanticValidationError

from errors import NotFoundError, TransportError, ValidationError
from models import CreateServiceResult, ServiceDescriptor, ServiceStatus
from schemas import (
    CreateServiceRequest,
    OperationEnvelope,
    ServiceEnvelope,
    UpdateServiceRequest,
)

logger = logging.getLogger(__name__)

SERVICES_PATH = "/api/v2/missionControl/eventBrokerServices"


class ServiceClient(ABC):
    """
    Abstract interface to the remote service API.

    Implementations raise NotFoundError for unknown identities and
    TransportError for anything that went wrong on the wire.
    """

    @abstractmethod
    async def create_service(self, body: CreateServiceRequest) -> CreateServiceResult:
        """Request creation of a service. Returns the assigned identity."""
        pass

    @abstractmethod
    async def get_service(self, service_id: str) -> ServiceDescriptor:
        """Fetch the full current state of a service."""
        pass

    @abstractmethod
    async def update_service(
        self, service_id: str, body: UpdateServiceRequest
    ) -> ServiceStatus:
        """Apply the mutable attributes of a service. Returns the new status."""
        pass

    @abstractmethod
    async def delete_service(self, service_id: str) -> None:
        """Delete a service."""
        pass


class MissionControlClient(ServiceClient):
    """
    aiohttp client for the Mission Control API.

    A single ClientSession is shared by every request made through this
    client, so concurrent operations reuse one connection pool. The session
    is created on first use unless one is passed in.
    """

    def __init__(
        self,
        host: str,
        bearer_token: str,
        session: Optional[aiohttp.ClientSession] = None,
        request_timeout: float = 60,
    ):
        self.host = host.rstrip("/")
        self.bearer_token = bearer_token
        self.request_timeout = request_timeout
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "MissionControlClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying session if this client created it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=self.request_timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True
        return self._session

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Accept": "application/json",
            "Authorization": f"Bearer {self.bearer_token}",
        }

    def _url(self, service_id: Optional[str] = None) -> str:
        if service_id is None:
            return f"{self.host}{SERVICES_PATH}"
        return f"{self.host}{SERVICES_PATH}/{service_id}"

    async def _request(
        self,
        method: str,
        url: str,
        expected: int,
        service_id: Optional[str] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Issue one request and map the response status onto the error taxonomy.

        Returns:
            The decoded JSON body.

        Raises:
            NotFoundError: On 404.
            ValidationError: On 400 or 422.
            TransportError: On any other unexpected status or network failure.
        """
        session = self._get_session()
        logger.debug(f"{method} {url}")

        try:
            async with session.request(
                method, url, headers=self._get_headers(), json=json
            ) as response:
                if response.status == expected:
                    return await response.json(content_type=None)

                text = await response.text()
                if response.status == 404:
                    raise NotFoundError(service_id or url)
                if response.status in (400, 422):
                    raise ValidationError(
                        f"{method} {url} rejected with HTTP {response.status}: {text}"
                    )
                raise TransportError(
                    f"{method} {url} failed with HTTP {response.status}",
                    status=response.status,
                    body=text,
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"{method} {url} failed: {e}") from e
        except ValueError as e:
            # Body was not JSON
            raise TransportError(f"{method} {url} returned invalid JSON: {e}") from e

    async def create_service(self, body: CreateServiceRequest) -> CreateServiceResult:
        payload = body.model_dump(exclude_none=True)
        data = await self._request("POST", self._url(), expected=202, json=payload)

        try:
            operation = OperationEnvelope.model_validate(data).data
        except PydanticValidationError as e:
            raise TransportError(f"Malformed create response: {e}") from e

        logger.info(
            f"Requested creation of service '{body.name}' "
            f"(id={operation.resourceId}, operation={operation.id})"
        )
        return CreateServiceResult(
            id=operation.resourceId,
            operation_id=operation.id,
            status=ServiceStatus.parse(operation.creationState or "PENDING"),
            created_time=operation.createdTime,
        )

    async def get_service(self, service_id: str) -> ServiceDescriptor:
        data = await self._request(
            "GET", self._url(service_id), expected=200, service_id=service_id
        )
        try:
            service = ServiceEnvelope.model_validate(data).data
        except PydanticValidationError as e:
            raise TransportError(f"Malformed response for {service_id}: {e}") from e
        return ServiceDescriptor.from_service_data(service)

    async def update_service(
        self, service_id: str, body: UpdateServiceRequest
    ) -> ServiceStatus:
        payload = body.model_dump(exclude_none=True)
        data = await self._request(
            "PATCH",
            self._url(service_id),
            expected=200,
            service_id=service_id,
            json=payload,
        )
        try:
            service = ServiceEnvelope.model_validate(data).data
        except PydanticValidationError as e:
            raise TransportError(f"Malformed response for {service_id}: {e}") from e

        logger.info(f"Requested update of service {service_id}")
        return ServiceStatus.parse(service.creationState)

    async def delete_service(self, service_id: str) -> None:
        await self._request(
            "DELETE", self._url(service_id), expected=202, service_id=service_id
        )
        logger.info(f"Requested deletion of service {service_id}")
