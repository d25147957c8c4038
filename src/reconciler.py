"""
Service Reconciler - drives one event broker service towards its desired state.

Similar to a Kubernetes controller's reconcile step, but for a single
resource: every mutating call is followed by polling the backend until it
reports a terminal state, and updates that touch immutable fields are
turned into a destroy-and-recreate.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from client import ServiceClient
from errors import NotFoundError, ReplaceFailedError, ValidationError
from models import ServiceDescriptor
from policy import FieldChange, changed_fields, classify, requires_replace
from poller import Poller
from schemas import CreateServiceRequest

logger = logging.getLogger(__name__)


class PlanAction(Enum):
    """What an update would do."""

    NOOP = "noop"
    UPDATE = "update"
    REPLACE = "replace"


@dataclass
class UpdatePlan:
    """Outcome of classifying desired against current state."""

    action: PlanAction
    changes: Dict[str, FieldChange] = field(default_factory=dict)

    @property
    def replace_fields(self) -> List[str]:
        return changed_fields(self.changes, FieldChange.REPLACE)

    @property
    def mutable_fields(self) -> List[str]:
        return changed_fields(self.changes, FieldChange.MUTABLE)


class ServiceReconciler:
    """
    Create, read, update and delete services against a ServiceClient.

    Operations on one identity must be serialized by the caller; operations
    on different identities can run concurrently on the same event loop.
    """

    def __init__(self, client: ServiceClient, poller: Optional[Poller] = None):
        self.client = client
        self.poller = poller or Poller()

    async def _wait_until_ready(
        self, service_id: str, cancel_event: Optional[asyncio.Event]
    ) -> ServiceDescriptor:
        async def check() -> ServiceDescriptor:
            return await self.client.get_service(service_id)

        return await self.poller.poll(check, cancel_event=cancel_event)

    async def create(
        self,
        desired: ServiceDescriptor,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ServiceDescriptor:
        """
        Create a service and wait for provisioning to complete.

        Args:
            desired: Desired state; name, service class and datacenter are required.
            cancel_event: Optional event that aborts the wait for completion.

        Returns:
            The fully populated current state.

        Raises:
            ValidationError: If required fields are missing or rejected.
            TransportError: On backend or network failure.
            PollingTimeoutError: If provisioning did not complete in time.
        """
        body = desired.to_create_request()
        service_id = await self._submit_create(desired, body)
        return await self._finish_create(service_id, cancel_event)

    async def _submit_create(
        self, desired: ServiceDescriptor, body: CreateServiceRequest
    ) -> str:
        logger.info(
            f"Creating service '{desired.name}' "
            f"({desired.service_class_id} in {desired.datacenter_id})"
        )
        result = await self.client.create_service(body)
        logger.info(
            f"Service '{desired.name}' accepted as {result.id}, "
            f"status {result.status.value}; waiting for completion"
        )
        return result.id

    async def _finish_create(
        self, service_id: str, cancel_event: Optional[asyncio.Event]
    ) -> ServiceDescriptor:
        current = await self._wait_until_ready(service_id, cancel_event)
        logger.info(f"Service {current.id} is {current.status.value}")
        return current

    async def read(self, service_id: str) -> Optional[ServiceDescriptor]:
        """
        Fetch the current state of a service.

        Returns:
            The current state, or None if the service no longer exists.
        """
        try:
            return await self.client.get_service(service_id)
        except NotFoundError:
            logger.warning(f"Service {service_id} not found; treating it as gone")
            return None

    def plan(
        self, desired: ServiceDescriptor, current: ServiceDescriptor
    ) -> UpdatePlan:
        """Decide what update() would do, without calling the backend."""
        changes = classify(desired, current)
        if requires_replace(changes):
            action = PlanAction.REPLACE
        elif changed_fields(changes, FieldChange.MUTABLE):
            action = PlanAction.UPDATE
        else:
            action = PlanAction.NOOP
        return UpdatePlan(action=action, changes=changes)

    async def update(
        self,
        desired: ServiceDescriptor,
        current: ServiceDescriptor,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ServiceDescriptor:
        """
        Bring an existing service to the desired state.

        Changes to immutable fields delete the service and create a new one
        with a new identity. This is not an in-place update.

        Raises:
            ValidationError: If ``current`` has no identity.
            ReplaceFailedError: If a replace deleted the old service but the
                new one could not be created.
        """
        if not current.id:
            raise ValidationError("Current state must carry the service identity")

        plan = self.plan(desired, current)

        if plan.action == PlanAction.NOOP:
            logger.info(f"No changes needed for service {current.id}")
            return current

        if plan.action == PlanAction.REPLACE:
            return await self._replace(desired, current, plan, cancel_event)

        logger.info(
            f"Updating service {current.id} in place: "
            f"{', '.join(plan.mutable_fields)}"
        )
        status = await self.client.update_service(
            current.id, desired.to_update_request()
        )
        logger.info(
            f"Update of service {current.id} accepted, status {status.value}; "
            f"waiting for completion"
        )
        return await self._wait_until_ready(current.id, cancel_event)

    async def _replace(
        self,
        desired: ServiceDescriptor,
        current: ServiceDescriptor,
        plan: UpdatePlan,
        cancel_event: Optional[asyncio.Event],
    ) -> ServiceDescriptor:
        logger.warning(
            f"Service {current.id} must be replaced, immutable fields changed: "
            f"{', '.join(plan.replace_fields)}. The service will be destroyed "
            f"and recreated with a new identity."
        )

        # Reject bad input before anything is destroyed
        body = desired.to_create_request()

        await self.delete(current.id)

        try:
            service_id = await self._submit_create(desired, body)
        except Exception as e:
            logger.error(
                f"Replacement of service {current.id} failed after delete: {e}"
            )
            raise ReplaceFailedError(current.id, e) from e

        # The replacement exists from here on; polling errors surface as-is
        return await self._finish_create(service_id, cancel_event)

    async def delete(self, service_id: str) -> None:
        """
        Delete a service. Deleting a service that is already gone succeeds.

        Raises:
            TransportError: On genuine backend or network failure.
        """
        logger.info(f"Deleting service {service_id}")
        try:
            await self.client.delete_service(service_id)
        except NotFoundError:
            logger.warning(f"Service {service_id} already deleted")
            return
        logger.info(f"Deleted service {service_id}")
