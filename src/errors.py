"""
Reconciliation errors.

Every failure surfaced by the reconciler, the poller and the service
clients derives from ReconcileError so callers can catch the whole family
or single out the cases that need special handling.
"""

from typing import Any, Optional


class ReconcileError(Exception):
    """Base class for all reconciliation failures."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigError(ReconcileError):
    """Raised when provider configuration is missing or malformed."""


class ValidationError(ReconcileError):
    """Raised when desired state or a request body is missing required input."""


class TransportError(ReconcileError):
    """Raised on network or HTTP-layer failures talking to the backend."""

    def __init__(
        self, message: str, status: Optional[int] = None, body: Optional[str] = None
    ):
        self.status = status
        self.body = body
        super().__init__(message)


class NotFoundError(ReconcileError):
    """Raised when the backend has no service with the given identity."""

    def __init__(self, service_id: str):
        self.service_id = service_id
        super().__init__(f"Service {service_id} not found")


class PollingTimeoutError(ReconcileError, TimeoutError):
    """
    Raised when polling gives up before a terminal status is observed.

    Carries the last observation so the caller can keep polling manually
    or treat the resource as failed.
    """

    def __init__(
        self,
        timeout: float,
        last_status: Any = None,
        last_observation: Any = None,
    ):
        self.timeout = timeout
        self.last_status = last_status
        self.last_observation = last_observation
        status = getattr(last_status, "value", last_status)
        super().__init__(
            f"Polling timed out after {timeout}s (last status: {status})"
        )


class ReconcileCancelledError(ReconcileError):
    """Raised when a caller-supplied cancel signal aborts an operation."""


class ProvisioningFailedError(ReconcileError):
    """Raised when the backend reports a terminal FAILED status."""

    def __init__(self, observation: Any):
        self.observation = observation
        service_id = getattr(observation, "id", None)
        super().__init__(f"Provisioning of service {service_id} failed")


class ReplaceFailedError(ReconcileError):
    """
    Raised when a replace deleted the old service but could not create the new one.

    The old resource is gone and nothing replaced it; manual remediation
    is required.
    """

    def __init__(self, deleted_id: str, cause: Exception):
        self.deleted_id = deleted_id
        self.cause = cause
        super().__init__(
            f"Service {deleted_id} was deleted for replacement but the "
            f"replacement could not be created: {cause}"
        )
