"""
Status Poller - waits for asynchronous provisioning to reach a terminal state.

The poller owns the timing only. The status check is supplied by the caller,
so the poller never talks to the backend itself.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, FrozenSet, Iterable, Optional

from errors import PollingTimeoutError, ProvisioningFailedError, ReconcileCancelledError
from models import ServiceStatus

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 20.0  # seconds
DEFAULT_POLL_TIMEOUT = 1800.0  # seconds (30 minutes)

StatusCheck = Callable[[], Awaitable[Any]]


class Poller:
    """
    Fixed-interval poller with a total time budget.

    The check is invoked immediately and then every ``interval`` seconds
    until it reports a terminal status. There is no backoff or jitter.
    Observations returned by the check must expose a ``status`` attribute
    holding a ServiceStatus.
    """

    def __init__(
        self,
        interval: float = DEFAULT_POLL_INTERVAL,
        timeout: float = DEFAULT_POLL_TIMEOUT,
        terminal_statuses: Optional[Iterable[ServiceStatus]] = None,
    ):
        if interval <= 0:
            raise ValueError("Polling interval must be positive")
        if timeout < 0:
            raise ValueError("Polling timeout cannot be negative")

        self.interval = interval
        self.timeout = timeout
        self.terminal_statuses: FrozenSet[ServiceStatus] = frozenset(
            terminal_statuses or (ServiceStatus.COMPLETED,)
        )

    async def poll(
        self,
        check: StatusCheck,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Any:
        """
        Poll ``check`` until it reports a terminal status.

        Args:
            check: Coroutine function returning the current observation.
            cancel_event: Optional event; setting it aborts the wait.

        Returns:
            The first observation whose status is terminal.

        Raises:
            PollingTimeoutError: If the budget ran out first.
            ProvisioningFailedError: If the backend reported FAILED.
            ReconcileCancelledError: If ``cancel_event`` was set.
            Exception: Anything raised by ``check``, without retry.
        """
        loop = asyncio.get_running_loop()
        start_time = loop.time()
        attempt = 0

        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise ReconcileCancelledError("Polling cancelled")

            attempt += 1
            observation = await check()
            status = observation.status
            elapsed = loop.time() - start_time

            logger.debug(
                f"Poll attempt {attempt}: status={status.value}, "
                f"elapsed={elapsed:.1f}s"
            )

            if status in self.terminal_statuses:
                return observation

            if status == ServiceStatus.FAILED:
                raise ProvisioningFailedError(observation)

            if elapsed >= self.timeout:
                logger.warning(
                    f"Polling gave up after {attempt} attempts "
                    f"({elapsed:.1f}s), last status {status.value}"
                )
                raise PollingTimeoutError(self.timeout, status, observation)

            # Never sleep past the budget; one last check happens at the deadline
            delay = min(self.interval, self.timeout - elapsed)
            await self._wait(delay, cancel_event)

    async def _wait(self, delay: float, cancel_event: Optional[asyncio.Event]) -> None:
        """Sleep for ``delay`` seconds unless cancelled first."""
        if cancel_event is None:
            await asyncio.sleep(delay)
            return

        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        raise ReconcileCancelledError("Polling cancelled")
