"""Version rollout trigger and convergence supervision."""

import time
from typing import Optional

from rackctl.errors import (
    PollingTransportError,
    RemoteError,
    RemoteTransportError,
    RollbackDetected,
    RolloutTimeout,
    TriggerRejected,
)
from rackctl.errors_catalog import actionable_error
from rackctl.models import RolloutOutcome, SystemState, SystemStatus


class RolloutSupervisor:
    """Starts a rack transition and polls its status until it settles.

    The rack never pushes state changes, so completion is inferred from the
    sequence of ``status`` values observed between polls.
    """

    DEFAULT_TIMEOUT_SECONDS = 30 * 60
    DEFAULT_GRACE_SECONDS = 5.0

    def __init__(
        self,
        client,
        logger,
        console,
        poll_interval: float = 2.0,
        settle_polls: int = 5,
        time_module=time,
    ):
        self.client = client
        self.logger = logger
        self.console = console
        self.poll_interval = poll_interval
        self.settle_polls = max(1, settle_polls)
        self.time = time_module

    def trigger(self, version: str) -> SystemState:
        self.logger.info("Requesting rack update to %s", version)
        try:
            return self.client.update_system(version)
        except RemoteTransportError:
            raise
        except RemoteError as exc:
            raise TriggerRejected(str(exc)) from exc

    def supervise(
        self,
        timeout: Optional[float] = None,
        acknowledged_status: Optional[str] = None,
    ) -> RolloutOutcome:
        """Poll until the rack settles.

        ``acknowledged_status`` is the status returned when the change was
        accepted. When it already reports a transition, leading ``running``
        reads never count as settled and only a polled transition ends the
        wait.
        """
        timeout = self.DEFAULT_TIMEOUT_SECONDS if timeout is None else timeout
        deadline = self.time.monotonic() + timeout
        settle_polls: Optional[int] = self.settle_polls
        if acknowledged_status in (SystemStatus.UPDATING.value, SystemStatus.ROLLBACK.value):
            settle_polls = None

        rolled_back = False
        transition_seen = False
        leading_running = 0

        while True:
            self.time.sleep(self.poll_interval)
            if self.time.monotonic() >= deadline:
                raise RolloutTimeout(
                    actionable_error("rollout_timeout", minutes=f"{timeout / 60:g}")
                )

            try:
                system = self.client.get_system()
            except RemoteError as exc:
                raise PollingTransportError(f"Could not poll rack status: {exc}") from exc

            status = system.status
            self.logger.debug("Rack status: %s", status)

            if status == SystemStatus.ROLLBACK.value:
                transition_seen = True
                if not rolled_back:
                    rolled_back = True
                    self.console.print("[red]FAILED[/red]")
                    self.console.print("[yellow]Rolling back...[/yellow]")
                continue

            if status != SystemStatus.RUNNING.value:
                transition_seen = True
                continue

            if not transition_seen:
                # the rack may not have flipped to updating yet
                leading_running += 1
                if settle_polls is None or leading_running < settle_polls:
                    continue

            if rolled_back:
                return RolloutOutcome.ROLLED_BACK
            return RolloutOutcome.SUCCEEDED

    def wait(
        self,
        timeout: Optional[float] = None,
        grace: Optional[float] = None,
        acknowledged_status: Optional[str] = None,
    ) -> None:
        """Block until the rack is running again; raise if it rolled back."""
        grace = self.DEFAULT_GRACE_SECONDS if grace is None else grace
        if grace > 0:
            self.time.sleep(grace)

        outcome = self.supervise(timeout=timeout, acknowledged_status=acknowledged_status)
        if outcome is RolloutOutcome.ROLLED_BACK:
            raise RollbackDetected(actionable_error("update_rolled_back"))
