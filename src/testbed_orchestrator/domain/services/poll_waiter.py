"""Bounded polling loop.

The testbed API offers no push notifications, so every wait is a loop of
refresh, check, sleep. The loop carries its own elapsed-time counter and
stops on the first of:

1. a fatal state (TerminalFailureState), checked before success
2. the success predicate
3. the time budget running out (WaitTimeout)

Clock and sleep are injected so waits can be driven by a fake clock.

References:
    - DESIGN.md Section 4.4 (PollWaiter)
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Callable, Collection, Optional, TypeVar

from testbed_orchestrator.domain.errors import TerminalFailureState, WaitTimeout

if TYPE_CHECKING:
    from testbed_orchestrator.domain.entities.resource import HypermediaResource
    from testbed_orchestrator.ports.outbound import ResourceGateway

T = TypeVar("T")
R = TypeVar("R", bound="HypermediaResource")

JOB_WAIT_TIMEOUT = 36000.0
DEPLOY_WAIT_TIMEOUT = 36000.0
RELEASE_ALL_TIMEOUT = 20.0


class PollWaiter:
    """Synchronous poller with timeout and fatal-state detection."""

    def __init__(
        self,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the waiter.

        Args:
            sleep: Blocking pause, called between attempts.
            clock: Monotonic clock in seconds.
        """
        self._sleep = sleep
        self._clock = clock

    def poll(
        self,
        probe: Callable[[], T],
        predicate: Callable[[T], bool],
        poll_interval: float,
        timeout: float,
        failure: Optional[Callable[[T], Optional[str]]] = None,
        on_poll: Optional[Callable[[T, int], None]] = None,
        what: str = "resource",
    ) -> T:
        """Call `probe` until `predicate` accepts its result.

        Args:
            probe: Fetches the current value (e.g., refreshes a resource).
            predicate: Success condition.
            poll_interval: Seconds to pause between attempts.
            timeout: Total time budget in seconds.
            failure: Returns the name of a fatal state, or None.
            on_poll: Progress callback, given the value and the attempt number.
            what: Description used in errors.

        Returns:
            The first value accepted by `predicate`.

        Raises:
            TerminalFailureState: If `failure` reports a fatal state.
            WaitTimeout: If the budget runs out first.
        """
        start = self._clock()
        attempt = 0
        while True:
            attempt += 1
            value = probe()
            if on_poll is not None:
                on_poll(value, attempt)

            if failure is not None:
                fatal = failure(value)
                if fatal is not None:
                    raise TerminalFailureState(what, fatal)

            if predicate(value):
                return value

            elapsed = self._clock() - start
            if elapsed >= timeout:
                raise WaitTimeout(what, elapsed, timeout)
            self._sleep(min(poll_interval, timeout - elapsed))

    def wait_until(
        self,
        resource: R,
        gateway: ResourceGateway,
        predicate: Callable[[R], bool],
        poll_interval: float,
        timeout: float,
        fatal_states: Collection[str] = (),
        state_field: str = "state",
        on_poll: Optional[Callable[[R, int], None]] = None,
    ) -> R:
        """Refresh `resource` until `predicate` holds.

        Args:
            resource: Resource to refresh in place.
            gateway: Gateway the resource refreshes through.
            predicate: Success condition over the refreshed resource.
            poll_interval: Seconds between refreshes.
            timeout: Total time budget in seconds.
            fatal_states: Values of `state_field` that abort the wait.
            state_field: Field holding the resource state.
            on_poll: Progress callback.

        Raises:
            TerminalFailureState: If the resource reaches a fatal state.
            WaitTimeout: If the budget runs out first.
        """

        def failure(value: R) -> Optional[str]:
            state = value.get(state_field)
            return state if state in fatal_states else None

        return self.poll(
            probe=lambda: resource.refresh(gateway),
            predicate=predicate,
            poll_interval=poll_interval,
            timeout=timeout,
            failure=failure if fatal_states else None,
            on_poll=on_poll,
            what=f"{type(resource).__name__.lower()} {resource.describe()}",
        )
