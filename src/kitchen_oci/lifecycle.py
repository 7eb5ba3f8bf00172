"""Poll a control-plane resource until it reaches a lifecycle state"""

from __future__ import annotations

import time
from typing import Any, Callable, Collection, Tuple, TypeVar, Union

from rich.console import Console

from kitchen_oci.errors import WaitTimeoutError
from kitchen_oci.models import DEFAULT_WAIT, LifecycleState, WaitPolicy

CONSOLE: Console = Console()

T = TypeVar("T")

Target = Union[LifecycleState, Collection[LifecycleState]]
Poll = Callable[[], Tuple[Any, T]]


def _targets(target: Target) -> frozenset[LifecycleState]:
    if isinstance(target, LifecycleState):
        return frozenset({target})
    return frozenset(target)


def wait(
    poll: Poll[T],
    target: Target,
    poll_interval_seconds: float = DEFAULT_WAIT.poll_interval_seconds,
    max_wait_seconds: float = DEFAULT_WAIT.max_wait_seconds,
    *,
    kind: str = "resource",
    identifier: str | None = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> T:
    """Call `poll` until the state it reports is one of `target`.

    `poll` returns a `(state, resource)` pair; the resource from the poll
    that matched is returned. Exceptions raised by `poll` are not retried.
    """
    targets: frozenset[LifecycleState] = _targets(target)
    started: float = clock()
    while True:
        raw_state, resource = poll()
        state = LifecycleState(raw_state)
        if state in targets:
            return resource

        waited: float = clock() - started
        if waited >= max_wait_seconds:
            expected = next(iter(targets)).value if len(targets) == 1 else sorted(t.value for t in targets)
            raise WaitTimeoutError(kind, identifier, expected, state.value, waited)
        sleep(min(poll_interval_seconds, max(max_wait_seconds - waited, 0)))


def get_poll(get_call: Callable[..., Any], *args: Any, **kwargs: Any) -> Poll[Any]:
    """Adapt an OCI `get_*` call into a poll returning `(lifecycle_state, data)`"""

    def _poll() -> Tuple[Any, Any]:
        data = get_call(*args, **kwargs).data
        return data.lifecycle_state, data

    return _poll


class LifecycleWaiter:
    """Binds a wait policy and the clock/sleep pair used for polling"""

    def __init__(
        self,
        policy: WaitPolicy = DEFAULT_WAIT,
        console: Console | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.policy: WaitPolicy = policy
        self.console: Console = console or CONSOLE
        self.sleep: Callable[[float], None] = sleep
        self.clock: Callable[[], float] = clock

    def with_policy(self, policy: WaitPolicy) -> "LifecycleWaiter":
        return LifecycleWaiter(policy, self.console, self.sleep, self.clock)

    def wait_for(self, kind: str, identifier: str | None, poll: Poll[T], target: Target) -> T:
        self.console.print(f"[dim]Waiting for {kind} <{identifier}> to reach {_describe(target)}[/dim]")
        return wait(
            poll,
            target,
            self.policy.poll_interval_seconds,
            self.policy.max_wait_seconds,
            kind=kind,
            identifier=identifier,
            sleep=self.sleep,
            clock=self.clock,
        )


def _describe(target: Target) -> str:
    return " or ".join(sorted(t.value for t in _targets(target)))
