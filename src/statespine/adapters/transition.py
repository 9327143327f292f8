"""Concrete transition for :class:`~statespine.adapters.machine.AttributeMachine`."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from statespine.adapters.machine import AttributeMachine
from statespine.execution.collection import TransitionCollection


class StateTransition:
    """One attribute's move from ``from_state`` to ``to_state``.

    ``persist`` writes the destination state, ``rollback`` writes the source
    state back, and ``after`` records the action result and success flag
    before running the machine's after (or failure) callbacks.
    """

    def __init__(
        self,
        subject: Any,
        machine: AttributeMachine,
        event: str | None,
        from_state: Any,
        to_state: Any,
        action: str | None = None,
    ) -> None:
        self.subject = subject
        self.machine = machine
        self.event = event
        self.from_state = from_state
        self.to_state = to_state
        self.action = action
        self.result: Any = None
        self.success: bool | None = None

    @property
    def attribute(self) -> str:
        return self.machine.attribute

    @property
    def object(self) -> Any:
        return self.subject

    @property
    def loopback(self) -> bool:
        return self.from_state == self.to_state

    def before(self) -> bool:
        return self.machine.run_before_callbacks(self)

    def persist(self) -> None:
        self.machine.write_state(self.subject, self.to_state)

    def after(self, result: Any, success: bool) -> None:
        self.result = result
        self.success = success
        self.machine.run_after_callbacks(self, success)

    def rollback(self) -> None:
        self.machine.write_state(self.subject, self.from_state)

    def perform(self, block: Callable[[], Any] | None = None, **options: Any) -> bool:
        """Perform this transition on its own; ``options`` as for TransitionCollection."""
        return TransitionCollection([self], **options).perform(block)

    def __repr__(self) -> str:
        return (
            f"StateTransition(attribute={self.attribute!r}, event={self.event!r}, "
            f"from={self.from_state!r}, to={self.to_state!r})"
        )


__all__ = ["StateTransition"]
