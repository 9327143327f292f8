"""Attribute-backed machine with transition callbacks.

``AttributeMachine`` keeps one state attribute directly on the subject's
object, next to its two bookkeeping attributes::

    vehicle.state                    current state
    vehicle.state_event              requested event (AuxSlot.EVENT)
    vehicle.state_event_transition   deferred transition (AuxSlot.EVENT_TRANSITION)

Callbacks are plain functions ``fn(obj, transition)``; ``on=`` limits them
to one or more events.

Example::

    machine = AttributeMachine("state", initial="parked")

    @machine.before_transition(on="ignite")
    def check_fuel(vehicle, transition):
        return vehicle.fuel > 0

    @machine.after_failure
    def alert(vehicle, transition):
        vehicle.alerts.append(transition.event)
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from statespine.adapters.subject import unwrap_subject
from statespine.core.enums import AuxSlot

Callback = Callable[[Any, Any], Any]


@dataclass(frozen=True)
class _RegisteredCallback:
    fn: Callback
    events: frozenset[str] | None = None

    def matches(self, event: str | None) -> bool:
        return self.events is None or event in self.events


class AttributeMachine:
    """Machine whose state and auxiliary slots are instance attributes."""

    def __init__(self, attribute: str = "state", *, name: str | None = None, initial: Any = None) -> None:
        self.attribute = attribute
        self.name = name or attribute
        self.initial = initial
        self._callbacks: dict[str, list[_RegisteredCallback]] = {
            "before": [],
            "after": [],
            "failure": [],
        }

    # ── State and slots ─────────────────────────────────────────────

    def slot_attribute(self, slot: AuxSlot) -> str:
        return f"{self.attribute}_{AuxSlot(slot).value}"

    def read_state(self, subject: Any) -> Any:
        return getattr(unwrap_subject(subject), self.attribute, self.initial)

    def write_state(self, subject: Any, value: Any) -> None:
        setattr(unwrap_subject(subject), self.attribute, value)

    def read(self, subject: Any, slot: AuxSlot) -> Any:
        return getattr(unwrap_subject(subject), self.slot_attribute(slot), None)

    def write(self, subject: Any, slot: AuxSlot, value: Any) -> None:
        setattr(unwrap_subject(subject), self.slot_attribute(slot), value)

    # ── Callback registration ───────────────────────────────────────

    def before_transition(self, fn: Callback | None = None, *, on: str | Iterable[str] | None = None):
        """Register a before callback; returning ``False`` halts the transition."""
        return self._register("before", fn, on)

    def after_transition(self, fn: Callback | None = None, *, on: str | Iterable[str] | None = None):
        """Register a callback run after a successful transition."""
        return self._register("after", fn, on)

    def after_failure(self, fn: Callback | None = None, *, on: str | Iterable[str] | None = None):
        """Register a callback run after a failed transition."""
        return self._register("failure", fn, on)

    def _register(self, kind: str, fn: Callback | None, on: str | Iterable[str] | None):
        events = None if on is None else frozenset([on] if isinstance(on, str) else on)

        def register(callback: Callback) -> Callback:
            self._callbacks[kind].append(_RegisteredCallback(callback, events))
            return callback

        if fn is None:
            return register
        return register(fn)

    # ── Callback execution ──────────────────────────────────────────

    def run_before_callbacks(self, transition: Any) -> bool:
        """Run matching before callbacks in order; stop at the first ``False``."""
        target = unwrap_subject(transition.object)
        for callback in self._callbacks["before"]:
            if callback.matches(transition.event) and callback.fn(target, transition) is False:
                return False
        return True

    def run_after_callbacks(self, transition: Any, success: bool) -> None:
        target = unwrap_subject(transition.object)
        for callback in self._callbacks["after" if success else "failure"]:
            if callback.matches(transition.event):
                callback.fn(target, transition)

    def __repr__(self) -> str:
        return f"AttributeMachine({self.name!r}, attribute={self.attribute!r})"


__all__ = ["AttributeMachine"]
