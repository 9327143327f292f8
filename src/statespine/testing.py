"""Test Harness: doubles and assertions for transition pipelines.

Manifesto:
Testing the pipeline means watching the order in which hooks, actions and
transactions are touched.  This module provides recording doubles that all
write into one shared ``CallLog`` so a test can assert on the exact
sequence.

ARCHITECTURE
────────────
::

    Test doubles:
      RecordingTransition   → records before/persist/after/rollback calls
      DictMachine           → auxiliary slots kept in a dict, writes recorded
      StubSubject           → scripted action results, recorded transactions

    Assertion helpers:
      assert_hook_sequence(log, expected)
      assert_rolled_back(log, attributes)

Example::

    from statespine.testing import CallLog, RecordingTransition, StubSubject

    def test_two_attributes():
        log = CallLog()
        subject = StubSubject(log=log)
        state = RecordingTransition("state", log, subject=subject)
        status = RecordingTransition("status", log, subject=subject)
        assert TransitionCollection([state, status]).perform()
        assert_hook_sequence(log, [("state", "before"), ("status", "before"), ...])

Tags:
    statespine, testing, harness, assertions, doubles
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from statespine.core.enums import AuxSlot

# ---------------------------------------------------------------------------
# Shared call log
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Call:
    """One recorded interaction: who, what, with which arguments."""

    source: str
    name: str
    args: tuple[Any, ...] = ()


@dataclass
class CallLog:
    """Ordered record of every interaction with the doubles."""

    calls: list[Call] = field(default_factory=list)

    def record(self, source: str, name: str, *args: Any) -> None:
        self.calls.append(Call(source, name, args))

    def sequence(self) -> list[tuple[str, str]]:
        """``(source, name)`` pairs without arguments."""
        return [(call.source, call.name) for call in self.calls]

    def of(self, source: str) -> list[Call]:
        return [call for call in self.calls if call.source == source]

    def count(self, source: str, name: str) -> int:
        return sum(1 for call in self.calls if call.source == source and call.name == name)

    def clear(self) -> None:
        self.calls.clear()


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class DictMachine:
    """Machine double keeping auxiliary slots in a dict.

    Slots are keyed per subject, so one machine can serve several subjects.
    """

    def __init__(self, name: str = "machine", log: CallLog | None = None) -> None:
        self.name = name
        self.log = log
        self.slots: dict[tuple[int, AuxSlot], Any] = {}

    def read(self, subject: Any, slot: AuxSlot) -> Any:
        return self.slots.get((id(subject), AuxSlot(slot)))

    def write(self, subject: Any, slot: AuxSlot, value: Any) -> None:
        self.slots[(id(subject), AuxSlot(slot))] = value
        if self.log is not None:
            self.log.record(self.name, "write", AuxSlot(slot), value)


class StubSubject:
    """Subject double with scripted actions and a recording transaction.

    Parameters
    ----------
    actions
        ``action → outcome``.  A callable outcome is called and its value
        returned; an exception instance or class is raised; anything else
        is returned as-is.  Unknown actions raise ``AttributeError``.
    log
        Shared call log for ``invoke`` and transaction boundaries.

    The ``transactions`` list receives ``"committed"``, ``"rolled_back"``
    or ``"raised"`` for each ``within_transaction`` call.
    """

    def __init__(self, actions: Mapping[str, Any] | None = None, log: CallLog | None = None) -> None:
        self.actions = dict(actions or {})
        self.log = log if log is not None else CallLog()
        self.invocations: list[str] = []
        self.transactions: list[str] = []

    def invoke(self, action: str) -> Any:
        self.invocations.append(action)
        self.log.record("subject", "invoke", action)
        if action not in self.actions:
            raise AttributeError(f"StubSubject has no action {action!r}")

        outcome = self.actions[action]
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, type) and issubclass(outcome, BaseException):
            raise outcome(action)
        if callable(outcome):
            return outcome()
        return outcome

    def within_transaction(self, block: Callable[[], bool]) -> bool:
        self.log.record("subject", "transaction.begin")
        try:
            committed = bool(block())
        except BaseException:
            self.transactions.append("raised")
            self.log.record("subject", "transaction.raised")
            raise

        self.transactions.append("committed" if committed else "rolled_back")
        self.log.record("subject", "transaction.commit" if committed else "transaction.rollback")
        return committed


class RecordingTransition:
    """Transition double that records each hook call into a ``CallLog``.

    Parameters
    ----------
    attribute
        Attribute name; also used as the log source.
    log
        Shared call log.
    before_result
        Value returned by ``before()``.
    raise_on
        Hook name (``"before"``, ``"persist"``, ``"after"``,
        ``"rollback"``) that raises ``RuntimeError`` after recording.
    """

    def __init__(
        self,
        attribute: str,
        log: CallLog,
        *,
        action: str | None = None,
        event: str | None = None,
        subject: Any = None,
        machine: Any = None,
        before_result: Any = True,
        raise_on: str | None = None,
    ) -> None:
        self.attribute = attribute
        self.log = log
        self.action = action
        self.event = event
        self.object = subject if subject is not None else StubSubject(log=log)
        self.machine = machine if machine is not None else DictMachine(f"{attribute}_machine", log)
        self.before_result = before_result
        self.raise_on = raise_on

    def _record(self, hook: str, *args: Any) -> None:
        self.log.record(self.attribute, hook, *args)
        if self.raise_on == hook:
            raise RuntimeError(f"{self.attribute}.{hook} failed")

    def before(self) -> Any:
        self._record("before")
        return self.before_result

    def persist(self) -> None:
        self._record("persist")

    def after(self, result: Any, success: bool) -> None:
        self._record("after", result, success)

    def rollback(self) -> None:
        self._record("rollback")

    def __repr__(self) -> str:
        return f"RecordingTransition({self.attribute!r}, action={self.action!r})"


# ---------------------------------------------------------------------------
# Assertion helpers
# ---------------------------------------------------------------------------


def assert_hook_sequence(log: CallLog, expected: Iterable[tuple[str, str]], *, sources: Iterable[str] | None = None) -> None:
    """Assert the recorded ``(source, name)`` sequence, optionally filtered by source."""
    wanted = set(sources) if sources is not None else None
    actual = [pair for pair in log.sequence() if wanted is None or pair[0] in wanted]
    expected = list(expected)
    assert actual == expected, f"Expected hook sequence {expected}, got {actual}"


def assert_rolled_back(log: CallLog, attributes: Iterable[str]) -> None:
    """Assert every attribute received exactly one rollback."""
    for attribute in attributes:
        count = log.count(attribute, "rollback")
        assert count == 1, f"Expected one rollback for {attribute!r}, got {count}"


__all__ = [
    "Call",
    "CallLog",
    "DictMachine",
    "StubSubject",
    "RecordingTransition",
    "assert_hook_sequence",
    "assert_rolled_back",
]
