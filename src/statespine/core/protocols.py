"""
Canonical protocol definitions for statespine.

This module defines the structural contracts between the transition pipeline
and its collaborators. The pipeline never inspects concrete classes: any
object with the right shape can be a transition, a machine, or a subject.

Manifesto:
    Protocols define contracts without inheritance. They enable:
    - **Decoupling:** The pipeline depends on shape, not implementation
    - **Testability:** Any recording double matching the protocol works
    - **Portability:** The same pipeline drives ORM rows or plain objects

Architecture:
    ::

        protocols.py (YOU ARE HERE)
        ├── Transition          one attribute's change + lifecycle hooks
        ├── Machine             auxiliary slot storage on a subject
        ├── ActionInvoker       run an action by identifier
        ├── TransactionScope    wrap a block in a transaction
        └── Subject             ActionInvoker + TransactionScope

    Consumers:
        execution/collection.py, execution/attribute.py, adapters/, testing.py

Guardrails:
    ❌ DON'T: Reach into a subject with getattr() from the pipeline
    ✅ DO: Go through ActionInvoker.invoke()

    ❌ DON'T: Add implementation logic to protocol classes
    ✅ DO: Keep protocols pure contracts; implementations go in adapters

Tags:
    protocol, transition, machine, subject, transaction, statespine
"""

from __future__ import annotations

from typing import Any, Callable, Protocol, runtime_checkable

from statespine.core.enums import AuxSlot


@runtime_checkable
class Machine(Protocol):
    """
    State machine definition governing one attribute.

    The pipeline only needs the auxiliary bookkeeping slots; reading and
    writing the state attribute itself is the transition's business.
    """

    def read(self, subject: Any, slot: AuxSlot) -> Any:
        """Read an auxiliary slot for this machine's attribute."""
        ...

    def write(self, subject: Any, slot: AuxSlot, value: Any) -> None:
        """Write an auxiliary slot for this machine's attribute."""
        ...


@runtime_checkable
class ActionInvoker(Protocol):
    """Capability to invoke a side-effecting action by identifier."""

    def invoke(self, action: str) -> Any:
        """Run ``action`` and return its value. Exceptions propagate."""
        ...


@runtime_checkable
class TransactionScope(Protocol):
    """
    Capability to run a block inside a transaction.

    Contract:
        - ``block()`` is called exactly once
        - the transaction commits iff ``block()`` returned a truthy value
        - if ``block()`` raises, the transaction is rolled back and the
          exception propagates unchanged
    """

    def within_transaction(self, block: Callable[[], bool]) -> Any:
        ...


@runtime_checkable
class Subject(ActionInvoker, TransactionScope, Protocol):
    """The object whose attributes are transitioning."""


@runtime_checkable
class Transition(Protocol):
    """
    Atomic description of one attribute's state change.

    Created upstream by event resolution; the pipeline only reads its
    identity fields and drives its four hooks.

    Hooks:
        before()                → False halts the pipeline
        persist()               → store the destination state
        after(result, success)  → post-processing with the action's result
        rollback()              → restore the source state
    """

    @property
    def attribute(self) -> str: ...

    @property
    def action(self) -> str | None: ...

    @property
    def machine(self) -> Machine: ...

    @property
    def object(self) -> Subject: ...

    @property
    def event(self) -> str | None: ...

    def before(self) -> bool: ...

    def persist(self) -> None: ...

    def after(self, result: Any, success: bool) -> None: ...

    def rollback(self) -> None: ...


__all__ = [
    "Machine",
    "ActionInvoker",
    "TransactionScope",
    "Subject",
    "Transition",
]
