"""
Transition collection -- performs several attribute transitions as one unit.

A collection takes transitions that were already resolved upstream (one per
attribute of the same subject) and drives them through a fixed pipeline, so
state changes, actions and callbacks happen in the same order every time and
a failure anywhere leaves the subject as it was.

Architecture:
    ::

        perform(block=None)
        └── within_transaction            subject.within_transaction(...)
            ├── before()                  all transitions, stops at first False
            │    └── halted ─────────────────────────────┐
            ├── persist()                 every transition│
            ├── run_actions(block)  -> Result[bool]       │
            │    └── Err ──> rollback(), re-raise         │
            ├── after()               <───────────────────┘
            └── rollback()                unless success

    ``success`` is decided once per perform: False when before halts or an
    action raises, otherwise the truthiness of every action result (or of
    the block's result in block mode).

Examples:
    >>> collection = TransitionCollection([state_transition, alarm_transition])
    >>> collection.perform()
    True
    >>> collection.results
    {'save': True}

    Skip after hooks and keep the transaction out of it:

    >>> TransitionCollection(transitions, after=False, transaction=False).perform()

Guardrails:
    ❌ DON'T: Reuse a collection for a second perform
    ✅ DO: Build a fresh collection per logical operation

    ❌ DON'T: Put two transitions for the same attribute in one collection
    ✅ DO: Resolve one transition per attribute upstream

Tags:
    transition, pipeline, rollback, transaction, statespine
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Iterable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from statespine.core.enums import Phase
from statespine.core.errors import InvalidTransitionSetError, TransitionError
from statespine.core.protocols import Subject, Transition
from statespine.core.result import Ok, Result, try_result
from statespine.execution.options import TransitionOptions
from statespine.framework.logging import get_logger, new_collection_id, push_context, timed_block

logger = get_logger(__name__)

# Per-transition log fields; never inherited from an enclosing collection
_TRANSITION_LOG_KEYS = ("machine", "attribute", "event")


class TransitionCollection:
    """
    Ordered set of transitions for distinct attributes, performed together.

    Args:
        transitions: Resolved transitions; order decides hook order and the
            first one anchors the subject and its transaction
        options: ``TransitionOptions`` or a mapping with ``actions``,
            ``after`` and ``transaction`` keys
        **overrides: Same keys as ``options``, applied on top

    Raises:
        InvalidTransitionSetError: two transitions share an attribute
        InvalidOptionError: a recognised option is not a boolean
    """

    def __init__(
        self,
        transitions: Iterable[Transition],
        options: TransitionOptions | Mapping[str, Any] | None = None,
        **overrides: Any,
    ) -> None:
        self._transitions: tuple[Transition, ...] = tuple(transitions)

        counts = Counter(transition.attribute for transition in self._transitions)
        duplicates = [attribute for attribute, count in counts.items() if count > 1]
        if duplicates:
            raise InvalidTransitionSetError(duplicates)

        self.options = TransitionOptions.build(options, **overrides)
        self._skip_actions = not self.options.actions
        self._skip_after = not self.options.after
        self._use_transaction = self.options.resolve_transaction()

        self._results: dict[str | None, Any] = {}
        self._success: bool | None = None
        self._performed = False
        self.collection_id = new_collection_id()

    # ── Sequence access ─────────────────────────────────────────────

    def __iter__(self) -> Iterator[Transition]:
        return iter(self._transitions)

    def __len__(self) -> int:
        return len(self._transitions)

    def __getitem__(self, index: int) -> Transition:
        return self._transitions[index]

    @property
    def transitions(self) -> tuple[Transition, ...]:
        return self._transitions

    @property
    def first(self) -> Transition:
        """The anchor transition."""
        if not self._transitions:
            raise TransitionError("Transition collection is empty").with_context(
                collection_id=self.collection_id
            )
        return self._transitions[0]

    @property
    def object(self) -> Subject:
        """The subject being transitioned, shared by every transition."""
        return self.first.object

    @property
    def attributes(self) -> list[str]:
        return [transition.attribute for transition in self._transitions]

    @property
    def actions(self) -> list[str | None]:
        """Distinct action identifiers in first-seen order, ``None`` included."""
        return list(dict.fromkeys(transition.action for transition in self._transitions))

    # ── Configuration / outcome ─────────────────────────────────────

    @property
    def skip_actions(self) -> bool:
        return self._skip_actions

    @property
    def skip_after(self) -> bool:
        return self._skip_after

    @property
    def use_transaction(self) -> bool:
        return self._use_transaction

    @property
    def results(self) -> dict[str | None, Any]:
        """Action identifier -> value returned by that action (or the block)."""
        return self._results

    @property
    def success(self) -> bool | None:
        """``None`` until perform decides, then whether every transition succeeded."""
        return self._success

    # ── Pipeline ────────────────────────────────────────────────────

    def perform(self, block: Callable[[], Any] | None = None) -> bool:
        """
        Run every transition through the pipeline.

        If ``block`` is given it is called once instead of each transition's
        action, and its value decides success.

        Returns:
            True if no before hook halted and every action succeeded.

        Raises:
            TransitionError: the collection was already performed
            Exception: whatever an action or the block raised, after
                rollback has run; transaction provider errors propagate
                as raised
        """
        if self._performed:
            raise TransitionError("Transition collection has already been performed").with_context(
                collection_id=self.collection_id
            )
        self._performed = True

        token = push_context(unset=_TRANSITION_LOG_KEYS, **self._log_context())
        try:
            logger.debug(
                "transition_collection.perform.start",
                attributes=self.attributes,
                use_transaction=self._use_transaction,
                block=block is not None,
            )
            with timed_block("perform") as timer:
                self.within_transaction(lambda: self._run_pipeline(block))
            logger.debug("transition_collection.perform.done", success=self._success, **timer.to_log_dict())
        finally:
            token.restore()

        return self._success is True

    def _log_context(self) -> dict[str, Any]:
        context: dict[str, Any] = {"collection_id": self.collection_id, "collection": type(self).__name__}
        if len(self._transitions) == 1:
            transition = self._transitions[0]
            context.update(
                machine=getattr(transition.machine, "name", None),
                attribute=transition.attribute,
                event=transition.event,
            )
        return context

    def _run_pipeline(self, block: Callable[[], Any] | None) -> None:
        if self.before():
            self.persist()
            # Err: rollback already ran inside run_actions
            self.run_actions(block).unwrap()
        else:
            self._success = False
            logger.info("transition_collection.before.halted", attributes=self.attributes)

        self.after()
        if not self._success:
            self.rollback()

    def within_transaction(self, block: Callable[[], Any]) -> None:
        """
        Run ``block`` inside the subject's transaction.

        The provider commits iff the collection succeeded. Without
        transactions, or without any transition to anchor one, the block
        simply runs.
        """
        if not (self._use_transaction and self._transitions):
            block()
            return

        def run() -> bool:
            block()
            return self._success is True

        self.object.within_transaction(run)

    def before(self) -> bool:
        """
        Run each transition's before hook.

        Stops at the first hook returning a falsy value; later transitions
        are not asked.
        """
        with _phase(Phase.BEFORE):
            return all(transition.before() for transition in self._transitions)

    def persist(self) -> None:
        """Store each transition's destination state on the subject."""
        with _phase(Phase.PERSIST):
            for transition in self._transitions:
                transition.persist()

    def run_actions(self, block: Callable[[], Any] | None = None) -> Result[bool]:
        """
        Invoke the actions (or the block) and decide ``success``.

        Any exception raised here rolls back immediately and comes back as
        ``Err`` carrying the original exception object. Interrupts and
        exits (``BaseException`` outside ``Exception``) also roll back, then
        keep unwinding.
        """
        try:
            with _phase(Phase.ACTIONS):
                outcome = try_result(lambda: self._invoke_actions(block))
        except BaseException as exc:
            self._success = False
            logger.warning("transition_collection.actions.interrupted", error_type=type(exc).__name__)
            self.rollback()
            raise

        if outcome.is_err():
            self._success = False
            logger.warning(
                "transition_collection.actions.raised",
                error_type=type(outcome.error).__name__,
                exc_info=outcome.error,
            )
            self.rollback()
            return outcome

        self._success = outcome.value
        if not self._success:
            logger.info(
                "transition_collection.actions.failed",
                failed=[action for action, value in self._results.items() if not value],
            )
        return Ok(self._success)

    def _invoke_actions(self, block: Callable[[], Any] | None) -> bool:
        if block is not None:
            result = block()
            for action in self.actions:
                self._results[action] = result
            return bool(result)

        if not self._skip_actions:
            for action in self.actions:
                if action is not None:
                    self._results[action] = self.object.invoke(action)
        return all(self._results.values())

    def after(self) -> None:
        """
        Run each transition's after hook with its action's result.

        Skipped only when after hooks were disabled and the run succeeded;
        failures always reach the hooks.
        """
        if self._skip_after and self._success:
            return

        success = self._success is True
        with _phase(Phase.AFTER):
            for transition in self._transitions:
                transition.after(self._results.get(transition.action), success)

    def rollback(self) -> None:
        """Undo the state change of every transition in the collection."""
        logger.debug("transition_collection.rollback", attributes=self.attributes)
        with _phase(Phase.ROLLBACK):
            for transition in self._transitions:
                transition.rollback()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(attributes={self.attributes!r}, success={self._success!r})"


@contextmanager
def _phase(phase: Phase) -> Iterator[None]:
    token = push_context(phase=phase.value)
    try:
        yield
    finally:
        token.restore()


__all__ = ["TransitionCollection"]
