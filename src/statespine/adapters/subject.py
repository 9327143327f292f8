"""Plain-object subjects and an in-memory transaction provider.

``ObjectSubject`` lets any Python object take part in a transition pipeline:
actions are looked up as zero-argument methods on the wrapped object, and
transactions are delegated to an optional provider.

``SnapshotTransaction`` is that provider for objects that live only in
memory. It copies the object's instance dictionary before the block runs and
puts it back when the block fails, which is enough to undo attribute writes
made by hooks and actions.

Example::

    vehicle = Vehicle()
    subject = ObjectSubject.transactional(vehicle)
    subject.invoke("save")
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from statespine.core.errors import TransactionError
from statespine.core.protocols import TransactionScope
from statespine.framework.logging import get_logger

logger = get_logger(__name__)


def _instance_state(target: Any) -> dict[str, Any]:
    try:
        return vars(target)
    except TypeError as exc:
        raise TransactionError(
            f"Cannot snapshot {type(target).__name__}: object has no instance dictionary",
            cause=exc,
        ) from exc


class SnapshotTransaction:
    """Transaction over an object's instance attributes.

    Commits (keeps the changes) when the block returns a truthy value;
    restores the snapshot when it returns a falsy value or raises.
    """

    def __init__(self, target: Any) -> None:
        self.target = target

    def within_transaction(self, block: Callable[[], bool]) -> bool:
        state = _instance_state(self.target)
        snapshot = dict(state)

        try:
            committed = bool(block())
        except BaseException:
            self._restore(state, snapshot)
            raise

        if not committed:
            self._restore(state, snapshot)
        return committed

    def _restore(self, state: dict[str, Any], snapshot: dict[str, Any]) -> None:
        state.clear()
        state.update(snapshot)
        logger.debug("snapshot_transaction.rolled_back", target=type(self.target).__name__)


class ObjectSubject:
    """Subject adapter for an arbitrary Python object.

    Parameters
    ----------
    target
        The object whose attributes are transitioning.
    transaction
        Provider used by ``within_transaction``; without one the block
        runs directly.
    """

    def __init__(self, target: Any, transaction: TransactionScope | None = None) -> None:
        self.target = target
        self.transaction = transaction

    @classmethod
    def transactional(cls, target: Any) -> ObjectSubject:
        """Wrap ``target`` with a :class:`SnapshotTransaction`."""
        return cls(target, SnapshotTransaction(target))

    def invoke(self, action: str) -> Any:
        """Call ``target.<action>()``; a missing method raises AttributeError."""
        method = getattr(self.target, action)
        return method()

    def within_transaction(self, block: Callable[[], bool]) -> Any:
        if self.transaction is None:
            return block()
        return self.transaction.within_transaction(block)

    def __repr__(self) -> str:
        return f"ObjectSubject({self.target!r})"


def unwrap_subject(subject: Any) -> Any:
    """Return the wrapped object of an :class:`ObjectSubject`, else ``subject``."""
    if isinstance(subject, ObjectSubject):
        return subject.target
    return subject


__all__ = ["ObjectSubject", "SnapshotTransaction", "unwrap_subject"]
