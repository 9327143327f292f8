"""Attribute-driven transition collections.

When a caller requests an event by writing it onto the subject (for example
``vehicle.state_event = "ignite"`` followed by a save), the transitions built
from that marker must not see it again if an action saves the subject a
second time, and a failed attempt must leave the marker in place so the same
event can be retried. ``AttributeTransitionCollection`` adds that
bookkeeping around the base pipeline using each machine's auxiliary slots.
"""

from __future__ import annotations

from statespine.core.enums import AuxSlot
from statespine.execution.collection import TransitionCollection
from statespine.framework.logging import get_logger

logger = get_logger(__name__)


class AttributeTransitionCollection(TransitionCollection):
    """Collection of transitions generated from attribute-based events."""

    def before(self) -> bool:
        """Clear the pending event markers, then run the before hooks."""
        for transition in self:
            transition.machine.write(self.object, AuxSlot.EVENT, None)
            transition.machine.write(self.object, AuxSlot.EVENT_TRANSITION, None)

        return super().before()

    def after(self) -> None:
        """
        Remember partially performed transitions, then run the after hooks.

        With after hooks disabled, a successful transition is stored in the
        ``event_transition`` slot so its after hooks can be run later.
        """
        if self.skip_after and self.success:
            for transition in self:
                transition.machine.write(self.object, AuxSlot.EVENT_TRANSITION, transition)
            logger.debug("attribute_transition_collection.deferred", attributes=self.attributes)

        super().after()

    def rollback(self) -> None:
        """Restore each requested event so it can be attempted again."""
        for transition in self:
            transition.machine.write(self.object, AuxSlot.EVENT, transition.event)

        super().rollback()


__all__ = ["AttributeTransitionCollection"]
