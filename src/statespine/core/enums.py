"""
Shared enums for statespine.

STDLIB ONLY - NO PYDANTIC.
"""

from enum import Enum


class AuxSlot(str, Enum):
    """
    Per-attribute bookkeeping slots a machine keeps on the subject.

    Used by attribute-driven transitions to track a requested event and a
    partially performed transition between calls.
    """

    # Pending event requested through the event attribute
    EVENT = "event"
    # Transition whose after callbacks have not run yet
    EVENT_TRANSITION = "event_transition"


class Phase(str, Enum):
    """Pipeline phases of a transition collection, in execution order."""

    BEFORE = "before"
    PERSIST = "persist"
    ACTIONS = "actions"
    AFTER = "after"
    ROLLBACK = "rollback"
