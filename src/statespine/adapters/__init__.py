"""Reference collaborators for plain Python objects.

Modules::

    subject.py      ObjectSubject, SnapshotTransaction
    machine.py      AttributeMachine (state + aux slots as attributes, callbacks)
    transition.py   StateTransition
"""

from statespine.adapters.machine import AttributeMachine
from statespine.adapters.subject import ObjectSubject, SnapshotTransaction, unwrap_subject
from statespine.adapters.transition import StateTransition

__all__ = [
    "AttributeMachine",
    "ObjectSubject",
    "SnapshotTransaction",
    "StateTransition",
    "unwrap_subject",
]
