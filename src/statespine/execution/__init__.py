"""statespine execution -- the transition pipeline.

Modules::

    options.py      TransitionOptions (actions / after / transaction)
    collection.py   TransitionCollection (before → persist → actions → after → rollback)
    attribute.py    AttributeTransitionCollection (event-attribute bookkeeping)
"""

from statespine.execution.attribute import AttributeTransitionCollection
from statespine.execution.collection import TransitionCollection
from statespine.execution.options import TransitionOptions

__all__ = [
    "TransitionCollection",
    "AttributeTransitionCollection",
    "TransitionOptions",
]
