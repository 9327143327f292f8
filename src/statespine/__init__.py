"""
statespine - transition execution for finite state machines.

Performs one or more attribute transitions on a subject as a single unit:
before hooks, state persistence, actions, after hooks, and rollback on
failure, optionally inside the subject's transaction.

- statespine.core: errors, Result envelope, protocols, settings
- statespine.execution: TransitionCollection, AttributeTransitionCollection
- statespine.adapters: reference collaborators for plain Python objects
- statespine.framework.logging: structlog configuration and context
"""

__version__ = "0.1.0"

from statespine.core import *  # noqa
from statespine.execution import (  # noqa
    AttributeTransitionCollection,
    TransitionCollection,
    TransitionOptions,
)
