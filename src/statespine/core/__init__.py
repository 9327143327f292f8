"""statespine core -- domain-agnostic primitives for the transition pipeline.

Architecture::

    errors.py          Structured error hierarchy (StateSpineError, InvalidTransitionSetError)
    result.py          Result[T] envelope (Ok / Err / try_result)
    enums.py           AuxSlot, Phase
    protocols.py       Transition, Machine, Subject contracts
    settings.py        StateSpineSettings + get_settings() cache
"""

from statespine.core.enums import AuxSlot, Phase
from statespine.core.errors import (
    ConfigError,
    ErrorCategory,
    ErrorContext,
    InvalidOptionError,
    InvalidTransitionSetError,
    StateSpineError,
    TransactionError,
    TransitionError,
)
from statespine.core.protocols import ActionInvoker, Machine, Subject, TransactionScope, Transition
from statespine.core.result import Err, Ok, Result, try_result

__all__ = [
    # enums
    "AuxSlot",
    "Phase",
    # errors
    "ErrorCategory",
    "ErrorContext",
    "StateSpineError",
    "TransitionError",
    "InvalidTransitionSetError",
    "TransactionError",
    "ConfigError",
    "InvalidOptionError",
    # protocols
    "Transition",
    "Machine",
    "ActionInvoker",
    "TransactionScope",
    "Subject",
    # result
    "Ok",
    "Err",
    "Result",
    "try_result",
]
