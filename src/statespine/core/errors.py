"""
Structured error types for statespine.

Provides a small hierarchy of typed errors carrying a category, a retry flag,
structured context and a chained cause, so that failures raised while
building or performing transitions can be logged and routed consistently.

Manifesto:
    - **Typed Error Hierarchy:** Construction, transaction and config
      problems each have their own type
    - **Rich Context:** Errors carry machine/attribute/event metadata
    - **Error Chaining:** Preserve original exceptions while adding context
    - **Actions stay untouched:** Exceptions raised by user actions are never
      wrapped; they reach the caller exactly as raised

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                     StateSpineError                          │
        │      (category, retryable, context, cause)                   │
        ├─────────────────────────────────────────────────────────────┤
        │                                                              │
        │  TransitionError        TransactionError     ConfigError     │
        │  (TRANSITION)           (TRANSACTION)        (CONFIG)        │
        │       │                                                      │
        │  InvalidTransitionSetError                                   │
        │  (also a ValueError)                                         │
        └─────────────────────────────────────────────────────────────┘

Examples:
    >>> error = InvalidTransitionSetError(["state"])
    >>> error.duplicates
    ['state']
    >>> error.category
    <ErrorCategory.TRANSITION: 'TRANSITION'>

    >>> error = TransitionError("Collection already performed")
    >>> error.with_context(machine="vehicle", attribute="state").context.attribute
    'state'

Guardrails:
    ❌ DON'T: Wrap exceptions raised by actions or transaction providers
    ✅ DO: Let them propagate after rollback has run

    ❌ DON'T: Swallow the original exception when translating errors
    ✅ DO: Pass it as cause= for error chaining

Tags:
    error-handling, exception-hierarchy, error-context, statespine
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification and routing.

    Attributes:
        TRANSITION: Invalid transition sets, misuse of a collection
        ACTION: For subject adapters and applications that translate
            their own action failures into StateSpineError; the pipeline
            never wraps action exceptions itself
        TRANSACTION: Transaction provider failures
        CONFIG: Invalid options or settings
        VALIDATION: Values rejected by a collaborator
        INTERNAL: Bugs, unexpected state
        UNKNOWN: Uncategorized errors
    """

    TRANSITION = "TRANSITION"
    ACTION = "ACTION"
    TRANSACTION = "TRANSACTION"
    CONFIG = "CONFIG"
    VALIDATION = "VALIDATION"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata context for errors.

    Typed fields cover what a transition failure is usually about; anything
    else goes into ``metadata``. ``to_dict()`` serializes only the fields
    that are set.

    Examples:
        >>> ctx = ErrorContext(machine="vehicle", attribute="state", event="ignite")
        >>> ctx.to_dict()
        {'machine': 'vehicle', 'attribute': 'state', 'event': 'ignite'}

    Attributes:
        machine: Name of the machine governing the attribute
        attribute: Attribute being transitioned
        event: Event that produced the transition
        action: Action identifier involved, if any
        collection_id: Identifier of the collection being performed
        metadata: Additional key-value pairs
    """

    machine: str | None = None
    attribute: str | None = None
    event: str | None = None
    action: str | None = None
    collection_id: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["machine", "attribute", "event", "action", "collection_id"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class StateSpineError(Exception):
    """
    Base exception for all statespine errors.

    All StateSpineError instances carry:
    - **category:** ErrorCategory enum for classification
    - **retryable:** Whether repeating the same operation may succeed
    - **context:** ErrorContext with structured metadata
    - **cause:** Optional underlying exception, also set as ``__cause__``

    Subclasses set ``default_category`` and ``default_retryable``.

    Examples:
        >>> error = StateSpineError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.retryable
        False

        >>> d = StateSpineError("Bad option", category=ErrorCategory.CONFIG).to_dict()
        >>> d["category"]
        'CONFIG'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> StateSpineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise TransitionError("Failed").with_context(
                machine="vehicle",
                attribute="state",
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }

        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict

        if self.cause is not None:
            result["cause"] = str(self.cause)

        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# TRANSITION ERRORS
# =============================================================================


class TransitionError(StateSpineError):
    """Transition collection misuse or invalid input."""

    default_category = ErrorCategory.TRANSITION
    default_retryable = False


class InvalidTransitionSetError(TransitionError, ValueError):
    """
    Two or more transitions in one collection target the same attribute.

    Raised by the collection constructor before any hook runs.
    """

    def __init__(self, duplicates: Iterable[str], message: str | None = None):
        self.duplicates = sorted(str(attribute) for attribute in duplicates)
        super().__init__(
            message
            or "Cannot perform multiple transitions in parallel for the same "
            f"state machine attribute: {', '.join(self.duplicates)}"
        )
        self.context.metadata["duplicates"] = self.duplicates


# =============================================================================
# TRANSACTION ERRORS
# =============================================================================


class TransactionError(StateSpineError):
    """Transaction provider could not commit or roll back."""

    default_category = ErrorCategory.TRANSACTION
    default_retryable = False


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(StateSpineError):
    """
    Configuration error.

    Never retryable - configuration must be fixed.
    """

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class InvalidOptionError(ConfigError):
    """Option value is invalid."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid option for {key}: {value!r}")


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, StateSpineError):
        return error.retryable
    return isinstance(error, (ConnectionError, TimeoutError))


def categorize_error(error: Exception) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, StateSpineError):
        return error.category

    if isinstance(error, ValueError):
        return ErrorCategory.VALIDATION
    if isinstance(error, (KeyError, AttributeError)):
        return ErrorCategory.CONFIG

    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "StateSpineError",
    "TransitionError",
    "InvalidTransitionSetError",
    "TransactionError",
    "ConfigError",
    "InvalidOptionError",
    "is_retryable",
    "categorize_error",
]
