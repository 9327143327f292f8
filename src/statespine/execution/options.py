"""Collection options -- which optional pipeline phases a collection runs.

Three keys are recognised, all defaulting to "run it":

    actions       invoke each transition's action (False: skip actions)
    after         run after hooks on success (False: defer them)
    transaction   wrap the pipeline in the subject's transaction
                  (None: use ``StateSpineSettings.use_transactions``)

Unknown keys are ignored so option hashes can be passed straight through
from callers that carry extra keys of their own.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from statespine.core.errors import InvalidOptionError
from statespine.core.settings import get_settings


class TransitionOptions(BaseModel):
    """Validated, immutable options for a transition collection."""

    model_config = ConfigDict(extra="ignore", frozen=True, strict=True)

    actions: bool = True
    after: bool = True
    transaction: bool | None = None

    @classmethod
    def build(
        cls,
        options: TransitionOptions | Mapping[str, Any] | None = None,
        **overrides: Any,
    ) -> TransitionOptions:
        """Merge ``options`` and keyword ``overrides`` into a validated instance.

        Raises:
            InvalidOptionError: a recognised key holds a non-boolean value
        """
        if isinstance(options, TransitionOptions):
            data: dict[str, Any] = options.model_dump()
        else:
            data = {str(key): value for key, value in (options or {}).items()}
        data.update(overrides)

        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            first = exc.errors()[0]
            key = str(first["loc"][0]) if first["loc"] else "options"
            raise InvalidOptionError(key, data.get(key), message=f"Invalid option for {key}: {first['msg']}") from exc

    def resolve_transaction(self) -> bool:
        """Whether the pipeline is wrapped in a transaction."""
        if self.transaction is None:
            return get_settings().use_transactions
        return self.transaction


__all__ = ["TransitionOptions"]
