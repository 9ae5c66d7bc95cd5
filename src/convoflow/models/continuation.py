"""Continuation configuration model.

Persisted alongside the flow document; consumed only by the continuation
policy (``convoflow.runtime.continuation``) and by the validator's
cross-check between the configured strategy and the graph's main menu.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ContinuationStrategy = Literal["auto_menu", "delay_menu", "manual_finish", "auto_start"]

# Strategies whose target is the main-menu vertex.
MENU_STRATEGIES: frozenset[str] = frozenset({"auto_menu", "delay_menu"})

DEFAULT_DELAY_SECONDS = 5.0

DEFAULT_MESSAGES: dict[str, str] = {
    "auto_menu": "How else can I help you?",
    "delay_menu": "Please wait a moment...",
    "manual_finish": "",
    "auto_start": "Let's start over!",
}


class ContinuationConfig(BaseModel):
    """What to do when a conversation reaches a vertex with no eligible edge.

    ``enabled = False`` behaves as ``manual_finish`` whatever ``type`` says;
    the configured type is kept so that re-enabling restores it.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    enabled: bool = True
    type: ContinuationStrategy = "manual_finish"
    delay_seconds: float | None = Field(default=None, ge=0)
    message: str | None = None

    @property
    def effective_type(self) -> ContinuationStrategy:
        """Strategy after applying the ``enabled`` override."""
        return self.type if self.enabled else "manual_finish"

    @property
    def effective_delay(self) -> float:
        if self.delay_seconds is None:
            return DEFAULT_DELAY_SECONDS
        return self.delay_seconds

    def effective_message(self) -> str:
        """Configured message, or the strategy's default when unset."""
        if self.message:
            return self.message
        return DEFAULT_MESSAGES[self.type]
