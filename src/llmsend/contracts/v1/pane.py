from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class PaneRole(str, Enum):
    ASSISTANT_OUTPUT = "assistant_output"
    PROMPT_INPUT = "prompt_input"

    @classmethod
    def parse(cls, value: str) -> "PaneRole":
        s = str(value or "").strip().lower().replace("-", "_")
        aliases = {"assistant": cls.ASSISTANT_OUTPUT, "ai": cls.ASSISTANT_OUTPUT, "prompt": cls.PROMPT_INPUT}
        if s in aliases:
            return aliases[s]
        return cls(s)


class ScopeKey(BaseModel):
    """A (session, window) pair; bindings never leak across windows."""

    session: str = Field(min_length=1)
    window: str = Field(min_length=1)

    model_config = ConfigDict(extra="forbid", frozen=True)

    @property
    def target(self) -> str:
        return f"{self.session}:{self.window}"

    def slug(self) -> str:
        raw = f"{self.session}-{self.window}"
        return "".join(c if c.isalnum() or c in "-_." else "_" for c in raw)


class PaneAddress(BaseModel):
    pane_id: str = Field(min_length=1)
    scope: ScopeKey
    role: PaneRole

    model_config = ConfigDict(extra="forbid", frozen=True)

    @property
    def target(self) -> str:
        return self.pane_id
