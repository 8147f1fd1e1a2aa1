from __future__ import annotations

from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class Marker(BaseModel):
    kind: Literal["prompt_start", "prompt_end"]
    offset: int
    end: int
    timestamp: str = ""

    model_config = ConfigDict(extra="forbid", frozen=True)


class ConversationTurn(BaseModel):
    turn_number: int = Field(ge=1)
    prompt_start_offset: Optional[int] = None
    prompt_end_offset: int
    response_start_offset: int
    response_end_offset: int
    timestamp: str = ""

    model_config = ConfigDict(extra="forbid", frozen=True)


class ConversationIndex(BaseModel):
    """Turns ordered most-recent-first; turn 1 is the latest."""

    turns: List[ConversationTurn] = Field(default_factory=list)
    source_length: int = 0
    digest: str = ""

    model_config = ConfigDict(extra="forbid")

    def __len__(self) -> int:
        return len(self.turns)

    def turn(self, n: int) -> ConversationTurn:
        return self.turns[n - 1]


class Latest(BaseModel):
    kind: Literal["latest"] = "latest"

    model_config = ConfigDict(extra="forbid", frozen=True)


class Nth(BaseModel):
    kind: Literal["nth"] = "nth"
    n: int = Field(ge=1)

    model_config = ConfigDict(extra="forbid", frozen=True)


class Range(BaseModel):
    kind: Literal["range"] = "range"
    start: int = Field(ge=1)
    end: int = Field(ge=1)

    model_config = ConfigDict(extra="forbid", frozen=True)

    def normalized(self) -> "Range":
        if self.start <= self.end:
            return self
        return Range(start=self.end, end=self.start)


Selector = Union[Latest, Nth, Range]


class RangeText(BaseModel):
    text: str
    indices: List[int] = Field(default_factory=list)
    requested_start: int
    requested_end: int
    truncated: bool = False

    model_config = ConfigDict(extra="forbid")

    def __str__(self) -> str:
        return self.text


def parse_selector(*, index: Optional[int] = None, range_spec: Optional[str] = None) -> Selector:
    """Build a selector from CLI-style inputs (`--index N` / `--range A:B`)."""
    if index is not None and range_spec:
        raise ValueError("use either an index or a range, not both")
    if range_spec:
        s = str(range_spec).strip()
        sep = ":" if ":" in s else "-"
        a, _, b = s.partition(sep)
        if not a.strip() or not b.strip():
            raise ValueError(f"invalid range: {range_spec!r} (expected A:B)")
        return Range(start=int(a), end=int(b)).normalized()
    if index is None or int(index) == 1:
        return Latest()
    return Nth(n=int(index))
