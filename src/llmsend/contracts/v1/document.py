from __future__ import annotations

import uuid
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


def _line_id() -> str:
    return uuid.uuid4().hex[:12]


class DocumentLine(BaseModel):
    """One editable line. The tag belongs to the line object, not its text."""

    text: str = ""
    is_pulled_response: bool = False
    id: str = Field(default_factory=_line_id)

    model_config = ConfigDict(extra="ignore")


PayloadKind = Literal["document", "selection", "reference"]


class OutgoingPayload(BaseModel):
    kind: PayloadKind
    text: str

    model_config = ConfigDict(extra="forbid", frozen=True)

    @property
    def size(self) -> int:
        return len(self.text.encode("utf-8"))
