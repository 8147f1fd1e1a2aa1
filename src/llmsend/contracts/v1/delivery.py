from __future__ import annotations

from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field


DeliveryStatus = Literal["submitted", "acknowledged", "unacknowledged", "abandoned", "failed"]


class SendOptions(BaseModel):
    clear_after_send: bool = False
    filtered: bool = True
    submit_retry: bool = True
    wait_for_lock: bool = True

    model_config = ConfigDict(extra="forbid")


class DeliveryResult(BaseModel):
    pane_id: str
    status: DeliveryStatus
    payload_bytes: int = 0
    submit_delay: float = 0.0
    submit_attempts: int = 0
    warnings: List[str] = Field(default_factory=list)
    error: str = ""

    model_config = ConfigDict(extra="forbid")

    @property
    def ok(self) -> bool:
        return self.status not in ("failed",)
