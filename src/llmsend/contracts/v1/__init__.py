from __future__ import annotations

from .conversation import (
    ConversationIndex,
    ConversationTurn,
    Latest,
    Marker,
    Nth,
    Range,
    RangeText,
    Selector,
    parse_selector,
)
from .delivery import DeliveryResult, DeliveryStatus, SendOptions
from .document import DocumentLine, OutgoingPayload, PayloadKind
from .pane import PaneAddress, PaneRole, ScopeKey

__all__ = [
    "ConversationIndex",
    "ConversationTurn",
    "DeliveryResult",
    "DeliveryStatus",
    "DocumentLine",
    "Latest",
    "Marker",
    "Nth",
    "OutgoingPayload",
    "PaneAddress",
    "PaneRole",
    "PayloadKind",
    "Range",
    "RangeText",
    "ScopeKey",
    "Selector",
    "SendOptions",
    "parse_selector",
]
