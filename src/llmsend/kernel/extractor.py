"""Response extraction from captured scrollback.

The first END marker after a PROMPT marker opens one response, which runs to
the next PROMPT marker or the end of the capture. Responses are numbered
backwards: 1 is the latest.
"""
from __future__ import annotations

import hashlib
import logging
from typing import TYPE_CHECKING, List, Optional, Union

from ..contracts.v1 import (
    ConversationIndex,
    ConversationTurn,
    Latest,
    Nth,
    PaneAddress,
    Range,
    RangeText,
    Selector,
)
from ..errors import EmptyHistoryError, ExtractionRangeError
from .markers import scan_markers

if TYPE_CHECKING:
    from ..runners import ScrollbackAccessor
    from .index_cache import ConversationCache

logger = logging.getLogger("llmsend.extractor")

RANGE_SEPARATOR = "--- Response {index} ---"


def text_digest(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8", errors="replace")).hexdigest()


def build_index(text: str) -> ConversationIndex:
    markers = scan_markers(text)
    turns: List[dict] = []
    last_start: Optional[int] = None
    in_response = False
    for i, mk in enumerate(markers):
        if mk.kind == "prompt_start":
            last_start = i
            in_response = False
            continue
        if in_response:
            # An END line printed by the assistant is part of its reply.
            continue
        in_response = True
        body_start = mk.end + 1 if text[mk.end : mk.end + 1] == "\n" else mk.end
        body_end = next((m.offset for m in markers[i + 1 :] if m.kind == "prompt_start"), len(text))
        start_mk = markers[last_start] if last_start is not None else None
        turns.append(
            {
                "prompt_start_offset": start_mk.offset if start_mk else None,
                "prompt_end_offset": mk.offset,
                "response_start_offset": min(body_start, body_end),
                "response_end_offset": body_end,
                "timestamp": start_mk.timestamp if start_mk else "",
            }
        )
        last_start = None
    turns.reverse()
    return ConversationIndex(
        turns=[ConversationTurn(turn_number=n, **t) for n, t in enumerate(turns, 1)],
        source_length=len(text),
        digest=text_digest(text),
    )


def _trim_blank_lines(body: str) -> str:
    lines = body.split("\n")
    while lines and not lines[0].strip():
        lines.pop(0)
    while lines and not lines[-1].strip():
        lines.pop()
    return "\n".join(lines)


def response_text(text: str, turn: ConversationTurn) -> str:
    return _trim_blank_lines(text[turn.response_start_offset : turn.response_end_offset])


def select(text: str, index: ConversationIndex, selector: Selector) -> Union[str, RangeText]:
    """Apply a selector to an index built from `text`."""
    available = len(index)
    if not text.strip() or available == 0:
        raise EmptyHistoryError("no prompt markers found in scrollback")

    if isinstance(selector, Range):
        rng = selector.normalized()
        if rng.start > available:
            raise ExtractionRangeError(
                f"response {rng.start} requested but only {available} available",
                requested=rng.start,
                available=available,
            )
        last = min(rng.end, available)
        blocks = []
        for n in range(rng.start, last + 1):
            blocks.append(RANGE_SEPARATOR.format(index=n) + "\n" + response_text(text, index.turn(n)))
        truncated = rng.end > available
        if truncated:
            logger.warning("range truncated", extra={"turn": f"{rng.start}:{rng.end}"})
        return RangeText(
            text="\n\n".join(blocks),
            indices=list(range(rng.start, last + 1)),
            requested_start=rng.start,
            requested_end=rng.end,
            truncated=truncated,
        )

    n = selector.n if isinstance(selector, Nth) else 1
    if n > available:
        raise ExtractionRangeError(
            f"response {n} requested but only {available} available",
            requested=n,
            available=available,
        )
    return response_text(text, index.turn(n))


class ResponseExtractor:
    def __init__(
        self,
        accessor: "ScrollbackAccessor",
        *,
        cache: Optional["ConversationCache"] = None,
        history_lines: int = 10000,
    ):
        self.accessor = accessor
        self.cache = cache
        self.history_lines = int(history_lines)

    def capture(self, address: PaneAddress) -> str:
        return self.accessor.capture(address, self.history_lines)

    def index(self, address: PaneAddress, text: Optional[str] = None) -> ConversationIndex:
        captured = self.capture(address) if text is None else text
        if self.cache is not None:
            return self.cache.get_index(address, captured)
        return build_index(captured)

    def extract(self, address: PaneAddress, selector: Optional[Selector] = None) -> Union[str, RangeText]:
        text = self.capture(address)
        index = self.index(address, text)
        result = select(text, index, selector or Latest())
        logger.info(
            "extracted response",
            extra={"op": "extract", "pane": address.pane_id, "turn": getattr(selector, "kind", "latest")},
        )
        return result
