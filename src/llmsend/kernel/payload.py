from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from ..contracts.v1 import OutgoingPayload
from .annotations import Document, filter_untagged


def document_payload(document: Document, *, filtered: bool = True) -> OutgoingPayload:
    lines = filter_untagged(document) if filtered else document.lines
    return OutgoingPayload(kind="document", text="\n".join(ln.text for ln in lines))


def parse_line_span(spec: str) -> Tuple[int, int]:
    """`12`, `3:9` or `3-9` -> (start, end), 1-based inclusive, ordered."""
    s = str(spec or "").strip()
    for sep in (":", "-"):
        if sep in s:
            a, _, b = s.partition(sep)
            start, end = int(a), int(b)
            break
    else:
        start = end = int(s)
    if start < 1 or end < 1:
        raise ValueError(f"line numbers start at 1: {spec!r}")
    return (start, end) if start <= end else (end, start)


def selection_payload(lines: Sequence[str], start: int, end: int) -> OutgoingPayload:
    lo, hi = (start, end) if start <= end else (end, start)
    picked: List[str] = list(lines[lo - 1 : hi])
    return OutgoingPayload(kind="selection", text="\n".join(picked))


def reference_text(path: str, start: int, end: Optional[int] = None) -> str:
    if end is None or end == start:
        return f"# See line {start} in {path}"
    lo, hi = (start, end) if start <= end else (end, start)
    return f"# See lines {lo}-{hi} in {path}"


def reference_payload(path: str, start: int, end: Optional[int] = None) -> OutgoingPayload:
    return OutgoingPayload(kind="reference", text=reference_text(path, start, end))


def pane_append_text(text: str, *, raw: bool = False) -> str:
    """Text to paste into the prompt pane; wrapped text gets a paragraph of its own."""
    if raw:
        return text
    return "\n\n" + text + "\n"


def append_to_document(document: Document, text: str, *, raw: bool = False) -> None:
    """Add context to a pending prompt without sending it.

    raw: join the last line inline; otherwise add as its own paragraph.
    """
    last = len(document) - 1
    if raw and last >= 0 and not document.line(last).is_pulled_response:
        current = document.line(last).text
        joiner = "" if not current or current.endswith(" ") else " "
        document.set_text(last, current + joiner + text)
        return
    if raw:
        document.append_line(text)
        return
    if last >= 0 and document.line(last).text.strip():
        document.append_line("")
    for part in text.split("\n"):
        document.append_line(part)
    document.append_line("")
