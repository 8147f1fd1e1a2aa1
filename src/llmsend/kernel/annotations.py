"""Pulled-response tagging.

Lines inserted by a pull carry `is_pulled_response`; everything the user
types does not. The tag lives on the line object, so editing a tagged line's
text keeps the tag and only deleting the line drops it.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

from ..contracts.v1 import DocumentLine, PaneAddress, RangeText, ScopeKey, Selector
from ..paths import init_state_dirs
from ..util.fs import atomic_write_json, read_json
from ..util.time import utc_now_iso

if TYPE_CHECKING:
    from .extractor import ResponseExtractor

logger = logging.getLogger("llmsend.annotations")


class Document:
    """Minimal editor buffer: ordered lines with per-line metadata."""

    def __init__(self, lines: Optional[Iterable[DocumentLine]] = None):
        self._lines: List[DocumentLine] = list(lines or [])

    @classmethod
    def from_text(cls, text: str) -> "Document":
        if not text:
            return cls()
        return cls(DocumentLine(text=t) for t in text.split("\n"))

    def __len__(self) -> int:
        return len(self._lines)

    @property
    def lines(self) -> List[DocumentLine]:
        return list(self._lines)

    def texts(self) -> List[str]:
        return [ln.text for ln in self._lines]

    def text(self) -> str:
        return "\n".join(self.texts())

    def line(self, row: int) -> DocumentLine:
        return self._lines[row]

    def insert_lines(self, row: int, texts: Iterable[str], *, tagged: bool = False) -> List[DocumentLine]:
        row = max(0, min(int(row), len(self._lines)))
        new = [DocumentLine(text=t, is_pulled_response=tagged) for t in texts]
        self._lines[row:row] = new
        return new

    def append_line(self, text: str) -> DocumentLine:
        return self.insert_lines(len(self._lines), [text])[0]

    def set_text(self, row: int, text: str) -> None:
        self._lines[row].text = text

    def delete_line(self, row: int) -> DocumentLine:
        return self._lines.pop(row)

    def clear(self) -> None:
        self._lines = []

    def tagged_rows(self) -> List[int]:
        return [i for i, ln in enumerate(self._lines) if ln.is_pulled_response]

    def to_dict(self) -> Dict[str, Any]:
        return {"v": 1, "lines": [ln.model_dump() for ln in self._lines], "updated_at": utc_now_iso()}

    @classmethod
    def from_dict(cls, doc: Dict[str, Any]) -> "Document":
        raw = doc.get("lines") if isinstance(doc, dict) else None
        if not isinstance(raw, list):
            return cls()
        return cls(DocumentLine.model_validate(x) for x in raw if isinstance(x, dict))


def filter_untagged(document: Document) -> List[DocumentLine]:
    """Lines the user wrote; what a filtered send transmits."""
    return [ln for ln in document.lines if not ln.is_pulled_response]


class AnnotationTagger:
    def __init__(self, extractor: "ResponseExtractor"):
        self.extractor = extractor

    def pull(
        self,
        address: PaneAddress,
        selector: Selector,
        document: Document,
        *,
        row: Optional[int] = None,
    ) -> List[DocumentLine]:
        """Replace the previously pulled block with the selected response.

        `row` is the insertion point in the document as it is before the old
        block is removed; default is the end of the document.
        """
        result = self.extractor.extract(address, selector)
        body = result.text if isinstance(result, RangeText) else result
        if not body:
            logger.info("no response text yet; document unchanged", extra={"op": "pull", "pane": address.pane_id})
            return []

        tagged = document.tagged_rows()
        at = len(document) if row is None else max(0, min(int(row), len(document)))
        at -= sum(1 for r in tagged if r < at)
        for r in reversed(tagged):
            document.delete_line(r)

        inserted = document.insert_lines(at, body.split("\n"), tagged=True)
        logger.info(
            "pulled %d response lines",
            len(inserted),
            extra={"op": "pull", "pane": address.pane_id},
        )
        return inserted


class PendingPromptStore:
    """The pending prompt of one (session, window), kept in the workspace state dir."""

    def __init__(self, scope: ScopeKey, *, workspace: Optional[Path] = None):
        self.scope = scope
        self.workspace = workspace

    @property
    def path(self) -> Path:
        return init_state_dirs(self.workspace) / "prompts" / f"pending-{self.scope.slug()}.json"

    def load(self) -> Document:
        return Document.from_dict(read_json(self.path))

    def save(self, document: Document) -> None:
        atomic_write_json(self.path, document.to_dict())
