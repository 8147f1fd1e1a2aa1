"""Prompt markers.

A send is framed as::

    <blank line>
    ### PROMPT 2025-01-31-14:05:09
    <payload lines>
    ### END PROMPT

and whatever the assistant prints after END is its response.
"""
from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import List, Optional, Tuple

from ..contracts.v1 import Marker
from ..util.time import marker_timestamp

logger = logging.getLogger("llmsend.markers")

PROMPT_START_PREFIX = "### PROMPT "
PROMPT_END_LINE = "### END PROMPT"

START_RE = re.compile(r"^### PROMPT[ \t]+(\S[^\n]*?)[ \t]*$", re.MULTILINE)
END_RE = re.compile(r"^### END PROMPT[ \t]*$", re.MULTILINE)
_MARKER_LIKE_RE = re.compile(r"^[ \t]*### (?:END )?PROMPT\b")


def render_start(now: Optional[datetime] = None) -> str:
    return PROMPT_START_PREFIX + marker_timestamp(now)


def render_end() -> str:
    return PROMPT_END_LINE


def escape_marker_lines(text: str) -> Tuple[str, int]:
    """Prefix marker-looking payload lines with a backslash so they never parse as markers."""
    out: List[str] = []
    escaped = 0
    for line in text.split("\n"):
        if _MARKER_LIKE_RE.match(line):
            out.append("\\" + line)
            escaped += 1
        else:
            out.append(line)
    return "\n".join(out), escaped


def frame_payload(text: str, *, now: Optional[datetime] = None) -> str:
    body, escaped = escape_marker_lines((text or "").rstrip("\n"))
    if escaped:
        logger.warning("escaped %d marker-like payload line(s)", escaped)
    return "\n" + render_start(now) + "\n" + body + "\n" + render_end()


def scan_markers(text: str) -> List[Marker]:
    """All START/END markers in document order."""
    found: List[Marker] = []
    for m in START_RE.finditer(text):
        found.append(Marker(kind="prompt_start", offset=m.start(), end=m.end(), timestamp=m.group(1)))
    for m in END_RE.finditer(text):
        found.append(Marker(kind="prompt_end", offset=m.start(), end=m.end()))
    found.sort(key=lambda mk: mk.offset)
    return found
