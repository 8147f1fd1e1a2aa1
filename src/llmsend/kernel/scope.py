from __future__ import annotations

import os
from typing import TYPE_CHECKING, Optional

from ..contracts.v1 import ScopeKey
from ..errors import AddressError

if TYPE_CHECKING:
    from ..runners import ScrollbackAccessor


def detect_scope(
    accessor: "ScrollbackAccessor",
    *,
    session: Optional[str] = None,
    window: Optional[str] = None,
    pane: Optional[str] = None,
) -> ScopeKey:
    """Scope of the caller: explicit session/window, else the window holding `pane` / $TMUX_PANE."""
    s = (session or "").strip()
    w = (window or "").strip()
    if s and w:
        return ScopeKey(session=s, window=w)

    own = (pane or os.environ.get("TMUX_PANE", "")).strip()
    if not own:
        raise AddressError(
            "not running inside tmux; pass --session and --window",
            details={"hint": "llmsend --session NAME --window INDEX ..."},
        )
    scope = accessor.current_scope(own)
    if s or w:
        scope = ScopeKey(session=s or scope.session, window=w or scope.window)
    return scope
