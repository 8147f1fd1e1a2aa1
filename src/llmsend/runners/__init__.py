from __future__ import annotations

from typing import List, Optional, Protocol, Union

from ..contracts.v1 import PaneAddress, ScopeKey
from .memory import MemoryAccessor
from .tmux import TmuxAccessor


class ScrollbackAccessor(Protocol):
    """Anything that accepts literal text + a submit key and yields scrollback text."""

    def capture(self, pane: Union[PaneAddress, str], history_lines: int = ...) -> str: ...

    def pane_exists(self, pane: Union[PaneAddress, str]) -> bool: ...

    def current_scope(self, pane: Optional[str] = ...) -> ScopeKey: ...

    def cancel_modal_state(self, pane: Union[PaneAddress, str]) -> None: ...

    def send_text(self, pane: Union[PaneAddress, str], text: str) -> None: ...

    def send_keys(self, pane: Union[PaneAddress, str], keys: List[str]) -> None: ...

    def send_submit(self, pane: Union[PaneAddress, str], key: str = ...) -> None: ...

    def get_window_option(self, scope: ScopeKey, key: str) -> str: ...

    def set_window_option(self, scope: ScopeKey, key: str, value: str) -> None: ...

    def unset_window_option(self, scope: ScopeKey, key: str) -> None: ...


__all__ = ["MemoryAccessor", "ScrollbackAccessor", "TmuxAccessor"]
