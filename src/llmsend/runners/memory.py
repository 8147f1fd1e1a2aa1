"""In-process stand-in for tmux.

Panes echo pasted text into their scrollback, the way interactive assistants
render pasted prompts, and an optional responder produces a reply on submit.
Used when embedding llmsend without a terminal, and by the test-suite.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple, Union

from ..contracts.v1 import PaneAddress, ScopeKey
from ..errors import PaneUnavailableError, TransportError

PaneRef = Union[PaneAddress, str]
Responder = Callable[[str], str]


@dataclass
class MemoryPane:
    pane_id: str
    scope: ScopeKey
    scrollback: str = ""
    pending_input: str = ""
    in_mode: bool = False
    alive: bool = True
    responder: Optional[Responder] = None
    drop_submits: int = 0
    submits: int = 0
    keys: List[str] = field(default_factory=list)


class MemoryAccessor:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._panes: Dict[str, MemoryPane] = {}
        self._options: Dict[Tuple[str, str], Dict[str, str]] = {}
        self.calls: List[Tuple[str, str]] = []
        self.fail_next: Optional[str] = None

    # -- fixtures ------------------------------------------------------------

    def add_pane(self, pane_id: str, scope: ScopeKey, *, responder: Optional[Responder] = None) -> MemoryPane:
        with self._lock:
            pane = MemoryPane(pane_id=pane_id, scope=scope, responder=responder)
            self._panes[pane_id] = pane
            return pane

    def pane(self, pane_id: str) -> MemoryPane:
        with self._lock:
            return self._panes[pane_id]

    def kill_pane(self, pane_id: str) -> None:
        with self._lock:
            self._panes[pane_id].alive = False

    def reply(self, pane: PaneRef, text: str) -> None:
        """Append assistant output to the pane's scrollback."""
        with self._lock:
            p = self._live(pane)
            p.scrollback += text if text.endswith("\n") else text + "\n"

    def rewrite(self, pane: PaneRef, text: str) -> None:
        """Replace the whole scrollback (a full-screen redraw)."""
        with self._lock:
            self._live(pane).scrollback = text

    # -- accessor surface --------------------------------------------------

    def capture(self, pane: PaneRef, history_lines: int = 10000) -> str:
        self.cancel_modal_state(pane)
        with self._lock:
            p = self._live(pane)
            self._record("capture", p.pane_id)
            lines = p.scrollback.splitlines(keepends=True)
            depth = max(0, int(history_lines))
            return "".join(lines[-depth:]) if depth else ""

    def pane_exists(self, pane: PaneRef) -> bool:
        with self._lock:
            p = self._panes.get(_target(pane))
            return bool(p and p.alive)

    def current_scope(self, pane: Optional[str] = None) -> ScopeKey:
        with self._lock:
            if pane and pane in self._panes:
                return self._panes[pane].scope
            raise TransportError(f"could not determine scope for {pane or '(current)'}")

    def cancel_modal_state(self, pane: PaneRef) -> None:
        with self._lock:
            p = self._panes.get(_target(pane))
            if p is None or not p.alive:
                return
            if p.in_mode:
                self._record("cancel", p.pane_id)
            p.in_mode = False

    def send_text(self, pane: PaneRef, text: str) -> None:
        with self._lock:
            p = self._live(pane)
            self._maybe_fail("send_text")
            self._record("send_text", p.pane_id)
            p.pending_input += text
            p.scrollback += text

    def send_keys(self, pane: PaneRef, keys: List[str]) -> None:
        with self._lock:
            p = self._live(pane)
            self._maybe_fail("send_keys")
            for k in keys or []:
                self._record("send_keys", k)
                p.keys.append(k)

    def send_submit(self, pane: PaneRef, key: str = "Enter") -> None:
        with self._lock:
            p = self._live(pane)
            self._maybe_fail("send_submit")
            self._record("submit", key)
            p.submits += 1
            if p.drop_submits > 0:
                p.drop_submits -= 1
                return
            prompt, p.pending_input = p.pending_input, ""
            p.scrollback += "\n"
            if p.responder is not None:
                out = p.responder(prompt)
                if out:
                    p.scrollback += out if out.endswith("\n") else out + "\n"

    def get_window_option(self, scope: ScopeKey, key: str) -> str:
        with self._lock:
            return self._options.get((scope.session, scope.window), {}).get(key, "")

    def set_window_option(self, scope: ScopeKey, key: str, value: str) -> None:
        with self._lock:
            self._options.setdefault((scope.session, scope.window), {})[key] = value

    def unset_window_option(self, scope: ScopeKey, key: str) -> None:
        with self._lock:
            self._options.get((scope.session, scope.window), {}).pop(key, None)

    # -- internals -----------------------------------------------------------

    def _live(self, pane: PaneRef) -> MemoryPane:
        target = _target(pane)
        p = self._panes.get(target)
        if p is None or not p.alive:
            raise PaneUnavailableError(f"can't find pane: {target}", details={"target": target})
        return p

    def _maybe_fail(self, op: str) -> None:
        if self.fail_next == op:
            self.fail_next = None
            raise TransportError(f"{op} failed", details={"op": op})

    def _record(self, op: str, arg: str) -> None:
        self.calls.append((op, arg))


def _target(pane: PaneRef) -> str:
    if isinstance(pane, PaneAddress):
        return pane.target
    return str(pane or "").strip()
