"""Scrollback access over tmux.

All terminal I/O goes through `_run_tmux`; failures surface as
`PaneUnavailableError` (target pane gone) or `TransportError` (anything else).
"""
from __future__ import annotations

import logging
import os
import subprocess
import tempfile
import time
from typing import List, Optional, Tuple, Union

from ..contracts.v1 import PaneAddress, ScopeKey
from ..errors import PaneUnavailableError, TransportError

logger = logging.getLogger("llmsend.tmux")

PaneRef = Union[PaneAddress, str]

_MISSING_HINTS = ("can't find pane", "can't find window", "can't find session", "no such", "no server running")


def _run_tmux(args: List[str], *, timeout_s: float = 3.0) -> Tuple[int, str, str]:
    try:
        p = subprocess.run(
            ["tmux", *args],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            timeout=timeout_s,
            check=False,
        )
        return int(p.returncode), (p.stdout or ""), (p.stderr or "")
    except subprocess.TimeoutExpired:
        return 124, "", "tmux timeout"
    except FileNotFoundError:
        return 127, "", "tmux not found"
    except OSError as e:
        return 1, "", str(e)


def _target(pane: PaneRef) -> str:
    if isinstance(pane, PaneAddress):
        return pane.target
    s = str(pane or "").strip()
    if not s:
        raise ValueError("missing pane target")
    return s


def _raise_for(op: str, target: str, code: int, err: str) -> None:
    msg = (err or "").strip() or f"exit {code}"
    lowered = msg.lower()
    details = {"op": op, "target": target, "returncode": code}
    if any(h in lowered for h in _MISSING_HINTS):
        raise PaneUnavailableError(f"tmux {op} failed for {target}: {msg}", details=details)
    raise TransportError(f"tmux {op} failed for {target}: {msg}", details=details)


def _check(op: str, target: str, args: List[str], *, timeout_s: float = 3.0) -> str:
    code, out, err = _run_tmux(args, timeout_s=timeout_s)
    if code != 0:
        _raise_for(op, target, code, err)
    return out


class TmuxAccessor:
    """Read/write boundary over tmux panes and per-window options."""

    def __init__(self, *, timeout_s: float = 3.0):
        self.timeout_s = float(timeout_s)

    # -- reads -------------------------------------------------------------

    def capture(self, pane: PaneRef, history_lines: int = 10000) -> str:
        """Return visible + history text, after leaving any copy/search mode."""
        target = _target(pane)
        self.cancel_modal_state(target)
        depth = max(0, int(history_lines))
        return _check(
            "capture-pane",
            target,
            ["capture-pane", "-p", "-J", "-t", target, "-S", f"-{depth}"],
            timeout_s=self.timeout_s,
        )

    def pane_exists(self, pane: PaneRef) -> bool:
        target = _target(pane)
        code, out, _ = _run_tmux(["display-message", "-p", "-t", target, "#{pane_id}"], timeout_s=self.timeout_s)
        return code == 0 and bool((out or "").strip())

    def current_scope(self, pane: Optional[str] = None) -> ScopeKey:
        """Session/window of `pane` (default: the caller's own $TMUX_PANE)."""
        target = (pane or os.environ.get("TMUX_PANE", "")).strip()
        args = ["display-message", "-p"]
        if target:
            args += ["-t", target]
        args.append("#{session_name}\t#{window_index}")
        out = _check("display-message", target or "(current)", args, timeout_s=self.timeout_s)
        session, _, window = (out or "").strip().partition("\t")
        if not session or not window:
            raise TransportError(f"could not determine tmux scope for {target or '(current)'}")
        return ScopeKey(session=session, window=window)

    # -- writes ------------------------------------------------------------

    def cancel_modal_state(self, pane: PaneRef) -> None:
        """Best-effort: leave copy-mode/search so capture and input see the live screen."""
        target = _target(pane)
        code, out, _ = _run_tmux(["display-message", "-p", "-t", target, "#{pane_in_mode}"], timeout_s=self.timeout_s)
        if code != 0:
            return
        if (out or "").strip() in ("1", "on", "yes", "true"):
            logger.debug("cancelling copy-mode", extra={"pane": target})
            _run_tmux(["send-keys", "-t", target, "-X", "cancel"], timeout_s=self.timeout_s)

    def send_text(self, pane: PaneRef, text: str) -> None:
        """Deliver `text` as one paste, embedded newlines included."""
        target = _target(pane)
        if not text:
            return
        with tempfile.NamedTemporaryFile("w", delete=False, encoding="utf-8", suffix=".llmsend") as f:
            f.write(text)
            fname = f.name
        buf = f"llmsend-{os.getpid()}-{int(time.time() * 1000)}"
        try:
            _check("load-buffer", target, ["load-buffer", "-b", buf, fname], timeout_s=self.timeout_s)
            _check("paste-buffer", target, ["paste-buffer", "-d", "-p", "-t", target, "-b", buf], timeout_s=self.timeout_s)
        finally:
            try:
                os.unlink(fname)
            except OSError:
                pass

    def send_keys(self, pane: PaneRef, keys: List[str]) -> None:
        """Send tmux key names (Enter, Escape, C-c, 1, ...) unmodified."""
        target = _target(pane)
        names = [k for k in (keys or []) if isinstance(k, str) and k]
        if not names:
            return
        _check("send-keys", target, ["send-keys", "-t", target, *names], timeout_s=self.timeout_s)

    def send_submit(self, pane: PaneRef, key: str = "Enter") -> None:
        self.send_keys(pane, [key or "Enter"])

    # -- per-window key/value ---------------------------------------------

    def get_window_option(self, scope: ScopeKey, key: str) -> str:
        code, out, _ = _run_tmux(["show-options", "-wqv", "-t", scope.target, key], timeout_s=self.timeout_s)
        if code != 0:
            return ""
        return (out or "").strip()

    def set_window_option(self, scope: ScopeKey, key: str, value: str) -> None:
        _check("set-option", scope.target, ["set-option", "-w", "-t", scope.target, key, value], timeout_s=self.timeout_s)

    def unset_window_option(self, scope: ScopeKey, key: str) -> None:
        _check("set-option", scope.target, ["set-option", "-wu", "-t", scope.target, key], timeout_s=self.timeout_s)
