from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

STATE_DIR_NAME = ".lazy-llm"
STATE_SUBDIRS = ("prompts", "swap", "undo")


def llmsend_home() -> Path:
    env = os.environ.get("LLMSEND_HOME", "").strip()
    if env:
        return Path(env).expanduser().resolve()
    return (Path.home() / ".llmsend").resolve()


def ensure_home() -> Path:
    home = llmsend_home()
    home.mkdir(parents=True, exist_ok=True)
    return home


def locks_dir() -> Path:
    p = ensure_home() / "locks"
    p.mkdir(parents=True, exist_ok=True)
    return p


def workspace_state_dir(workspace: Optional[Path] = None) -> Path:
    """Workspace-local state root; each workspace gets its own, never shared."""
    base = (workspace or Path.cwd()).expanduser().resolve()
    return base / STATE_DIR_NAME


def init_state_dirs(workspace: Optional[Path] = None) -> Path:
    root = workspace_state_dir(workspace)
    for name in STATE_SUBDIRS:
        (root / name).mkdir(parents=True, exist_ok=True)
    return root
