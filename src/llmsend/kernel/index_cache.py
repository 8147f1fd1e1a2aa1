"""Per-pane cache of the conversation index.

The cache only decides *when* to rescan: any change in capture length or
content triggers a full rebuild. Indices are never patched in place, since
a redraw can rewrite scrollback rather than append to it.
"""
from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, Optional, Tuple

from pydantic import ValidationError

from ..contracts.v1 import ConversationIndex, PaneAddress
from ..errors import StaleCacheRebuildFailure
from .extractor import build_index, text_digest

logger = logging.getLogger("llmsend.cache")

CacheKey = Tuple[str, str, str]
IndexBuilder = Callable[[str], ConversationIndex]


def _key(address: PaneAddress) -> CacheKey:
    return (address.scope.session, address.scope.window, address.pane_id)


class ConversationCache:
    def __init__(self, *, builder: Optional[IndexBuilder] = None):
        self._builder: IndexBuilder = builder or build_index
        self._lock = threading.Lock()
        self._entries: Dict[CacheKey, ConversationIndex] = {}
        self._guards: Dict[CacheKey, threading.Lock] = {}
        self.rebuilds = 0

    def _guard(self, key: CacheKey) -> threading.Lock:
        with self._lock:
            g = self._guards.get(key)
            if g is None:
                g = threading.Lock()
                self._guards[key] = g
            return g

    def peek(self, address: PaneAddress) -> Optional[ConversationIndex]:
        with self._lock:
            return self._entries.get(_key(address))

    def is_stale(self, address: PaneAddress, text: str) -> bool:
        entry = self.peek(address)
        if entry is None:
            return True
        if len(text) != entry.source_length:
            return True
        return text_digest(text) != entry.digest

    def invalidate(self, address: PaneAddress) -> None:
        key = _key(address)
        with self._lock:
            self._entries.pop(key, None)
            g = self._guards.get(key)
            if g is not None and not g.locked():
                del self._guards[key]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_index(self, address: PaneAddress, text: str) -> ConversationIndex:
        key = _key(address)
        # One rebuild at a time per pane; late arrivals reuse its result.
        with self._guard(key):
            if not self.is_stale(address, text):
                return self._entries[key]
            try:
                index = self._rebuild(text)
            except StaleCacheRebuildFailure:
                logger.warning("cache rebuild failed; scanning without cache", exc_info=True, extra={"pane": address.pane_id})
                self.invalidate(address)
                return build_index(text)
            with self._lock:
                self._entries[key] = index
            return index

    def _rebuild(self, text: str) -> ConversationIndex:
        try:
            index = self._builder(text)
        except (ValueError, ValidationError, IndexError) as e:
            raise StaleCacheRebuildFailure(f"index rebuild failed: {e}") from e
        self.rebuilds += 1
        return index
