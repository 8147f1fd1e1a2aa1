"""Pane role -> pane handle, scoped to one (session, window).

Bindings are written into tmux window options when a window is set up and
read back on every call. A missing or dead binding is an error; there is no
positional fallback.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict

from ..contracts.v1 import PaneAddress, PaneRole, ScopeKey
from ..errors import AddressError

if TYPE_CHECKING:
    from ..runners import ScrollbackAccessor

logger = logging.getLogger("llmsend.resolver")

OPTION_PREFIX = "@llmsend_role_"


def option_name(role: PaneRole) -> str:
    return OPTION_PREFIX + role.value


class AddressResolver:
    def __init__(self, accessor: "ScrollbackAccessor"):
        self.accessor = accessor

    def resolve(self, role: PaneRole, scope: ScopeKey) -> PaneAddress:
        pane_id = self.accessor.get_window_option(scope, option_name(role))
        if not pane_id:
            raise AddressError(
                f"role {role.value} is not bound in {scope.target}",
                details={"role": role.value, "scope": scope.target, "hint": f"llmsend bind {role.value} <pane>"},
            )
        if not self.accessor.pane_exists(pane_id):
            raise AddressError(
                f"pane {pane_id} bound to {role.value} in {scope.target} no longer exists",
                details={"role": role.value, "scope": scope.target, "pane": pane_id},
            )
        return PaneAddress(pane_id=pane_id, scope=scope, role=role)

    def bind(self, role: PaneRole, scope: ScopeKey, pane_id: str) -> PaneAddress:
        pane = str(pane_id or "").strip()
        if not pane or not self.accessor.pane_exists(pane):
            raise AddressError(f"pane not found: {pane_id}", details={"pane": pane_id})
        self.accessor.set_window_option(scope, option_name(role), pane)
        logger.info("bound role", extra={"op": "bind", "role": role.value, "pane": pane, "session": scope.session, "window": scope.window})
        return PaneAddress(pane_id=pane, scope=scope, role=role)

    def unbind(self, role: PaneRole, scope: ScopeKey) -> None:
        self.accessor.unset_window_option(scope, option_name(role))

    def bindings(self, scope: ScopeKey) -> Dict[str, str]:
        out: Dict[str, str] = {}
        for role in PaneRole:
            value = self.accessor.get_window_option(scope, option_name(role))
            if value:
                out[role.value] = value
        return out
