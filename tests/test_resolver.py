import os
import unittest
from unittest.mock import patch


class TestAddressResolver(unittest.TestCase):
    def _accessor(self):
        from llmsend.contracts.v1 import ScopeKey
        from llmsend.runners import MemoryAccessor

        acc = MemoryAccessor()
        w1 = ScopeKey(session="dev", window="1")
        w2 = ScopeKey(session="dev", window="2")
        acc.add_pane("%1", w1)
        acc.add_pane("%2", w1)
        acc.add_pane("%5", w2)
        return acc, w1, w2

    def test_unbound_role_fails_loudly(self) -> None:
        from llmsend.contracts.v1 import PaneRole
        from llmsend.errors import AddressError
        from llmsend.kernel.resolver import AddressResolver

        acc, w1, _ = self._accessor()
        with self.assertRaises(AddressError) as cm:
            AddressResolver(acc).resolve(PaneRole.ASSISTANT_OUTPUT, w1)
        self.assertEqual(cm.exception.exit_code, 1)
        self.assertIn("not bound", str(cm.exception))

    def test_bindings_are_scoped_per_window(self) -> None:
        from llmsend.contracts.v1 import PaneRole
        from llmsend.errors import AddressError
        from llmsend.kernel.resolver import AddressResolver

        acc, w1, w2 = self._accessor()
        r = AddressResolver(acc)
        r.bind(PaneRole.ASSISTANT_OUTPUT, w1, "%1")
        r.bind(PaneRole.ASSISTANT_OUTPUT, w2, "%5")

        self.assertEqual(r.resolve(PaneRole.ASSISTANT_OUTPUT, w1).pane_id, "%1")
        self.assertEqual(r.resolve(PaneRole.ASSISTANT_OUTPUT, w2).pane_id, "%5")
        self.assertEqual(r.resolve(PaneRole.ASSISTANT_OUTPUT, w2).scope, w2)
        with self.assertRaises(AddressError):
            r.resolve(PaneRole.PROMPT_INPUT, w1)

    def test_dead_binding_is_not_silently_replaced(self) -> None:
        from llmsend.contracts.v1 import PaneRole
        from llmsend.errors import AddressError
        from llmsend.kernel.resolver import AddressResolver

        acc, w1, _ = self._accessor()
        r = AddressResolver(acc)
        r.bind(PaneRole.ASSISTANT_OUTPUT, w1, "%1")
        acc.kill_pane("%1")
        with self.assertRaises(AddressError) as cm:
            r.resolve(PaneRole.ASSISTANT_OUTPUT, w1)
        self.assertIn("no longer exists", str(cm.exception))

    def test_bind_rejects_unknown_pane(self) -> None:
        from llmsend.contracts.v1 import PaneRole
        from llmsend.errors import AddressError
        from llmsend.kernel.resolver import AddressResolver

        acc, w1, _ = self._accessor()
        with self.assertRaises(AddressError):
            AddressResolver(acc).bind(PaneRole.PROMPT_INPUT, w1, "%99")

    def test_unbind_and_list(self) -> None:
        from llmsend.contracts.v1 import PaneRole
        from llmsend.kernel.resolver import AddressResolver

        acc, w1, _ = self._accessor()
        r = AddressResolver(acc)
        r.bind(PaneRole.ASSISTANT_OUTPUT, w1, "%1")
        r.bind(PaneRole.PROMPT_INPUT, w1, "%2")
        self.assertEqual(r.bindings(w1), {"assistant_output": "%1", "prompt_input": "%2"})
        r.unbind(PaneRole.PROMPT_INPUT, w1)
        self.assertEqual(r.bindings(w1), {"assistant_output": "%1"})

    def test_role_aliases(self) -> None:
        from llmsend.contracts.v1 import PaneRole

        self.assertIs(PaneRole.parse("assistant"), PaneRole.ASSISTANT_OUTPUT)
        self.assertIs(PaneRole.parse("prompt-input"), PaneRole.PROMPT_INPUT)
        with self.assertRaises(ValueError):
            PaneRole.parse("editor")


class TestDetectScope(unittest.TestCase):
    def test_explicit_scope_wins(self) -> None:
        from llmsend.kernel.scope import detect_scope
        from llmsend.runners import MemoryAccessor

        scope = detect_scope(MemoryAccessor(), session="s", window="3")
        self.assertEqual(scope.target, "s:3")

    def test_scope_from_own_pane(self) -> None:
        from llmsend.contracts.v1 import ScopeKey
        from llmsend.kernel.scope import detect_scope
        from llmsend.runners import MemoryAccessor

        acc = MemoryAccessor()
        acc.add_pane("%7", ScopeKey(session="work", window="2"))
        with patch.dict(os.environ, {"TMUX_PANE": "%7"}):
            self.assertEqual(detect_scope(acc), ScopeKey(session="work", window="2"))
            self.assertEqual(detect_scope(acc, window="4"), ScopeKey(session="work", window="4"))

    def test_outside_tmux_without_scope_fails(self) -> None:
        from llmsend.errors import AddressError
        from llmsend.kernel.scope import detect_scope
        from llmsend.runners import MemoryAccessor

        env = {k: v for k, v in os.environ.items() if k != "TMUX_PANE"}
        with patch.dict(os.environ, env, clear=True):
            with self.assertRaises(AddressError):
                detect_scope(MemoryAccessor())


if __name__ == "__main__":
    unittest.main()
