import contextlib
import io
import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch


class TestCli(unittest.TestCase):
    def setUp(self) -> None:
        from llmsend.contracts.v1 import ScopeKey
        from llmsend.runners import MemoryAccessor

        self._td = tempfile.TemporaryDirectory()
        self.addCleanup(self._td.cleanup)
        self.ws = Path(self._td.name)
        env = patch.dict(os.environ, {"LLMSEND_HOME": str(self.ws / "home"), "LLMSEND_TOOL": "default"})
        env.start()
        self.addCleanup(env.stop)

        self.acc = MemoryAccessor()
        self.acc.add_pane("%1", ScopeKey(session="dev", window="1"))
        self.acc.add_pane("%2", ScopeKey(session="dev", window="1"))

    def run_cli(self, *argv, stdin: str = ""):
        from llmsend.cli import main

        out = io.StringIO()
        err = io.StringIO()
        base = ["--session", "dev", "--window", "1", "--workspace", str(self.ws)]
        with contextlib.redirect_stdout(out), contextlib.redirect_stderr(err), patch("sys.stdin", io.StringIO(stdin)):
            code = main([*base, *argv], accessor=self.acc)
        return code, out.getvalue(), err.getvalue()

    def test_pull_without_binding_exits_1(self) -> None:
        code, out, _ = self.run_cli("pull")
        self.assertEqual(code, 1)
        self.assertEqual(json.loads(out)["error"]["code"], "address_not_found")

    def test_send_and_pull_round_trip(self) -> None:
        code, _, _ = self.run_cli("bind", "assistant", "%1")
        self.assertEqual(code, 0)

        code, out, _ = self.run_cli("send", "-", "--no-retry", stdin="What is 2+2?\n")
        self.assertEqual(code, 0)
        self.assertEqual(json.loads(out)["result"]["status"], "submitted")
        self.assertIn("What is 2+2?\n### END PROMPT", self.acc.pane("%1").scrollback)

        self.acc.reply("%1", "4")
        code, out, _ = self.run_cli("pull")
        self.assertEqual((code, out), (0, "4\n"))

    def test_send_file_selection(self) -> None:
        self.run_cli("bind", "assistant", "%1")
        src = self.ws / "notes.md"
        src.write_text("one\ntwo\nthree\nfour\n", encoding="utf-8")
        code, _, _ = self.run_cli("send", str(src), "--lines", "2:3", "--no-retry")
        self.assertEqual(code, 0)
        scrollback = self.acc.pane("%1").scrollback
        self.assertIn("\ntwo\nthree\n### END PROMPT", scrollback)
        self.assertNotIn("four", scrollback)

    def test_pull_out_of_range_exits_2(self) -> None:
        self.run_cli("bind", "assistant", "%1")
        self.acc.reply("%1", "\n### PROMPT t\nq\n### END PROMPT\nonly answer")
        code, out, _ = self.run_cli("pull", "--index", "3")
        self.assertEqual(code, 2)
        err = json.loads(out)["error"]
        self.assertEqual(err["code"], "history_exhausted")
        self.assertEqual(err["details"]["available"], 1)

        code, out, _ = self.run_cli("pull", "--range", "1:2")
        self.assertEqual(code, 0)
        self.assertEqual(out, "--- Response 1 ---\nonly answer\n")

    def test_range_truncation_is_reported(self) -> None:
        self.run_cli("bind", "assistant", "%1")
        self.acc.reply("%1", "\n### PROMPT t\nq\n### END PROMPT\na\n\n### PROMPT t\nq\n### END PROMPT\nb")
        code, out, err = self.run_cli("pull", "--range", "1:3")
        self.assertEqual(code, 0)
        self.assertIn("range truncated", err)
        self.assertIn("--- Response 2 ---\na", out)

    def test_empty_history_exits_2(self) -> None:
        self.run_cli("bind", "assistant", "%1")
        self.acc.reply("%1", "Welcome to the assistant")
        code, out, _ = self.run_cli("pull")
        self.assertEqual(code, 2)
        self.assertEqual(json.loads(out)["error"]["code"], "empty_history")

    def test_dead_pane_is_transport_error(self) -> None:
        self.run_cli("bind", "assistant", "%1")
        # Resolve succeeds, then the pane dies before delivery.
        with patch.object(self.acc, "pane_exists", return_value=True):
            self.acc.kill_pane("%1")
            code, out, _ = self.run_cli("send", "-", "--no-retry", stdin="hi")
        self.assertEqual(code, 3)
        self.assertEqual(json.loads(out)["error"]["code"], "pane_unavailable")

    def test_pending_prompt_flow(self) -> None:
        self.run_cli("bind", "assistant", "%1")
        self.acc.reply("%1", "\n### PROMPT t\nq\n### END PROMPT\nassistant line")

        code, _, _ = self.run_cli("pull", "--into-pending")
        self.assertEqual(code, 0)
        code, _, _ = self.run_cli("append", "Why?", "--pending")
        self.assertEqual(code, 0)
        code, _, _ = self.run_cli("append", "--ref", "src/app.py", "--line", "3-5", "--raw", "--pending")
        self.assertEqual(code, 0)

        code, _, _ = self.run_cli("send", "@pending", "--no-retry")
        self.assertEqual(code, 0)
        scrollback = self.acc.pane("%1").scrollback
        last_prompt = scrollback[scrollback.rindex("### PROMPT") :]
        self.assertIn("Why?\n# See lines 3-5 in src/app.py", last_prompt)
        self.assertNotIn("assistant line", last_prompt)

        from llmsend.contracts.v1 import ScopeKey
        from llmsend.kernel.annotations import PendingPromptStore

        self.assertEqual(len(PendingPromptStore(ScopeKey(session="dev", window="1"), workspace=self.ws).load()), 0)

    def test_key_roles_and_index(self) -> None:
        self.run_cli("bind", "assistant", "%1")
        self.run_cli("bind", "prompt", "%2")
        code, out, _ = self.run_cli("roles")
        self.assertEqual(json.loads(out)["result"]["bindings"], {"assistant_output": "%1", "prompt_input": "%2"})

        code, _, _ = self.run_cli("key", "2")
        self.assertEqual(code, 0)
        self.assertEqual(self.acc.pane("%1").keys, ["2"])

        self.acc.reply("%1", "\n### PROMPT t\nq\n### END PROMPT\nx")
        code, out, _ = self.run_cli("index")
        self.assertEqual(len(json.loads(out)["result"]["turns"]), 1)

        code, _, _ = self.run_cli("unbind", "prompt")
        code, out, _ = self.run_cli("roles")
        self.assertEqual(json.loads(out)["result"]["bindings"], {"assistant_output": "%1"})

    def test_unreadable_source_has_its_own_exit_code(self) -> None:
        self.run_cli("bind", "assistant", "%1")
        code, out, _ = self.run_cli("send", str(self.ws / "nope.md"), "--no-retry")
        self.assertEqual(code, 4)
        self.assertEqual(json.loads(out)["error"]["code"], "source_unreadable")

        binary = self.ws / "blob.bin"
        binary.write_bytes(b"\xff\xfe\x00bad")
        code, out, _ = self.run_cli("send", str(binary), "--no-retry")
        self.assertEqual(code, 4)
        self.assertNotIn("### PROMPT", self.acc.pane("%1").scrollback)

    def test_append_pastes_into_prompt_pane(self) -> None:
        self.run_cli("bind", "prompt", "%2")
        code, out, _ = self.run_cli("append", "Why?")
        self.assertEqual(code, 0)
        self.assertEqual(json.loads(out)["result"]["pane"], "%2")
        code, _, _ = self.run_cli("append", "--ref", "src/app.py", "--line", "5-3", "--raw")
        self.assertEqual(code, 0)

        prompt = self.acc.pane("%2")
        self.assertEqual(prompt.scrollback, "\n\nWhy?\n# See lines 3-5 in src/app.py")
        self.assertEqual(prompt.submits, 0)
        self.assertEqual(self.acc.pane("%1").scrollback, "")

    def test_append_without_prompt_binding_exits_1(self) -> None:
        self.run_cli("bind", "assistant", "%1")
        code, out, _ = self.run_cli("append", "Why?")
        self.assertEqual(code, 1)
        self.assertEqual(json.loads(out)["error"]["details"]["role"], "prompt_input")

    def test_bad_role_is_usage_error(self) -> None:
        code, out, _ = self.run_cli("bind", "editor", "%1")
        self.assertEqual(code, 2)
        self.assertEqual(json.loads(out)["error"]["code"], "invalid_argument")


if __name__ == "__main__":
    unittest.main()
