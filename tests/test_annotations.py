import os
import tempfile
import unittest
from pathlib import Path


def _setup(reply="response line 1\nresponse line 2"):
    from llmsend.contracts.v1 import PaneAddress, PaneRole, ScopeKey
    from llmsend.kernel.annotations import AnnotationTagger
    from llmsend.kernel.extractor import ResponseExtractor
    from llmsend.runners import MemoryAccessor

    scope = ScopeKey(session="s", window="1")
    acc = MemoryAccessor()
    acc.add_pane("%1", scope)
    addr = PaneAddress(pane_id="%1", scope=scope, role=PaneRole.ASSISTANT_OUTPUT)
    acc.reply(addr, "\n### PROMPT t\nquestion\n### END PROMPT\n" + reply)
    return acc, addr, AnnotationTagger(ResponseExtractor(acc))


class TestAnnotationTagger(unittest.TestCase):
    def test_pull_tags_every_inserted_line(self) -> None:
        from llmsend.contracts.v1 import Latest
        from llmsend.kernel.annotations import Document

        _, addr, tagger = _setup()
        doc = Document.from_text("my note")
        inserted = tagger.pull(addr, Latest(), doc)

        self.assertEqual(len(inserted), 2)
        self.assertEqual(doc.texts(), ["my note", "response line 1", "response line 2"])
        self.assertEqual(doc.tagged_rows(), [1, 2])

    def test_pull_twice_leaves_one_block(self) -> None:
        from llmsend.contracts.v1 import Latest
        from llmsend.kernel.annotations import Document

        _, addr, tagger = _setup()
        doc = Document.from_text("top")
        tagger.pull(addr, Latest(), doc)
        tagger.pull(addr, Latest(), doc)

        self.assertEqual(doc.texts(), ["top", "response line 1", "response line 2"])
        self.assertEqual(doc.tagged_rows(), [1, 2])

    def test_pull_replaces_previous_block_at_row(self) -> None:
        from llmsend.contracts.v1 import Latest
        from llmsend.kernel.annotations import Document

        acc, addr, tagger = _setup(reply="old")
        doc = Document.from_text("a\nb")
        tagger.pull(addr, Latest(), doc, row=1)
        self.assertEqual(doc.texts(), ["a", "old", "b"])

        acc.reply(addr, "\n### PROMPT t\nq2\n### END PROMPT\nnew 1\nnew 2")
        tagger.pull(addr, Latest(), doc, row=3)
        self.assertEqual(doc.texts(), ["a", "b", "new 1", "new 2"])
        self.assertEqual(doc.tagged_rows(), [2, 3])

    def test_filter_untagged_keeps_only_new_line(self) -> None:
        from llmsend.contracts.v1 import Latest
        from llmsend.kernel.annotations import Document, filter_untagged

        for row in (0, 1, 2, 3):
            _, addr, tagger = _setup(reply="r1\nr2\nr3")
            doc = Document()
            tagger.pull(addr, Latest(), doc)
            doc.insert_lines(row, ["my annotation"])
            self.assertEqual([ln.text for ln in filter_untagged(doc)], ["my annotation"], msg=f"row={row}")

    def test_edited_tagged_line_stays_tagged(self) -> None:
        from llmsend.contracts.v1 import Latest
        from llmsend.kernel.annotations import Document, filter_untagged

        _, addr, tagger = _setup()
        doc = Document()
        tagger.pull(addr, Latest(), doc)
        doc.set_text(0, "response line 1 (edited by me)")
        self.assertTrue(doc.line(0).is_pulled_response)
        self.assertEqual(filter_untagged(doc), [])

        doc.delete_line(0)
        self.assertEqual(doc.tagged_rows(), [0])

    def test_empty_response_leaves_document_alone(self) -> None:
        from llmsend.contracts.v1 import Latest
        from llmsend.kernel.annotations import Document

        _, addr, tagger = _setup(reply="")
        doc = Document.from_text("x")
        doc.insert_lines(1, ["earlier pull"], tagged=True)
        self.assertEqual(tagger.pull(addr, Latest(), doc), [])
        self.assertEqual(doc.texts(), ["x", "earlier pull"])

    def test_failed_extract_leaves_document_alone(self) -> None:
        from llmsend.contracts.v1 import Nth
        from llmsend.errors import ExtractionRangeError
        from llmsend.kernel.annotations import Document

        _, addr, tagger = _setup()
        doc = Document.from_text("x")
        doc.insert_lines(1, ["earlier pull"], tagged=True)
        with self.assertRaises(ExtractionRangeError):
            tagger.pull(addr, Nth(n=2), doc)
        self.assertEqual(doc.tagged_rows(), [1])

    def test_range_pull_inserts_separators_as_tagged(self) -> None:
        from llmsend.contracts.v1 import Range
        from llmsend.kernel.annotations import Document

        acc, addr, tagger = _setup(reply="one")
        acc.reply(addr, "\n### PROMPT t\nq2\n### END PROMPT\ntwo")
        doc = Document()
        tagger.pull(addr, Range(start=1, end=2), doc)
        self.assertEqual(doc.texts(), ["--- Response 1 ---", "two", "", "--- Response 2 ---", "one"])
        self.assertEqual(len(doc.tagged_rows()), 5)


class TestPendingPromptStore(unittest.TestCase):
    def test_round_trip_keeps_tags_and_creates_state_dirs(self) -> None:
        from llmsend.contracts.v1 import ScopeKey
        from llmsend.kernel.annotations import Document, PendingPromptStore

        with tempfile.TemporaryDirectory() as td:
            store = PendingPromptStore(ScopeKey(session="dev", window="1"), workspace=Path(td))
            self.assertEqual(len(store.load()), 0)

            doc = Document.from_text("note")
            doc.insert_lines(1, ["pulled"], tagged=True)
            store.save(doc)

            loaded = store.load()
            self.assertEqual(loaded.texts(), ["note", "pulled"])
            self.assertEqual(loaded.tagged_rows(), [1])
            for sub in ("prompts", "swap", "undo"):
                self.assertTrue(os.path.isdir(os.path.join(td, ".lazy-llm", sub)))

    def test_windows_do_not_share_pending_prompts(self) -> None:
        from llmsend.contracts.v1 import ScopeKey
        from llmsend.kernel.annotations import Document, PendingPromptStore

        with tempfile.TemporaryDirectory() as td:
            a = PendingPromptStore(ScopeKey(session="dev", window="1"), workspace=Path(td))
            b = PendingPromptStore(ScopeKey(session="dev", window="2"), workspace=Path(td))
            a.save(Document.from_text("only in window 1"))
            self.assertEqual(len(b.load()), 0)
            self.assertNotEqual(a.path, b.path)


class TestPayloads(unittest.TestCase):
    def test_document_payload_filters_tagged_lines(self) -> None:
        from llmsend.kernel.annotations import Document
        from llmsend.kernel.payload import document_payload

        doc = Document.from_text("q1")
        doc.insert_lines(1, ["assistant said"], tagged=True)
        doc.append_line("follow-up")
        self.assertEqual(document_payload(doc).text, "q1\nfollow-up")
        self.assertEqual(document_payload(doc, filtered=False).text, "q1\nassistant said\nfollow-up")

    def test_selection_and_reference(self) -> None:
        from llmsend.kernel.payload import parse_line_span, reference_text, selection_payload

        p = selection_payload(["a", "b", "c", "d"], 3, 2)
        self.assertEqual((p.kind, p.text), ("selection", "b\nc"))
        self.assertEqual(parse_line_span("9:4"), (4, 9))
        self.assertEqual(parse_line_span("7"), (7, 7))
        with self.assertRaises(ValueError):
            parse_line_span("0:3")
        self.assertEqual(reference_text("src/app.py", 12), "# See line 12 in src/app.py")
        self.assertEqual(reference_text("src/app.py", 20, 10), "# See lines 10-20 in src/app.py")

    def test_append_modes(self) -> None:
        from llmsend.kernel.annotations import Document
        from llmsend.kernel.payload import append_to_document

        doc = Document.from_text("Explain this")
        append_to_document(doc, "# See line 3 in a.py", raw=True)
        self.assertEqual(doc.texts(), ["Explain this # See line 3 in a.py"])

        append_to_document(doc, "# See line 9 in b.py")
        self.assertEqual(doc.texts(), ["Explain this # See line 3 in a.py", "", "# See line 9 in b.py", ""])

    def test_raw_append_never_joins_a_tagged_line(self) -> None:
        from llmsend.kernel.annotations import Document, filter_untagged
        from llmsend.kernel.payload import append_to_document

        doc = Document()
        doc.insert_lines(0, ["assistant text"], tagged=True)
        append_to_document(doc, "my ref", raw=True)
        self.assertEqual([ln.text for ln in filter_untagged(doc)], ["my ref"])


if __name__ == "__main__":
    unittest.main()
