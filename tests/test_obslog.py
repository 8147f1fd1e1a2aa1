import io
import json
import logging
import unittest


class TestJsonlFormatter(unittest.TestCase):
    def test_correlation_keys_are_lifted(self) -> None:
        from llmsend.util.obslog import JsonlFormatter

        stream = io.StringIO()
        handler = logging.StreamHandler(stream)
        handler.setFormatter(JsonlFormatter(component="llmsend"))
        logger = logging.getLogger("llmsend.test.obslog")
        logger.propagate = False
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
        try:
            logger.info("submitted %d bytes", 12, extra={"op": "send", "pane": "%1", "turn": None})
        finally:
            logger.removeHandler(handler)

        rec = json.loads(stream.getvalue().strip())
        self.assertEqual(rec["msg"], "submitted 12 bytes")
        self.assertEqual(rec["component"], "llmsend")
        self.assertEqual(rec["op"], "send")
        self.assertEqual(rec["pane"], "%1")
        self.assertNotIn("turn", rec)
        self.assertTrue(rec["ts"].endswith("Z"))

    def test_parse_level(self) -> None:
        from llmsend.util.obslog import parse_level

        self.assertEqual(parse_level("debug"), logging.DEBUG)
        self.assertEqual(parse_level(""), logging.WARNING)
        self.assertEqual(parse_level("nonsense"), logging.WARNING)


if __name__ == "__main__":
    unittest.main()
