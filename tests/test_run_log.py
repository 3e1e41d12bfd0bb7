from __future__ import annotations

import io
import json
import tempfile
import unittest
from pathlib import Path

from notion_blog.run_log import RunLogger


def _records(text: str) -> list[dict]:
    return [json.loads(line) for line in text.splitlines() if line.strip()]


class TestRunLogger(unittest.TestCase):
    def test_writes_jsonl_file(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "logs" / "run.log"
            with RunLogger.open(path, session_id="s1") as logger:
                logger.info("build_started", url="https://example.com", lang="ja")
                logger.warning("slow")

            records = _records(path.read_text(encoding="utf-8"))

        self.assertEqual([r["event"] for r in records], ["build_started", "slow"])
        self.assertEqual(records[0]["level"], "INFO")
        self.assertEqual(records[0]["session_id"], "s1")
        self.assertEqual(records[0]["url"], "https://example.com")
        self.assertEqual(records[0]["data"], {"lang": "ja"})
        self.assertEqual(records[1]["level"], "WARN")
        self.assertNotIn("data", records[1])

    def test_bind_adds_context_and_shares_stream(self) -> None:
        stream = io.StringIO()
        root = RunLogger.to_stream(stream, session_id="s2")
        child = root.bind(lang="en")

        child.info("posts_cached", count=3)
        root.info("done")

        records = _records(stream.getvalue())
        self.assertEqual(records[0]["lang"], "en")
        self.assertEqual(records[0]["session_id"], "s2")
        self.assertNotIn("lang", records[1])

    def test_exception_records_error(self) -> None:
        stream = io.StringIO()
        logger = RunLogger.to_stream(stream)
        try:
            raise ValueError("boom")
        except ValueError as e:
            logger.exception("failed", exc=e)

        record = _records(stream.getvalue())[0]
        self.assertEqual(record["level"], "ERROR")
        self.assertEqual(record["data"]["error"]["type"], "ValueError")
        self.assertIn("boom", record["data"]["error"]["traceback"])

    def test_close_leaves_caller_stream_open(self) -> None:
        stream = io.StringIO()
        logger = RunLogger.to_stream(stream)
        logger.close()
        self.assertFalse(stream.closed)

    def test_requires_destination(self) -> None:
        with self.assertRaises(ValueError):
            RunLogger()


if __name__ == "__main__":
    unittest.main()
