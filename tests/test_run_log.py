from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

from insights_merge.run_log import ImportLog


class TestImportLog(unittest.TestCase):
    def test_in_memory_records(self) -> None:
        log = ImportLog(session_id="s1")
        log.set_batch_id("b1")
        log.info("file_read", file="a.csv", chars=10)
        log.warning("platform_warning", file="a.csv", message="x")

        self.assertEqual(log.events(), ["file_read", "platform_warning"])
        assert log.records is not None
        first = log.records[0]
        self.assertEqual(first["level"], "INFO")
        self.assertEqual(first["session_id"], "s1")
        self.assertEqual(first["batch_id"], "b1")
        self.assertEqual(first["file"], "a.csv")
        self.assertEqual(first["data"], {"chars": 10})
        self.assertEqual(log.records[1]["level"], "WARN")

    def test_writes_jsonl(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "logs" / "import.log"
            with ImportLog.open(path) as log:
                log.info("import_started", file_count=1)
                try:
                    raise ValueError("boom")
                except ValueError as e:
                    log.exception("file_failed", exc=e, file="a.csv")

            self.assertIsNone(log.records)
            lines = [json.loads(ln) for ln in path.read_text(encoding="utf-8").splitlines() if ln.strip()]
            self.assertEqual([ln["event"] for ln in lines], ["import_started", "file_failed"])
            self.assertEqual(lines[1]["level"], "ERROR")
            self.assertEqual(lines[1]["data"]["error"]["type"], "ValueError")
            self.assertIn("boom", lines[1]["data"]["error"]["message"])

    def test_appends_unless_overwrite(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "import.log"
            with ImportLog.open(path) as log:
                log.info("first")
            with ImportLog.open(path) as log:
                log.info("second")
            self.assertEqual(len(path.read_text(encoding="utf-8").splitlines()), 2)

            with ImportLog.open(path, overwrite=True) as log:
                log.info("third")
            self.assertEqual(len(path.read_text(encoding="utf-8").splitlines()), 1)


if __name__ == "__main__":
    unittest.main()
