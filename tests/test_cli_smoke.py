from __future__ import annotations

import json
import os
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path


_FACEBOOK = """\
Publicerings-id,Sid-id,Sidnamn,Titel,Publiceringstid,Visningar,Reaktioner
101,9001,Klubben,Första,2024-01-03 10:00,100,5
102,9001,Klubben,Andra,2024-01-04 11:00,200,6
"""

_FACEBOOK_MORE = """\
Publicerings-id,Sid-id,Sidnamn,Titel,Publiceringstid,Visningar,Reaktioner
102,9001,Klubben,Andra,2024-01-04 11:00,200,6
103,9001,Klubben,Tredje,2024-01-09 08:00,300,7
"""


class TestCLISmoke(unittest.TestCase):
    def setUp(self) -> None:
        self.repo_root = Path(__file__).resolve().parents[1]
        self._td = tempfile.TemporaryDirectory()
        self.work = Path(self._td.name)

        self.cfg_path = self.work / "config.yaml"
        self.cfg_path.write_text(
            "storage:\n"
            f"  db_path: {json.dumps(str(self.work / 'insights.sqlite'))}\n"
            "logging:\n"
            f"  log_path: {json.dumps(str(self.work / 'import.log'))}\n",
            encoding="utf-8",
        )

        self.env = dict(os.environ)
        existing_pp = self.env.get("PYTHONPATH", "")
        self.env["PYTHONPATH"] = (
            f"{self.repo_root}{os.pathsep}{existing_pp}" if existing_pp else str(self.repo_root)
        )

    def tearDown(self) -> None:
        self._td.cleanup()

    def _run(self, *args: str) -> subprocess.CompletedProcess[str]:
        return subprocess.run(
            [sys.executable, "-m", "insights_merge", *args],
            cwd=self.work,
            env=self.env,
            capture_output=True,
            text=True,
        )

    def _csv(self, name: str, text: str) -> Path:
        path = self.work / name
        path.write_text(text, encoding="utf-8")
        return path

    def test_import_files_and_export(self) -> None:
        one = self._csv("one.csv", _FACEBOOK)
        two = self._csv("two.csv", _FACEBOOK_MORE)

        proc = self._run("import", "--config", str(self.cfg_path), str(one), str(two))
        self.assertEqual(proc.returncode, 0, msg=proc.stderr)
        self.assertIn("total_rows=3", proc.stdout)
        self.assertIn("accounts=1", proc.stdout)
        self.assertIn("duplicates=1", proc.stdout)

        proc = self._run("files", "--config", str(self.cfg_path))
        self.assertEqual(proc.returncode, 0, msg=proc.stderr)
        self.assertIn("[0] one.csv", proc.stdout)
        self.assertIn("[1] two.csv", proc.stdout)
        self.assertIn("account_names=Klubben", proc.stdout)

        proc = self._run("export", "--config", str(self.cfg_path))
        self.assertEqual(proc.returncode, 0, msg=proc.stderr)
        exported = self.work / "Merged 2024-01-03_2024-01-09.csv"
        self.assertTrue(exported.exists(), msg=proc.stdout)
        header = exported.read_text(encoding="utf-8-sig").splitlines()[0]
        self.assertIn("Publicerings-id", header)

        log_lines = [
            json.loads(ln)
            for ln in (self.work / "import.log").read_text(encoding="utf-8").splitlines()
            if ln.strip()
        ]
        events = [ln["event"] for ln in log_lines]
        self.assertIn("config_loaded", events)
        self.assertIn("import_completed", events)

    def test_analyze_and_validate(self) -> None:
        path = self._csv("one.csv", _FACEBOOK)

        proc = self._run("analyze", str(path))
        self.assertEqual(proc.returncode, 0, msg=proc.stderr)
        self.assertIn("platform_guess=facebook", proc.stdout)
        self.assertIn("row_count_estimate=2", proc.stdout)

        proc = self._run("validate", "--config", str(self.cfg_path), str(path))
        self.assertEqual(proc.returncode, 0, msg=proc.stderr)
        self.assertIn("valid=true", proc.stdout)

        bad = self._csv("bad.csv", "Sidnamn,Visningar\nKlubben,5\n")
        proc = self._run("validate", "--config", str(self.cfg_path), str(bad))
        self.assertEqual(proc.returncode, 4)
        self.assertIn("missing: post_id", proc.stdout)

    def test_mappings_remove_file_and_clear(self) -> None:
        proc = self._run("mappings", "set", "--config", str(self.cfg_path), "Post ID", "post_id")
        self.assertEqual(proc.returncode, 0, msg=proc.stderr)

        proc = self._run("mappings", "show", "--config", str(self.cfg_path))
        self.assertIn("Post ID -> post_id", proc.stdout)

        proc = self._run("mappings", "set", "--config", str(self.cfg_path), "post id", "views")
        self.assertEqual(proc.returncode, 2)

        path = self._csv("en.csv", "Post ID,Page ID,Views\n1,9,5\n")
        proc = self._run("import", "--config", str(self.cfg_path), "--platform", "facebook", str(path))
        self.assertEqual(proc.returncode, 0, msg=proc.stderr)
        self.assertIn("total_rows=1", proc.stdout)

        proc = self._run("remove-file", "--config", str(self.cfg_path), "0")
        self.assertEqual(proc.returncode, 0, msg=proc.stderr)
        proc = self._run("remove-file", "--config", str(self.cfg_path), "0")
        self.assertEqual(proc.returncode, 4)

        proc = self._run("clear", "--config", str(self.cfg_path))
        self.assertEqual(proc.returncode, 0, msg=proc.stderr)
        self.assertIn("cleared_rows=1", proc.stdout)

        proc = self._run("mappings", "reset", "--config", str(self.cfg_path))
        self.assertEqual(proc.returncode, 0, msg=proc.stderr)
        proc = self._run("mappings", "show", "--config", str(self.cfg_path))
        self.assertNotIn("Post ID -> post_id", proc.stdout)

    def test_exit_codes(self) -> None:
        proc = self._run("import", "--config", str(self.work / "missing.yaml"), "x.csv")
        self.assertEqual(proc.returncode, 2)

        proc = self._run("analyze", str(self.work / "missing.csv"))
        self.assertEqual(proc.returncode, 3)

        bad = self._csv("bad.csv", 'a,b\n"x"y,2\n')
        proc = self._run("analyze", str(bad))
        self.assertEqual(proc.returncode, 3)

        proc = self._run("export", "--config", str(self.cfg_path))
        self.assertEqual(proc.returncode, 3)

        empty = self._csv("empty.csv", "")
        proc = self._run("import", "--config", str(self.cfg_path), str(empty))
        self.assertEqual(proc.returncode, 4)
        self.assertIn("failed=", proc.stderr)


if __name__ == "__main__":
    unittest.main()
