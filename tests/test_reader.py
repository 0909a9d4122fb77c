from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from insights_merge.errors import ReadError
from insights_merge.reader import decode_bytes, read_text


class TestReader(unittest.TestCase):
    def test_utf8_with_bom(self) -> None:
        self.assertEqual(decode_bytes("\ufeffSidnamn,Räckvidd".encode("utf-8")), "Sidnamn,Räckvidd")

    def test_legacy_encoding_fallback(self) -> None:
        text = "Publicerings-id,Sidnamn,Räckvidd,Delningar\n1,Föreningen Åkerö,10,2\n" * 20
        decoded = decode_bytes(text.encode("cp1252"))
        self.assertIn("Publicerings-id", decoded)
        self.assertIn("Räckvidd", decoded)

    def test_short_legacy_file(self) -> None:
        text = "Sidnamn,Räckvidd\nFöreningen Åkerö,10\n"
        self.assertEqual(decode_bytes(text.encode("cp1252")), text)

    def test_utf16_with_bom(self) -> None:
        text = "Sidnamn,Räckvidd\nKlubben,10\n"
        self.assertEqual(decode_bytes(text.encode("utf-16")), text)

    def test_read_text(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "export.csv"
            path.write_bytes("a,b\n1,2\n".encode("utf-8"))
            self.assertEqual(read_text(path), "a,b\n1,2\n")

    def test_missing_file(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(ReadError):
                read_text(Path(td) / "missing.csv")

    def test_read_error_is_os_error(self) -> None:
        self.assertTrue(issubclass(ReadError, OSError))


if __name__ == "__main__":
    unittest.main()
