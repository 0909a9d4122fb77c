from __future__ import annotations

import codecs
from pathlib import Path

from charset_normalizer import from_bytes

from .errors import ReadError

# Non-UTF-8 exports are Windows-1252/Latin-1, or UTF-16 when NUL bytes are present.
_SINGLE_BYTE_CODECS = ["cp1252", "latin_1"]
_WIDE_CODECS = ["utf_16", "utf_16_le", "utf_16_be"]


def decode_bytes(raw: bytes) -> str:
    """
    Decode export bytes to text.

    UTF-8 (with or without BOM) is tried first, then UTF-16 by BOM. Anything else goes
    through charset-normalizer restricted to the codecs exports are written in.
    """
    if raw.startswith((codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE)):
        try:
            return raw.decode("utf-16")
        except UnicodeDecodeError as e:
            raise ReadError(f"Invalid UTF-16 data: {e}") from e

    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        pass

    candidates = _WIDE_CODECS if b"\x00" in raw else _SINGLE_BYTE_CODECS
    match = from_bytes(raw, cp_isolation=candidates).best()
    if match is None:
        raise ReadError("Could not detect the text encoding of the file")
    return str(match)


def read_text(path: str | Path) -> str:
    p = Path(path)
    try:
        raw = p.read_bytes()
    except OSError as e:
        raise ReadError(f"Failed to read file: {p}: {e}") from e

    try:
        return decode_bytes(raw)
    except ReadError as e:
        raise ReadError(f"{e}: {p}") from e
