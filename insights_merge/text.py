from __future__ import annotations

import re
import unicodedata
from typing import Any

_INVISIBLE_RE = re.compile("[\u200b\u200c\u200d\u2060\ufeff]")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_text(text: Any) -> str:
    """
    Canonical form of a header string, used as the equality basis for header matching.

    Decomposes to NFD and drops combining marks, so "Räckvidd" and "Rackvidd" compare equal.
    """
    if text is None:
        return ""

    s = _INVISIBLE_RE.sub("", str(text))
    s = unicodedata.normalize("NFD", s)
    s = "".join(ch for ch in s if not unicodedata.combining(ch))
    s = s.replace("\u00a0", " ")
    s = _WHITESPACE_RE.sub(" ", s).strip()
    return s.casefold()
