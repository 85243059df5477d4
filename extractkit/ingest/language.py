"""Script-range language guess for extracted text."""

from __future__ import annotations

import re

SAMPLE_CHARS = 200

# Kana before CJK ideographs: Japanese text contains both.
SCRIPT_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("th", re.compile(r"[\u0E00-\u0E7F]")),
    ("ja", re.compile(r"[\u3040-\u309F\u30A0-\u30FF]")),
    ("ko", re.compile(r"[\uAC00-\uD7AF\u1100-\u11FF\u3130-\u318F]")),
    ("zh", re.compile(r"[\u4E00-\u9FFF\u3400-\u4DBF]")),
    ("ru", re.compile(r"[\u0400-\u04FF]")),
    ("vi", re.compile(r"[\u0102\u0103\u0110\u0111\u01A0\u01A1\u01AF\u01B0\u1EA0-\u1EF9]")),
)


def detect_language(sample: str, default: str = "en") -> str:
    """Return a language code for the first script found in the sample."""

    head = (sample or "")[:SAMPLE_CHARS]
    if not head.strip():
        return default
    for code, pattern in SCRIPT_PATTERNS:
        if pattern.search(head):
            return code
    return default
