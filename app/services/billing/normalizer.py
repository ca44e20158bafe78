"""
Name normalization for calendar label matching
"""
import re
import unicodedata

_WHITESPACE_RUN = re.compile(r"\s+")
# Hebrew points and cantillation marks (niqqud, dagesh, ...)
_HEBREW_MARKS = re.compile("[\u0591-\u05C7]")
_REPEATED_CHAR = re.compile(r"(.)\1+")


def normalize_name(text: str) -> str:
    """
    Canonical matching key for a free-text label

    NFC, trim, single spaces, lowercase, drop Hebrew marks, then collapse
    runs of the same character ("יוססי" -> "יוסי").
    """
    if not text:
        return ""
    key = unicodedata.normalize("NFC", text).strip()
    key = _WHITESPACE_RUN.sub(" ", key).lower()
    key = _HEBREW_MARKS.sub("", key)
    return _REPEATED_CHAR.sub(r"\1", key)
