from __future__ import annotations

import re
import unicodedata
from typing import Iterable, List, Optional

__all__ = ["clean_labels", "clean_text", "clean_optional_text", "normalize_dni", "normalize_email"]

_WHITESPACE = re.compile(r"\s+")
_CONTROL_CATEGORIES = {"Cc", "Cf"}


def clean_text(value: Optional[str], max_length: Optional[int] = None) -> str:
    """
    Normalize user-provided single-line text.

    Control characters are dropped, runs of whitespace collapse to one space
    and the result is trimmed and truncated to ``max_length``. The function is
    idempotent.
    """

    if value is None:
        return ""
    candidate = unicodedata.normalize("NFC", str(value))
    candidate = "".join(
        ch if unicodedata.category(ch) not in _CONTROL_CATEGORIES else " " for ch in candidate
    )
    candidate = _WHITESPACE.sub(" ", candidate).strip()
    if max_length is not None and max_length > 0:
        candidate = candidate[:max_length].rstrip()
    return candidate


def clean_optional_text(value: Optional[str], max_length: Optional[int] = None) -> Optional[str]:
    """Like :func:`clean_text` but keeps line breaks and maps blanks to None."""

    if value is None:
        return None
    lines = [clean_text(line) for line in str(value).splitlines()]
    joined = "\n".join(lines).strip()
    if max_length is not None and max_length > 0:
        joined = joined[:max_length]
    return joined or None


def normalize_dni(value: Optional[str]) -> str:
    return re.sub(r"[\s.\-]", "", value or "").upper()


def normalize_email(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def clean_labels(values: Iterable[str], max_length: int = 160) -> List[str]:
    """Clean a list of labels, dropping blanks and duplicates but keeping order."""

    labels: List[str] = []
    for value in values or ():
        label = clean_text(value, max_length=max_length)
        if label and label not in labels:
            labels.append(label)
    return labels
