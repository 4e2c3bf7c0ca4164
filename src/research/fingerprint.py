"""Content fingerprints and token-set similarity for near-duplicate snippets."""

from __future__ import annotations

import hashlib
import re

_PUNCT_RE = re.compile(r"[^\w\s]")
_SPACE_RE = re.compile(r"\s+")

HASH_WIDTH = 16


def normalize_text(text: str) -> str:
    """Lowercase, drop punctuation, collapse whitespace."""
    text = _PUNCT_RE.sub("", text.lower())
    return _SPACE_RE.sub(" ", text).strip()


def content_hash(text: str) -> str:
    """Short identity hash (16 hex chars) of the normalised text."""
    digest = hashlib.md5(normalize_text(text).encode("utf-8")).hexdigest()
    return digest[:HASH_WIDTH]


def tokens(text: str) -> set[str]:
    return set(normalize_text(text).split())


def similarity(a: str, b: str) -> float:
    """Jaccard similarity of the token sets of *a* and *b*, in [0, 1]."""
    words_a = tokens(a)
    words_b = tokens(b)
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)
