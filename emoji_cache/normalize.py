from __future__ import annotations

"""
Text normalisation helpers shared across dataset loading, indexing and search.

Indices and queries must see the same view of text, so every path that turns
a name, keyword or user query into lookup tokens goes through this module.

Public helpers:

* basic_clean(text) -> str
    Unicode + whitespace normalisation, preserving case.

* normalize_query(text) -> str
    Lowercased, trimmed, whitespace-collapsed query text. Two queries that
    normalise identically share a cache slot.

* tokenize(text) -> List[str]
    Split on non-alphanumeric boundaries, lowercase, drop empty tokens.

* is_clean_token(text) -> bool
    True when the normalised text is exactly one token.
"""

import re
import unicodedata
from typing import Iterable, List

# Underscore counts as a separator: "thumbs_up" is two words.
_TOKEN_SPLIT_RE = re.compile(r"[\W_]+", flags=re.UNICODE)
_WHITESPACE_RE = re.compile(r"\s+")


# ---------------------------------------------------------------------------
# Low-level helpers
# ---------------------------------------------------------------------------


def _normalise_unicode(text: str) -> str:
    # NFC keeps emoji sequences intact while folding composed accents.
    text = unicodedata.normalize("NFC", text)
    text = text.replace("\u2018", "'").replace("\u2019", "'")
    text = text.replace("\u201c", '"').replace("\u201d", '"')
    text = text.replace("\u2013", "-").replace("\u2014", "-")
    return text


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def basic_clean(text: str | None) -> str:
    """Light-weight clean for record fields: unicode and whitespace only."""
    if text is None:
        return ""
    if not isinstance(text, str):
        text = str(text)
    text = _normalise_unicode(text)
    text = text.replace("\r", " ").replace("\n", " ").replace("\t", " ")
    return _WHITESPACE_RE.sub(" ", text).strip()


def normalize_query(text: str | None) -> str:
    return basic_clean(text).lower()


def tokenize(text: str | None) -> List[str]:
    """Tokenise a name, keyword or query into lowercase alphanumeric words."""
    norm = normalize_query(text)
    if not norm:
        return []
    return [tok for tok in _TOKEN_SPLIT_RE.split(norm) if tok]


def tokenize_all(texts: Iterable[str]) -> List[str]:
    """Tokenise several fields, keeping first-seen order and dropping repeats."""
    seen = set()
    out: List[str] = []
    for text in texts:
        for tok in tokenize(text):
            if tok not in seen:
                seen.add(tok)
                out.append(tok)
    return out


def is_clean_token(text: str | None) -> bool:
    """
    True when the query is a single alphanumeric word, e.g. ``"rocket"``.

    ``"thumbs up"``, ``"+1"`` and ``"🚀"`` are not clean tokens.
    """
    norm = normalize_query(text)
    if not norm:
        return False
    return tokenize(norm) == [norm]
