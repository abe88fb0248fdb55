from __future__ import annotations

"""
Inverted index builder over a dataset snapshot.

Four indices are produced from the same pass over the records:

* Name index       word of ``record.name``     -> record ids
* Keyword index    word of any keyword         -> record ids
* Category index   ``record.category`` verbatim -> record ids
* Character index  ``record.character`` verbatim -> record ids

Indices are rebuilt wholesale from a snapshot and never patched. Building has
no side effects beyond the returned value; publishing it is the job of the
invalidation controller.
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Set, Tuple

from loguru import logger

from .errors import DataQualityWarning
from .normalize import tokenize, tokenize_all
from .record_store import DatasetSnapshot

_EMPTY: FrozenSet[int] = frozenset()


@dataclass(frozen=True)
class Indices:
    """The four inverted indices built from one snapshot version."""

    version: int
    name: Mapping[str, FrozenSet[int]] = field(default_factory=dict)
    keyword: Mapping[str, FrozenSet[int]] = field(default_factory=dict)
    category: Mapping[str, FrozenSet[int]] = field(default_factory=dict)
    character: Mapping[str, FrozenSet[int]] = field(default_factory=dict)
    warnings: Tuple[DataQualityWarning, ...] = ()
    enabled: bool = True

    @classmethod
    def disabled(cls, version: int) -> "Indices":
        """Placeholder published when index caching is switched off."""
        return cls(version=version, enabled=False)

    def lookup_word(self, token: str) -> FrozenSet[int]:
        """Ids whose name OR keywords contain ``token``."""
        return self.name.get(token, _EMPTY) | self.keyword.get(token, _EMPTY)

    def lookup_words(self, tokens: Iterable[str]) -> Set[int]:
        """
        Ids matching every token, each token satisfied by name or keywords.

        Empty token list yields an empty set.
        """
        result: Optional[Set[int]] = None
        for tok in tokens:
            ids = self.lookup_word(tok)
            result = set(ids) if result is None else result & ids
            if not result:
                return set()
        return result or set()

    def lookup_category(self, category: str) -> FrozenSet[int]:
        return self.category.get(category, _EMPTY)

    def lookup_character(self, character: str) -> FrozenSet[int]:
        return self.character.get(character, _EMPTY)


def _freeze(index: Dict[str, Set[int]]) -> Dict[str, FrozenSet[int]]:
    return {key: frozenset(ids) for key, ids in index.items()}


def build_indices(snapshot: DatasetSnapshot) -> Indices:
    """
    Build the Name, Keyword, Category and Character indices for ``snapshot``.

    Records missing a character or a name are skipped and reported as
    ``DataQualityWarning``; the rest of the build proceeds.
    """
    logger.info(
        "Building indices for dataset version {} over {} records",
        snapshot.version,
        len(snapshot),
    )

    name_idx: Dict[str, Set[int]] = {}
    keyword_idx: Dict[str, Set[int]] = {}
    category_idx: Dict[str, Set[int]] = {}
    character_idx: Dict[str, Set[int]] = {}
    warnings: List[DataQualityWarning] = []

    for rec in snapshot.records:
        if not rec.character.strip():
            warnings.append(DataQualityWarning(rec.id, "missing character"))
            continue
        if not rec.name.strip():
            warnings.append(DataQualityWarning(rec.id, "missing name"))
            continue

        for tok in tokenize(rec.name):
            name_idx.setdefault(tok, set()).add(rec.id)
        for tok in tokenize_all(rec.keywords):
            keyword_idx.setdefault(tok, set()).add(rec.id)
        if rec.category:
            category_idx.setdefault(rec.category, set()).add(rec.id)
        character_idx.setdefault(rec.character, set()).add(rec.id)

    for w in warnings:
        logger.warning("Skipping malformed record during index build: {}", w)

    indices = Indices(
        version=snapshot.version,
        name=_freeze(name_idx),
        keyword=_freeze(keyword_idx),
        category=_freeze(category_idx),
        character=_freeze(character_idx),
        warnings=tuple(warnings),
    )
    logger.info(
        "Indices built for version {}: {} name tokens, {} keyword tokens, {} categories, {} characters, {} skipped",
        snapshot.version,
        len(indices.name),
        len(indices.keyword),
        len(indices.category),
        len(indices.character),
        len(warnings),
    )
    return indices
