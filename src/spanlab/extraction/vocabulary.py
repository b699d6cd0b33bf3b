"""Closed vocabulary: taxonomy id -> ordered list of literal terms.

The vocabulary is a JSON object shipped with the package
(``spanlab/extraction/data/vocab.json``). A missing or corrupt file degrades
to an empty vocabulary with a warning unless ``strict=True`` is requested.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator

from spanlab.extraction.errors import VocabularyLoadError
from spanlab.shared.taxonomy import is_valid_category, resolve_category

logger = logging.getLogger(__name__)

DEFAULT_VOCAB_PATH = Path(__file__).parent / "data" / "vocab.json"

SAMPLE_TERMS = 5


def load_vocabulary(path: str | Path | None = None, strict: bool = False) -> dict[str, list[str]]:
    """Load a vocabulary JSON file.

    Args:
        path: JSON file path. Defaults to the packaged vocabulary.
        strict: Raise instead of degrading to an empty vocabulary.

    Returns:
        Mapping of taxonomy id to terms, in file order. Non-string and blank
        terms are skipped.

    Raises:
        VocabularyLoadError: If ``strict`` and the file is missing, not valid
            JSON, or its root is not an object.
    """
    vocab_path = Path(path) if path else DEFAULT_VOCAB_PATH

    try:
        raw = json.loads(vocab_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        msg = f"could not load vocabulary from {vocab_path}: {e}"
        if strict:
            raise VocabularyLoadError(msg) from e
        logger.warning(f"[Vocabulary] {msg}; continuing with empty vocabulary")
        return {}

    if not isinstance(raw, dict):
        msg = f"vocabulary root must be an object, got {type(raw).__name__}"
        if strict:
            raise VocabularyLoadError(msg)
        logger.warning(f"[Vocabulary] {msg}; continuing with empty vocabulary")
        return {}

    vocab: dict[str, list[str]] = {}
    for category, terms in raw.items():
        if not isinstance(terms, list):
            logger.warning(f"[Vocabulary] Skipping {category!r}: terms must be a list")
            continue
        vocab[str(category)] = [t for t in terms if isinstance(t, str) and t.strip()]

    logger.debug(
        f"[Vocabulary] Loaded {sum(len(t) for t in vocab.values())} terms "
        f"in {len(vocab)} categories from {vocab_path}"
    )
    return vocab


@dataclass
class VocabularyStore:
    """Immutable-by-convention view over a loaded vocabulary.

    Category ids are resolved through the legacy id map. Categories that are
    not in the taxonomy are dropped with a warning. When one lower-cased term
    appears under two categories the first mapping wins.
    """

    categories: dict[str, list[str]] = field(default_factory=dict)
    term_index: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, mapping: dict[str, list[str]]) -> VocabularyStore:
        store = cls()
        for raw_category, terms in mapping.items():
            category = resolve_category(raw_category)
            if not is_valid_category(category):
                logger.warning(
                    f"[Vocabulary] Dropping {len(terms)} terms for unknown category {raw_category!r}"
                )
                continue
            kept = store.categories.setdefault(category, [])
            for term in terms:
                key = term.strip().lower()
                owner = store.term_index.get(key)
                if owner is not None:
                    if owner != category:
                        logger.debug(
                            f"[Vocabulary] Term {key!r} already mapped to {owner}, ignoring {category}"
                        )
                    continue
                store.term_index[key] = category
                kept.append(term.strip())
        return store

    @classmethod
    def load(cls, path: str | Path | None = None, strict: bool = False) -> VocabularyStore:
        return cls.from_mapping(load_vocabulary(path, strict=strict))

    def __len__(self) -> int:
        return len(self.term_index)

    def entries(self) -> Iterator[tuple[str, str]]:
        """Yield ``(taxonomy_id, lowered_term)`` pairs in load order."""
        for term, category in self.term_index.items():
            yield category, term

    def stats(self) -> dict[str, Any]:
        return {
            "total_categories": len(self.categories),
            "total_terms": len(self.term_index),
            "categories": {
                category: {
                    "term_count": len(terms),
                    "sample_terms": terms[:SAMPLE_TERMS],
                }
                for category, terms in self.categories.items()
            },
        }
