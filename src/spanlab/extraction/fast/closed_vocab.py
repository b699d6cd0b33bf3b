"""Tier 1: closed-vocabulary matching.

Every vocabulary term is compiled into one Aho-Corasick automaton. Matches are
kept only on word boundaries, and ambiguous camera-movement words ("pan",
"roll", "truck", ...) additionally need camera context nearby and must not sit
in a culinary or household collocation ("frying pan", "bread roll").
"""

from __future__ import annotations

import logging
import re
from typing import Iterable

import ahocorasick

from spanlab.extraction.types import CandidateSpan
from spanlab.extraction.vocabulary import VocabularyStore

logger = logging.getLogger(__name__)

CLOSED_VOCAB_CONFIDENCE = 1.0
CONTEXT_WINDOW = 50
COLLOCATION_WINDOW = 20

AMBIGUOUS_ROLE = "camera.movement"

AMBIGUOUS_CAMERA_TERMS = frozenset({
    "pan", "pans", "panning", "panned",
    "roll", "rolls", "rolling", "rolled",
    "tilt", "tilts", "tilting", "tilted",
    "zoom", "zooms", "zooming", "zoomed",
    "drone", "drones",
    "crane", "cranes", "craning", "craned",
    "boom", "booms", "booming",
    "truck", "trucks", "trucking", "trucked",
    "push in", "pull out", "pull back",
})

CAMERA_CUE = re.compile(
    r"\b(?:camera|cameras|shot|shots|lens|frame|framing|cinematography|cinematic"
    r"|filming|filmed|video|footage)\b",
    re.IGNORECASE,
)

# "frying pan", "bread roll", "hair iron"
CULINARY_BEFORE = re.compile(
    r"\b(?:frying|fry|saut[eé]|sauce|iron|bread|dinner|hair|dough|cake|egg|spring"
    r"|cinnamon|sushi|baking|cooking|dice)\s*$",
    re.IGNORECASE,
)

# "pan the bread dough", "roll out the pastry"
CULINARY_AFTER = re.compile(
    r"^\s*(?:(?:out|up|over|the|a|an|some|more|of|with|and|her|his|their)\s+)*"
    r"(?:bread|dough|pastry|batter|sauce|eggs?|onions?|vegetables|pancakes?|meat|fish"
    r"|garlic|butter|sushi|hair|dinner|flour|cake|pie|tortillas?)\b",
    re.IGNORECASE,
)


def fold_case(text: str) -> str:
    """Lower-case ``text`` without changing its length.

    Characters whose lower-case form is longer than one code point are kept
    as-is so that offsets into the folded text are valid in the original.
    """
    return "".join(c if len(c.lower()) != 1 else c.lower() for c in text)


def is_word_bounded(text: str, start: int, end: int) -> bool:
    """True unless the match is glued to alphanumeric characters on either side."""
    if start > 0 and text[start].isalnum() and text[start - 1].isalnum():
        return False
    if end < len(text) and text[end - 1].isalnum() and text[end].isalnum():
        return False
    return True


def has_camera_context(text: str, start: int, end: int, window: int = CONTEXT_WINDOW) -> bool:
    """Look for an independent camera cue within ``window`` chars of the match.

    The matched term itself is blanked out so that e.g. "drone shot" does not
    count as its own context.
    """
    lo = max(0, start - window)
    hi = min(len(text), end + window)
    context = text[lo:start] + " " * (end - start) + text[end:hi]
    return CAMERA_CUE.search(context) is not None


def in_culinary_collocation(text: str, start: int, end: int) -> bool:
    before = text[max(0, start - COLLOCATION_WINDOW):start]
    after = text[end:end + COLLOCATION_WINDOW]
    return bool(CULINARY_BEFORE.search(before) or CULINARY_AFTER.search(after))


def build_automaton(terms: Iterable[str]) -> ahocorasick.Automaton:
    """Compile terms into an automaton whose value for each word is the word."""
    automaton = ahocorasick.Automaton()
    for term in terms:
        if term:
            automaton.add_word(term, term)
    if len(automaton):
        automaton.make_automaton()
    return automaton


class ClosedVocabularyMatcher:
    """Find every vocabulary term in a text in one automaton pass.

    Args:
        vocabulary: Loaded vocabulary store. Its categories are already
            validated against the taxonomy.
    """

    def __init__(self, vocabulary: VocabularyStore):
        self.vocabulary = vocabulary
        self._automaton = build_automaton(term for _, term in vocabulary.entries())
        logger.debug(f"[ClosedVocab] Built automaton with {len(self._automaton)} patterns")

    def extract(self, text: str) -> list[CandidateSpan]:
        if not text or not len(self.vocabulary):
            return []

        lowered = fold_case(text)
        spans: list[CandidateSpan] = []
        rejected = 0

        for end_index, pattern in self._automaton.iter(lowered):
            end = end_index + 1
            start = end - len(pattern)
            if not is_word_bounded(text, start, end):
                continue
            role = self.vocabulary.term_index[pattern]
            if not self._accept_ambiguous(text, pattern, role, start, end):
                rejected += 1
                continue
            spans.append(
                CandidateSpan(
                    text=text[start:end],
                    role=role,
                    confidence=CLOSED_VOCAB_CONFIDENCE,
                    start=start,
                    end=end,
                    source="closed-vocab",
                )
            )

        logger.debug(
            f"[ClosedVocab] {len(spans)} matches, {rejected} ambiguous terms rejected"
        )
        return spans

    @staticmethod
    def _accept_ambiguous(text: str, term: str, role: str, start: int, end: int) -> bool:
        if role != AMBIGUOUS_ROLE or term not in AMBIGUOUS_CAMERA_TERMS:
            return True
        if in_culinary_collocation(text, start, end):
            return False
        return has_camera_context(text, start, end)
