"""Tier 1.5b: descriptive lighting phrases.

Anchored on light nouns ("shadows", "glow", "light", ...). An anchor needs at
least one preceding modifier ("soft shadows", "warm ambient glow", "golden
hour light") and is classified as quality, source, time of day or colour
temperature.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from spanlab.extraction.semantic.embedder import TextEncoder
from spanlab.extraction.semantic.prototypes import LIGHTING_CLUSTERS, PrototypeClassifier
from spanlab.extraction.semantic.tokenize import Token, tokenize
from spanlab.extraction.semantic.verbs import EXCLUDED_VERBS, verb_index
from spanlab.extraction.types import CandidateSpan

logger = logging.getLogger(__name__)

LIGHT_ANCHORS = frozenset({
    "shadow", "shadows", "silhouette", "silhouettes", "light", "lights", "lighting",
    "glow", "glows", "highlight", "highlights", "illumination", "luminance", "radiance",
    "beam", "beams", "ray", "rays", "backlight", "sunlight", "moonlight", "daylight",
    "candlelight", "firelight",
})

EXCLUDED_COMPOUNDS = (
    "traffic light", "traffic lights", "light switch", "light bulb", "light fixture",
    "light meter", "highlight reel", "light saber", "lightsaber", "light year",
    "light years",
)

LIGHTING_CLASS_TO_TAXONOMY = {
    "quality": "lighting.quality",
    "source": "lighting.source",
    "timeOfDay": "lighting.timeOfDay",
    "colorTemp": "lighting.colorTemp",
}


@dataclass
class LightingConfig:
    enabled: bool = True
    min_confidence: float = 0.70
    max_phrase_words: int = 5


class LightingExtractor:
    """Extract lighting description phrases.

    Args:
        encoder: Text encoder for prototype classification, or ``None`` for
            lexical classification.
        config: Extraction settings.
    """

    def __init__(self, encoder: TextEncoder | None = None, config: LightingConfig | None = None):
        self.config = config or LightingConfig()
        self.classifier = PrototypeClassifier(
            LIGHTING_CLUSTERS,
            encoder=encoder,
            min_confidence=self.config.min_confidence,
        )
        self._verbs = verb_index()

    def warmup(self) -> None:
        self.classifier.warmup()

    def _is_modifier(self, token: Token) -> bool:
        return (
            token.is_word
            and not token.is_stop
            and token.lower not in LIGHT_ANCHORS
            and token.lower not in self._verbs
            and token.lower not in EXCLUDED_VERBS
        )

    def _excluded(self, text: str, tokens: list[Token], lo: int, hi: int) -> bool:
        start = tokens[lo - 1].start if lo > 0 else tokens[lo].start
        end = tokens[hi + 1].end if hi + 1 < len(tokens) else tokens[hi].end
        window = text[start:end].lower()
        return any(compound in window for compound in EXCLUDED_COMPOUNDS)

    def _find_phrases(self, text: str, tokens: list[Token]) -> list[tuple[int, int, str]]:
        phrases: list[tuple[int, int, str]] = []
        budget = self.config.max_phrase_words
        last_hi = -1

        for i, token in enumerate(tokens):
            if not token.is_word or token.lower not in LIGHT_ANCHORS or i <= last_hi:
                continue

            lo = i
            while lo - 1 > last_hi and i - lo + 2 <= budget and self._is_modifier(tokens[lo - 1]):
                lo -= 1
            if lo == i:
                continue

            hi = i
            while hi + 1 < len(tokens) and hi - lo + 2 <= budget and self._is_modifier(tokens[hi + 1]):
                hi += 1

            if self._excluded(text, tokens, lo, hi):
                continue

            phrases.append((lo, hi, token.text))
            last_hi = hi

        return phrases

    def extract(self, text: str) -> list[CandidateSpan]:
        if not text or not self.config.enabled:
            return []

        tokens = tokenize(text)
        phrases = self._find_phrases(text, tokens)
        if not phrases:
            return []

        bounds = [(tokens[lo].start, tokens[hi].end) for lo, hi, _ in phrases]
        labels = self.classifier.classify_batch(
            [text[s:e] for s, e in bounds],
            [anchor for _, _, anchor in phrases],
        )

        spans = [
            CandidateSpan(
                text=text[s:e],
                role=LIGHTING_CLASS_TO_TAXONOMY[c.label],
                confidence=c.confidence,
                start=s,
                end=e,
                source="lighting",
            )
            for (s, e), c in zip(bounds, labels)
        ]
        logger.debug(f"[LightingExtractor] {len(spans)} lighting phrases")
        return spans
