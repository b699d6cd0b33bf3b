"""Nearest-prototype phrase classifier.

Each class is a cluster of short example phrases. A phrase is assigned to the
class whose closest example has the highest cosine similarity. Prototype
embeddings are computed once per classifier and cached for its lifetime.

Without an encoder the classifier falls back to lexical overlap with the
example phrases (or a caller-supplied rule).
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass
from typing import Callable

import numpy as np

from spanlab.extraction.semantic.embedder import TextEncoder

logger = logging.getLogger(__name__)

_WORD = re.compile(r"[a-z]+")


@dataclass(frozen=True)
class PrototypeCluster:
    name: str
    examples: tuple[str, ...]


@dataclass(frozen=True)
class Classification:
    label: str
    confidence: float
    similarity: float
    method: str  # "embedding" or "lexical"


LIGHTING_CLUSTERS: tuple[PrototypeCluster, ...] = (
    PrototypeCluster("quality", (
        "soft shadows", "harsh shadows", "diffused light", "hard light", "gentle glow",
        "dramatic shadows", "subtle highlights", "high contrast lighting", "moody low key light",
        "bright even illumination", "dappled light", "long shadows",
    )),
    PrototypeCluster("source", (
        "neon light", "candle light", "street lights", "window light", "fluorescent light",
        "lamp light", "headlight beams", "firelight glow", "flashlight beam", "screen glow",
        "moonlight", "sunlight through the window",
    )),
    PrototypeCluster("timeOfDay", (
        "golden hour light", "morning light", "evening light", "sunset glow", "dawn light",
        "midday sun", "twilight glow", "late afternoon light", "blue hour light", "night light",
    )),
    PrototypeCluster("colorTemp", (
        "warm light", "cool light", "warm amber glow", "cold blue light", "orange light",
        "tungsten light", "daylight balanced light", "teal light", "red light", "golden light",
    )),
)

ACTION_CLUSTERS: tuple[PrototypeCluster, ...] = (
    PrototypeCluster("movement", (
        "running across the field", "walking slowly", "jumping over", "climbing the stairs",
        "dancing wildly", "swimming", "driving fast", "flying through the air", "falling down",
        "spinning around", "chasing", "rushing forward",
    )),
    PrototypeCluster("state", (
        "standing still", "sitting quietly", "lying on the ground", "leaning against the wall",
        "kneeling", "sleeping", "waiting patiently", "resting", "floating motionless",
        "crouching low", "hanging", "perched",
    )),
    PrototypeCluster("gesture", (
        "waving hello", "nodding slowly", "smiling softly", "pointing at", "shrugging",
        "raising a hand", "clapping", "winking", "frowning", "reaching out",
        "brushing hair aside", "shaking head",
    )),
)

LexicalFallback = Callable[[str, "str | None"], str]


def cosine_similarity(vectors: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Row-wise cosine similarity between ``vectors`` (n, d) and ``matrix`` (m, d)."""
    a = vectors / np.maximum(np.linalg.norm(vectors, axis=1, keepdims=True), 1e-12)
    b = matrix / np.maximum(np.linalg.norm(matrix, axis=1, keepdims=True), 1e-12)
    return a @ b.T


def strip_anchor(phrase: str, anchor: str | None) -> str:
    """Remove whole-word occurrences of ``anchor`` from ``phrase``.

    The full phrase is returned when the anchor is all there is.
    """
    if not anchor:
        return phrase
    pattern = re.compile(rf"(?<![\w'-]){re.escape(anchor)}(?![\w'-])", re.IGNORECASE)
    content = " ".join(pattern.sub(" ", phrase).split())
    return content or phrase


class PrototypeClassifier:
    """Classify phrases against prototype clusters.

    Args:
        clusters: Classes and their example phrases, in priority order (ties
            go to the earlier cluster).
        encoder: Text encoder, or ``None`` to classify lexically.
        min_confidence: Floor applied to every confidence.
        fallback: Optional ``(phrase, anchor) -> label`` rule used instead of
            lexical overlap when no encoder is configured.
    """

    def __init__(
        self,
        clusters: tuple[PrototypeCluster, ...],
        encoder: TextEncoder | None = None,
        min_confidence: float = 0.7,
        fallback: LexicalFallback | None = None,
    ):
        if not clusters:
            raise ValueError("at least one prototype cluster is required")
        self.clusters = clusters
        self.encoder = encoder
        self.min_confidence = min_confidence
        self.fallback = fallback
        self._lock = threading.Lock()
        self._matrix: np.ndarray | None = None
        self._owners: np.ndarray | None = None
        self._vocab = [
            {w for example in c.examples for w in _WORD.findall(example.lower())}
            for c in clusters
        ]

    @property
    def labels(self) -> list[str]:
        return [c.name for c in self.clusters]

    @property
    def is_ready(self) -> bool:
        return self._matrix is not None

    def _prototypes(self) -> tuple[np.ndarray, np.ndarray]:
        if self._matrix is None:
            with self._lock:
                if self._matrix is None:
                    texts = [e for c in self.clusters for e in c.examples]
                    owners = np.array(
                        [i for i, c in enumerate(self.clusters) for _ in c.examples]
                    )
                    matrix = np.asarray(self.encoder.encode_batch(texts), dtype=np.float32)
                    logger.debug(
                        f"[PrototypeClassifier] Cached {len(texts)} prototype embeddings "
                        f"for {self.labels}"
                    )
                    self._owners = owners
                    self._matrix = matrix
        return self._matrix, self._owners

    def warmup(self) -> None:
        if self.encoder is not None:
            self._prototypes()

    def classify(self, phrase: str, anchor: str | None = None) -> Classification:
        return self.classify_batch([phrase], [anchor])[0]

    def classify_batch(
        self,
        phrases: list[str],
        anchors: list[str | None] | None = None,
    ) -> list[Classification]:
        """Classify several phrases with a single encoder call.

        Each phrase is encoded with its anchor removed, so the modifiers and
        objects decide the class rather than the anchor word itself.

        Raises:
            RuntimeError: If the encoder fails to load or encode.
        """
        if not phrases:
            return []
        anchors = anchors or [None] * len(phrases)

        if self.encoder is None:
            return [self._classify_lexical(p, a) for p, a in zip(phrases, anchors)]

        matrix, owners = self._prototypes()
        content = [strip_anchor(p, a) for p, a in zip(phrases, anchors)]
        vectors = np.asarray(self.encoder.encode_batch(content), dtype=np.float32)
        sims = cosine_similarity(vectors, matrix)

        results = []
        for row in sims:
            best = np.full(len(self.clusters), -1.0)
            np.maximum.at(best, owners, row)
            idx = int(np.argmax(best))
            similarity = float(min(1.0, max(0.0, best[idx])))
            results.append(
                Classification(
                    label=self.clusters[idx].name,
                    confidence=round(max(similarity, self.min_confidence), 2),
                    similarity=similarity,
                    method="embedding",
                )
            )
        return results

    def _classify_lexical(self, phrase: str, anchor: str | None) -> Classification:
        if self.fallback is not None:
            label = self.fallback(phrase, anchor)
        else:
            words = set(_WORD.findall(phrase.lower()))
            if anchor:
                words.discard(anchor.lower())
            overlaps = [len(words & vocab) for vocab in self._vocab]
            label = self.clusters[overlaps.index(max(overlaps))].name
        return Classification(
            label=label,
            confidence=round(self.min_confidence, 2),
            similarity=0.0,
            method="lexical",
        )
