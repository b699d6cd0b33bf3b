"""Embedding encoder for prototype classification.

Wraps sentence-transformers to turn short phrases into normalized dense
vectors. The model is loaded lazily on first use so that constructing the
extraction service stays cheap.

Example:
    >>> from spanlab.extraction.semantic.embedder import EmbeddingEncoder
    >>> encoder = EmbeddingEncoder()
    >>> vectors = encoder.encode_batch(["soft window light", "golden hour"])
    >>> vectors.shape
    (2, 384)
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

import numpy as np

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "BAAI/bge-small-en-v1.5"


@runtime_checkable
class TextEncoder(Protocol):
    """Anything that can embed a batch of phrases into L2-normalized rows."""

    def encode_batch(self, texts: list[str]) -> np.ndarray:
        ...


class EmbeddingEncoder:
    """Lazy sentence-transformers encoder.

    Attributes:
        model: Model name or local path.
        batch_size: Batch size passed to ``SentenceTransformer.encode``.
    """

    def __init__(self, model: str = DEFAULT_MODEL, batch_size: int = 32):
        self.model = model
        self.batch_size = batch_size
        self._embedder = None
        logger.debug(
            f"[EmbeddingEncoder] Initialized with model={self.model}, batch_size={batch_size}"
        )

    @property
    def is_loaded(self) -> bool:
        return self._embedder is not None

    def _load_model(self) -> None:
        """Load the sentence-transformers model on first use.

        Raises:
            RuntimeError: If model loading fails (network error, OOM, corrupted cache, etc.)
        """
        if self._embedder is not None:
            return

        from sentence_transformers import SentenceTransformer

        try:
            logger.debug(f"[EmbeddingEncoder] Loading model {self.model}...")
            self._embedder = SentenceTransformer(self.model)
            logger.info(f"[EmbeddingEncoder] Model {self.model} loaded")
        except Exception as e:
            error_msg = f"model loading failed for {self.model}: {e}"
            logger.error(f"[EmbeddingEncoder] {error_msg}")
            raise RuntimeError(error_msg) from e

    def encode_batch(self, texts: list[str]) -> np.ndarray:
        """Encode phrases to L2-normalized embeddings.

        Args:
            texts: Non-empty phrases.

        Returns:
            Array of shape ``(len(texts), dim)``; empty input gives shape ``(0, 0)``.

        Raises:
            ValueError: If any text is empty.
            RuntimeError: If model loading fails.
        """
        if not texts:
            return np.zeros((0, 0), dtype=np.float32)

        for i, text in enumerate(texts):
            if not isinstance(text, str) or not text:
                raise ValueError(f"Text at index {i} must be a non-empty string")

        self._load_model()
        logger.debug(f"[EmbeddingEncoder] Batch encoding {len(texts)} texts")

        embeddings = self._embedder.encode(
            texts,
            normalize_embeddings=True,
            show_progress_bar=False,
            batch_size=self.batch_size,
        )
        return np.asarray(embeddings, dtype=np.float32)
