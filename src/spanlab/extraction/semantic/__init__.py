"""Tier 1.5: action and lighting phrases classified against prototype embeddings."""

from .embedder import EmbeddingEncoder, TextEncoder
from .lighting import LightingConfig, LightingExtractor
from .prototypes import PrototypeClassifier
from .verbs import ActionConfig, ActionExtractor, verb_forms

__all__ = [
    "EmbeddingEncoder",
    "TextEncoder",
    "PrototypeClassifier",
    "ActionConfig",
    "ActionExtractor",
    "LightingConfig",
    "LightingExtractor",
    "verb_forms",
]
