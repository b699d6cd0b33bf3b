"""SpanLab extraction module."""
from .config import CONFIG_PRESETS, ExtractionConfig, GlinerConfig, get_preset
from .coverage import CoverageAssessment, assess_coverage
from .errors import OpenVocabularyError, SpanLabError, VocabularyLoadError
from .pipeline import (
    ExtractionOptions,
    SpanExtractor,
    estimate_coverage,
    extract_known_spans,
    extract_spans,
    get_extractor,
    get_vocab_stats,
    reset_extractor,
    warmup,
)
from .types import CandidateSpan, ExtractionResult, ExtractionStats, Span

__all__ = [
    "extract_spans",
    "extract_known_spans",
    "estimate_coverage",
    "get_vocab_stats",
    "warmup",
    "get_extractor",
    "reset_extractor",
    "SpanExtractor",
    "ExtractionOptions",
    "ExtractionConfig",
    "GlinerConfig",
    "CONFIG_PRESETS",
    "get_preset",
    "Span",
    "CandidateSpan",
    "ExtractionResult",
    "ExtractionStats",
    "CoverageAssessment",
    "assess_coverage",
    "SpanLabError",
    "VocabularyLoadError",
    "OpenVocabularyError",
]
