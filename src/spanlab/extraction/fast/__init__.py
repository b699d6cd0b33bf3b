"""Tier 1: deterministic extraction - zero model cost."""

from spanlab.extraction.fast.closed_vocab import ClosedVocabularyMatcher, build_automaton, has_camera_context
from spanlab.extraction.fast.patterns import TECHNICAL_PATTERNS, PatternRule, TechnicalPatternMatcher

__all__ = [
    "ClosedVocabularyMatcher",
    "build_automaton",
    "has_camera_context",
    # Technical patterns
    "PatternRule",
    "TECHNICAL_PATTERNS",
    "TechnicalPatternMatcher",
]
