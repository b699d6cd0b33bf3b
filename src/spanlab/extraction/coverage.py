"""Fast-path coverage assessment.

Decides whether the merged spans describe a prompt well enough to skip the
LLM fallback stage. Longer prompts are expected to yield more spans; a few
high-confidence technical spans are enough for sparse prompts; prompts of 80
words or more also need at least two of the subject/action/environment
branches covered.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from typing import Any, Iterable

from spanlab.extraction.types import Span
from spanlab.shared.taxonomy import get_parent_category

WORD_RE = re.compile(r"\b[\w'-]+\b")

HIGH_SIGNAL_BRANCHES = ("technical", "camera", "shot", "style", "audio", "lighting")
CORE_BRANCHES = ("subject", "action", "environment")

OPEN_VOCAB_WORD_COUNT = 80


@dataclass
class CoverageConfig:
    max_spans: int = 60
    min_confidence: float = 0.5
    min_coverage_percent: float = 30.0
    min_spans_threshold: int = 8
    sparse_high_confidence_threshold: float = 0.8
    sparse_min_spans: int = 3
    sparse_min_signal_spans: int = 2


@dataclass
class CoverageAssessment:
    accept: bool
    needs_fallback: bool
    reason: str
    span_count: int
    word_count: int
    expected_min_spans: int
    coverage_percent: float
    avg_confidence: float
    high_signal_count: int
    sparse_high_confidence_accepted: bool
    core_categories: dict[str, bool] = field(default_factory=dict)

    @property
    def core_category_count(self) -> int:
        return sum(self.core_categories.values())

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["core_category_count"] = self.core_category_count
        return data


def count_words(text: str) -> int:
    return len(text.split())


def expected_min_span_count(text: str, max_spans: int | None = 60) -> int:
    """Minimum span count expected for a prompt of this length."""
    words = count_words(text)
    if words < 40:
        expected = 1
    elif words < 80:
        expected = 4
    elif words < 140:
        expected = 8
    elif words < 220:
        expected = 12
    else:
        expected = 15
    limit = max_spans if max_spans and max_spans > 0 else 60
    return max(1, min(expected, limit))


def coverage_percent(spans: Iterable[Span], text: str) -> float:
    """Percentage of words that overlap at least one span."""
    words = [(m.start(), m.end()) for m in WORD_RE.finditer(text)]
    if not words:
        return 0.0
    covered = set()
    for span in spans:
        for i, (start, end) in enumerate(words):
            if end <= span.start:
                continue
            if start >= span.end:
                break
            covered.add(i)
    return len(covered) / len(words) * 100


def is_high_signal_role(role: str) -> bool:
    return get_parent_category(role.lower()) in HIGH_SIGNAL_BRANCHES


def core_category_coverage(spans: Iterable[Span]) -> dict[str, bool]:
    present = {get_parent_category(s.role) for s in spans}
    return {branch: branch in present for branch in CORE_BRANCHES}


def assess_coverage(
    spans: list[Span],
    text: str,
    config: CoverageConfig | None = None,
    open_vocab_enabled: bool = False,
    open_vocab_ready: bool = False,
) -> CoverageAssessment:
    config = config or CoverageConfig()

    span_count = len(spans)
    word_count = count_words(text)
    expected = expected_min_span_count(text, config.max_spans)
    percent = coverage_percent(spans, text)
    avg_confidence = sum(s.confidence for s in spans) / span_count if spans else 0.0
    high_threshold = max(config.sparse_high_confidence_threshold, config.min_confidence)
    high_signal = sum(
        1 for s in spans if s.confidence >= high_threshold and is_high_signal_role(s.role)
    )
    sparse_accepted = (
        percent < config.min_coverage_percent
        and span_count >= config.sparse_min_spans
        and avg_confidence >= high_threshold
        and high_signal >= config.sparse_min_signal_spans
    )
    if word_count >= OPEN_VOCAB_WORD_COUNT:
        expected = max(expected, config.min_spans_threshold)
    core = core_category_coverage(spans)
    accept = span_count >= expected or sparse_accepted

    if word_count >= OPEN_VOCAB_WORD_COUNT and open_vocab_enabled and not open_vocab_ready:
        reason = "open vocabulary required but not ready"
    elif word_count >= OPEN_VOCAB_WORD_COUNT and sum(core.values()) < 2:
        reason = "insufficient subject/action/environment coverage"
    elif not accept:
        reason = f"{span_count} spans below expected {expected}"
    elif span_count < expected:
        reason = "sparse high-confidence spans"
    else:
        reason = "span count"

    return CoverageAssessment(
        accept=accept,
        needs_fallback=reason not in ("span count", "sparse high-confidence spans"),
        reason=reason,
        span_count=span_count,
        word_count=word_count,
        expected_min_spans=expected,
        coverage_percent=round(percent, 2),
        avg_confidence=round(avg_confidence, 4),
        high_signal_count=high_signal,
        sparse_high_confidence_accepted=sparse_accepted,
        core_categories=core,
    )
