"""Span data types shared by every extraction tier."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal

Source = Literal["closed-vocab", "pattern", "action-heuristic", "lighting", "open-vocab"]


@dataclass(frozen=True)
class Span:
    """A labeled region of the input text.

    ``text`` is always ``input[start:end]`` with the input's original casing.
    """

    text: str
    role: str
    confidence: float
    start: int
    end: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class CandidateSpan:
    """A span produced by one extraction tier, before merging."""

    text: str
    role: str
    confidence: float
    start: int
    end: int
    source: Source

    @property
    def length(self) -> int:
        return self.end - self.start

    def overlaps(self, other: CandidateSpan) -> bool:
        return self.start < other.end and other.start < self.end

    def to_span(self) -> Span:
        return Span(
            text=self.text,
            role=self.role,
            confidence=self.confidence,
            start=self.start,
            end=self.end,
        )


@dataclass
class ExtractionStats:
    """Per-call observability counters. Not used for any decision."""

    phase: str = "multi-tier"
    closed_vocab_spans: int = 0
    pattern_spans: int = 0
    action_spans: int = 0
    lighting_spans: int = 0
    open_vocab_spans: int = 0
    merged_spans: int = 0
    tiers: list[str] = field(default_factory=list)
    latency_ms: dict[str, float] = field(default_factory=dict)
    total_latency_ms: float = 0.0

    @property
    def candidate_spans(self) -> int:
        return (
            self.closed_vocab_spans
            + self.pattern_spans
            + self.action_spans
            + self.lighting_spans
            + self.open_vocab_spans
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["candidate_spans"] = self.candidate_spans
        return data


@dataclass
class ExtractionResult:
    spans: list[Span]
    stats: ExtractionStats

    def to_dict(self) -> dict[str, Any]:
        return {
            "spans": [s.to_dict() for s in self.spans],
            "stats": self.stats.to_dict(),
        }
