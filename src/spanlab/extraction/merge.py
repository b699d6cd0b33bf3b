"""Merge candidate spans from every tier into one consistent set.

Spans are compared only against accepted spans of the same taxonomy branch
(``lighting.quality`` and ``lighting.timeOfDay`` compete, ``lighting.*`` and
``camera.*`` never do). Among overlapping spans the winner is decided by, in
order:

1. source-tier priority (closed vocabulary and patterns, then the
   open-vocabulary model, then the heuristic tiers), when enabled
2. taxonomy specificity (``camera.lens`` beats ``camera``)
3. ``longest``: longer span, then higher confidence;
   ``confidence``: higher confidence, then longer span
4. leftmost start

A last pass drops section-header labels such as ``## Camera`` or
``**Lighting:**`` that the tiers picked up as content.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Iterable, Literal

from spanlab.extraction.types import CandidateSpan, Span
from spanlab.shared.taxonomy import get_parent_category, is_valid_category, specificity

logger = logging.getLogger(__name__)

Strategy = Literal["longest", "confidence"]

SOURCE_PRIORITY: dict[str, int] = {
    "closed-vocab": 3,
    "pattern": 3,
    "open-vocab": 2,
    "lighting": 1,
    "action-heuristic": 1,
}

SECTION_HEADER_LABELS = frozenset({
    "camera", "style", "lighting", "subject", "action", "environment", "audio",
    "technical", "shot", "shot type", "scene", "mood", "composition", "color",
    "motion", "setting", "sound", "music", "specs", "technical specs", "camera movement",
})

_MARKDOWN_HEADING = re.compile(r"^\s*#{1,6}\s*")
_EMPHASIS_OPEN = re.compile(r"(?:\*\*|__)\s*$")
_EMPHASIS_CLOSE = re.compile(r"^\s*:?\s*(?:\*\*|__)")
_LABEL_COLON = re.compile(r"^\s*(?:\*\*|__)?\s*:")


@dataclass
class MergeConfig:
    use_source_priority: bool = True
    strategy: Strategy = "longest"
    filter_section_headers: bool = True


def is_well_formed(candidate: CandidateSpan, text: str) -> bool:
    """Structural validity: offsets in range, non-empty text, known role."""
    start, end = candidate.start, candidate.end
    if not isinstance(start, int) or not isinstance(end, int):
        return False
    if isinstance(start, bool) or isinstance(end, bool):
        return False
    if start < 0 or end <= start or end > len(text):
        return False
    if not isinstance(candidate.text, str) or not candidate.text.strip():
        return False
    if candidate.text != text[start:end]:
        return False
    confidence = candidate.confidence
    if not isinstance(confidence, (int, float)) or not math.isfinite(confidence):
        return False
    if not 0.0 <= confidence <= 1.0:
        return False
    return is_valid_category(candidate.role)


def _rank(span: CandidateSpan, config: MergeConfig) -> tuple:
    priority = SOURCE_PRIORITY.get(span.source, 0) if config.use_source_priority else 0
    if config.strategy == "confidence":
        size = (span.confidence, span.length)
    else:
        size = (span.length, span.confidence)
    return (priority, specificity(span.role), *size, -span.start)


def beats(a: CandidateSpan, b: CandidateSpan, config: MergeConfig) -> bool:
    """True if ``a`` wins an overlap against ``b``."""
    ra, rb = _rank(a, config), _rank(b, config)
    if ra != rb:
        return ra > rb
    return (a.end, a.role, a.text) < (b.end, b.role, b.text)


def is_section_header(span: CandidateSpan, text: str) -> bool:
    label = span.text.strip().lower().rstrip(":").strip()
    if len(label.split()) > 2 or label not in SECTION_HEADER_LABELS:
        return False

    line_start = text.rfind("\n", 0, span.start) + 1
    line_end = text.find("\n", span.end)
    if line_end == -1:
        line_end = len(text)
    prefix = text[line_start:span.start]
    suffix = text[span.end:line_end]

    if _MARKDOWN_HEADING.match(text[line_start:line_end]):
        return True
    if _EMPHASIS_OPEN.search(prefix) and _EMPHASIS_CLOSE.match(suffix):
        return True
    return prefix.strip() in ("", "-", "*") and bool(_LABEL_COLON.match(suffix))


def resolve_overlaps(
    candidates: Iterable[CandidateSpan],
    text: str,
    config: MergeConfig | None = None,
) -> list[CandidateSpan]:
    """Resolve same-branch overlaps and return the surviving candidates."""
    config = config or MergeConfig()

    valid = []
    dropped = 0
    for c in candidates:
        if is_well_formed(c, text):
            valid.append(c)
        else:
            dropped += 1
    if dropped:
        logger.debug(f"[Merge] Dropped {dropped} malformed candidates")

    valid.sort(key=lambda c: (
        c.start, -c.end, -c.confidence, -SOURCE_PRIORITY.get(c.source, 0), c.role, c.text, c.source,
    ))

    accepted: dict[str, list[CandidateSpan]] = {}
    for candidate in valid:
        branch = accepted.setdefault(get_parent_category(candidate.role), [])
        rivals = [s for s in branch if s.overlaps(candidate)]
        if not rivals:
            branch.append(candidate)
            continue
        if all(beats(candidate, rival, config) for rival in rivals):
            for rival in rivals:
                branch.remove(rival)
            branch.append(candidate)

    merged = [s for branch in accepted.values() for s in branch]

    if config.filter_section_headers:
        kept = [s for s in merged if not is_section_header(s, text)]
        if len(kept) != len(merged):
            logger.debug(f"[Merge] Removed {len(merged) - len(kept)} section-header spans")
        merged = kept

    merged.sort(key=lambda s: (s.start, s.end, s.role))
    return merged


def merge_spans(
    candidates: Iterable[CandidateSpan],
    text: str,
    config: MergeConfig | None = None,
) -> list[Span]:
    """Merge candidates and project the survivors to public spans."""
    return [c.to_span() for c in resolve_overlaps(candidates, text, config)]
