"""Regex rules for technical specifications.

Each rule maps a compiled pattern to a taxonomy id with a fixed confidence.
Rules run independently over the whole text; overlap between rules is left to
the merge step, except that a single aperture value is never reported inside
an aperture range that already matched.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Iterator

from spanlab.extraction.types import CandidateSpan

logger = logging.getLogger(__name__)

Validator = Callable[[str, "re.Match[str]"], bool]

ASPECT_HINT_WINDOW = 30

COMMON_ASPECT_RATIOS: frozenset[tuple[float, float]] = frozenset({
    (16, 9), (9, 16), (4, 3), (3, 4), (1, 1), (21, 9), (17, 9), (4, 5), (3, 2), (2, 1),
    (2.39, 1), (2.35, 1), (2.4, 1), (1.85, 1), (2.76, 1), (1.33, 1), (1.66, 1),
})

ASPECT_HINT = re.compile(r"\b(?:aspect|ratio)\b", re.IGNORECASE)
ODDS_HINT = re.compile(r"\b(?:odds|chance|chances|score|scored|won|lost|beat|wins?)\b", re.IGNORECASE)
DECADE_PREFIX = re.compile(r"(?:\bthe\s+|['’])$", re.IGNORECASE)
DECADE = re.compile(r"[1-9]0s", re.IGNORECASE)
DURATION_HINT = re.compile(
    r"\b(?:clip|clips|video|long|length|duration|runtime|loop|lasting|lasts|timelapse|for)\b",
    re.IGNORECASE,
)
DURATION_HINT_WINDOW = 20

FRAME_RATE = re.compile(
    r"\b\d{1,3}(?:\.\d{1,3})?\s?(?:fps|frames?\s+per\s+second|frames/s)\b",
    re.IGNORECASE,
)
DURATION = re.compile(
    r"\b\d{1,3}(?:\.\d+)?(?:\s?[-–]\s?\d{1,3}(?:\.\d+)?)?\s?"
    r"(?:seconds?|secs?|s|minutes?|mins?)\b",
    re.IGNORECASE,
)
RESOLUTION = re.compile(
    r"\b(?:[2468]|5\.7|12)[kK]\b"
    r"|\b(?:480|540|720|1080|1440|2160|4320)[pP]\b"
    r"|\b\d{3,4}\s?[x×]\s?\d{3,4}\b"
)
ASPECT_RATIO = re.compile(r"\b\d{1,2}(?:\.\d{1,2})?\s?:\s?\d{1,2}(?:\.\d{1,2})?\b")
FOCAL_LENGTH = re.compile(r"\b\d{1,4}\s?mm\b(?!\s*film)", re.IGNORECASE)
APERTURE_RANGE = re.compile(
    r"\b(?:[fF]/?|T)\d{1,2}(?:\.\d)?\s?[-–]\s?(?:[fF]/?|T)?\d{1,2}(?:\.\d)?\b"
)
APERTURE = re.compile(r"\b(?:[fF]/\d{1,2}(?:\.\d)?|[fF]\d{1,2}\.\d|T\d{1,2}\.\d)\b")
COLOR_TEMPERATURE = re.compile(r"\b\d{4,5}\s?(?:K|[kK]elvin)\b")


def _near(pattern: re.Pattern[str], text: str, start: int, end: int, window: int) -> bool:
    context = text[max(0, start - window):start] + " " + text[end:end + window]
    return pattern.search(context) is not None


def valid_aspect_ratio(text: str, match: re.Match[str]) -> bool:
    """Accept common ratios unless the text reads like odds or a score.

    Uncommon ratios need "aspect" or "ratio" nearby.
    """
    left, _, right = match.group(0).partition(":")
    ratio = (float(left.strip()), float(right.strip()))
    hinted = _near(ASPECT_HINT, text, match.start(), match.end(), ASPECT_HINT_WINDOW)
    if hinted:
        return True
    if ratio not in COMMON_ASPECT_RATIOS:
        return False
    return not _near(ODDS_HINT, text, match.start(), match.end(), ASPECT_HINT_WINDOW)


def valid_duration(text: str, match: re.Match[str]) -> bool:
    """Reject decades ("the 90s", "'80s", "80s aesthetic").

    A bare "30s" counts as a duration only with a cue such as "clip" or
    "long" nearby.
    """
    value = match.group(0)
    if not (value.lower().endswith("s") and value[-2].isdigit()):
        return True
    if DECADE_PREFIX.search(text[:match.start()]):
        return False
    if DECADE.fullmatch(value):
        return _near(DURATION_HINT, text, match.start(), match.end(), DURATION_HINT_WINDOW)
    return True


def valid_color_temperature(text: str, match: re.Match[str]) -> bool:
    kelvin = int(re.match(r"\d+", match.group(0)).group(0))
    return 1000 <= kelvin <= 12000


@dataclass(frozen=True)
class PatternRule:
    name: str
    taxonomy_id: str
    regex: re.Pattern[str]
    confidence: float
    validator: Validator | None = None

    def finditer(self, text: str) -> Iterator[re.Match[str]]:
        for match in self.regex.finditer(text):
            if self.validator is None or self.validator(text, match):
                yield match


TECHNICAL_PATTERNS: tuple[PatternRule, ...] = (
    PatternRule("frame_rate", "technical.frameRate", FRAME_RATE, 0.95),
    PatternRule("duration", "technical.duration", DURATION, 0.90, valid_duration),
    PatternRule("resolution", "technical.resolution", RESOLUTION, 0.95),
    PatternRule("aspect_ratio", "technical.aspectRatio", ASPECT_RATIO, 0.90, valid_aspect_ratio),
    PatternRule("focal_length", "camera.lens", FOCAL_LENGTH, 0.95),
    PatternRule("aperture_range", "camera.focus", APERTURE_RANGE, 0.90),
    PatternRule("aperture", "camera.focus", APERTURE, 0.90),
    PatternRule("color_temperature", "lighting.colorTemp", COLOR_TEMPERATURE, 0.90, valid_color_temperature),
)


class TechnicalPatternMatcher:
    """Run every technical rule over a text.

    Args:
        rules: Ordered rules. Defaults to ``TECHNICAL_PATTERNS``.
    """

    def __init__(self, rules: tuple[PatternRule, ...] = TECHNICAL_PATTERNS):
        self.rules = rules

    def extract(self, text: str) -> list[CandidateSpan]:
        if not text:
            return []

        spans: list[CandidateSpan] = []
        ranges: list[tuple[int, int]] = []

        for rule in self.rules:
            for match in rule.finditer(text):
                start, end = match.span()
                if rule.name == "aperture" and any(s <= start and end <= e for s, e in ranges):
                    continue
                if rule.name == "aperture_range":
                    ranges.append((start, end))
                spans.append(
                    CandidateSpan(
                        text=text[start:end],
                        role=rule.taxonomy_id,
                        confidence=rule.confidence,
                        start=start,
                        end=end,
                        source="pattern",
                    )
                )

        logger.debug(f"[Patterns] {len(spans)} technical matches")
        return spans
