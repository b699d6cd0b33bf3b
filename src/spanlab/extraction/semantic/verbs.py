"""Tier 1.5a: action phrases anchored on known verbs.

Verb anchors are generated from base verbs plus an irregular-form table. Each
anchor is widened into a short phrase (preceding adverbs, following
modifiers and an optional object), then classified as movement, state or
gesture against prototype phrases.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import lru_cache

from spanlab.extraction.fast.closed_vocab import has_camera_context
from spanlab.extraction.semantic.prototypes import (
    ACTION_CLUSTERS,
    PrototypeClassifier,
)
from spanlab.extraction.semantic.embedder import TextEncoder
from spanlab.extraction.semantic.tokenize import DETERMINERS, Token, tokenize
from spanlab.extraction.types import CandidateSpan

logger = logging.getLogger(__name__)

MOVEMENT_VERBS = (
    "run", "walk", "jog", "sprint", "jump", "leap", "hop", "skip", "dance", "swim",
    "climb", "fly", "fall", "slide", "roll", "spin", "twirl", "turn", "bounce", "throw",
    "catch", "kick", "punch", "push", "pull", "lift", "carry", "grab", "reach", "eat",
    "drink", "cook", "chop", "read", "write", "type", "draw", "paint", "play", "sing",
    "shout", "scream", "laugh", "cry", "stare", "gaze", "watch", "fight", "drive", "ride",
    "cycle", "skate", "ski", "surf", "sail", "row", "paddle", "dive", "march", "crawl",
    "glide", "soar", "hover", "chase", "flee", "escape", "hide", "explore", "wander",
    "roam", "stroll", "race", "rush", "dash", "drift", "splash", "stretch", "bend",
    "twist", "stir", "swing", "stride", "creep", "sweep", "gallop", "tumble", "stumble",
)

STATE_VERBS = (
    "sit", "stand", "lie", "lay", "lean", "rest", "hang", "float", "wait", "sleep",
    "pose", "crouch", "kneel", "perch", "hold",
)

GESTURE_VERBS = (
    "wave", "point", "nod", "shake", "shrug", "bow", "salute", "beckon", "gesture",
    "signal", "clap", "wink", "smile", "frown", "grimace",
)

IRREGULAR_FORMS: dict[str, tuple[str, ...]] = {
    "sit": ("sat",),
    "stand": ("stood",),
    "lie": ("lay", "lain"),
    "lay": ("laid",),
    "hang": ("hung",),
    "sleep": ("slept",),
    "kneel": ("knelt", "kneeled"),
    "shake": ("shook", "shaken"),
    "run": ("ran",),
    "swim": ("swam", "swum"),
    "fly": ("flew", "flown"),
    "fall": ("fell", "fallen"),
    "throw": ("threw", "thrown"),
    "catch": ("caught",),
    "hold": ("held",),
    "eat": ("ate", "eaten"),
    "drink": ("drank", "drunk"),
    "write": ("wrote", "written"),
    "draw": ("drew", "drawn"),
    "sing": ("sang", "sung"),
    "fight": ("fought",),
    "drive": ("drove", "driven"),
    "ride": ("rode", "ridden"),
    "dive": ("dove", "dived"),
    "flee": ("fled",),
    "hide": ("hid", "hidden"),
    "leap": ("leapt", "leaped"),
    "spin": ("spun",),
    "swing": ("swung",),
    "read": ("read",),
    "bend": ("bent",),
    "slide": ("slid",),
    "stride": ("strode",),
    "creep": ("crept",),
    "sweep": ("swept",),
}

# Verbs that also name camera moves; suppressed near camera vocabulary.
CAMERA_AMBIGUOUS_VERBS = frozenset({
    "pan", "tilt", "track", "zoom", "dolly", "crane", "truck", "roll", "boom", "push",
    "pull", "orbit",
})

# Anchors that are meaningful without any surrounding description.
STANDALONE_VERBS = frozenset({
    "wait", "sleep", "rest", "smile", "nod", "wave", "kneel", "crouch", "sit", "stand",
    "float", "laugh", "cry", "frown", "shrug", "wink", "clap", "bow", "dance", "run",
    "swim", "fall",
})

EXCLUDED_VERBS = frozenset({
    "is", "are", "was", "were", "be", "been", "being", "has", "have", "had", "having",
    "do", "does", "did", "doing", "done", "get", "gets", "got", "getting", "make",
    "makes", "made", "making", "use", "uses", "used", "using", "keep", "keeps", "kept",
    "let", "lets", "begin", "begins", "began", "seem", "seems", "appear", "appears",
    "become", "becomes", "became", "shot", "capture", "captures", "captured", "capturing",
    "film", "films", "filmed", "filming", "emphasize", "enhance", "create", "creates",
    "maintain", "lit", "illuminate", "illuminates", "illuminated", "illuminating",
    "filter", "filters", "filtered", "filtering", "stream", "streams", "streaming",
    "pour", "pours", "pouring", "cast", "casts", "casting", "highlight", "highlights",
    "reflect", "reflects", "reflecting", "isolate", "guide", "frame", "frames", "framed",
    "framing", "focus", "focuses", "focused", "focusing", "track", "tracks", "tracking",
    "inspired", "reference", "remind", "reminds",
})

META_OBJECTS = frozenset({
    "subject", "subjects", "attention", "focus", "framing", "composition", "viewer",
    "audience", "scene", "shot", "mood", "atmosphere", "tension", "emotion", "narrative",
    "story",
})

LIGHTING_SUBJECTS = frozenset({
    "light", "lights", "lighting", "sunlight", "moonlight", "daylight", "shadow",
    "shadows", "glow", "glows", "ray", "rays", "beam", "beams", "haze", "mist", "fog",
})

# Gerunds used as adjectives after a determiner: "a winding path", "the rising sun".
ADJECTIVE_GERUNDS = frozenset({
    "winding", "curving", "twisting", "leading", "following", "living", "dining",
    "moving", "touching", "stunning", "striking", "gripping", "growing", "rising",
    "falling", "hanging", "floating",
})

_PROGRESSIVE_MARKERS = frozenset({"is", "are", "was", "were", "while", "and", "keeps", "starts"})

PREPOSITIONS = frozenset({
    "across", "through", "over", "into", "onto", "toward", "towards", "along", "around",
    "down", "up", "past", "under", "against", "on", "in", "at", "with",
})

_CONSONANT = "bcdfghjklmnpqrstvz"
_VOWEL_GROUPS = re.compile(r"[aeiou]+")


def _doubles_final_consonant(base: str) -> bool:
    return (
        len(base) >= 3
        and base[-1] in _CONSONANT
        and base[-1] not in "wxy"
        and base[-2] in "aeiou"
        and base[-3] not in "aeiou"
        and len(_VOWEL_GROUPS.findall(base)) == 1
    )


@lru_cache(maxsize=None)
def verb_forms(base: str) -> frozenset[str]:
    """Return the base verb and its inflections.

    Example:
        >>> sorted(verb_forms("run"))
        ['ran', 'run', 'running', 'runs']
    """
    base = base.lower()
    forms = {base}

    if base.endswith(("s", "sh", "ch", "x", "z", "o")):
        forms.add(base + "es")
    elif base.endswith("y") and base[-2:-1] in tuple(_CONSONANT):
        forms.add(base[:-1] + "ies")
    else:
        forms.add(base + "s")

    if base.endswith("ie"):
        forms.add(base[:-2] + "ying")
    elif base.endswith("e") and not base.endswith(("ee", "ye", "oe")):
        forms.add(base[:-1] + "ing")
    elif _doubles_final_consonant(base):
        forms.add(base + base[-1] + "ing")
    else:
        forms.add(base + "ing")

    if base in IRREGULAR_FORMS:
        forms.update(IRREGULAR_FORMS[base])
    elif base.endswith("e"):
        forms.add(base + "d")
    elif base.endswith("y") and base[-2:-1] in tuple(_CONSONANT):
        forms.add(base[:-1] + "ied")
    elif _doubles_final_consonant(base):
        forms.add(base + base[-1] + "ed")
    else:
        forms.add(base + "ed")

    return frozenset(forms)


@dataclass(frozen=True)
class VerbAnchor:
    base: str
    group: str  # "movement" | "state" | "gesture"


@lru_cache(maxsize=1)
def verb_index() -> dict[str, VerbAnchor]:
    """Map every generated verb form to its base and group. First group wins."""
    index: dict[str, VerbAnchor] = {}
    for group, bases in (("state", STATE_VERBS), ("gesture", GESTURE_VERBS), ("movement", MOVEMENT_VERBS)):
        for base in bases:
            for form in verb_forms(base):
                if form not in EXCLUDED_VERBS:
                    index.setdefault(form, VerbAnchor(base, group))
    return index


def classify_by_anchor(phrase: str, anchor: str | None) -> str:
    """Keyword fallback: state and gesture verbs by list, everything else is movement."""
    found = verb_index().get((anchor or "").lower())
    return found.group if found else "movement"


@dataclass
class ActionConfig:
    enabled: bool = True
    min_confidence: float = 0.75
    max_phrase_words: int = 5
    include_objects: bool = True


@dataclass(frozen=True)
class _Phrase:
    start: int
    end: int
    anchor: str


class ActionExtractor:
    """Extract action phrases around verb anchors.

    Args:
        encoder: Text encoder for prototype classification, or ``None`` for the
            keyword fallback.
        config: Extraction settings.
    """

    def __init__(self, encoder: TextEncoder | None = None, config: ActionConfig | None = None):
        self.config = config or ActionConfig()
        self.classifier = PrototypeClassifier(
            ACTION_CLUSTERS,
            encoder=encoder,
            min_confidence=self.config.min_confidence,
            fallback=classify_by_anchor,
        )
        self._index = verb_index()

    def warmup(self) -> None:
        self.classifier.warmup()

    def _anchor_at(self, tokens: list[Token], i: int) -> VerbAnchor | None:
        token = tokens[i]
        if not token.is_word:
            return None
        anchor = self._index.get(token.lower)
        if anchor is None:
            return None
        prev = tokens[i - 1].lower if i > 0 else ""
        if prev in DETERMINERS:
            return None
        if prev in LIGHTING_SUBJECTS:
            return None
        if (
            token.lower in ADJECTIVE_GERUNDS
            and prev
            and not tokens[i - 1].is_punct
            and prev not in _PROGRESSIVE_MARKERS
            and i + 1 < len(tokens)
            and tokens[i + 1].is_word
            and not tokens[i + 1].is_stop
        ):
            # "the slowly rising sun"
            return None
        return anchor

    def _is_anchor(self, token: Token) -> bool:
        return token.is_word and token.lower in self._index

    def _find_phrases(self, text: str, tokens: list[Token]) -> list[_Phrase]:
        phrases: list[_Phrase] = []
        last_end = -1
        budget = self.config.max_phrase_words

        for i in range(len(tokens)):
            anchor = self._anchor_at(tokens, i)
            if anchor is None:
                continue
            token = tokens[i]
            if anchor.base in CAMERA_AMBIGUOUS_VERBS and has_camera_context(text, token.start, token.end):
                continue

            lo = i
            while (
                lo - 1 >= 0
                and i - (lo - 1) + 1 <= budget
                and tokens[lo - 1].end > last_end
                and tokens[lo - 1].is_word
                and tokens[lo - 1].lower.endswith("ly")
                and not tokens[lo - 1].is_stop
            ):
                lo -= 1

            hi = i
            j = i + 1
            while j < len(tokens) and (j - lo + 1) <= budget:
                nxt = tokens[j]
                if nxt.is_punct or self._is_anchor(nxt):
                    break
                if not nxt.is_stop:
                    hi = j
                    j += 1
                    continue
                if not self.config.include_objects:
                    break
                # optional preposition, optional determiner, then a content word
                k = j
                if tokens[k].lower in PREPOSITIONS:
                    k += 1
                if k < len(tokens) and tokens[k].lower in DETERMINERS:
                    k += 1
                if (
                    k > j
                    and k < len(tokens)
                    and (k - lo + 1) <= budget
                    and tokens[k].is_word
                    and not tokens[k].is_stop
                    and not self._is_anchor(tokens[k])
                ):
                    hi = k
                    j = k + 1
                    continue
                break

            words = {t.lower for t in tokens[lo:hi + 1]}
            if words & META_OBJECTS:
                continue
            if lo == hi == i and anchor.base not in STANDALONE_VERBS:
                continue

            phrases.append(_Phrase(tokens[lo].start, tokens[hi].end, token.text))
            last_end = tokens[hi].end

        return phrases

    def extract(self, text: str) -> list[CandidateSpan]:
        if not text or not self.config.enabled:
            return []

        tokens = tokenize(text)
        phrases = self._find_phrases(text, tokens)
        if not phrases:
            return []

        labels = self.classifier.classify_batch(
            [text[p.start:p.end] for p in phrases],
            [p.anchor for p in phrases],
        )

        spans = [
            CandidateSpan(
                text=text[p.start:p.end],
                role=f"action.{c.label}",
                confidence=c.confidence,
                start=p.start,
                end=p.end,
                source="action-heuristic",
            )
            for p, c in zip(phrases, labels)
        ]
        logger.debug(f"[ActionExtractor] {len(spans)} action phrases")
        return spans
