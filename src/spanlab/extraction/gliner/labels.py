"""Open-vocabulary labels, their taxonomy mapping, thresholds and calibration."""

from __future__ import annotations

import logging
from typing import Mapping

from spanlab.shared.taxonomy import TAXONOMY, is_valid_category

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.3
MAX_THRESHOLD = 0.99

# (taxonomy id, labels sent to the model)
LABEL_SPECS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("subject.identity", (
        "person", "character", "animal", "creature", "object", "item", "vehicle", "food", "drink",
    )),
    ("subject.appearance", ("appearance", "physical trait", "body part")),
    ("subject.wardrobe", ("clothing", "wardrobe", "outfit", "accessory")),
    ("environment.location", ("place", "location", "building", "room")),
    ("environment.context", ("environment", "setting", "scene", "context", "atmosphere", "season")),
    ("environment.weather", ("weather",)),
    ("action.movement", ("action", "movement", "activity")),
    ("action.gesture", ("gesture",)),
    ("action.state", ("pose", "state")),
    ("subject.emotion", ("emotion", "expression")),
    ("style.aesthetic", ("mood", "style", "aesthetic")),
    ("shot.type", ("shot type",)),
    ("camera.movement", ("camera movement",)),
    ("camera.angle", ("camera angle",)),
    ("camera.lens", ("camera lens", "lens")),
    ("camera.focus", ("focus", "depth of field")),
    ("style.filmStock", ("film stock",)),
    ("style.colorGrade", ("color grade", "color grading", "color palette", "palette", "tones", "color")),
    ("lighting.quality", ("lighting",)),
    ("lighting.source", ("light source",)),
    ("lighting.timeOfDay", ("time of day",)),
    ("lighting.colorTemp", ("color temperature",)),
    ("technical.frameRate", ("frame rate", "fps")),
    ("technical.duration", ("duration",)),
    ("technical.aspectRatio", ("aspect ratio",)),
    ("technical.resolution", ("resolution",)),
    ("audio.ambient", ("audio", "sound", "ambient sound", "ambience", "ambiance")),
    ("audio.soundEffect", ("sound effect", "sfx")),
    ("audio.score", ("music", "score")),
)


def _humanize(attribute: str) -> str:
    """``timeOfDay`` / ``time_of_day`` -> ``time of day``."""
    out = []
    for ch in attribute.replace("_", " "):
        if ch.isupper():
            out.append(" " + ch.lower())
        else:
            out.append(ch)
    return " ".join("".join(out).split())


def build_label_map(specs=LABEL_SPECS) -> dict[str, str]:
    """Build and validate the label -> taxonomy id table.

    Curated specs come first; taxonomy-derived labels (category labels and
    humanized attribute names) only fill gaps. Entries whose taxonomy id is
    not valid are dropped with a warning.
    """
    label_map: dict[str, str] = {}

    def add(label: str, taxonomy_id: str) -> None:
        if not is_valid_category(taxonomy_id):
            logger.warning(f"[GlinerLabels] Dropping label {label!r}: unknown taxonomy id {taxonomy_id!r}")
            return
        label_map.setdefault(label.lower(), taxonomy_id)

    for taxonomy_id, labels in specs:
        for label in labels:
            add(label, taxonomy_id)

    for category in TAXONOMY:
        add(category.label, category.id)
        for attribute_id in category.attribute_ids:
            add(_humanize(attribute_id.split(".", 1)[1]), attribute_id)

    return label_map


LABEL_TO_TAXONOMY: dict[str, str] = build_label_map()
ALL_GLINER_LABELS: tuple[str, ...] = tuple(LABEL_TO_TAXONOMY)


def threshold_for(
    label: str,
    taxonomy_id: str | None,
    overrides: Mapping[str, float] | None = None,
    default: float = DEFAULT_THRESHOLD,
) -> float:
    """Effective threshold: override by label, then by taxonomy id, else default.

    Always clamped to ``[0, 0.99]``.
    """
    value = default
    if overrides:
        if label in overrides:
            value = overrides[label]
        elif taxonomy_id and taxonomy_id in overrides:
            value = overrides[taxonomy_id]
    return min(MAX_THRESHOLD, max(0.0, float(value)))


def calibrate_confidence(score: float, threshold: float) -> float:
    """Rescale a raw model score above ``threshold`` into ``[0.5, 1.0]``.

    Example:
        >>> calibrate_confidence(0.65, 0.3)
        0.75
    """
    t = min(MAX_THRESHOLD, max(0.0, threshold))
    s = min(1.0, max(0.0, score))
    scaled = max(0.0, (s - t) / (1.0 - t))
    return round(scaled * 0.5 + 0.5, 2)
