"""Read-only category taxonomy for span roles.

Roles are dotted ids: a top-level branch (``lighting``) optionally followed by
an attribute (``lighting.timeOfDay``). Every span emitted by the extraction
pipeline carries a role from ``VALID_CATEGORIES``.

Example:
    >>> from spanlab.shared.taxonomy import get_parent_category, is_valid_category
    >>> get_parent_category("camera.lens")
    'camera'
    >>> is_valid_category("camera.zoom")
    False
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

TAXONOMY_VERSION = "3.0.0"


@dataclass(frozen=True)
class TaxonomyCategory:
    """A top-level taxonomy branch and its attribute ids."""

    id: str
    label: str
    description: str
    attributes: Mapping[str, str] = field(default_factory=dict)
    parent_id: str | None = None

    @property
    def attribute_ids(self) -> tuple[str, ...]:
        return tuple(self.attributes.values())


def _category(id: str, label: str, description: str, **attributes: str) -> TaxonomyCategory:
    return TaxonomyCategory(
        id=id,
        label=label,
        description=description,
        attributes=MappingProxyType(dict(attributes)),
    )


TAXONOMY: tuple[TaxonomyCategory, ...] = (
    _category(
        "shot", "Shot Type", "Framing and vantage of the camera",
        type="shot.type",
    ),
    _category(
        "subject", "Subject & Character", "The focal point of the shot",
        identity="subject.identity",
        appearance="subject.appearance",
        wardrobe="subject.wardrobe",
        emotion="subject.emotion",
    ),
    _category(
        "action", "Action & Motion", "What the subject is doing (one continuous action)",
        movement="action.movement",
        state="action.state",
        gesture="action.gesture",
    ),
    _category(
        "environment", "Environment", "Where the scene takes place",
        location="environment.location",
        weather="environment.weather",
        context="environment.context",
    ),
    _category(
        "lighting", "Lighting", "Illumination and atmosphere",
        source="lighting.source",
        quality="lighting.quality",
        time_of_day="lighting.timeOfDay",
        color_temp="lighting.colorTemp",
    ),
    _category(
        "camera", "Camera", "Cinematography and framing",
        movement="camera.movement",
        lens="camera.lens",
        angle="camera.angle",
        focus="camera.focus",
    ),
    _category(
        "style", "Style & Aesthetic", "Visual treatment and medium",
        aesthetic="style.aesthetic",
        film_stock="style.filmStock",
        color_grade="style.colorGrade",
    ),
    _category(
        "technical", "Technical Specs", "Video technical parameters",
        aspect_ratio="technical.aspectRatio",
        frame_rate="technical.frameRate",
        resolution="technical.resolution",
        duration="technical.duration",
    ),
    _category(
        "audio", "Audio", "Sound and music elements",
        score="audio.score",
        sound_effect="audio.soundEffect",
        ambient="audio.ambient",
    ),
)

VALID_CATEGORIES: frozenset[str] = frozenset(
    [c.id for c in TAXONOMY] + [a for c in TAXONOMY for a in c.attribute_ids]
)

# Flat ids used by older clients and label tables.
LEGACY_ID_MAP: Mapping[str, str] = MappingProxyType({
    "identity": "subject.identity",
    "appearance": "subject.appearance",
    "wardrobe": "subject.wardrobe",
    "action": "action.movement",
    "emotion": "subject.emotion",
    "subject.action": "action.movement",
    "location": "environment.location",
    "weather": "environment.weather",
    "context": "environment.context",
    "lighting_source": "lighting.source",
    "lightingSource": "lighting.source",
    "lighting_quality": "lighting.quality",
    "lightingQuality": "lighting.quality",
    "time_of_day": "lighting.timeOfDay",
    "timeOfDay": "lighting.timeOfDay",
    "timeofday": "lighting.timeOfDay",
    "colorTemp": "lighting.colorTemp",
    "color_temp": "lighting.colorTemp",
    "framing": "shot.type",
    "camera.framing": "shot.type",
    "shot": "shot.type",
    "camera_move": "camera.movement",
    "cameraMove": "camera.movement",
    "movement": "camera.movement",
    "lens": "camera.lens",
    "angle": "camera.angle",
    "focus": "camera.focus",
    "aperture": "camera.focus",
    "depth_of_field": "camera.focus",
    "aesthetic": "style.aesthetic",
    "film_stock": "style.filmStock",
    "filmStock": "style.filmStock",
    "colorGrade": "style.colorGrade",
    "color_grade": "style.colorGrade",
    "aspect_ratio": "technical.aspectRatio",
    "aspectRatio": "technical.aspectRatio",
    "frame_rate": "technical.frameRate",
    "frameRate": "technical.frameRate",
    "fps": "technical.frameRate",
    "resolution": "technical.resolution",
    "specs": "technical.resolution",
    "duration": "technical.duration",
    "score": "audio.score",
    "sound_effect": "audio.soundEffect",
    "soundEffect": "audio.soundEffect",
    "sfx": "audio.soundEffect",
    "ambient": "audio.ambient",
    "ambience": "audio.ambient",
})


def is_valid_category(category_id: str | None) -> bool:
    return bool(category_id) and category_id in VALID_CATEGORIES


def resolve_category(category_id: str | None) -> str:
    """Map a legacy flat id to its namespaced form.

    Namespaced ids pass through unchanged. ``None`` resolves to ``""``.

    Example:
        >>> resolve_category("wardrobe")
        'subject.wardrobe'
    """
    if not category_id:
        return ""
    return LEGACY_ID_MAP.get(category_id, category_id)


def get_parent_category(category_id: str) -> str:
    """Return the top-level branch of a dotted id (``lighting.quality`` -> ``lighting``)."""
    return category_id.split(".", 1)[0]


def specificity(category_id: str) -> int:
    """Depth of a dotted id; attributes are more specific than their parent."""
    return category_id.count(".") + 1
