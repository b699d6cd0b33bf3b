"""GLiNER model loading and inference.

Provides:
- Model loading by name via ``GLiNER.from_pretrained`` or a pluggable
  ``module:callable`` loader (used by tests and custom deployments)
- Truncation detection (fail loudly if GLiNER truncates input)
- Per-label threshold filtering, taxonomy mapping and confidence calibration
"""

from __future__ import annotations

import importlib
import logging
import warnings
from typing import Any, Callable, Mapping

from spanlab.extraction.gliner.labels import calibrate_confidence, threshold_for
from spanlab.extraction.gliner.protocol import Detection, WorkerConfig

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "urchade/gliner_small-v2.1"
DEFAULT_LOADER = "gliner"
DEFAULT_MAX_WIDTH = 12

WARMUP_TEXT = "Low-Angle Shot, 24fps, 16:9, golden hour"


class TruncationError(Exception):
    """Raised when GLiNER truncates input, meaning tokens were lost."""


def load_gliner(config: WorkerConfig) -> Any:
    """Default loader: ``GLiNER.from_pretrained(config["model"])``."""
    from gliner import GLiNER

    torch_threads = config.get("torch_threads")
    if torch_threads:
        import torch

        torch.set_num_threads(torch_threads)
        logger.info(f"[GlinerModel] torch threads set to {torch_threads}")

    model = GLiNER.from_pretrained(config["model"])
    max_width = config.get("max_width")
    if max_width and hasattr(model, "config") and hasattr(model.config, "max_width"):
        model.config.max_width = max_width
    return model


def resolve_loader(spec: str) -> Callable[[WorkerConfig], Any]:
    """Resolve ``"gliner"`` or a ``"package.module:callable"`` import path."""
    if not spec or spec == DEFAULT_LOADER:
        return load_gliner
    module_name, sep, attr = spec.partition(":")
    if not sep or not attr:
        raise ValueError(f"loader must be 'gliner' or 'module:callable', got {spec!r}")
    return getattr(importlib.import_module(module_name), attr)


def load_model(config: WorkerConfig) -> Any:
    loader = resolve_loader(config.get("loader", DEFAULT_LOADER))
    logger.info(f"[GlinerModel] Loading {config['model']} via {config.get('loader', DEFAULT_LOADER)}")
    return loader(config)


def predict(
    model: Any,
    text: str,
    labels: list[str],
    label_map: Mapping[str, str],
    threshold: float,
    label_thresholds: Mapping[str, float] | None = None,
    multi_label: bool = False,
) -> list[Detection]:
    """Run the model and keep calibrated detections that map to the taxonomy.

    The model is queried at the lowest effective threshold across labels;
    each detection is then held to its own label's threshold.

    Returns:
        Detections sorted by position, one per ``(start, end, role)``.

    Raises:
        TruncationError: If GLiNER emits a truncation warning.
    """
    if not text or not text.strip() or not labels:
        return []

    effective = {
        label: threshold_for(label, label_map.get(label), label_thresholds, threshold)
        for label in labels
    }
    floor = min(effective.values())

    with warnings.catch_warnings(record=True) as caught_warnings:
        warnings.simplefilter("always")
        raw_entities = model.predict_entities(
            text,
            labels,
            threshold=floor,
            flat_ner=not multi_label,
            multi_label=multi_label,
        )

    for w in caught_warnings:
        msg = str(w.message).lower()
        if "truncat" in msg or "max_len" in msg:
            raise TruncationError(
                f"GLiNER truncated input ({len(text)} chars). Warning: {w.message}"
            )

    detections: list[Detection] = []
    seen: set[tuple[int, int, str]] = set()

    for ent in raw_entities:
        label = str(ent["label"]).lower()
        role = label_map.get(label)
        if role is None:
            continue
        score = float(ent["score"])
        label_threshold = effective.get(label, threshold_for(label, role, label_thresholds, threshold))
        if score < label_threshold:
            continue
        start, end = int(ent["start"]), int(ent["end"])
        key = (start, end, role)
        if key in seen:
            continue
        seen.add(key)
        detections.append({
            "text": ent["text"],
            "label": label,
            "role": role,
            "score": score,
            "confidence": calibrate_confidence(score, label_threshold),
            "start": start,
            "end": end,
        })

    detections.sort(key=lambda d: (d["start"], d["end"], d["role"]))
    return detections
