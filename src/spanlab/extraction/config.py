"""Extraction configuration, presets and environment overrides."""

from __future__ import annotations

import copy
import os
from dataclasses import dataclass, field, replace
from pathlib import Path

from spanlab.extraction.gliner.labels import ALL_GLINER_LABELS, DEFAULT_THRESHOLD, LABEL_TO_TAXONOMY
from spanlab.extraction.gliner.model import DEFAULT_LOADER, DEFAULT_MAX_WIDTH, DEFAULT_MODEL
from spanlab.extraction.gliner.protocol import WorkerConfig
from spanlab.extraction.merge import MergeConfig
from spanlab.extraction.semantic.embedder import DEFAULT_MODEL as DEFAULT_EMBEDDING_MODEL
from spanlab.extraction.semantic.lighting import LightingConfig
from spanlab.extraction.semantic.verbs import ActionConfig

MIN_INIT_TIMEOUT_MS = 15000


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.lower() == "true"


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    return float(value) if value else default


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    return int(value) if value else default


@dataclass
class GlinerConfig:
    enabled: bool = False
    model: str = DEFAULT_MODEL
    loader: str = DEFAULT_LOADER
    threshold: float = DEFAULT_THRESHOLD
    timeout_ms: int = 2000
    init_timeout_ms: int = 60000
    use_worker: bool = True
    multi_label: bool = False
    max_width: int = DEFAULT_MAX_WIDTH
    # 0 keeps the torch default
    torch_threads: int = 0
    label_thresholds: dict[str, float] = field(default_factory=dict)
    labels: tuple[str, ...] = ALL_GLINER_LABELS

    @property
    def effective_init_timeout_ms(self) -> int:
        return max(self.init_timeout_ms, self.timeout_ms, MIN_INIT_TIMEOUT_MS)

    def to_worker_config(self) -> WorkerConfig:
        labels = [label.lower() for label in self.labels if label.lower() in LABEL_TO_TAXONOMY]
        return {
            "model": self.model,
            "loader": self.loader,
            "labels": labels,
            "label_map": {label: LABEL_TO_TAXONOMY[label] for label in labels},
            "label_thresholds": dict(self.label_thresholds),
            "threshold": self.threshold,
            "timeout_ms": self.timeout_ms,
            "max_width": self.max_width,
            "multi_label": self.multi_label,
            "torch_threads": self.torch_threads,
        }


@dataclass
class ExtractionConfig:
    name: str = "default"

    vocab_path: Path | None = None
    use_patterns: bool = True
    use_embeddings: bool = True
    embedding_model: str = DEFAULT_EMBEDDING_MODEL

    actions: ActionConfig = field(default_factory=ActionConfig)
    lighting: LightingConfig = field(default_factory=LightingConfig)
    gliner: GlinerConfig = field(default_factory=GlinerConfig)
    merge: MergeConfig = field(default_factory=MergeConfig)

    @classmethod
    def from_env(cls, base: ExtractionConfig | None = None) -> ExtractionConfig:
        """Apply ``SPANLAB_*`` environment variables on top of ``base``."""
        base = base or cls()
        vocab_path = os.environ.get("SPANLAB_VOCAB_PATH")
        strategy = os.environ.get("SPANLAB_MERGE_STRATEGY", base.merge.strategy).lower()
        if strategy not in ("longest", "confidence"):
            raise ValueError(f"SPANLAB_MERGE_STRATEGY must be 'longest' or 'confidence', got {strategy!r}")

        return replace(
            base,
            vocab_path=Path(vocab_path) if vocab_path else base.vocab_path,
            use_embeddings=_env_bool("SPANLAB_EMBEDDINGS_ENABLED", base.use_embeddings),
            embedding_model=os.environ.get("SPANLAB_EMBEDDING_MODEL", base.embedding_model),
            actions=replace(
                base.actions,
                enabled=_env_bool("SPANLAB_ACTIONS_ENABLED", base.actions.enabled),
            ),
            lighting=replace(
                base.lighting,
                enabled=_env_bool("SPANLAB_LIGHTING_ENABLED", base.lighting.enabled),
            ),
            gliner=replace(
                base.gliner,
                enabled=_env_bool("SPANLAB_OPEN_VOCAB_ENABLED", base.gliner.enabled),
                model=os.environ.get("SPANLAB_GLINER_MODEL", base.gliner.model),
                loader=os.environ.get("SPANLAB_GLINER_LOADER", base.gliner.loader),
                threshold=_env_float("SPANLAB_GLINER_THRESHOLD", base.gliner.threshold),
                timeout_ms=_env_int("SPANLAB_GLINER_TIMEOUT_MS", base.gliner.timeout_ms),
                init_timeout_ms=_env_int("SPANLAB_GLINER_INIT_TIMEOUT_MS", base.gliner.init_timeout_ms),
                use_worker=_env_bool("SPANLAB_GLINER_USE_WORKER", base.gliner.use_worker),
                multi_label=_env_bool("SPANLAB_GLINER_MULTI_LABEL", base.gliner.multi_label),
                torch_threads=_env_int("SPANLAB_GLINER_TORCH_THREADS", base.gliner.torch_threads),
            ),
            merge=replace(
                base.merge,
                use_source_priority=_env_bool("SPANLAB_MERGE_SOURCE_PRIORITY", base.merge.use_source_priority),
                strategy=strategy,
            ),
        )


CONFIG_PRESETS: dict[str, ExtractionConfig] = {
    "default": ExtractionConfig(name="default"),

    # Deterministic tiers only: no models are loaded.
    "fast": ExtractionConfig(
        name="fast",
        use_embeddings=False,
        gliner=GlinerConfig(enabled=False),
    ),

    "full": ExtractionConfig(
        name="full",
        gliner=GlinerConfig(enabled=True),
    ),

    "precision": ExtractionConfig(
        name="precision",
        actions=ActionConfig(min_confidence=0.8, max_phrase_words=4),
        lighting=LightingConfig(min_confidence=0.75, max_phrase_words=4),
        gliner=GlinerConfig(enabled=True, threshold=0.45),
        merge=MergeConfig(strategy="confidence"),
    ),
}


def get_preset(name: str) -> ExtractionConfig:
    try:
        return copy.deepcopy(CONFIG_PRESETS[name])
    except KeyError:
        raise ValueError(f"unknown preset {name!r}; choose from {sorted(CONFIG_PRESETS)}") from None
