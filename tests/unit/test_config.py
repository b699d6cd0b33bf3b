"""Tests for extraction configuration and presets."""
from pathlib import Path

import pytest

from spanlab.extraction.config import (
    CONFIG_PRESETS,
    MIN_INIT_TIMEOUT_MS,
    ExtractionConfig,
    GlinerConfig,
    get_preset,
)
from spanlab.extraction.gliner.labels import LABEL_TO_TAXONOMY


class TestDefaults:
    def test_default_config(self):
        config = ExtractionConfig()
        assert config.use_patterns
        assert config.use_embeddings
        assert not config.gliner.enabled
        assert config.gliner.use_worker
        assert config.merge.strategy == "longest"
        assert config.merge.use_source_priority

    def test_effective_init_timeout(self):
        assert GlinerConfig(init_timeout_ms=100, timeout_ms=200).effective_init_timeout_ms == MIN_INIT_TIMEOUT_MS
        assert GlinerConfig(init_timeout_ms=100, timeout_ms=30000).effective_init_timeout_ms == 30000
        assert GlinerConfig(init_timeout_ms=90000).effective_init_timeout_ms == 90000

    def test_worker_config(self):
        wc = GlinerConfig(labels=("Person", "lens", "not a label"), label_thresholds={"person": 0.6}).to_worker_config()
        assert wc["labels"] == ["person", "lens"]
        assert wc["label_map"] == {"person": LABEL_TO_TAXONOMY["person"], "lens": LABEL_TO_TAXONOMY["lens"]}
        assert wc["label_thresholds"] == {"person": 0.6}


class TestPresets:
    def test_known_presets(self):
        assert set(CONFIG_PRESETS) == {"default", "fast", "full", "precision"}
        fast = get_preset("fast")
        assert not fast.use_embeddings
        assert not fast.gliner.enabled
        assert get_preset("full").gliner.enabled
        assert get_preset("precision").merge.strategy == "confidence"

    def test_presets_are_copies(self):
        preset = get_preset("full")
        preset.gliner.enabled = False
        assert CONFIG_PRESETS["full"].gliner.enabled

    def test_unknown_preset(self):
        with pytest.raises(ValueError, match="unknown preset"):
            get_preset("turbo")


class TestFromEnv:
    def test_overrides(self, monkeypatch, tmp_path):
        vocab = tmp_path / "vocab.json"
        monkeypatch.setenv("SPANLAB_VOCAB_PATH", str(vocab))
        monkeypatch.setenv("SPANLAB_EMBEDDINGS_ENABLED", "false")
        monkeypatch.setenv("SPANLAB_OPEN_VOCAB_ENABLED", "TRUE")
        monkeypatch.setenv("SPANLAB_GLINER_TIMEOUT_MS", "500")
        monkeypatch.setenv("SPANLAB_GLINER_THRESHOLD", "0.4")
        monkeypatch.setenv("SPANLAB_MERGE_STRATEGY", "Confidence")

        config = ExtractionConfig.from_env()
        assert config.vocab_path == Path(vocab)
        assert not config.use_embeddings
        assert config.gliner.enabled
        assert config.gliner.timeout_ms == 500
        assert config.gliner.threshold == 0.4
        assert config.merge.strategy == "confidence"

    def test_base_kept_when_unset(self, monkeypatch):
        for name in ("SPANLAB_EMBEDDINGS_ENABLED", "SPANLAB_OPEN_VOCAB_ENABLED", "SPANLAB_MERGE_STRATEGY"):
            monkeypatch.delenv(name, raising=False)
        config = ExtractionConfig.from_env(get_preset("precision"))
        assert config.name == "precision"
        assert config.gliner.enabled
        assert config.gliner.threshold == 0.45
        assert config.merge.strategy == "confidence"

    def test_does_not_mutate_base(self, monkeypatch):
        monkeypatch.setenv("SPANLAB_ACTIONS_ENABLED", "false")
        base = get_preset("fast")
        config = ExtractionConfig.from_env(base)
        assert not config.actions.enabled
        assert base.actions.enabled

    def test_invalid_strategy(self, monkeypatch):
        monkeypatch.setenv("SPANLAB_MERGE_STRATEGY", "shortest")
        with pytest.raises(ValueError, match="SPANLAB_MERGE_STRATEGY"):
            ExtractionConfig.from_env()
