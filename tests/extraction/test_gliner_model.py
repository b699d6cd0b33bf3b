"""Tests for GLiNER inference post-processing (fake model, no weights)."""
import pytest

from fake_models import DuplicateGliner, FakeGliner, TruncatingGliner, load_fake
from spanlab.extraction.config import GlinerConfig
from spanlab.extraction.gliner.model import (
    TruncationError,
    load_gliner,
    load_model,
    predict,
    resolve_loader,
)

LABELS = ["person", "clothing", "location", "lighting"]
LABEL_MAP = {
    "person": "subject.identity",
    "clothing": "subject.wardrobe",
    "location": "environment.location",
    "lighting": "lighting.quality",
}
TEXT = "a woman in a red coat on a rooftop"


def roles(detections):
    return [(d["text"], d["role"]) for d in detections]


class TestPredict:
    def test_maps_labels_to_roles(self):
        detections = predict(FakeGliner(), TEXT, LABELS, LABEL_MAP, threshold=0.3)
        assert roles(detections) == [
            ("woman", "subject.identity"),
            ("red coat", "subject.wardrobe"),
            ("rooftop", "environment.location"),
        ]
        for d in detections:
            assert TEXT[d["start"]:d["end"]] == d["text"]
            assert 0.5 <= d["confidence"] <= 1.0

    def test_calibrated_confidence_grows_with_score(self):
        detections = {d["label"]: d for d in predict(FakeGliner(), TEXT, LABELS, LABEL_MAP, threshold=0.3)}
        assert detections["person"]["confidence"] > detections["location"]["confidence"]
        assert detections["person"]["score"] == 0.9

    def test_per_label_threshold(self):
        detections = predict(
            FakeGliner(), TEXT, LABELS, LABEL_MAP, threshold=0.3, label_thresholds={"clothing": 0.85},
        )
        assert ("red coat", "subject.wardrobe") not in roles(detections)
        assert ("woman", "subject.identity") in roles(detections)

    def test_global_threshold(self):
        detections = predict(FakeGliner(), TEXT, LABELS, LABEL_MAP, threshold=0.5)
        assert ("rooftop", "environment.location") not in roles(detections)

    def test_unmapped_labels_skipped(self):
        label_map = {k: v for k, v in LABEL_MAP.items() if k != "person"}
        detections = predict(FakeGliner(), TEXT, LABELS, label_map, threshold=0.3)
        assert all(d["label"] != "person" for d in detections)

    def test_duplicates_removed(self):
        assert len(predict(DuplicateGliner(), TEXT, LABELS, LABEL_MAP, 0.3)) == 3

    def test_truncation_raises(self):
        with pytest.raises(TruncationError):
            predict(TruncatingGliner(), TEXT, LABELS, LABEL_MAP, 0.3)

    def test_blank_input(self):
        model = FakeGliner()
        assert predict(model, "   ", LABELS, LABEL_MAP, 0.3) == []
        assert predict(model, TEXT, [], LABEL_MAP, 0.3) == []
        assert model.calls == 0


class TestLoaders:
    def test_default_loader(self):
        assert resolve_loader("gliner") is load_gliner
        assert resolve_loader("") is load_gliner

    def test_import_path(self):
        assert resolve_loader("fake_models:load_fake") is load_fake

    def test_bad_spec(self):
        with pytest.raises(ValueError):
            resolve_loader("fake_models")

    def test_missing_callable(self):
        with pytest.raises(AttributeError):
            resolve_loader("fake_models:nope")

    def test_load_model(self):
        config = GlinerConfig(loader="fake_models:load_fake").to_worker_config()
        model = load_model(config)
        assert isinstance(model, FakeGliner)
        assert model.config["loader"] == "fake_models:load_fake"
