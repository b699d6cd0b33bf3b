"""Tests for vocabulary loading."""
import json
import logging

import pytest

from spanlab.extraction.errors import VocabularyLoadError
from spanlab.extraction.vocabulary import VocabularyStore, load_vocabulary


class TestLoadVocabulary:
    def test_packaged_vocabulary_loads(self):
        vocab = load_vocabulary()
        assert "golden hour" in vocab["lighting.timeOfDay"]
        assert "35mm" in vocab["camera.lens"]

    def test_missing_file_degrades_to_empty(self, tmp_path, caplog):
        with caplog.at_level(logging.WARNING):
            vocab = load_vocabulary(tmp_path / "missing.json")
        assert vocab == {}
        assert "empty vocabulary" in caplog.text

    def test_invalid_json_degrades_to_empty(self, tmp_path):
        path = tmp_path / "vocab.json"
        path.write_text("{not json")
        assert load_vocabulary(path) == {}

    def test_non_object_root_degrades_to_empty(self, tmp_path):
        path = tmp_path / "vocab.json"
        path.write_text(json.dumps(["golden hour"]))
        assert load_vocabulary(path) == {}

    def test_strict_raises(self, tmp_path):
        with pytest.raises(VocabularyLoadError):
            load_vocabulary(tmp_path / "missing.json", strict=True)
        path = tmp_path / "vocab.json"
        path.write_text("[]")
        with pytest.raises(VocabularyLoadError):
            load_vocabulary(path, strict=True)

    def test_non_string_terms_skipped(self, tmp_path):
        path = tmp_path / "vocab.json"
        path.write_text(json.dumps({"camera.lens": ["35mm", 50, None, "", "telephoto"]}))
        assert load_vocabulary(path) == {"camera.lens": ["35mm", "telephoto"]}


class TestVocabularyStore:
    def test_legacy_ids_are_resolved(self):
        store = VocabularyStore.from_mapping({"lens": ["35mm"], "timeOfDay": ["dusk"]})
        assert store.term_index.get("35mm") == "camera.lens"
        assert store.term_index.get("dusk") == "lighting.timeOfDay"

    def test_unknown_categories_dropped(self, caplog):
        with caplog.at_level(logging.WARNING):
            store = VocabularyStore.from_mapping({"camera.zoom": ["zoomy"], "camera.lens": ["85mm"]})
        assert store.term_index.get("zoomy") is None
        assert "camera.zoom" in caplog.text
        assert len(store) == 1

    def test_first_mapping_wins(self):
        store = VocabularyStore.from_mapping({
            "lighting.timeOfDay": ["Golden Hour"],
            "style.colorGrade": ["golden hour"],
        })
        assert store.term_index.get("golden hour") == "lighting.timeOfDay"
        assert store.categories["style.colorGrade"] == []

    def test_stats(self):
        store = VocabularyStore.load()
        stats = store.stats()
        assert stats["total_terms"] == len(store)
        assert stats["total_categories"] == len(store.categories)
        lens = stats["categories"]["camera.lens"]
        assert lens["term_count"] == len(store.categories["camera.lens"])
        assert len(lens["sample_terms"]) == 5
