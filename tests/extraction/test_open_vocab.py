"""Tests for the Tier 2 extractor with the in-process backend."""
import pytest

from conftest import FAKE_LOADER
from spanlab.extraction.config import GlinerConfig
from spanlab.extraction.errors import WorkerCrashedError
from spanlab.extraction.gliner.client import GlinerWorkerClient
from spanlab.extraction.gliner.extractor import InProcessGliner, OpenVocabularyExtractor


class FailingBackend:
    is_ready = True

    def __init__(self, error):
        self.error = error

    def ensure_ready(self):
        return True

    def infer(self, text, timeout_ms=None):
        raise self.error

    def warmup(self):
        raise self.error

    def close(self):
        pass


class OutOfRangeBackend(FailingBackend):
    def __init__(self):
        super().__init__(None)

    def infer(self, text, timeout_ms=None):
        return [
            {"text": "x", "label": "person", "role": "subject.identity", "score": 0.9,
             "confidence": 0.9, "start": 0, "end": 500},
            {"text": "a", "label": "person", "role": "subject.identity", "score": 0.9,
             "confidence": 0.9, "start": 0, "end": 1},
        ]


@pytest.fixture
def open_vocab(in_process_gliner_config):
    ex = OpenVocabularyExtractor(in_process_gliner_config)
    yield ex
    ex.close()


class TestOpenVocabularyExtractor:
    def test_backend_selection(self, in_process_gliner_config):
        assert isinstance(OpenVocabularyExtractor(in_process_gliner_config).backend, InProcessGliner)
        worker = OpenVocabularyExtractor(GlinerConfig(enabled=True, loader=FAKE_LOADER))
        assert isinstance(worker.backend, GlinerWorkerClient)
        assert worker.backend.init_timeout_ms >= 15000

    def test_extract(self, open_vocab):
        text = "A woman in a red coat on a bright rooftop"
        spans = open_vocab.extract(text)
        assert {(s.text, s.role) for s in spans} == {
            ("woman", "subject.identity"),
            ("red coat", "subject.wardrobe"),
            ("bright", "lighting.quality"),
            ("rooftop", "environment.location"),
        }
        for s in spans:
            assert s.source == "open-vocab"
            assert text[s.start:s.end] == s.text
        assert open_vocab.is_ready

    def test_blank_text(self, open_vocab):
        assert open_vocab.extract("  ") == []

    def test_timeout_yields_nothing(self, open_vocab):
        assert open_vocab.extract("[slow] a woman", timeout_ms=100) == []

    def test_failed_load_yields_nothing(self):
        ex = OpenVocabularyExtractor(GlinerConfig(enabled=True, use_worker=False, loader="fake_models:load_failing"))
        assert ex.extract("a woman") == []
        assert not ex.is_ready
        assert not ex.warmup()
        ex.close()

    def test_backend_errors_swallowed(self):
        ex = OpenVocabularyExtractor(backend=FailingBackend(WorkerCrashedError("gone")))
        assert ex.extract("a woman") == []
        assert not ex.warmup()

    def test_out_of_range_detection_dropped(self):
        ex = OpenVocabularyExtractor(backend=OutOfRangeBackend())
        spans = ex.extract("a woman")
        assert [(s.start, s.end) for s in spans] == [(0, 1)]

    def test_in_process_warmup(self, open_vocab):
        assert open_vocab.warmup()
        assert open_vocab.is_ready
