"""Shared test fixtures."""
import re
import zlib

import numpy as np
import pytest

from spanlab.extraction.config import GlinerConfig, get_preset
from spanlab.extraction.pipeline import SpanExtractor
from spanlab.extraction.types import CandidateSpan, Span

FAKE_LOADER = "fake_models:load_fake"


class BagOfWordsEncoder:
    """Deterministic stand-in for the sentence-transformers encoder.

    Each word is hashed into one of ``dim`` buckets; rows are L2-normalized so
    identical phrases have similarity 1.0 and disjoint phrases 0.0.
    """

    def __init__(self, dim: int = 512):
        self.dim = dim
        self.calls = 0

    def encode_batch(self, texts):
        self.calls += 1
        out = np.zeros((len(texts), self.dim), dtype=np.float32)
        for row, text in enumerate(texts):
            for word in re.findall(r"[a-z]+", text.lower()):
                out[row, zlib.crc32(word.encode()) % self.dim] += 1.0
        norms = np.linalg.norm(out, axis=1, keepdims=True)
        return out / np.maximum(norms, 1e-12)


class BrokenEncoder:
    def encode_batch(self, texts):
        raise RuntimeError("encoder exploded")


def span_at(text: str, phrase: str, role: str, confidence: float = 1.0, source: str = "closed-vocab",
            occurrence: int = 0) -> CandidateSpan:
    """Build a candidate for the n-th occurrence of ``phrase`` in ``text``."""
    start = -1
    for _ in range(occurrence + 1):
        start = text.index(phrase, start + 1)
    return CandidateSpan(
        text=phrase, role=role, confidence=confidence, start=start, end=start + len(phrase), source=source,
    )


def public_span(text: str, phrase: str, role: str, confidence: float = 1.0) -> Span:
    return span_at(text, phrase, role, confidence).to_span()


@pytest.fixture
def fake_encoder():
    return BagOfWordsEncoder()


@pytest.fixture
def broken_encoder():
    return BrokenEncoder()


@pytest.fixture
def fast_config():
    return get_preset("fast")


@pytest.fixture
def extractor(fast_config):
    ex = SpanExtractor(config=fast_config)
    yield ex
    ex.close()


@pytest.fixture
def in_process_gliner_config():
    return GlinerConfig(enabled=True, use_worker=False, loader=FAKE_LOADER, timeout_ms=2000)


@pytest.fixture
def open_vocab_extractor(fast_config, in_process_gliner_config):
    fast_config.gliner = in_process_gliner_config
    ex = SpanExtractor(config=fast_config)
    yield ex
    ex.close()


@pytest.fixture
def example_prompt():
    return "35mm lens, golden hour light, the camera slowly pans across the valley, 24fps"


@pytest.fixture
def ambiguous_prompt():
    return "she began to pan the bread dough"
