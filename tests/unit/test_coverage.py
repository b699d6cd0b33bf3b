"""Tests for fast-path coverage assessment."""
import pytest

from conftest import public_span, span_at
from spanlab.extraction.coverage import (
    CoverageConfig,
    assess_coverage,
    core_category_coverage,
    coverage_percent,
    expected_min_span_count,
    is_high_signal_role,
)


def words(n):
    return " ".join(["word"] * n)


class TestExpectedSpanCount:
    @pytest.mark.parametrize("n, expected", [
        (0, 1), (39, 1), (40, 4), (79, 4), (80, 8), (139, 8), (140, 12), (219, 12), (220, 15), (500, 15),
    ])
    def test_buckets(self, n, expected):
        assert expected_min_span_count(words(n)) == expected

    def test_capped_by_max_spans(self):
        assert expected_min_span_count(words(300), max_spans=5) == 5

    def test_invalid_max_spans_uses_default(self):
        assert expected_min_span_count(words(300), max_spans=0) == 15
        assert expected_min_span_count(words(300), max_spans=None) == 15


class TestCoveragePercent:
    def test_partial(self):
        text = "a red coat"
        assert coverage_percent([public_span(text, "red coat", "subject.wardrobe")], text) == pytest.approx(200 / 3)

    def test_empty_text(self):
        assert coverage_percent([], "") == 0.0

    def test_partial_word_overlap_counts(self):
        text = "golden hour"
        assert coverage_percent([public_span(text, "den h", "lighting.timeOfDay")], text) == 100.0


class TestRoles:
    def test_high_signal(self):
        assert is_high_signal_role("technical.frameRate")
        assert is_high_signal_role("camera")
        assert not is_high_signal_role("subject.identity")

    def test_core_categories(self):
        text = "woman walks"
        core = core_category_coverage([
            public_span(text, "woman", "subject.identity"),
            public_span(text, "walks", "action.movement"),
        ])
        assert core == {"subject": True, "action": True, "environment": False}


class TestAssessCoverage:
    def test_enough_spans(self):
        text = "35mm lens at 24fps"
        result = assess_coverage([public_span(text, "35mm", "camera.lens")], text)
        assert result.accept
        assert not result.needs_fallback
        assert result.reason == "span count"

    def test_no_spans(self):
        result = assess_coverage([], "a quiet street")
        assert not result.accept
        assert result.needs_fallback
        assert result.reason == "0 spans below expected 1"

    def test_sparse_high_confidence(self):
        text = words(47) + " 24fps 4k 35mm"
        spans = [
            public_span(text, "24fps", "technical.frameRate"),
            public_span(text, "4k", "technical.resolution"),
            public_span(text, "35mm", "camera.lens"),
        ]
        result = assess_coverage(spans, text)
        assert result.word_count == 50
        assert result.expected_min_spans == 4
        assert result.sparse_high_confidence_accepted
        assert result.accept
        assert not result.needs_fallback
        assert result.reason == "sparse high-confidence spans"
        assert result.high_signal_count == 3

    def test_sparse_rule_needs_high_confidence(self):
        text = words(47) + " 24fps 4k 35mm"
        spans = [
            public_span(text, "24fps", "technical.frameRate", 0.6),
            public_span(text, "4k", "technical.resolution", 0.6),
            public_span(text, "35mm", "camera.lens", 0.6),
        ]
        result = assess_coverage(spans, text)
        assert not result.sparse_high_confidence_accepted
        assert result.needs_fallback

    def test_long_prompt_needs_core_branches(self):
        result = assess_coverage([], words(90))
        assert result.needs_fallback
        assert result.reason == "insufficient subject/action/environment coverage"
        assert result.expected_min_spans == 8

    def test_long_prompt_open_vocab_not_ready(self):
        result = assess_coverage([], words(90), open_vocab_enabled=True, open_vocab_ready=False)
        assert result.reason == "open vocabulary required but not ready"
        assert result.needs_fallback

    def test_long_prompt_with_core_coverage(self):
        text = "woman walks forest " * 3 + words(76)
        spans = [span_at(text, "woman", "subject.identity", occurrence=i).to_span() for i in range(3)]
        spans += [span_at(text, "walks", "action.movement", occurrence=i).to_span() for i in range(3)]
        spans += [span_at(text, "forest", "environment.location", occurrence=i).to_span() for i in range(2)]
        result = assess_coverage(spans, text, open_vocab_enabled=True, open_vocab_ready=True)
        assert result.word_count == 85
        assert result.core_category_count == 3
        assert result.reason == "span count"
        assert not result.needs_fallback

    def test_custom_threshold(self):
        text = words(90)
        config = CoverageConfig(min_spans_threshold=10)
        assert assess_coverage([], text, config).expected_min_spans == 10

    def test_to_dict(self):
        data = assess_coverage([], "a quiet street").to_dict()
        assert data["core_category_count"] == 0
        assert data["coverage_percent"] == 0.0
