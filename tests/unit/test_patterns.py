"""Tests for technical-specification patterns."""
import pytest

from spanlab.extraction.fast.patterns import TechnicalPatternMatcher


@pytest.fixture(scope="module")
def matcher():
    return TechnicalPatternMatcher()


def found(matcher, text):
    return {(s.text, s.role) for s in matcher.extract(text)}


class TestFrameRateAndResolution:
    def test_frame_rate(self, matcher):
        assert ("24fps", "technical.frameRate") in found(matcher, "shot at 24fps")
        assert ("60 frames per second", "technical.frameRate") in found(matcher, "at 60 frames per second")

    def test_resolution(self, matcher):
        assert ("4K", "technical.resolution") in found(matcher, "rendered in 4K")
        assert ("1080p", "technical.resolution") in found(matcher, "1080p master")
        assert ("1920x1080", "technical.resolution") in found(matcher, "a 1920x1080 frame")

    def test_resolution_requires_word_boundary(self, matcher):
        assert found(matcher, "a 14k gold ring") == set()


class TestDuration:
    def test_duration(self, matcher):
        assert ("10 seconds", "technical.duration") in found(matcher, "a 10 seconds clip")
        assert ("5-8s", "technical.duration") in found(matcher, "keep it 5-8s long")

    def test_decades_are_not_durations(self, matcher):
        assert found(matcher, "music from the 90s") == set()
        assert found(matcher, "an '80s diner") == set()
        assert found(matcher, "80s aesthetic, neon signs") == set()

    def test_bare_tens_need_a_duration_cue(self, matcher):
        assert ("30s", "technical.duration") in found(matcher, "a 30s clip of the coast")
        assert ("20s", "technical.duration") in found(matcher, "hold the shot for 20s")
        assert ("15s", "technical.duration") in found(matcher, "a 15s teaser")


class TestAspectRatio:
    def test_common_ratio(self, matcher):
        assert ("16:9", "technical.aspectRatio") in found(matcher, "16:9 widescreen")

    def test_uncommon_ratio_needs_hint(self, matcher):
        assert found(matcher, "meet at 10:30 tomorrow") == set()
        assert ("1.43:1", "technical.aspectRatio") in found(matcher, "IMAX aspect 1.43:1")

    def test_odds_are_not_ratios(self, matcher):
        assert found(matcher, "the odds were 3:2 against them") == set()


class TestLensAndFocus:
    def test_focal_length(self, matcher):
        assert ("35mm", "camera.lens") in found(matcher, "35mm lens")
        assert ("85 mm", "camera.lens") in found(matcher, "an 85 mm portrait lens")

    def test_film_gauge_is_not_a_focal_length(self, matcher):
        assert found(matcher, "shot on 35mm film") == set()

    def test_aperture(self, matcher):
        assert ("f/2.8", "camera.focus") in found(matcher, "wide open at f/2.8")
        assert ("T1.5", "camera.focus") in found(matcher, "cine lens at T1.5")

    def test_aperture_range_suppresses_inner_values(self, matcher):
        spans = matcher.extract("stopped between f/1.4-f/2.8 all day")
        assert [(s.text, s.role) for s in spans] == [("f/1.4-f/2.8", "camera.focus")]


class TestColorTemperature:
    def test_kelvin(self, matcher):
        assert ("5600K", "lighting.colorTemp") in found(matcher, "balanced to 5600K")
        assert ("3200 kelvin", "lighting.colorTemp") in found(matcher, "tungsten at 3200 kelvin")

    def test_out_of_range_kelvin(self, matcher):
        assert found(matcher, "a 15000K sky") == set()


def test_offsets_match_text(matcher):
    text = "35mm, f/2.8, 24fps, 4K, 16:9, 5600K, 10 seconds"
    spans = matcher.extract(text)
    assert len(spans) >= 7
    for s in spans:
        assert text[s.start:s.end] == s.text
        assert s.source == "pattern"
        assert 0.0 <= s.confidence <= 1.0
