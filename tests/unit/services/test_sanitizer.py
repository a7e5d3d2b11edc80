"""Unit tests for LLM metadata sanitization."""

import math

import pytest

from istory.schemas.metadata import EmotionalTone, LifeDomain
from istory.services.analysis.sanitizer import (
    MAX_INSIGHT_LENGTH,
    SanitizedMetadata,
    sanitize,
    sanitize_score,
    to_display_string,
)


class TestSanitizeScores:

    @pytest.mark.parametrize(
        "value, expected",
        [
            (1.5, 1.0),
            (-0.2, 0.0),
            (0.73, 0.73),
            (1, 1.0),
            ("0.9", 0.5),
            (None, 0.5),
            (True, 0.5),
            (float("nan"), 0.5),
            (float("inf"), 1.0),
        ],
    )
    def test_clamps_or_defaults(self, value, expected):
        assert sanitize_score(value) == expected


class TestSanitizeThemes:

    def test_lowercases_and_caps_at_five(self):
        result = sanitize({"themes": ["Family", "LOSS", "Hope", "travel", "Work", "extra"]})

        assert result.themes == ["family", "loss", "hope", "travel", "work"]

    def test_drops_null_and_empty_entries(self):
        result = sanitize({"themes": [None, "", "Growth", 3, True]})

        assert result.themes == ["growth", "3", "true"]

    def test_whitespace_only_theme_is_kept(self):
        result = sanitize({"themes": [" ", "Growth", None, ""]})

        assert result.themes == [" ", "growth"]

    def test_non_list_themes_become_empty(self):
        assert sanitize({"themes": "family"}).themes == []


class TestSanitizeEnums:

    def test_unknown_tone_and_domain_fall_back(self):
        result = sanitize({"emotional_tone": "ecstatic", "life_domain": "space travel"})

        assert result.emotional_tone == EmotionalTone.NEUTRAL
        assert result.life_domain == LifeDomain.GENERAL

    def test_enum_match_is_exact(self):
        result = sanitize({"emotional_tone": "Joyful", "life_domain": "work"})

        assert result.emotional_tone == EmotionalTone.NEUTRAL
        assert result.life_domain == LifeDomain.WORK


class TestSanitizeStrings:

    def test_insight_is_truncated(self):
        result = sanitize({"brief_insight": "x" * 600})

        assert len(result.brief_insight) == MAX_INSIGHT_LENGTH

    def test_non_string_insight_is_dropped(self):
        assert sanitize({"brief_insight": 42}).brief_insight is None

    def test_entity_lists_are_stringified(self):
        result = sanitize({"people_mentioned": ["Mom", None, 2.0, [1, None, "a"], {"name": "Ana"}]})

        assert result.people_mentioned == ["Mom", "null", "2", "1,,a", '{"name":"Ana"}']

    def test_display_string_of_special_floats(self):
        assert to_display_string(float("nan")) == "NaN"
        assert to_display_string(-math.inf) == "-Infinity"
        assert to_display_string(2.5) == "2.5"


class TestSanitize:

    @pytest.mark.parametrize("candidate", [None, [], "text", 3, {}])
    def test_non_object_candidates_get_defaults(self, candidate):
        assert sanitize(candidate) == SanitizedMetadata()

    def test_sanitize_is_idempotent(self):
        raw = {
            "themes": ["Family", None, "Summer"],
            "emotional_tone": "reflective",
            "life_domain": "family",
            "intensity_score": 1.4,
            "significance_score": -3,
            "people_mentioned": ["Grandma", 7],
            "places_mentioned": ["Lake Tahoe"],
            "time_references": ["1998"],
            "brief_insight": "y" * 700,
        }

        once = sanitize(raw)
        twice = sanitize(once.as_record())

        assert twice == once

    def test_as_record_uses_plain_enum_values(self):
        record = sanitize({"emotional_tone": "joyful"}).as_record()

        assert record["emotional_tone"] == "joyful"
        assert record["life_domain"] == "general"
        assert set(record) == {
            "themes",
            "emotional_tone",
            "life_domain",
            "intensity_score",
            "significance_score",
            "people_mentioned",
            "places_mentioned",
            "time_references",
            "brief_insight",
        }
