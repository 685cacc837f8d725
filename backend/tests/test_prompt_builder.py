"""
Tests for the persona prompt builder.
"""

import json
from datetime import date
from types import SimpleNamespace

from services.prompt_builder import (
    DEFAULT_TONE,
    build_profile_context,
    build_prompt,
    build_system_prompt,
    get_tone,
)
from services.storage import UserProfile


class TestProfileContext:
    """Rendering demographics and preferences."""

    def test_both_sections_spanish_labels(self, profile):
        context = build_profile_context(profile, "es")
        assert context.startswith("Demografía:\n")
        assert "\n\nPreferencias:\n" in context

    def test_english_labels(self, profile):
        context = build_profile_context(profile, "en")
        assert context.startswith("Demographics:\n")
        assert "Preferences:" in context

    def test_sorted_indented_json(self, profile):
        context = build_profile_context(profile, "en")
        block = context.split("\n\n")[0].split("\n", 1)[1]
        assert block == json.dumps(dict(profile.demographics), indent=2, sort_keys=True)

    def test_empty_section_omitted(self):
        """An empty section leaves no label behind."""
        only_prefs = UserProfile(id=3, preferences={"tone": "Formal"})
        context = build_profile_context(only_prefs, "en")

        assert "Demographics" not in context
        assert context.startswith("Preferences:")

    def test_no_data_line(self, empty_profile):
        assert build_profile_context(empty_profile, "en") == "No profile data."
        assert build_profile_context(empty_profile, "es") == "Sin datos de perfil."

    def test_odd_shapes_never_raise(self):
        """Missing attributes and non-mapping sections degrade to no data."""
        weird = SimpleNamespace(demographics="not a dict", preferences=None)
        assert build_profile_context(weird, "en") == "No profile data."
        assert build_profile_context(object(), "en") == "No profile data."

    def test_non_json_values_stringified(self):
        profile = SimpleNamespace(demographics={"joined": date(2024, 5, 1)}, preferences={})
        context = build_profile_context(profile, "en")
        assert '"joined": "2024-05-01"' in context


class TestTone:
    def test_tone_from_preferences(self, profile):
        assert get_tone(profile) == "Casual"

    def test_default_tone(self, empty_profile):
        assert get_tone(empty_profile) == DEFAULT_TONE == "Professional"

    def test_blank_tone_uses_default(self):
        assert get_tone(UserProfile(id=1, preferences={"tone": "  "})) == "Professional"


class TestPrompt:
    """Whole prompt assembly."""

    def test_system_prompt_fills_placeholders(self, profile):
        prompt = build_system_prompt(profile, "en")
        assert "{tone}" not in prompt
        assert "{profile_context}" not in prompt
        assert "Tone: Casual" in prompt
        assert "USER PROFILE:" in prompt

    def test_unknown_language_falls_back_to_spanish(self, profile):
        assert build_system_prompt(profile, "fr") == build_system_prompt(profile, "es")

    def test_profile_braces_survive(self):
        """Profile text containing placeholder-like braces is inserted verbatim."""
        profile = UserProfile(id=1, demographics={"note": "{tone}"}, preferences={"tone": "Dry"})
        prompt = build_system_prompt(profile, "en")
        assert '"note": "{tone}"' in prompt

    def test_question_after_blank_line(self, profile):
        prompt = build_prompt(profile, "What is your favourite app?", "en")
        assert prompt.endswith("Question:\n\nWhat is your favourite app?")
