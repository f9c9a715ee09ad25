"""Tests for parsing analysis model output."""

import json

import pytest

from clipfeed.models.metadata import ParseMode
from clipfeed.services.analysis_parsing import (
    clean_array_items,
    extract_architecture_patterns,
    extract_best_practices,
    extract_tech_stack,
    parse_analysis_response,
    split_sections,
)

PROSE_RESPONSE = """This app is a task manager with offline sync.

Tech stack: Flutter, Firebase, Riverpod

Architecture: MVVM, Repository pattern

Best practices:
- Unit tests
- CI with GitHub Actions"""

STRUCTURED = {
    "implementationOverview": "A habit tracker built in Flutter.",
    "technicalDetails": "State lives in Riverpod providers; Firestore syncs data.",
    "techStack": ["- Flutter", "Firebase", "including: stuff"],
    "architecturePatterns": ["MVVM"],
    "bestPractices": ["1. Widget tests", ""],
}


class TestCleanArrayItems:
    def test_drops_blanks_and_headers_and_strips_bullets(self):
        assert clean_array_items(["- Flutter", "", "including: stuff", "  Firebase  "]) == [
            "Flutter",
            "Firebase",
        ]

    def test_numbering_and_markdown_emphasis(self):
        assert clean_array_items(["1. React", "2) Node.js", "**Postgres**", "• Redis;"]) == [
            "React",
            "Node.js",
            "Postgres",
            "Redis",
        ]

    def test_non_strings_are_dropped(self):
        assert clean_array_items([42, None, "Go", {"a": 1}]) == ["Go"]

    def test_such_as_header_is_case_insensitive(self):
        assert clean_array_items(["Tools Such As: many", "Docker"]) == ["Docker"]

    @pytest.mark.parametrize("value", [None, [], "Flutter"])
    def test_non_list_inputs(self, value):
        assert clean_array_items(value) == []


class TestHeuristicExtractors:
    def test_split_sections(self):
        assert split_sections("one\n\n  \n\ntwo\nstill two\n\n") == ["one", "two\nstill two"]

    def test_extractors_on_labelled_sections(self):
        sections = split_sections(PROSE_RESPONSE)

        assert extract_tech_stack(sections) == ["Flutter", "Firebase", "Riverpod"]
        assert extract_architecture_patterns(sections) == ["MVVM", "Repository pattern"]
        assert extract_best_practices(sections) == ["Unit tests", "CI with GitHub Actions"]

    def test_using_cue_stops_at_sentence_end(self):
        sections = ["We shipped it using React, Node.js and Postgres. It scales well."]

        stack = extract_tech_stack(sections)

        assert stack[0] == "React"
        assert "It scales well" not in " ".join(stack)

    def test_no_cues_yields_empty_lists(self):
        sections = ["Nothing technical is shown in this clip."]

        assert extract_tech_stack(sections) == []
        assert extract_architecture_patterns(sections) == []
        assert extract_best_practices(sections) == []


class TestParseAnalysisResponse:
    def test_plain_json(self):
        outcome = parse_analysis_response(json.dumps(STRUCTURED))

        assert outcome.mode == ParseMode.STRUCTURED_JSON
        assert outcome.confidence == 1.0
        assert outcome.fields.implementation_overview == "A habit tracker built in Flutter."
        assert outcome.fields.tech_stack == ["Flutter", "Firebase"]
        assert outcome.fields.best_practices == ["Widget tests"]

    def test_fenced_json_with_preamble(self):
        raw = "Here is the analysis:\n```json\n" + json.dumps(STRUCTURED) + "\n```\nThanks!"

        outcome = parse_analysis_response(raw)

        assert outcome.mode == ParseMode.STRUCTURED_JSON
        assert outcome.fields.architecture_patterns == ["MVVM"]

    def test_snake_case_keys_and_string_lists(self):
        raw = json.dumps(
            {
                "implementation_overview": "CLI tool",
                "tech_stack": "Python, Click",
                "best_practices": None,
            }
        )

        outcome = parse_analysis_response(raw)

        assert outcome.fields.implementation_overview == "CLI tool"
        assert outcome.fields.tech_stack == ["Python", "Click"]
        assert outcome.fields.best_practices == []
        assert outcome.fields.technical_details == ""

    def test_truncated_json_is_repaired(self):
        raw = '{"implementationOverview": "An app", "techStack": ["Flutter", "Fire'

        outcome = parse_analysis_response(raw)

        assert outcome.mode == ParseMode.STRUCTURED_JSON
        assert outcome.confidence < 1.0
        assert outcome.fields.tech_stack == ["Flutter", "Fire"]

    def test_prose_falls_back_to_heuristics(self):
        outcome = parse_analysis_response(PROSE_RESPONSE)

        assert outcome.mode == ParseMode.HEURISTIC_EXTRACTION
        assert outcome.confidence == 0.5
        assert outcome.fields.implementation_overview == (
            "This app is a task manager with offline sync."
        )
        assert outcome.fields.technical_details.startswith("Tech stack:")
        assert outcome.fields.tech_stack == ["Flutter", "Firebase", "Riverpod"]

    def test_heuristics_are_deterministic(self):
        first = parse_analysis_response(PROSE_RESPONSE)
        second = parse_analysis_response(PROSE_RESPONSE)

        assert first == second

    def test_unstructured_text_is_parse_failure_but_keeps_text(self):
        outcome = parse_analysis_response("I cannot tell what this video shows.")

        assert outcome.mode == ParseMode.PARSE_FAILURE
        assert outcome.fields.implementation_overview == "I cannot tell what this video shows."
        assert outcome.fields.tech_stack == []

    @pytest.mark.parametrize("raw", [None, "", "   \n"])
    def test_empty_response(self, raw):
        outcome = parse_analysis_response(raw)

        assert outcome.mode == ParseMode.PARSE_FAILURE
        assert outcome.fields.implementation_overview == ""
