"""Turn raw analysis-model text into the five analysis fields.

Parsing is a chain: strict JSON after stripping code fences, then a repair
pass for truncated JSON, then keyword heuristics over free text. Every path
returns an ``AnalysisOutcome``; nothing here raises on bad model output.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable
from typing import Any

from clipfeed.core.logging import get_logger
from clipfeed.models.metadata import AnalysisFields, AnalysisOutcome, ParseMode
from clipfeed.utils.json_repair import strip_json_wrappers, try_repair_truncated_json

logger = get_logger(__name__)

STRUCTURED_CONFIDENCE = 1.0
REPAIRED_CONFIDENCE = 0.9
HEURISTIC_CONFIDENCE = 0.5
PARSE_FAILURE_CONFIDENCE = 0.1

HEADER_PHRASES = ("including:", "such as:")
_BULLET_PREFIX = re.compile(r"^\s*(?:[-*•·]+|\d+[.)])\s*")
_SECTION_BREAK = re.compile(r"\n\s*\n")

# (cue, needs ":" or "," right after it). Order is priority.
TECH_STACK_CUES: tuple[tuple[str, bool], ...] = (
    ("tech stack", True),
    ("technologies", True),
    ("built with", False),
    ("using", False),
)
ARCHITECTURE_CUES: tuple[tuple[str, bool], ...] = (
    ("architecture pattern", True),
    ("architecture", True),
    ("pattern", True),
)
BEST_PRACTICE_CUES: tuple[tuple[str, bool], ...] = (("best practice", True),)

_FIELD_ALIASES = {
    "implementation_overview": ("implementationOverview", "implementation_overview"),
    "technical_details": ("technicalDetails", "technical_details"),
    "tech_stack": ("techStack", "tech_stack"),
    "architecture_patterns": ("architecturePatterns", "architecture_patterns"),
    "best_practices": ("bestPractices", "best_practices"),
}


def clean_array_items(items: Iterable[Any] | None) -> list[str]:
    """Normalize list entries produced by the model.

    Drops non-strings, blanks and header fragments like "including:", strips
    leading bullets or numbering, and trims whitespace. Order is preserved.
    """
    if not items or isinstance(items, str):
        return []

    cleaned: list[str] = []
    for item in items:
        if not isinstance(item, str) or not item.strip():
            continue
        lowered = item.lower()
        if any(phrase in lowered for phrase in HEADER_PHRASES):
            continue
        text = _BULLET_PREFIX.sub("", item).strip().strip("*_").strip().rstrip(".;").strip()
        if text:
            cleaned.append(text)
    return cleaned


def split_sections(text: str) -> list[str]:
    """Split free text into blank-line separated paragraphs."""
    return [section.strip() for section in _SECTION_BREAK.split(text) if section.strip()]


def _split_items(text: str) -> list[str]:
    return clean_array_items(re.split(r"[,\n]", text))


def _extract_list(sections: list[str], cues: tuple[tuple[str, bool], ...]) -> list[str]:
    for cue, needs_delimiter in cues:
        if needs_delimiter:
            pattern = re.compile(
                rf"\b{re.escape(cue)}\w*\s*[:,]\s*(.*)", re.IGNORECASE | re.DOTALL
            )
        else:
            # Rest of the sentence; a period only ends it when followed by space
            pattern = re.compile(
                rf"\b{re.escape(cue)}\b\s*[:,]?\s*([^\n]*?)(?:\.(?:\s|$)|$)",
                re.IGNORECASE | re.MULTILINE,
            )
        for section in sections:
            match = pattern.search(section)
            if not match:
                continue
            items = _split_items(match.group(1))
            if items:
                return items
    return []


def extract_tech_stack(sections: list[str]) -> list[str]:
    return _extract_list(sections, TECH_STACK_CUES)


def extract_architecture_patterns(sections: list[str]) -> list[str]:
    return _extract_list(sections, ARCHITECTURE_CUES)


def extract_best_practices(sections: list[str]) -> list[str]:
    return _extract_list(sections, BEST_PRACTICE_CUES)


def _coerce_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, list):
        return "\n".join(str(part).strip() for part in value if str(part).strip())
    return str(value).strip()


def _coerce_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return _split_items(value)
    if isinstance(value, list):
        return clean_array_items(value)
    return []


def _fields_from_json(data: dict[str, Any]) -> AnalysisFields:
    values: dict[str, Any] = {}
    for name, keys in _FIELD_ALIASES.items():
        raw = next((data[key] for key in keys if key in data), None)
        if name in {"implementation_overview", "technical_details"}:
            values[name] = _coerce_text(raw)
        else:
            values[name] = _coerce_list(raw)
    return AnalysisFields(**values)


def _load_json_object(text: str) -> dict[str, Any] | None:
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def _heuristic_fields(text: str) -> AnalysisFields:
    sections = split_sections(text)
    return AnalysisFields(
        implementation_overview=sections[0] if sections else "",
        technical_details="\n\n".join(sections[1:]),
        tech_stack=extract_tech_stack(sections),
        architecture_patterns=extract_architecture_patterns(sections),
        best_practices=extract_best_practices(sections),
    )


def parse_analysis_response(raw_text: str | None) -> AnalysisOutcome:
    """Parse model output into analysis fields, tagging how they were recovered."""
    text = (raw_text or "").strip()
    if not text:
        return AnalysisOutcome(
            mode=ParseMode.PARSE_FAILURE,
            fields=AnalysisFields(),
            confidence=PARSE_FAILURE_CONFIDENCE,
        )

    candidate = strip_json_wrappers(text)
    data = _load_json_object(candidate)
    if data is not None:
        return AnalysisOutcome(
            mode=ParseMode.STRUCTURED_JSON,
            fields=_fields_from_json(data),
            confidence=STRUCTURED_CONFIDENCE,
        )

    repaired = try_repair_truncated_json(candidate)
    data = _load_json_object(repaired) if repaired else None
    if data is not None:
        return AnalysisOutcome(
            mode=ParseMode.STRUCTURED_JSON,
            fields=_fields_from_json(data),
            confidence=REPAIRED_CONFIDENCE,
        )

    logger.warning(
        "Model response is not valid JSON; falling back to heuristic extraction",
        extra={
            "component": "analysis_parsing",
            "operation": "parse_response",
            "context_data": {"response_length": len(text), "preview": text[:200]},
        },
    )
    fields = _heuristic_fields(text)
    found_lists = fields.tech_stack or fields.architecture_patterns or fields.best_practices
    if not found_lists:
        return AnalysisOutcome(
            mode=ParseMode.PARSE_FAILURE, fields=fields, confidence=PARSE_FAILURE_CONFIDENCE
        )
    return AnalysisOutcome(
        mode=ParseMode.HEURISTIC_EXTRACTION, fields=fields, confidence=HEURISTIC_CONFIDENCE
    )
