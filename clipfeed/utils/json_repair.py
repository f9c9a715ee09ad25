"""Utility helpers for cleaning and repairing JSON payloads from LLM responses."""

from __future__ import annotations

import json
import re

from clipfeed.core.logging import get_logger

logger = get_logger(__name__)

_FENCED_BLOCK = re.compile(r"```(?:json|JSON)?\s*\n?(.*?)```", re.DOTALL)


def strip_json_wrappers(text: str) -> str:
    """Remove markdown code fences around a JSON payload.

    A fenced block anywhere in the text wins; otherwise a leading or
    trailing fence is trimmed.
    """
    cleaned = text.strip()
    fenced = _FENCED_BLOCK.search(cleaned)
    if fenced:
        return fenced.group(1).strip()

    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]

    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]

    return cleaned.strip()


def _balance_structures(payload: str) -> str:
    """Append closing delimiters to balance objects and arrays."""
    stack: list[str] = []
    for char in payload:
        if char == "{":
            stack.append("}")
        elif char == "[":
            stack.append("]")
        elif char in "}]" and stack and char == stack[-1]:
            stack.pop()

    return payload + "".join(reversed(stack))


def try_repair_truncated_json(json_str: str) -> str | None:
    """Attempt to repair JSON cut off mid-object by closing open strings and structures."""
    try:
        json.loads(json_str)
        return json_str
    except json.JSONDecodeError:
        pass

    if not json_str.lstrip().startswith("{"):
        return None

    repaired = json_str
    if repaired.count('"') % 2 != 0:
        repaired += '"'
    repaired = _balance_structures(repaired)

    try:
        json.loads(repaired)
        logger.info("Repaired truncated JSON by balancing braces and brackets")
        return repaired
    except json.JSONDecodeError:
        pass

    for index in range(len(json_str) - 1, 0, -1):
        if json_str[index] in {"]", "}"}:
            truncated = _balance_structures(json_str[: index + 1])
            try:
                json.loads(truncated)
                logger.info("Repaired JSON by truncating to last balanced delimiter")
                return truncated
            except json.JSONDecodeError:
                continue

    return None
