"""
Response parsing for the remote detector.

The model is asked for a JSON array of points but may wrap it in
markdown fences or prose. Parsing returns either a fully validated
list of points or a ParseFailure; a response with any malformed item
is rejected as a whole.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any

from ..models import RemotePoint
from ..utils.constants import DEFAULT_CONFIDENCE, POINT_SCALE, RAW_SAMPLE_LENGTH

logger = logging.getLogger(__name__)

_ARRAY_PATTERN = re.compile(r"\[[\s\S]*\]")


@dataclass(frozen=True)
class ParsedPoints:
    """Successfully validated point list."""

    points: list[RemotePoint] = field(default_factory=list)


@dataclass(frozen=True)
class ParseFailure:
    """Response could not be trusted."""

    reason: str
    raw_sample: str = ""


ParseResult = ParsedPoints | ParseFailure


def raw_sample(raw: Any) -> str:
    """Truncated representation of a raw response for diagnostics."""
    text = raw if isinstance(raw, str) else repr(raw)
    return text[:RAW_SAMPLE_LENGTH]


def extract_json(text: str) -> str:
    """
    Extract JSON from various response formats.

    Tries ```json fences, then any fenced block that parses, then the
    outermost [...] span. Falls back to the stripped text.
    """
    if "```json" in text:
        return text.split("```json")[1].split("```")[0].strip()

    if "```" in text:
        blocks = text.split("```")
        for block in blocks[1::2]:
            candidate = block.strip()
            try:
                json.loads(candidate)
                return candidate
            except ValueError:
                continue

    match = _ARRAY_PATTERN.search(text)
    if match:
        return match.group(0)

    return text.strip()


def parse_detection_payload(raw: Any, max_items: int) -> ParseResult:
    """
    Validate a detector payload into points.

    Args:
        raw: Decoded JSON (list or envelope dict) or raw model text
        max_items: Maximum number of points kept

    Returns:
        ParsedPoints or ParseFailure
    """
    payload = raw
    if isinstance(payload, str):
        try:
            payload = json.loads(extract_json(payload))
        except ValueError:
            return ParseFailure("response is not JSON", raw_sample(raw))

    if isinstance(payload, dict):
        if "results" not in payload:
            return ParseFailure("response has no results", raw_sample(raw))
        payload = payload["results"]

    if not isinstance(payload, list):
        return ParseFailure("results is not a list", raw_sample(raw))

    points = []
    for index, item in enumerate(payload):
        point = _parse_item(item)
        if point is None:
            return ParseFailure(f"malformed item at index {index}", raw_sample(raw))
        points.append(point)

    return ParsedPoints(points=points[:max_items])


def _parse_item(item: Any) -> RemotePoint | None:
    if not isinstance(item, dict):
        return None

    point = item.get("point")
    label = item.get("label")
    if not isinstance(point, (list, tuple)) or len(point) != 2:
        return None
    if not isinstance(label, str) or not label.strip():
        return None
    if not all(_is_number(v) and 0 <= v <= POINT_SCALE for v in point):
        return None

    confidence = item.get("confidence")
    if confidence is None:
        confidence = DEFAULT_CONFIDENCE
    elif not _is_number(confidence):
        return None

    return RemotePoint(
        row=float(point[0]),
        col=float(point[1]),
        label=label.strip(),
        confidence=min(1.0, max(0.0, float(confidence))),
    )


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)
