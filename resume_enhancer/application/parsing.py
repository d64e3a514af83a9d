"""Tolerant extraction of structured results from free-form model output."""
from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from resume_enhancer.core.schema import SECTIONS, EnhancementRequest, ResumeData, Suggestion
from resume_enhancer.core.validation import fill_missing_ids, has_any_section, validate_document

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.8
DEGRADED_CONFIDENCE = 0.1


class ResponseParseError(ValueError):
    """Raised internally when a completion cannot be turned into a result."""


@dataclass(slots=True)
class ParsedCompletion:
    enhanced_data: ResumeData
    suggestions: list[Suggestion] = field(default_factory=list)
    confidence: float = DEFAULT_CONFIDENCE
    degraded: bool = False


def extract_json_object(text: str) -> str | None:
    """Return the first balanced ``{...}`` span of ``text``.

    Braces inside JSON strings are ignored so prose or code fences around the
    payload do not confuse the scan.
    """

    start = text.find("{")
    if start < 0:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None


def _load_object(text: str) -> dict[str, Any]:
    span = extract_json_object(text)
    if span is None:
        raise ResponseParseError("no JSON object found in response")
    try:
        payload = json.loads(span)
    except json.JSONDecodeError as exc:
        raise ResponseParseError(f"invalid JSON: {exc.msg}") from exc
    if not isinstance(payload, dict):
        raise ResponseParseError("response JSON is not an object")
    return payload


def _confidence(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_CONFIDENCE
    if not math.isfinite(value):
        return DEFAULT_CONFIDENCE
    return min(max(float(value), 0.0), 1.0)


def _document(candidate: Any) -> ResumeData:
    validation = validate_document(candidate)
    if not validation.ok or validation.data is None:
        raise ResponseParseError("; ".join(validation.errors) or "document failed validation")
    return validation.data


def _suggestions(raw: Any) -> list[Suggestion]:
    if not isinstance(raw, list):
        return []
    suggestions: list[Suggestion] = []
    seen: set[str] = set()
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            continue
        payload = dict(item)
        payload.pop("accepted", None)
        item_id = str(payload.get("id") or "").strip()
        if not item_id or item_id in seen:
            payload["id"] = f"suggestion-{index}"
        try:
            suggestion = Suggestion.model_validate(payload)
        except ValidationError:
            logger.warning("dropping malformed suggestion at position %s", index)
            continue
        seen.add(suggestion.id)
        suggestions.append(suggestion)
    return suggestions


def _merge_sections(base: ResumeData, candidate: dict[str, Any]) -> dict[str, Any]:
    """Overlay the sections present in ``candidate`` onto ``base``."""

    merged = base.to_wire()
    for section in SECTIONS:
        if section in candidate and candidate[section] is not None:
            merged[section] = candidate[section]
    return merged


def _parse_enhance(payload: dict[str, Any], request: EnhancementRequest, stamp: int | None) -> ParsedCompletion:
    enhanced_raw = payload.get("enhancedData")
    if enhanced_raw is None:
        enhanced = request.parsed_data
    else:
        if isinstance(enhanced_raw, dict):
            enhanced_raw = _merge_sections(request.parsed_data, enhanced_raw)
        enhanced = _document(enhanced_raw)
    return ParsedCompletion(
        enhanced_data=fill_missing_ids(enhanced, stamp=stamp),
        suggestions=_suggestions(payload.get("suggestions")),
        confidence=_confidence(payload.get("confidence")),
    )


def _parse_reparse(payload: dict[str, Any], request: EnhancementRequest, stamp: int | None) -> ParsedCompletion:
    document = payload.get("enhancedData") if not has_any_section(payload) else payload
    if not has_any_section(document):
        raise ResponseParseError("response contains none of the document sections")
    merged = _merge_sections(request.parsed_data, document)
    return ParsedCompletion(
        enhanced_data=fill_missing_ids(_document(merged), stamp=stamp),
        confidence=_confidence(payload.get("confidence")),
    )


def degraded_result(request: EnhancementRequest, reason: str = "") -> ParsedCompletion:
    """Deterministic low-confidence result used when a completion is unusable."""

    reasoning = "The AI response could not be parsed properly"
    if reason:
        reasoning = f"{reasoning} ({reason})"
    suggestion = Suggestion(
        id="parse-error",
        field="parsing",
        section="personal",
        original_value="AI response",
        suggested_value="Could not parse AI response",
        reasoning=reasoning,
        confidence=DEGRADED_CONFIDENCE,
        type="improvement",
    )
    return ParsedCompletion(
        enhanced_data=request.parsed_data,
        suggestions=[suggestion],
        confidence=DEGRADED_CONFIDENCE,
        degraded=True,
    )


def parse_completion(text: str, request: EnhancementRequest, *, stamp: int | None = None) -> ParsedCompletion:
    """Parse ``text`` for ``request.mode``; never raises on malformed output."""

    try:
        payload = _load_object(text)
        if request.mode == "reparse":
            return _parse_reparse(payload, request, stamp)
        return _parse_enhance(payload, request, stamp)
    except ResponseParseError as exc:
        logger.warning("degrading %s response: %s", request.mode, exc)
        return degraded_result(request, str(exc))
