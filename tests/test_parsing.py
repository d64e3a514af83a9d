from __future__ import annotations

import json

from resume_enhancer.application.parsing import (
    DEGRADED_CONFIDENCE,
    extract_json_object,
    parse_completion,
)
from resume_enhancer.core.schema import EnhancementRequest


def _enhanced_payload(document, **extra):
    enhanced = document.to_wire()
    enhanced["experience"][0]["bulletPoints"][0]["text"] = "Built ingestion jobs processing 2M rows/day"
    payload = {
        "enhancedData": enhanced,
        "suggestions": [
            {
                "id": "s1",
                "field": "bulletPoints",
                "section": "experience",
                "originalValue": "worked on ingestion jobs",
                "suggestedValue": "Built ingestion jobs processing 2M rows/day",
                "reasoning": "quantified",
                "confidence": 0.9,
                "type": "improvement",
            }
        ],
        "confidence": 0.85,
    }
    payload.update(extra)
    return payload


def test_extract_json_ignores_prose_fences_and_braces_in_strings():
    text = 'Sure!\n```json\n{"a": "curly } inside", "b": {"c": 1}}\n```\nHope that helps {not json}'

    assert json.loads(extract_json_object(text)) == {"a": "curly } inside", "b": {"c": 1}}
    assert extract_json_object("no braces here") is None
    assert extract_json_object('{"unterminated": 1') is None


def test_enhance_response_wrapped_in_prose_is_parsed(enhance_request):
    text = "Here is the result:\n" + json.dumps(_enhanced_payload(enhance_request.parsed_data)) + "\nThanks"

    parsed = parse_completion(text, enhance_request)

    assert parsed.degraded is False
    assert parsed.confidence == 0.85
    assert parsed.enhanced_data.experience[0].bullet_points[0].text.startswith("Built")
    assert [suggestion.id for suggestion in parsed.suggestions] == ["s1"]


def test_malformed_response_degrades_deterministically(enhance_request):
    parsed = parse_completion('{"enhancedData": {"personal": ', enhance_request)

    assert parsed.degraded is True
    assert parsed.confidence == DEGRADED_CONFIDENCE
    assert parsed.enhanced_data == enhance_request.parsed_data
    assert len(parsed.suggestions) == 1
    placeholder = parsed.suggestions[0]
    assert placeholder.id == "parse-error"
    assert placeholder.field == "parsing"
    assert placeholder.suggested_value == "Could not parse AI response"
    assert placeholder.confidence == DEGRADED_CONFIDENCE


def test_enhanced_data_failing_validation_degrades(enhance_request):
    text = json.dumps({"enhancedData": {"experience": "not a list"}, "confidence": 0.9})

    parsed = parse_completion(text, enhance_request)

    assert parsed.degraded is True


def test_missing_enhanced_data_falls_back_to_original(enhance_request):
    parsed = parse_completion('{"suggestions": [], "confidence": 0.7}', enhance_request)

    assert parsed.degraded is False
    assert parsed.enhanced_data == enhance_request.parsed_data
    assert parsed.suggestions == []
    assert parsed.confidence == 0.7


def test_confidence_defaults_and_clamps(enhance_request):
    assert parse_completion("{}", enhance_request).confidence == 0.8
    assert parse_completion('{"confidence": 7}', enhance_request).confidence == 1.0
    assert parse_completion('{"confidence": "high"}', enhance_request).confidence == 0.8


def test_non_finite_confidence_falls_back_to_default(enhance_request):
    parsed = parse_completion(
        '{"suggestions": [{"id": "s1", "field": "summary", "section": "personal", "confidence": NaN}], "confidence": NaN}',
        enhance_request,
    )

    assert parsed.degraded is False
    assert parsed.confidence == 0.8
    assert parsed.suggestions[0].confidence == 0.8
    assert parse_completion('{"confidence": Infinity}', enhance_request).confidence == 0.8


def test_partial_enhanced_data_keeps_omitted_sections(enhance_request):
    personal = enhance_request.parsed_data.to_wire()["personal"]
    personal["summary"] = "Backend engineer focused on data pipelines."

    parsed = parse_completion(json.dumps({"enhancedData": {"personal": personal}}), enhance_request)

    assert parsed.degraded is False
    assert parsed.enhanced_data.personal.summary == "Backend engineer focused on data pipelines."
    assert parsed.enhanced_data.experience == enhance_request.parsed_data.experience
    assert parsed.enhanced_data.education == enhance_request.parsed_data.education
    assert parsed.enhanced_data.skills == enhance_request.parsed_data.skills


def test_suggestions_are_sanitised(enhance_request):
    payload = {
        "suggestions": [
            {"id": "dup", "field": "summary", "section": "personal", "suggestedValue": "a", "accepted": True},
            {"id": "dup", "field": "summary", "section": "personal", "suggestedValue": "b"},
            {"field": "name", "section": "skills", "type": "rewrite", "confidence": -2},
            {"id": "broken"},
            "not an object",
        ]
    }

    parsed = parse_completion(json.dumps(payload), enhance_request)

    assert [suggestion.id for suggestion in parsed.suggestions] == ["dup", "suggestion-1", "suggestion-2"]
    assert parsed.suggestions[0].accepted is None
    assert parsed.suggestions[2].type == "improvement"
    assert parsed.suggestions[2].confidence == 0.0


def test_enhance_fills_missing_item_ids(enhance_request):
    enhanced = enhance_request.parsed_data.to_wire()
    enhanced["projects"] = [{"name": "csv2parquet", "description": "tool"}]
    enhanced["experience"][0]["bulletPoints"].append({"text": "new bullet"})

    parsed = parse_completion(json.dumps({"enhancedData": enhanced}), enhance_request, stamp=42)

    assert parsed.enhanced_data.projects[0].id == "projects-42-0"
    assert parsed.enhanced_data.experience[0].bullet_points[2].id == "bullet-42-0-2"


def test_reparse_accepts_top_level_sections_and_keeps_the_rest(sample_document):
    request = EnhancementRequest(original_text="raw", parsed_data=sample_document, mode="reparse")
    text = json.dumps(
        {
            "personal": {"fullName": "Jane Q. Doe", "email": "jane@example.com"},
            "skills": [{"name": "Go"}, {"name": "Rust"}],
        }
    )

    parsed = parse_completion(text, request, stamp=7)

    assert parsed.degraded is False
    assert parsed.enhanced_data.personal.full_name == "Jane Q. Doe"
    assert [skill.id for skill in parsed.enhanced_data.skills] == ["skills-7-0", "skills-7-1"]
    assert parsed.enhanced_data.experience == sample_document.experience
    assert parsed.suggestions == []


def test_reparse_without_sections_degrades(sample_document):
    request = EnhancementRequest(original_text="raw", parsed_data=sample_document, mode="reparse")

    parsed = parse_completion('{"result": "I could not read the file"}', request)

    assert parsed.degraded is True
    assert parsed.confidence == DEGRADED_CONFIDENCE
    assert parsed.enhanced_data == sample_document
