"""Prompt templates for the two orchestration modes."""
from __future__ import annotations

import json
import time
from dataclasses import dataclass

from resume_enhancer.core.schema import EnhancementRequest, ResumeData
from resume_enhancer.core.validation import sanitize_instructions

ENHANCE_SYSTEM_PROMPT = """You are an expert resume enhancement AI. Your task is to improve resume content while maintaining accuracy and authenticity.

Rules:
1. NEVER fabricate experience, skills, or achievements
2. Only enhance existing content - don't add new roles or experiences
3. Improve clarity, impact, and ATS compatibility
4. Use action verbs and quantify achievements where possible
5. Return valid JSON with the specified structure"""

LEVEL_PROMPTS = {
    "light": "Focus on grammar, clarity, and minor wording improvements.",
    "moderate": "Enhance impact, add relevant keywords, and improve structure.",
    "comprehensive": "Comprehensive optimization for ATS, impact, and professional presentation.",
}

ENHANCE_RESPONSE_SHAPE = """{
  "originalData": <original resume data>,
  "enhancedData": <enhanced resume data>,
  "suggestions": [
    {
      "id": "unique-id",
      "field": "field name",
      "section": "resume section",
      "originalValue": "original text",
      "suggestedValue": "enhanced text",
      "reasoning": "why this change improves the resume",
      "confidence": 0.95,
      "type": "improvement"
    }
  ],
  "confidence": 0.9
}"""

REPARSE_SYSTEM_PROMPT = """You are a meticulous resume parser. Convert the raw resume text into the structured JSON document described by the user.

Rules:
1. NEVER fabricate information; only use what appears in the source text
2. Leave a field as an empty string when the source is unclear or silent
3. Give every list item an id of the form <section>-{stamp}-<index>, where <index> starts at 0 within each section
4. Preserve the original wording of bullet points; do not rewrite them
5. Respond with ONLY the raw JSON document: no prose, no markdown, no code fences"""

REPARSE_DOCUMENT_SHAPE = """{
  "personal": {"fullName": "", "location": "", "email": "", "phone": "", "linkedin": "", "summary": ""},
  "skills": [{"id": "", "name": "", "category": ""}],
  "experience": [
    {
      "id": "",
      "company": "",
      "position": "",
      "location": "",
      "startDate": "",
      "endDate": "",
      "isCurrent": false,
      "bulletPoints": [{"id": "", "text": ""}]
    }
  ],
  "education": [{"id": "", "school": "", "degree": "", "graduationYear": ""}],
  "projects": [{"id": "", "name": "", "link": "", "description": ""}]
}"""


@dataclass(frozen=True, slots=True)
class PromptPair:
    system: str
    user: str
    stamp: int | None = None


def _document_json(data: ResumeData) -> str:
    return json.dumps(data.to_wire(), indent=2, ensure_ascii=False)


def build_enhance_prompts(request: EnhancementRequest) -> PromptPair:
    level = LEVEL_PROMPTS.get(request.enhancement_level, LEVEL_PROMPTS["moderate"])
    system = f"{ENHANCE_SYSTEM_PROMPT}\n\nEnhancement Level: {level}"

    parts = [f"Please enhance this resume data:\n\n{_document_json(request.parsed_data)}"]
    if request.job_description:
        parts.append(f"Target Job Description:\n{request.job_description}")
    instructions = sanitize_instructions(request.user_instructions or "")
    if instructions:
        parts.append(f"Special Instructions:\n{instructions}")
    if request.focus_areas:
        parts.append(f"Focus Areas: {', '.join(request.focus_areas)}")
    parts.append(f"Return a JSON object with:\n{ENHANCE_RESPONSE_SHAPE}")
    return PromptPair(system=system, user="\n\n".join(parts))


def build_reparse_prompts(request: EnhancementRequest, *, stamp: int | None = None) -> PromptPair:
    stamp = stamp if stamp is not None else int(time.time() * 1000)
    system = REPARSE_SYSTEM_PROMPT.replace("{stamp}", str(stamp))

    parts = [
        f"Raw resume text:\n\n{request.original_text}",
        f"Existing best-effort parse (use only as context, correct it where the text disagrees):\n\n{_document_json(request.parsed_data)}",
    ]
    instructions = sanitize_instructions(request.user_instructions or "")
    if instructions:
        parts.append(f"Special Instructions:\n{instructions}")
    parts.append(f"Populate exactly this JSON document:\n{REPARSE_DOCUMENT_SHAPE}")
    return PromptPair(system=system, user="\n\n".join(parts), stamp=stamp)


def build_prompts(request: EnhancementRequest, *, stamp: int | None = None) -> PromptPair:
    """Select the template matching ``request.mode``."""

    if request.mode == "reparse":
        return build_reparse_prompts(request, stamp=stamp)
    return build_enhance_prompts(request)


CONNECTION_TEST_PROMPT = "Hello, this is a connection test. Please respond with 'OK'."
CONNECTION_TEST_SYSTEM_PROMPT = "You are a helpful assistant. Reply briefly."
