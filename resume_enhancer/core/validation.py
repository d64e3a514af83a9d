from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from resume_enhancer.core.schema import SECTIONS, ResumeData


@dataclass(slots=True)
class DocumentValidation:
    ok: bool
    data: ResumeData | None = None
    errors: list[str] = field(default_factory=list)


def _format_errors(exc: ValidationError) -> list[str]:
    errors: list[str] = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        errors.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return errors


def validate_document(candidate: Any) -> DocumentValidation:
    """Validate ``candidate`` against the résumé document shape."""

    if isinstance(candidate, ResumeData):
        return DocumentValidation(ok=True, data=candidate)
    if not isinstance(candidate, dict):
        return DocumentValidation(ok=False, errors=["document must be a JSON object"])
    try:
        data = ResumeData.model_validate(candidate)
    except ValidationError as exc:
        return DocumentValidation(ok=False, errors=_format_errors(exc))
    return DocumentValidation(ok=True, data=data)


def has_any_section(candidate: Any) -> bool:
    if not isinstance(candidate, dict):
        return False
    return any(section in candidate for section in SECTIONS)


def fill_missing_ids(data: ResumeData, *, stamp: int | None = None) -> ResumeData:
    """Return a copy where every list item carries an id of the form ``<section>-<stamp>-<index>``."""

    stamp = stamp if stamp is not None else int(time.time() * 1000)
    updated = data.model_copy(deep=True)
    for section in ("skills", "experience", "education", "projects"):
        for index, item in enumerate(getattr(updated, section)):
            if not item.id:
                item.id = f"{section}-{stamp}-{index}"
    for exp_index, experience in enumerate(updated.experience):
        for index, bullet in enumerate(experience.bullet_points):
            if not bullet.id:
                bullet.id = f"bullet-{stamp}-{exp_index}-{index}"
    return updated


_INJECTION_PATTERNS = (
    re.compile(r"ignore.{0,10}(previous|above|system)", re.IGNORECASE),
    re.compile(r"forget.{0,10}(instructions|rules)", re.IGNORECASE),
    re.compile(r"act.{0,10}as.{0,10}(admin|root|developer)", re.IGNORECASE),
    re.compile(r"pretend.{0,10}(you|to).{0,10}(are|be)", re.IGNORECASE),
)
_SUSPICIOUS_MODEL = re.compile(r"[<>{}\[\]]|javascript:|data:", re.IGNORECASE)
_RESUME_WORDS = ("resume", "achievement", "bullet", "experience")

MAX_INSTRUCTIONS = 500
LONG_JOB_DESCRIPTION = 10000
MAX_FOCUS_AREAS = 3


def sanitize_instructions(instructions: str) -> str:
    """Filter prompt-injection phrases out of free-form user instructions."""

    if not instructions:
        return ""
    sanitized = instructions
    for pattern in _INJECTION_PATTERNS:
        sanitized = pattern.sub("[filtered]", sanitized)
    if len(sanitized) > MAX_INSTRUCTIONS:
        sanitized = sanitized[: MAX_INSTRUCTIONS - 3] + "..."
    lowered = sanitized.lower()
    if sanitized.strip() and not any(word in lowered for word in _RESUME_WORDS):
        sanitized = f"Resume enhancement: {sanitized}"
    return sanitized.strip()


@dataclass(slots=True)
class InputCheck:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def check_request_inputs(
    *,
    model: str | None = None,
    job_description: str | None = None,
    user_instructions: str | None = None,
    focus_areas: tuple[str, ...] | list[str] = (),
) -> InputCheck:
    """Pre-flight checks on user supplied enhancement settings."""

    check = InputCheck()
    if model:
        if not 3 <= len(model) <= 50:
            check.errors.append("model: custom model name must be between 3 and 50 characters")
        if _SUSPICIOUS_MODEL.search(model):
            check.errors.append("model: model name contains invalid characters")
    if job_description and len(job_description) > LONG_JOB_DESCRIPTION:
        check.warnings.append("jobDescription: job description is very long and may increase processing time")
    if user_instructions:
        if len(user_instructions) > MAX_INSTRUCTIONS:
            check.errors.append(f"userInstructions: must be under {MAX_INSTRUCTIONS} characters")
        if any(pattern.search(user_instructions) for pattern in _INJECTION_PATTERNS):
            check.warnings.append("userInstructions: instructions may conflict with AI safety guidelines")
    if len(focus_areas) > MAX_FOCUS_AREAS:
        check.warnings.append("focusAreas: too many focus areas may dilute enhancement quality")
    return check
