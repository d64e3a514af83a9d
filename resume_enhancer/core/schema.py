from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from resume_enhancer.domain.providers import Provider

SECTIONS: tuple[str, ...] = ("personal", "skills", "experience", "education", "projects")
DEFAULT_SUGGESTION_CONFIDENCE = 0.8

EnhancementLevel = Literal["light", "moderate", "comprehensive"]
EnhancementMode = Literal["enhance", "reparse"]
SuggestionType = Literal["improvement", "addition", "correction", "enhancement"]


class WireModel(BaseModel):
    """Base for models exchanged with the UI and the providers in camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class PersonalInfo(WireModel):
    full_name: str = ""
    location: str = ""
    email: str = ""
    phone: str = ""
    linkedin: str = ""
    summary: str = ""


class BulletPoint(WireModel):
    id: str = ""
    text: str = ""


class Experience(WireModel):
    id: str = ""
    company: str = ""
    position: str = ""
    location: str = ""
    start_date: str = ""
    end_date: str = ""
    is_current: bool | None = None
    bullet_points: list[BulletPoint] = Field(default_factory=list)


class Education(WireModel):
    id: str = ""
    school: str = ""
    degree: str = ""
    graduation_year: str = ""


class Project(WireModel):
    id: str = ""
    name: str = ""
    link: str = ""
    description: str = ""


class Skill(WireModel):
    id: str = ""
    name: str = ""
    category: str | None = None


class ResumeData(WireModel):
    """Canonical structured résumé document."""

    personal: PersonalInfo = Field(default_factory=PersonalInfo)
    skills: list[Skill] = Field(default_factory=list)
    experience: list[Experience] = Field(default_factory=list)
    education: list[Education] = Field(default_factory=list)
    projects: list[Project] = Field(default_factory=list)


class Suggestion(WireModel):
    id: str
    field: str
    section: str
    original_value: str = ""
    suggested_value: str = ""
    reasoning: str = ""
    confidence: float = Field(default=DEFAULT_SUGGESTION_CONFIDENCE, ge=0.0, le=1.0)
    type: SuggestionType = "improvement"
    accepted: bool | None = None

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: object) -> object:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            if not math.isfinite(value):
                return DEFAULT_SUGGESTION_CONFIDENCE
            return min(max(float(value), 0.0), 1.0)
        return value

    @field_validator("type", mode="before")
    @classmethod
    def _known_type(cls, value: object) -> object:
        if value not in {"improvement", "addition", "correction", "enhancement"}:
            return "improvement"
        return value


class EnhancementRequest(WireModel):
    """Input of one orchestration session. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    original_text: str = ""
    parsed_data: ResumeData
    job_description: str | None = None
    user_instructions: str | None = None
    focus_areas: tuple[str, ...] = ()
    enhancement_level: EnhancementLevel = "moderate"
    mode: EnhancementMode = "enhance"


class EnhancementOptions(WireModel):
    """Per-call orchestration settings supplied by the caller."""

    provider: Provider
    model: str | None = None
    enable_fallback: bool = False
    fallback_provider: Provider | None = None
    fallback_model: str | None = None
    fallback_api_key: str | None = None
    max_tokens: int = Field(default=2000, gt=0)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_attempts: int | None = Field(default=None, ge=1)


class EnhancementResult(WireModel):
    original_data: ResumeData
    enhanced_data: ResumeData
    suggestions: list[Suggestion] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)
    provider: Provider
    model: str
    processing_time_ms: int
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    success: bool = True
    tokens_used: int = 0
    estimated_cost: float = 0.0
    attempts: int = 1
    fallback_used: bool = False
    history_id: str | None = None
