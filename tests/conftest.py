from __future__ import annotations

import sys
from pathlib import Path

import httpx
import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from resume_enhancer.core.schema import EnhancementRequest, ResumeData
from resume_enhancer.domain.providers import Provider
from resume_enhancer.infrastructure.providers import Completion


@pytest.fixture
def anyio_backend():
    return "asyncio"


SAMPLE_DOCUMENT = {
    "personal": {
        "fullName": "Jane Doe",
        "location": "Berlin",
        "email": "jane@example.com",
        "phone": "",
        "linkedin": "",
        "summary": "Backend engineer.",
    },
    "skills": [{"id": "skills-1-0", "name": "Python", "category": "Languages"}],
    "experience": [
        {
            "id": "exp-1",
            "company": "Acme",
            "position": "Engineer",
            "location": "Berlin",
            "startDate": "2021",
            "endDate": "",
            "isCurrent": True,
            "bulletPoints": [
                {"id": "b-1", "text": "worked on ingestion jobs"},
                {"id": "b-2", "text": "helped with the api"},
            ],
        }
    ],
    "education": [{"id": "edu-1", "school": "TU Berlin", "degree": "BSc", "graduationYear": "2020"}],
    "projects": [],
}


@pytest.fixture
def sample_document() -> ResumeData:
    return ResumeData.model_validate(SAMPLE_DOCUMENT)


@pytest.fixture
def enhance_request(sample_document) -> EnhancementRequest:
    return EnhancementRequest(
        original_text="Jane Doe\nBackend engineer.",
        parsed_data=sample_document,
        enhancement_level="light",
        mode="enhance",
    )


class ScriptedAdapter:
    """Adapter double replaying queued texts or exceptions in order."""

    def __init__(self, provider: Provider, *responses: object) -> None:
        self.provider = provider
        self._responses = list(responses)
        self.calls: list[dict[str, object]] = []

    async def send_completion(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        api_key: str,
        model: str | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.7,
    ) -> Completion:
        self.calls.append(
            {
                "system": system_prompt,
                "user": user_prompt,
                "api_key": api_key,
                "model": model,
                "max_tokens": max_tokens,
                "temperature": temperature,
            }
        )
        item = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(item, BaseException):
            raise item
        return Completion(text=str(item), model=model or self.provider.info.default_model, input_tokens=1000, output_tokens=500)

    async def list_models(self, api_key: str):
        return []

    async def aclose(self) -> None:
        return None


@pytest.fixture
def scripted():
    return ScriptedAdapter


def _http_error(status: int, body: str = "", headers: dict[str, str] | None = None) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://provider.test/v1/complete")
    response = httpx.Response(status, text=body, headers=headers, request=request)
    return httpx.HTTPStatusError(f"HTTP {status}", request=request, response=response)


@pytest.fixture
def http_error():
    return _http_error


@pytest.fixture
def recorded_sleep():
    delays: list[float] = []

    async def sleep(seconds: float) -> None:
        delays.append(seconds)

    sleep.delays = delays  # type: ignore[attr-defined]
    return sleep
