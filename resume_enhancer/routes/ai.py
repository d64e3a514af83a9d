from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import ValidationError

from resume_enhancer.application import get_context, recovery_plan
from resume_enhancer.core.schema import EnhancementOptions, EnhancementRequest
from resume_enhancer.core.validation import check_request_inputs
from resume_enhancer.domain.errors import AIError, ErrorKind
from resume_enhancer.domain.providers import Provider, parse_provider

router = APIRouter(prefix="/ai", tags=["ai"])

STATUS_BY_KIND = {
    ErrorKind.API_KEY_INVALID: 401,
    ErrorKind.QUOTA_EXCEEDED: 402,
    ErrorKind.RATE_LIMIT: 429,
    ErrorKind.NETWORK_ERROR: 503,
    ErrorKind.MODEL_UNAVAILABLE: 503,
    ErrorKind.UNKNOWN: 502,
}


def _ai_error(error: AIError, attempts_used: int, max_attempts: int) -> HTTPException:
    plan = recovery_plan(error, attempts_used, max_attempts)
    return HTTPException(
        status_code=STATUS_BY_KIND.get(error.kind, 502),
        detail={"error": error.to_dict(), "recovery": plan.to_dict()},
    )


def _validation_error(exc: ValidationError) -> HTTPException:
    errors = [
        {"loc": [str(part) for part in item.get("loc", ())], "msg": item.get("msg")}
        for item in exc.errors()
    ]
    return HTTPException(status_code=422, detail={"errors": errors})


def _provider(value: Any) -> Provider:
    provider = parse_provider(value)
    if provider is None:
        raise HTTPException(status_code=400, detail="provider must be one of openai, anthropic, gemini")
    return provider


def _api_key(payload: dict, provider: Provider) -> str | None:
    key = payload.get("apiKey")
    if key:
        return str(key)
    return get_context().key_store.get_api_key(provider)


@router.post("/enhance")
async def enhance(payload: dict) -> dict:
    options_payload = payload.get("options")
    if not isinstance(options_payload, dict) or not options_payload.get("provider"):
        raise HTTPException(status_code=400, detail="options.provider is required")
    try:
        request = EnhancementRequest.model_validate(payload)
        options = EnhancementOptions.model_validate(options_payload)
    except ValidationError as exc:
        raise _validation_error(exc) from exc

    check = check_request_inputs(
        model=options.model,
        job_description=request.job_description,
        user_instructions=request.user_instructions,
        focus_areas=request.focus_areas,
    )
    if not check.ok:
        raise HTTPException(status_code=422, detail={"errors": check.errors, "warnings": check.warnings})

    context = get_context()
    max_attempts = options.max_attempts or context.orchestrator.policy.max_attempts
    try:
        result = await context.orchestrator.enhance(request, _api_key(payload, options.provider), options)
    except AIError as exc:
        raise _ai_error(exc, max_attempts, max_attempts) from exc

    if result.history_id:
        context.reviews.open(result.history_id, result)
    return {"result": result.to_wire(), "warnings": check.warnings}


@router.post("/test")
async def test_connection(payload: dict) -> dict:
    provider = _provider(payload.get("provider"))
    context = get_context()
    result = await context.orchestrator.test_connection(provider, _api_key(payload, provider), payload.get("model"))
    return result.to_dict()


@router.post("/models")
async def list_models(payload: dict) -> dict:
    provider = _provider(payload.get("provider"))
    context = get_context()
    try:
        models = await context.orchestrator.list_models(provider, _api_key(payload, provider))
    except AIError as exc:
        raise _ai_error(exc, 1, 1) from exc
    return {"provider": provider.value, "models": [model.to_dict() for model in models]}


@router.post("/estimate")
async def estimate(payload: dict) -> dict:
    try:
        request = EnhancementRequest.model_validate({"parsedData": {}, **payload})
    except ValidationError as exc:
        raise _validation_error(exc) from exc

    costs = get_context().costs
    if payload.get("provider"):
        provider = _provider(payload.get("provider"))
        estimate_ = costs.estimate_enhancement_cost(request, provider, payload.get("model"))
        if estimate_ is None:
            raise HTTPException(status_code=404, detail="no pricing known for this model")
        return {"estimates": [estimate_.to_dict()]}
    return {"estimates": [item.to_dict() for item in costs.compare_providers(request)]}
