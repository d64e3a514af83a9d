from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import Response

from resume_enhancer.application import get_context

router = APIRouter(prefix="/usage", tags=["usage"])

LIMIT_FIELDS = {
    "dailyLimit": "daily_limit",
    "monthlyLimit": "monthly_limit",
    "alertDaily": "alert_daily",
    "alertMonthly": "alert_monthly",
    "warningRatio": "warning_ratio",
}


@router.get("/stats")
async def usage_stats(days: int = Query(30, ge=1, le=3650)) -> dict:
    stats = get_context().usage.get_stats(days)
    return stats.to_dict()


@router.get("/cost")
async def cost_monitoring() -> dict:
    return get_context().usage.get_cost_monitoring().to_dict()


@router.put("/limits")
async def update_limits(payload: dict) -> dict:
    flattened = dict(payload)
    thresholds = flattened.pop("alertThresholds", None)
    if isinstance(thresholds, dict):
        flattened.setdefault("alertDaily", thresholds.get("daily"))
        flattened.setdefault("alertMonthly", thresholds.get("monthly"))

    changes: dict[str, float | None] = {}
    for key, value in flattened.items():
        name = LIMIT_FIELDS.get(key)
        if name is None:
            raise HTTPException(status_code=400, detail=f"unknown limit: {key}")
        if value is not None:
            try:
                value = float(value)
            except (TypeError, ValueError):
                raise HTTPException(status_code=400, detail=f"{key} must be a number") from None
        changes[name] = value

    tracker = get_context().usage
    try:
        tracker.set_cost_limits(**changes)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return tracker.get_cost_monitoring().to_dict()


@router.get("/events")
async def recent_events(limit: int = Query(50, ge=1, le=1000)) -> dict:
    events = get_context().usage.recent_events(limit)
    return {"items": [event.to_dict() for event in events]}


@router.delete("/events")
async def clear_old_events(days_to_keep: int = Query(90, ge=0)) -> dict:
    removed = get_context().usage.clear_old_data(days_to_keep)
    return {"removed": removed}


@router.get("/export")
async def export_usage(format: str = Query("json")) -> Response:
    if format not in {"json", "csv"}:
        raise HTTPException(status_code=400, detail="format must be json or csv")
    content = get_context().usage.export_usage(format)  # type: ignore[arg-type]
    media_type = "text/csv" if format == "csv" else "application/json"
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="ai-usage.{format}"'},
    )
