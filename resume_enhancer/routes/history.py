from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query

from resume_enhancer.application import get_context

router = APIRouter(prefix="/history", tags=["history"])


def _review_state(history_id: str) -> dict:
    context = get_context()
    try:
        entry = context.history.get_entry(history_id)
        review = context.reviews.get(history_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="history entry not found") from None
    return {"entry": entry.summary(), **review.to_dict()}


@router.get("")
async def list_history(
    provider: str | None = None,
    tag: str | None = None,
    limit: int | None = Query(None, ge=1),
) -> dict:
    entries = get_context().history.list_entries(provider=provider, tag=tag, limit=limit)
    return {"items": [entry.summary() for entry in entries]}


@router.get("/stats")
async def history_stats() -> dict:
    return get_context().history.get_stats()


@router.get("/{history_id}")
async def get_history_entry(history_id: str) -> dict:
    return _review_state(history_id)


@router.patch("/{history_id}")
async def update_history_entry(history_id: str, payload: dict) -> dict:
    tags = payload.get("tags")
    if tags is not None and not isinstance(tags, list):
        raise HTTPException(status_code=400, detail="tags must be a list")
    try:
        entry = get_context().history.update_metadata(history_id, tags=tags, notes=payload.get("notes"))
    except KeyError:
        raise HTTPException(status_code=404, detail="history entry not found") from None
    return entry.summary()


@router.delete("/{history_id}")
async def delete_history_entry(history_id: str) -> dict:
    context = get_context()
    if not context.history.delete_entry(history_id):
        raise HTTPException(status_code=404, detail="history entry not found")
    context.reviews.close(history_id)
    return {"deleted": history_id}


@router.post("/{history_id}/suggestions/{suggestion_id}")
async def review_suggestion(history_id: str, suggestion_id: str, payload: dict) -> dict:
    action = payload.get("action")
    if action not in {"accepted", "rejected"}:
        raise HTTPException(status_code=400, detail="action must be accepted or rejected")
    context = get_context()
    try:
        review = context.reviews.get(history_id)
        if action == "accepted":
            review.accept(suggestion_id)
        else:
            review.reject(suggestion_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="suggestion not found") from None
    return _review_state(history_id)


@router.post("/{history_id}/accept-all")
async def accept_all(history_id: str) -> dict:
    try:
        get_context().reviews.get(history_id).accept_all()
    except KeyError:
        raise HTTPException(status_code=404, detail="history entry not found") from None
    return _review_state(history_id)


@router.post("/{history_id}/reject-all")
async def reject_all(history_id: str) -> dict:
    try:
        get_context().reviews.get(history_id).reject_all()
    except KeyError:
        raise HTTPException(status_code=404, detail="history entry not found") from None
    return _review_state(history_id)
