"""Enhancement history with per-session review bookkeeping."""
from __future__ import annotations

import uuid
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Literal

from resume_enhancer.core.schema import EnhancementRequest, EnhancementResult
from resume_enhancer.domain.usage import HistoryEntry
from resume_enhancer.infrastructure.history import HistoryRepository, InMemoryHistoryRepository

Action = Literal["accepted", "rejected"]


def generate_tags(request: EnhancementRequest, result: EnhancementResult) -> list[str]:
    tags = [result.provider.value, request.enhancement_level]
    tags.extend(request.focus_areas)
    if request.job_description:
        tags.append("job-targeted")

    if result.confidence >= 0.9:
        tags.append("high-confidence")
    elif result.confidence >= 0.7:
        tags.append("medium-confidence")
    else:
        tags.append("low-confidence")

    count = len(result.suggestions)
    if count >= 15:
        tags.append("many-suggestions")
    elif count >= 8:
        tags.append("moderate-suggestions")
    elif count > 0:
        tags.append("few-suggestions")
    else:
        tags.append("no-suggestions")
    return tags


class EnhancementHistory:
    """Records completed sessions and the user's accept/reject decisions."""

    def __init__(
        self,
        repository: HistoryRepository | None = None,
        *,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._repository = repository or InMemoryHistoryRepository()
        self._clock = clock

    def add_entry(self, request: EnhancementRequest, result: EnhancementResult) -> HistoryEntry:
        now = self._clock()
        entry = HistoryEntry(
            id=f"enhancement-{int(now.timestamp() * 1000)}-{uuid.uuid4().hex[:9]}",
            timestamp=now,
            result=result,
            provider=result.provider.value,
            model=result.model,
            mode=request.mode,
            enhancement_level=request.enhancement_level,
            has_job_description=bool(request.job_description),
            focus_areas=tuple(request.focus_areas),
            estimated_cost=result.estimated_cost,
            tags=generate_tags(request, result),
        )
        self._repository.add(entry)
        return entry

    def get_entry(self, entry_id: str) -> HistoryEntry:
        entry = self._repository.get(entry_id)
        if entry is None:
            raise KeyError(entry_id)
        return entry

    def list_entries(
        self,
        *,
        provider: str | None = None,
        tag: str | None = None,
        min_confidence: float | None = None,
        limit: int | None = None,
    ) -> list[HistoryEntry]:
        entries = self._repository.entries()
        if provider:
            entries = [entry for entry in entries if entry.provider == provider]
        if tag:
            entries = [entry for entry in entries if tag in entry.tags]
        if min_confidence is not None:
            entries = [entry for entry in entries if entry.result.confidence >= min_confidence]
        return entries[:limit] if limit else entries

    def record_suggestion_action(self, entry_id: str, suggestion_id: str, action: Action) -> HistoryEntry:
        entry = self.get_entry(entry_id)
        if suggestion_id not in entry.suggestion_ids:
            raise KeyError(suggestion_id)
        if action == "accepted":
            target, other = entry.accepted_suggestions, entry.rejected_suggestions
        elif action == "rejected":
            target, other = entry.rejected_suggestions, entry.accepted_suggestions
        else:
            raise ValueError(f"unknown suggestion action: {action}")
        if suggestion_id in other:
            other.remove(suggestion_id)
        if suggestion_id not in target:
            target.append(suggestion_id)
        return entry

    def update_metadata(self, entry_id: str, *, tags: list[str] | None = None, notes: str | None = None) -> HistoryEntry:
        entry = self.get_entry(entry_id)
        if tags is not None:
            entry.tags = list(tags)
        if notes is not None:
            entry.notes = notes
        return entry

    def delete_entry(self, entry_id: str) -> bool:
        return self._repository.delete(entry_id)

    def clear_old_entries(self, days_to_keep: int = 180) -> int:
        cutoff = self._clock() - timedelta(days=days_to_keep)
        removed = 0
        for entry in self._repository.entries():
            if entry.timestamp < cutoff:
                self._repository.delete(entry.id)
                removed += 1
        return removed

    def acceptance_rate(self) -> float:
        entries = self._repository.entries()
        total = sum(len(entry.result.suggestions) for entry in entries)
        if not total:
            return 0.0
        return sum(len(entry.accepted_suggestions) for entry in entries) / total

    def get_stats(self) -> dict[str, Any]:
        entries = self._repository.entries()
        if not entries:
            return {
                "totalEnhancements": 0,
                "averageConfidence": 0.0,
                "totalCost": 0.0,
                "mostUsedProvider": "",
                "mostUsedLevel": "",
                "topTags": [],
                "acceptanceRate": 0.0,
            }
        providers = Counter(entry.provider for entry in entries)
        levels = Counter(entry.enhancement_level for entry in entries)
        tags = Counter(tag for entry in entries for tag in entry.tags)
        return {
            "totalEnhancements": len(entries),
            "averageConfidence": sum(entry.result.confidence for entry in entries) / len(entries),
            "totalCost": sum(entry.estimated_cost for entry in entries),
            "mostUsedProvider": providers.most_common(1)[0][0],
            "mostUsedLevel": levels.most_common(1)[0][0],
            "topTags": [{"tag": tag, "count": count} for tag, count in tags.most_common(10)],
            "acceptanceRate": self.acceptance_rate(),
        }

    def reset(self) -> None:
        self._repository.reset()
