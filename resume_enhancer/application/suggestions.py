"""Per-suggestion review and reconciliation into the canonical document.

Field paths use the wire (camelCase) names: ``section.field`` for the
personal block and ``section.<index|id>.field`` for list sections, nesting
further for bullet points, e.g. ``experience.0.bulletPoints.1.text``.  A
suggestion whose ``field`` is not already a full path is addressed relative
to its ``section``.
"""
from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from resume_enhancer.application.history import EnhancementHistory
from resume_enhancer.core.schema import SECTIONS, EnhancementResult, ResumeData, Suggestion

logger = logging.getLogger(__name__)

SECTION_ALIASES = {
    "personalInfo": "personal",
    "personal_info": "personal",
    "personalinfo": "personal",
    "skill": "skills",
    "projectList": "projects",
}


class PathError(LookupError):
    """Raised when a suggestion's field path does not resolve."""


def _section_name(value: str) -> str:
    return SECTION_ALIASES.get(value, value)


def suggestion_path(suggestion: Suggestion) -> list[str]:
    parts = [part for part in suggestion.field.replace("[", ".").replace("]", "").split(".") if part]
    if parts and _section_name(parts[0]) in SECTIONS:
        parts[0] = _section_name(parts[0])
        return parts
    return [_section_name(suggestion.section), *parts]


def _child(node: Any, key: str) -> tuple[Any, Any]:
    """Return ``(container_key, child)`` for ``key`` within ``node``."""

    if isinstance(node, dict):
        for candidate in (key, to_camel(key)):
            if candidate in node:
                return candidate, node[candidate]
        raise PathError(key)
    if isinstance(node, list):
        if key.isdigit():
            index = int(key)
            if index < len(node):
                return index, node[index]
            raise PathError(key)
        for index, item in enumerate(node):
            if isinstance(item, dict) and item.get("id") == key:
                return index, item
        raise PathError(key)
    raise PathError(key)


def apply_value(data: ResumeData, path: list[str], value: str) -> ResumeData:
    """Return a copy of ``data`` with ``value`` written at ``path``."""

    if not path or path[0] not in SECTIONS:
        raise PathError(".".join(path))
    document = data.to_wire()
    parent: Any = None
    slot: Any = None
    node: Any = document
    for key in path:
        parent = node
        slot, node = _child(node, key)
    if isinstance(node, dict):
        # a bullet or list item addressed without a field
        if "text" not in node:
            raise PathError(".".join(path))
        parent, slot = node, "text"
    elif isinstance(node, list):
        raise PathError(".".join(path))
    parent[slot] = value
    try:
        return ResumeData.model_validate(document)
    except ValidationError as exc:
        raise PathError(".".join(path)) from exc


class SuggestionReview:
    """Review session over one :class:`EnhancementResult`.

    ``accept``/``reject`` are idempotent per suggestion; a later opposite
    decision by the user is applied, reverting or re-applying the field.
    """

    def __init__(self, result: EnhancementResult, *, history: EnhancementHistory | None = None, history_id: str | None = None) -> None:
        self._result = result.model_copy(deep=True)
        self._document = self._result.original_data.model_copy(deep=True)
        self._history = history
        self._history_id = history_id or result.history_id
        self._by_id: dict[str, Suggestion] = {suggestion.id: suggestion for suggestion in self._result.suggestions}

    @property
    def document(self) -> ResumeData:
        return self._document.model_copy(deep=True)

    @property
    def history_id(self) -> str | None:
        return self._history_id

    @property
    def suggestions(self) -> list[Suggestion]:
        return [suggestion.model_copy() for suggestion in self._result.suggestions]

    def pending(self) -> list[Suggestion]:
        return [suggestion.model_copy() for suggestion in self._result.suggestions if suggestion.accepted is None]

    # ------------------------------------------------------------------
    # per suggestion
    # ------------------------------------------------------------------
    def _get(self, suggestion_id: str) -> Suggestion:
        try:
            return self._by_id[suggestion_id]
        except KeyError:
            raise KeyError(suggestion_id) from None

    def _write(self, suggestion: Suggestion, value: str) -> None:
        path = suggestion_path(suggestion)
        try:
            self._document = apply_value(self._document, path, value)
        except PathError:
            logger.warning("suggestion %s targets unresolved path %s; document unchanged", suggestion.id, ".".join(path))

    def _record(self, suggestion_id: str, action: str) -> None:
        if self._history is not None and self._history_id:
            self._history.record_suggestion_action(self._history_id, suggestion_id, action)

    def accept(self, suggestion_id: str) -> ResumeData:
        suggestion = self._get(suggestion_id)
        if suggestion.accepted is not True:
            self._write(suggestion, suggestion.suggested_value)
            suggestion.accepted = True
            self._record(suggestion_id, "accepted")
        return self.document

    def reject(self, suggestion_id: str) -> ResumeData:
        suggestion = self._get(suggestion_id)
        if suggestion.accepted is not False:
            if suggestion.accepted is True:
                self._write(suggestion, suggestion.original_value)
            suggestion.accepted = False
            self._record(suggestion_id, "rejected")
        return self.document

    # ------------------------------------------------------------------
    # bulk
    # ------------------------------------------------------------------
    def _mark_all(self, accepted: bool) -> None:
        action = "accepted" if accepted else "rejected"
        for suggestion in self._result.suggestions:
            if suggestion.accepted is not accepted:
                suggestion.accepted = accepted
                self._record(suggestion.id, action)

    def accept_all(self) -> ResumeData:
        self._document = self._result.enhanced_data.model_copy(deep=True)
        self._mark_all(True)
        return self.document

    def reject_all(self) -> ResumeData:
        self._document = self._result.original_data.model_copy(deep=True)
        self._mark_all(False)
        return self.document

    def to_dict(self) -> dict[str, Any]:
        return {
            "historyId": self._history_id,
            "document": self._document.to_wire(),
            "suggestions": [suggestion.to_wire() for suggestion in self._result.suggestions],
        }


class ReviewSessions:
    """Open review sessions keyed by history entry id."""

    def __init__(self, history: EnhancementHistory | None = None) -> None:
        self._history = history
        self._sessions: dict[str, SuggestionReview] = {}

    def open(self, history_id: str, result: EnhancementResult) -> SuggestionReview:
        review = self._sessions.get(history_id)
        if review is None:
            review = SuggestionReview(result, history=self._history, history_id=history_id)
            self._sessions[history_id] = review
        return review

    def get(self, history_id: str) -> SuggestionReview:
        review = self._sessions.get(history_id)
        if review is None and self._history is not None:
            entry = self._history.get_entry(history_id)
            review = self.open(history_id, entry.result)
        if review is None:
            raise KeyError(history_id)
        return review

    def close(self, history_id: str) -> None:
        self._sessions.pop(history_id, None)

    def reset(self) -> None:
        self._sessions.clear()


__all__ = ["PathError", "ReviewSessions", "SuggestionReview", "apply_value", "suggestion_path"]
