from __future__ import annotations

import pytest

from resume_enhancer.application.history import EnhancementHistory
from resume_enhancer.application.suggestions import PathError, ReviewSessions, SuggestionReview, apply_value, suggestion_path
from resume_enhancer.core.schema import EnhancementRequest, EnhancementResult, Suggestion
from resume_enhancer.domain.providers import Provider


def _result(document) -> EnhancementResult:
    enhanced = document.model_copy(deep=True)
    enhanced.personal.summary = "Backend engineer building reliable data pipelines."
    enhanced.experience[0].bullet_points[0].text = "Built ingestion jobs processing 2M rows/day"
    return EnhancementResult(
        original_data=document,
        enhanced_data=enhanced,
        suggestions=[
            Suggestion(
                id="s-summary",
                field="summary",
                section="personal",
                original_value="Backend engineer.",
                suggested_value="Backend engineer building reliable data pipelines.",
            ),
            Suggestion(
                id="s-bullet",
                field="experience.0.bulletPoints.0.text",
                section="experience",
                original_value="worked on ingestion jobs",
                suggested_value="Built ingestion jobs processing 2M rows/day",
            ),
            Suggestion(
                id="s-lost",
                field="certifications.0.name",
                section="certifications",
                original_value="",
                suggested_value="AWS",
            ),
        ],
        confidence=0.9,
        provider=Provider.OPENAI,
        model="gpt-4o",
        processing_time_ms=1200,
    )


@pytest.fixture
def history_and_review(sample_document):
    history = EnhancementHistory()
    result = _result(sample_document)
    entry = history.add_entry(EnhancementRequest(parsed_data=sample_document), result)
    review = SuggestionReview(result, history=history, history_id=entry.id)
    return history, entry, review


def test_paths_resolve_relative_to_section_and_aliases():
    relative = Suggestion(id="a", field="summary", section="personalInfo")
    absolute = Suggestion(id="b", field="experience[0].bulletPoints[1]", section="experience")

    assert suggestion_path(relative) == ["personal", "summary"]
    assert suggestion_path(absolute) == ["experience", "0", "bulletPoints", "1"]


def test_apply_value_addresses_items_by_id_and_bullet_text(sample_document):
    updated = apply_value(sample_document, ["experience", "exp-1", "bulletPoints", "b-2"], "Shipped the public API")

    assert updated.experience[0].bullet_points[1].text == "Shipped the public API"
    assert sample_document.experience[0].bullet_points[1].text == "helped with the api"

    with pytest.raises(PathError):
        apply_value(sample_document, ["skills", "7", "name"], "Go")


def test_accept_patches_only_the_targeted_field(history_and_review, sample_document):
    _, _, review = history_and_review

    document = review.accept("s-summary")

    assert document.personal.summary == "Backend engineer building reliable data pipelines."
    assert document.experience == sample_document.experience


def test_accept_twice_is_a_no_op(history_and_review):
    history, entry, review = history_and_review

    first = review.accept("s-bullet")
    second = review.accept("s-bullet")

    assert first == second
    assert history.get_entry(entry.id).accepted_suggestions == ["s-bullet"]


def test_reject_after_accept_restores_original_value(history_and_review, sample_document):
    history, entry, review = history_and_review

    review.accept("s-bullet")
    document = review.reject("s-bullet")

    assert document.experience[0].bullet_points[0].text == "worked on ingestion jobs"
    stored = history.get_entry(entry.id)
    assert stored.accepted_suggestions == []
    assert stored.rejected_suggestions == ["s-bullet"]


def test_reject_pending_leaves_document_untouched(history_and_review, sample_document):
    _, _, review = history_and_review

    assert review.reject("s-summary") == sample_document
    assert [suggestion.id for suggestion in review.pending()] == ["s-bullet", "s-lost"]


def test_unresolved_path_is_marked_but_document_unchanged(history_and_review, sample_document):
    _, _, review = history_and_review

    document = review.accept("s-lost")

    assert document == sample_document
    assert [suggestion.accepted for suggestion in review.suggestions if suggestion.id == "s-lost"] == [True]


def test_accept_all_replaces_document_and_is_idempotent(history_and_review):
    history, entry, review = history_and_review

    first = review.accept_all()
    second = review.accept_all()

    assert first == second
    assert first.experience[0].bullet_points[0].text.startswith("Built")
    assert review.pending() == []
    assert sorted(history.get_entry(entry.id).accepted_suggestions) == ["s-bullet", "s-lost", "s-summary"]


def test_reject_all_restores_original(history_and_review, sample_document):
    history, entry, review = history_and_review

    review.accept("s-summary")
    assert review.reject_all() == sample_document
    assert history.get_entry(entry.id).acceptance_rate == 0.0


def test_unknown_suggestion_raises_key_error(history_and_review):
    _, _, review = history_and_review

    with pytest.raises(KeyError):
        review.accept("missing")


def test_review_sessions_reopen_from_history(history_and_review):
    history, entry, _ = history_and_review
    sessions = ReviewSessions(history)

    review = sessions.get(entry.id)
    assert sessions.get(entry.id) is review
    assert review.history_id == entry.id

    sessions.close(entry.id)
    assert sessions.get(entry.id) is not review

    with pytest.raises(KeyError):
        sessions.get("enhancement-0-missing")
