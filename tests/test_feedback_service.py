"""Tests for feedback capture and learning signals."""

import pytest

from app.core.feedback import FeedbackService, pattern_id_for
from app.core.schemas_feedback import (
    FeedbackType,
    InsightType,
    LearningSignalType,
    ModificationAction,
    UserContext,
)
from app.core.schemas_prediction import StructurePrediction


@pytest.fixture
def service() -> FeedbackService:
    return FeedbackService()


@pytest.fixture
def permit_prediction() -> StructurePrediction:
    return StructurePrediction(module_type="permit", confidence=0.9, pattern_id="hse-permit-default")


def _user(company_id: str = "acme") -> UserContext:
    return UserContext(user_id="u-1", company_id=company_id)


def _submit(service, prediction, feedback_type, session_id="s-1", company_id="acme"):
    return service.submit_feedback(session_id, feedback_type, prediction, None, _user(company_id))


class TestPatternIdFor:
    def test_prefers_pattern_id(self, permit_prediction):
        assert pattern_id_for(permit_prediction) == "hse-permit-default"

    def test_falls_back_to_module_type(self):
        assert pattern_id_for(StructurePrediction(module_type="custom")) == "custom"
        assert pattern_id_for(StructurePrediction(module_type="")) == "unknown"


class TestSessions:
    def test_modifications_are_attached_on_submit(self, service, permit_prediction):
        service.start_session("s-1")
        service.record_modification("s-1", ModificationAction.ADD_FIELD, "Gas Reading")
        service.record_modification("s-1", ModificationAction.REMOVE_FIELD, "Permit Text")

        feedback = _submit(service, permit_prediction, FeedbackType.MODIFIED)

        assert feedback.id.startswith("fb_")
        assert [m.target for m in feedback.modifications] == ["Gas Reading", "Permit Text"]
        assert service.get_feedback_by_session("s-1") == feedback

    def test_session_is_closed_after_submit(self, service, permit_prediction):
        service.record_modification("s-1", ModificationAction.ADD_FIELD, "Gas Reading")
        _submit(service, permit_prediction, FeedbackType.MODIFIED)

        second = _submit(service, permit_prediction, FeedbackType.ACCEPTED)
        assert second.modifications == []

    def test_recording_without_start_opens_session(self, service):
        record = service.record_modification(
            "s-9", ModificationAction.CHANGE_TYPE, "Date", before="text", after="date"
        )
        assert record.before == "text"
        assert record.after == "date"

    def test_lookup_misses(self, service):
        assert service.get_feedback_by_session("missing") is None
        assert service.get_feedback_by_pattern("missing") == []


class TestLearningSignals:
    @pytest.mark.parametrize(
        "feedback_type,signal_type,weight",
        [
            (FeedbackType.ACCEPTED, LearningSignalType.POSITIVE_REINFORCEMENT, 1.0),
            (FeedbackType.REJECTED, LearningSignalType.NEGATIVE_REINFORCEMENT, -1.0),
            (FeedbackType.MODIFIED, LearningSignalType.PATTERN_CORRECTION, 0.5),
            (FeedbackType.ALTERNATIVE_SELECTED, LearningSignalType.PATTERN_CORRECTION, 0.3),
        ],
    )
    def test_base_signal(self, service, permit_prediction, feedback_type, signal_type, weight):
        feedback = _submit(service, permit_prediction, feedback_type)

        base = service.derive_learning_signals(feedback)[0]

        assert base.signal_type == signal_type
        assert base.weight == weight
        assert base.pattern_id == "hse-permit-default"
        assert base.feedback_id == feedback.id

    def test_accepted_yields_single_signal(self, service, permit_prediction):
        feedback = _submit(service, permit_prediction, FeedbackType.ACCEPTED)
        assert len(service.derive_learning_signals(feedback)) == 1

    def test_rejection_is_new_pattern_candidate(self, service, permit_prediction):
        feedback = _submit(service, permit_prediction, FeedbackType.REJECTED)

        signals = service.derive_learning_signals(feedback)

        assert signals[-1].signal_type == LearningSignalType.NEW_PATTERN_CANDIDATE
        assert signals[-1].pattern_id == "new"
        assert signals[-1].weight == 0.5

    def test_repeated_additions_become_correction(self, service, permit_prediction):
        for target in ("Gas Reading", "Fire Watch", "Isolation Point"):
            service.record_modification("s-1", ModificationAction.ADD_FIELD, target)
        feedback = _submit(service, permit_prediction, FeedbackType.MODIFIED)

        signals = service.derive_learning_signals(feedback)

        correction = signals[1]
        assert correction.weight == 0.7
        insight = correction.derived_insights[0]
        assert insight.type == InsightType.COMMON_ADDITION
        assert insight.confidence == pytest.approx(0.8)
        assert insight.evidence == ["Added: Gas Reading", "Added: Fire Watch", "Added: Isolation Point"]

    def test_single_addition_is_not_an_insight(self, service, permit_prediction):
        service.record_modification("s-1", ModificationAction.ADD_FIELD, "Gas Reading")
        feedback = _submit(service, permit_prediction, FeedbackType.MODIFIED)

        assert len(service.derive_learning_signals(feedback)) == 1

    def test_type_change_insight(self, service, permit_prediction):
        service.record_modification("s-1", ModificationAction.CHANGE_TYPE, "Date", before="text", after="date")
        feedback = _submit(service, permit_prediction, FeedbackType.MODIFIED)

        insight = service.derive_learning_signals(feedback)[1].derived_insights[0]

        assert insight.type == InsightType.FIELD_TYPE_PREFERENCE
        assert insight.evidence == ["text -> date"]

    def test_heavy_modification_is_new_pattern_candidate(self, service, permit_prediction):
        for i in range(5):
            service.record_modification("s-1", ModificationAction.RENAME_FIELD, f"Field {i}")
        feedback = _submit(service, permit_prediction, FeedbackType.MODIFIED)

        signals = service.derive_learning_signals(feedback)

        assert [s.signal_type for s in signals] == [
            LearningSignalType.PATTERN_CORRECTION,
            LearningSignalType.NEW_PATTERN_CANDIDATE,
        ]
        assert signals[-1].derived_insights[0].evidence == ["5 modifications made"]


class TestStats:
    def test_empty(self, service):
        stats = service.get_stats()
        assert stats.total_feedback == 0
        assert stats.acceptance_rate == 0.0

    def test_rates_and_actions(self, service, permit_prediction):
        custom = StructurePrediction(module_type="custom")
        service.record_modification("s-1", ModificationAction.ADD_FIELD, "A")
        service.record_modification("s-1", ModificationAction.ADD_FIELD, "B")
        service.record_modification("s-1", ModificationAction.REMOVE_FIELD, "C")
        _submit(service, permit_prediction, FeedbackType.MODIFIED, session_id="s-1")
        _submit(service, permit_prediction, FeedbackType.ACCEPTED, session_id="s-2")
        _submit(service, custom, FeedbackType.REJECTED, session_id="s-3")
        _submit(service, custom, FeedbackType.ACCEPTED, session_id="s-4", company_id="other")

        stats = service.get_stats()

        assert stats.total_feedback == 4
        assert stats.acceptance_rate == 0.5
        assert stats.modification_rate == 0.25
        assert stats.rejection_rate == 0.25
        assert stats.average_modifications_per_session == 0.75
        assert [(a.action, a.count) for a in stats.top_modification_actions] == [
            (ModificationAction.ADD_FIELD, 2),
            (ModificationAction.REMOVE_FIELD, 1),
        ]
        performance = {p.pattern_id: p.acceptance_rate for p in stats.pattern_performance}
        assert performance == {"hse-permit-default": 0.5, "custom": 0.5}

    def test_filters(self, service, permit_prediction):
        custom = StructurePrediction(module_type="custom")
        _submit(service, permit_prediction, FeedbackType.ACCEPTED, session_id="s-1")
        _submit(service, custom, FeedbackType.REJECTED, session_id="s-2", company_id="other")

        assert service.get_stats(company_id="other").rejection_rate == 1.0
        assert service.get_stats(pattern_id="hse-permit-default").acceptance_rate == 1.0
        assert len(service.get_feedback_by_pattern("custom")) == 1

    def test_clear(self, service, permit_prediction):
        service.record_modification("s-1", ModificationAction.ADD_FIELD, "A")
        _submit(service, permit_prediction, FeedbackType.ACCEPTED, session_id="s-2")

        service.clear_feedback()

        assert service.get_stats().total_feedback == 0
        assert _submit(service, permit_prediction, FeedbackType.ACCEPTED).modifications == []
