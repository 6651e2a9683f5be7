"""Feedback capture and learning-signal derivation.

Sessions buffer modifications until feedback is submitted. Submitted
feedback is kept in memory and summarized for analytics; the prediction
path never reads it.
"""

import uuid
from collections import Counter
from datetime import UTC, datetime
from typing import Any

from app.core.logging import get_logger
from app.core.schemas_feedback import (
    ActionCount,
    DerivedInsight,
    FeedbackStats,
    FeedbackType,
    InsightType,
    LearningSignal,
    LearningSignalType,
    ModificationAction,
    ModificationRecord,
    PatternPerformance,
    UserContext,
    UserFeedback,
)
from app.core.schemas_prediction import StructurePrediction

logger = get_logger(__name__)

BASE_SIGNALS: dict[FeedbackType, tuple[LearningSignalType, float]] = {
    FeedbackType.ACCEPTED: (LearningSignalType.POSITIVE_REINFORCEMENT, 1.0),
    FeedbackType.REJECTED: (LearningSignalType.NEGATIVE_REINFORCEMENT, -1.0),
    FeedbackType.MODIFIED: (LearningSignalType.PATTERN_CORRECTION, 0.5),
    FeedbackType.ALTERNATIVE_SELECTED: (LearningSignalType.PATTERN_CORRECTION, 0.3),
}

CORRECTION_WEIGHT = 0.7
NEW_PATTERN_WEIGHT = 0.5
NEW_PATTERN_MODIFICATIONS = 5
MIN_REPEATED_ACTIONS = 2
TOP_ACTIONS = 5


def pattern_id_for(prediction: StructurePrediction) -> str:
    """Pattern a prediction came from, falling back to its module type."""
    return prediction.pattern_id or prediction.module_type or "unknown"


class FeedbackService:
    """Learning loop: records what users accept, reject and change."""

    def __init__(self):
        self._feedback: dict[str, UserFeedback] = {}
        self._sessions: dict[str, list[ModificationRecord]] = {}

    def start_session(self, session_id: str) -> None:
        logger.info(f"Starting feedback session: {session_id}")
        self._sessions[session_id] = []

    def record_modification(
        self,
        session_id: str,
        action: ModificationAction,
        target: str,
        before: Any = None,
        after: Any = None,
        user_intent: str | None = None,
    ) -> ModificationRecord:
        record = ModificationRecord(
            action=action,
            target=target,
            before=before,
            after=after,
            user_intent=user_intent,
        )
        self._sessions.setdefault(session_id, []).append(record)
        logger.debug(f"Recorded modification in session {session_id}: {action.value} on {target}")
        return record

    def submit_feedback(
        self,
        session_id: str,
        feedback_type: FeedbackType,
        original_prediction: StructurePrediction,
        final_prediction: StructurePrediction | None,
        user_context: UserContext,
        processing_time_ms: float = 0.0,
    ) -> UserFeedback:
        """Close a session: store its feedback with the buffered modifications."""
        feedback = UserFeedback(
            id=f"fb_{uuid.uuid4().hex[:12]}",
            session_id=session_id,
            timestamp=datetime.now(UTC),
            feedback_type=feedback_type,
            original_prediction=original_prediction,
            final_prediction=final_prediction,
            modifications=self._sessions.pop(session_id, []),
            processing_time_ms=processing_time_ms,
            user_context=user_context,
        )
        self._feedback[feedback.id] = feedback

        logger.info(
            f"Feedback submitted: {feedback.id} ({feedback_type.value})",
            extra={"session_id": session_id, "modifications": len(feedback.modifications)},
        )
        return feedback

    def derive_learning_signals(self, feedback: UserFeedback) -> list[LearningSignal]:
        """
        Turn one feedback record into weighted learning signals.

        Always emits the base signal for the feedback type; adds a pattern
        correction when modifications reveal insights, and a new-pattern
        candidate on rejection or heavy modification.
        """
        pattern_id = pattern_id_for(feedback.original_prediction)
        signal_type, weight = BASE_SIGNALS[feedback.feedback_type]

        signals = [
            LearningSignal(
                signal_type=signal_type,
                weight=weight,
                pattern_id=pattern_id,
                feedback_id=feedback.id,
            )
        ]

        insights = self._analyze_modifications(feedback.modifications)
        if insights:
            signals.append(
                LearningSignal(
                    signal_type=LearningSignalType.PATTERN_CORRECTION,
                    weight=CORRECTION_WEIGHT,
                    pattern_id=pattern_id,
                    feedback_id=feedback.id,
                    derived_insights=insights,
                )
            )

        if self._is_new_pattern_candidate(feedback):
            signals.append(
                LearningSignal(
                    signal_type=LearningSignalType.NEW_PATTERN_CANDIDATE,
                    weight=NEW_PATTERN_WEIGHT,
                    pattern_id="new",
                    feedback_id=feedback.id,
                    derived_insights=[
                        DerivedInsight(
                            type=InsightType.COMMON_ADDITION,
                            description="User created significantly different structure",
                            confidence=0.6,
                            evidence=[f"{len(feedback.modifications)} modifications made"],
                        )
                    ],
                )
            )

        return signals

    def get_stats(self, company_id: str | None = None, pattern_id: str | None = None) -> FeedbackStats:
        feedback = list(self._feedback.values())
        if company_id:
            feedback = [f for f in feedback if f.user_context.company_id == company_id]
        if pattern_id:
            feedback = [f for f in feedback if pattern_id_for(f.original_prediction) == pattern_id]

        total = len(feedback)
        if total == 0:
            return FeedbackStats()

        by_type = Counter(f.feedback_type for f in feedback)
        actions = Counter(m.action for f in feedback for m in f.modifications)

        return FeedbackStats(
            total_feedback=total,
            acceptance_rate=by_type[FeedbackType.ACCEPTED] / total,
            modification_rate=by_type[FeedbackType.MODIFIED] / total,
            rejection_rate=by_type[FeedbackType.REJECTED] / total,
            average_modifications_per_session=sum(len(f.modifications) for f in feedback) / total,
            top_modification_actions=[
                ActionCount(action=action, count=count) for action, count in actions.most_common(TOP_ACTIONS)
            ],
            pattern_performance=self._pattern_performance(feedback),
        )

    def get_feedback_by_session(self, session_id: str) -> UserFeedback | None:
        return next((f for f in self._feedback.values() if f.session_id == session_id), None)

    def get_feedback_by_pattern(self, pattern_id: str) -> list[UserFeedback]:
        return [f for f in self._feedback.values() if pattern_id_for(f.original_prediction) == pattern_id]

    def clear_feedback(self) -> None:
        self._feedback.clear()
        self._sessions.clear()

    @staticmethod
    def _analyze_modifications(modifications: list[ModificationRecord]) -> list[DerivedInsight]:
        by_action: dict[ModificationAction, list[ModificationRecord]] = {}
        for record in modifications:
            by_action.setdefault(record.action, []).append(record)

        insights: list[DerivedInsight] = []

        additions = by_action.get(ModificationAction.ADD_FIELD, [])
        if len(additions) >= MIN_REPEATED_ACTIONS:
            insights.append(
                DerivedInsight(
                    type=InsightType.COMMON_ADDITION,
                    description=f"User commonly adds fields ({len(additions)} additions)",
                    confidence=min(0.9, 0.5 + len(additions) * 0.1),
                    evidence=[f"Added: {a.target}" for a in additions],
                )
            )

        removals = by_action.get(ModificationAction.REMOVE_FIELD, [])
        if len(removals) >= MIN_REPEATED_ACTIONS:
            insights.append(
                DerivedInsight(
                    type=InsightType.COMMON_REMOVAL,
                    description=f"User commonly removes fields ({len(removals)} removals)",
                    confidence=min(0.9, 0.5 + len(removals) * 0.1),
                    evidence=[f"Removed: {r.target}" for r in removals],
                )
            )

        type_changes = by_action.get(ModificationAction.CHANGE_TYPE, [])
        if type_changes:
            insights.append(
                DerivedInsight(
                    type=InsightType.FIELD_TYPE_PREFERENCE,
                    description="User has field type preferences",
                    confidence=0.7,
                    evidence=[f"{t.before} -> {t.after}" for t in type_changes],
                )
            )

        return insights

    @staticmethod
    def _is_new_pattern_candidate(feedback: UserFeedback) -> bool:
        return feedback.feedback_type == FeedbackType.REJECTED or (
            feedback.feedback_type == FeedbackType.MODIFIED
            and len(feedback.modifications) >= NEW_PATTERN_MODIFICATIONS
        )

    @staticmethod
    def _pattern_performance(feedback: list[UserFeedback]) -> list[PatternPerformance]:
        by_pattern: dict[str, list[UserFeedback]] = {}
        for f in feedback:
            by_pattern.setdefault(pattern_id_for(f.original_prediction), []).append(f)

        return [
            PatternPerformance(
                pattern_id=pattern_id,
                acceptance_rate=sum(f.feedback_type == FeedbackType.ACCEPTED for f in items) / len(items),
            )
            for pattern_id, items in by_pattern.items()
        ]
