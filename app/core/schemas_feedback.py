"""Pydantic models for the feedback / learning loop."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from app.core.schemas_prediction import StructurePrediction


class FeedbackType(str, Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    MODIFIED = "modified"
    ALTERNATIVE_SELECTED = "alternative_selected"


class ModificationAction(str, Enum):
    ADD_FIELD = "add_field"
    REMOVE_FIELD = "remove_field"
    RENAME_FIELD = "rename_field"
    CHANGE_TYPE = "change_type"
    REORDER = "reorder"
    ADD_SECTION = "add_section"
    REMOVE_SECTION = "remove_section"
    RENAME_SECTION = "rename_section"
    CHANGE_MODULE_TYPE = "change_module_type"


class LearningSignalType(str, Enum):
    POSITIVE_REINFORCEMENT = "positive_reinforcement"
    NEGATIVE_REINFORCEMENT = "negative_reinforcement"
    PATTERN_CORRECTION = "pattern_correction"
    NEW_PATTERN_CANDIDATE = "new_pattern_candidate"


class InsightType(str, Enum):
    COMMON_ADDITION = "common_addition"
    COMMON_REMOVAL = "common_removal"
    PREFERRED_ORDERING = "preferred_ordering"
    FIELD_TYPE_PREFERENCE = "field_type_preference"
    NAMING_CONVENTION = "naming_convention"


class ModificationRecord(BaseModel):
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    action: ModificationAction
    target: str
    before: Any = None
    after: Any = None
    user_intent: str | None = None


class UserContext(BaseModel):
    user_id: str
    company_id: str
    module_context: str | None = None
    previous_interactions: int = 0


class UserFeedback(BaseModel):
    id: str
    session_id: str
    timestamp: datetime
    feedback_type: FeedbackType
    original_prediction: StructurePrediction
    final_prediction: StructurePrediction | None = None
    modifications: list[ModificationRecord] = Field(default_factory=list)
    processing_time_ms: float = 0.0
    user_context: UserContext


class DerivedInsight(BaseModel):
    type: InsightType
    description: str
    confidence: float
    evidence: list[str] = Field(default_factory=list)


class LearningSignal(BaseModel):
    signal_type: LearningSignalType
    weight: float
    pattern_id: str
    feedback_id: str
    derived_insights: list[DerivedInsight] = Field(default_factory=list)


class ActionCount(BaseModel):
    action: ModificationAction
    count: int


class PatternPerformance(BaseModel):
    pattern_id: str
    acceptance_rate: float


class FeedbackStats(BaseModel):
    total_feedback: int = 0
    acceptance_rate: float = 0.0
    modification_rate: float = 0.0
    rejection_rate: float = 0.0
    average_modifications_per_session: float = 0.0
    top_modification_actions: list[ActionCount] = Field(default_factory=list)
    pattern_performance: list[PatternPerformance] = Field(default_factory=list)
