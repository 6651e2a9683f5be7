"""Request/response models for the HTTP API."""

from typing import Any

from pydantic import BaseModel, Field

from app.core.schemas_feedback import FeedbackStats, FeedbackType, LearningSignal, UserContext, UserFeedback
from app.core.schemas_patterns import TenantContext
from app.core.schemas_pipeline import PipelineConfig
from app.core.schemas_prediction import StructurePrediction
from app.core.schemas_signal import ContextSignal


class PredictRequest(BaseModel):
    input: str = Field(..., description="Free-text requirement")
    context: list[ContextSignal] = Field(default_factory=list, description="Caller-supplied context signals")
    config: PipelineConfig | None = None
    tenant: TenantContext | None = Field(None, description="Tenant context from the auth layer")


class RefineRequest(BaseModel):
    prediction: StructurePrediction
    modification: str = Field(..., min_length=1, description="Natural-language edit")
    config: PipelineConfig | None = None


class FeedbackRequest(BaseModel):
    session_id: str
    feedback_type: FeedbackType
    original_prediction: StructurePrediction
    final_prediction: StructurePrediction | None = None
    user_context: UserContext
    processing_time_ms: float = 0.0
    pattern_id: str | None = Field(None, description="Pattern behind the prediction, if known")


class FeedbackResponse(BaseModel):
    feedback: UserFeedback
    learning_signals: list[LearningSignal] = Field(default_factory=list)
    affinity_updated: bool = False


class GroundRequest(BaseModel):
    success: bool = True


class GroundResponse(BaseModel):
    pattern_id: str
    confidence: float
    grounding_count: int


class StatsResponse(BaseModel):
    feedback: FeedbackStats
    health: dict[str, Any]
