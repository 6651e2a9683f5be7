"""Pydantic models for pipeline execution results."""

from enum import Enum

from pydantic import BaseModel, Field

from app.core.schemas_prediction import StructurePrediction
from app.core.schemas_signal import ProcessedSignal
from app.core.schemas_validation import ValidationResult


class PipelineStage(str, Enum):
    SIGNAL_PROCESSING = "signal_processing"
    PREDICTION = "prediction"
    VALIDATION = "validation"
    AUTO_FIX = "auto_fix"


class StageResult(BaseModel):
    """Timing and outcome of one stage, for observability."""

    stage: PipelineStage
    success: bool
    duration_ms: float
    error: str | None = None


class PipelineConfig(BaseModel):
    enable_auto_fix: bool = True
    max_auto_fix_attempts: int = Field(default=3, ge=0)
    include_alternatives: bool = True


class PipelineResult(BaseModel):
    success: bool
    prediction: StructurePrediction | None = None
    validation: ValidationResult | None = None
    auto_fixed: bool = False
    applied_fixes: list[str] = Field(default_factory=list)
    processing_time_ms: float = 0.0
    stages: list[StageResult] = Field(default_factory=list)
    signal: ProcessedSignal | None = None
