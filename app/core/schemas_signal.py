"""Pydantic models for signal processing (intent, context, anomalies, routing)."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class IntentType(str, Enum):
    """What the user wants to do. Declaration order is the tie-break order."""

    CREATE = "create"
    MODIFY = "modify"
    QUERY = "query"
    VALIDATE = "validate"
    DELETE = "delete"


class IntentClassification(BaseModel):
    """Classified intent of a free-text requirement."""

    model_config = ConfigDict(frozen=True)

    intent: IntentType
    confidence: float = Field(ge=0.0, le=1.0)
    domain: str | None = None
    entities: list[str] = Field(default_factory=list)


class ContextSignal(BaseModel):
    """A piece of context detected in the input or supplied by the caller."""

    model_config = ConfigDict(frozen=True)

    type: str
    value: Any
    source: str = "caller"
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class Anomaly(BaseModel):
    """Advisory annotation about the input. Never blocks the pipeline."""

    model_config = ConfigDict(frozen=True)

    type: str  # low_confidence, conflicting_intents, missing_entities, ...
    severity: Literal["low", "medium", "high"]
    description: str


class HandlerRoute(BaseModel):
    """Which downstream handler should take the signal."""

    model_config = ConfigDict(frozen=True)

    handler: str
    priority: int
    metadata: dict[str, Any] = Field(default_factory=dict)


class ProcessedSignal(BaseModel):
    """Output of the signal processor. Created once per pipeline run."""

    model_config = ConfigDict(frozen=True)

    intent_classification: IntentClassification
    context_signals: list[ContextSignal] = Field(default_factory=list)
    anomalies: list[Anomaly] = Field(default_factory=list)
    routing_decision: HandlerRoute
