"""Pydantic models for the pattern catalogue and tenant context.

A Pattern is a reusable structure template (sections, fields, workflow) with
applicability rules for rule-based matching, an optional confidence model that
decays over time and is refreshed by grounding, and an optional learned
domain-affinity vector used for tenant-aware soft ranking.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


class PatternCategory(str, Enum):
    """Module type a pattern produces."""

    ASSESSMENT = "assessment"
    INCIDENT = "incident"
    PERMIT = "permit"
    AUDIT = "audit"
    ACTION = "action"


class PatternSection(BaseModel):
    """Section template: name plus the field types it emits."""

    name: str
    field_types: list[str] = Field(default_factory=list)
    required: bool = True


class PatternStructure(BaseModel):
    sections: list[PatternSection] = Field(default_factory=list)
    workflows: list[str] = Field(default_factory=list)
    default_fields: list[str] = Field(default_factory=list)


class ApplicabilityRule(BaseModel):
    """Rule evaluated against an IntentClassification field."""

    field: Literal["intent", "domain", "confidence", "entities"]
    operator: Literal["equals", "contains", "matches"]
    value: str
    weight: float = Field(default=1.0, ge=0.0)


class ConfidenceFactor(BaseModel):
    name: str
    score: float
    weight: float


class PatternMetadata(BaseModel):
    version: str = "1.0.0"
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    usage_count: int = 0
    success_rate: float = 0.0


class PatternConfidence(BaseModel):
    """Grounding state. Effective confidence is recomputed on every read."""

    base: float = Field(default=1.0, ge=0.0, le=1.0)
    last_grounded: datetime | None = None
    grounding_count: int = Field(default=0, ge=0)
    decay_rate: float = Field(default=0.01, ge=0.0)


class Pattern(BaseModel):
    """Structure template owned by the PatternLibrary."""

    id: str
    name: str
    category: PatternCategory
    description: str = ""
    structure: PatternStructure = Field(default_factory=PatternStructure)
    applicability_rules: list[ApplicabilityRule] = Field(default_factory=list)
    confidence_factors: list[ConfidenceFactor] = Field(default_factory=list)
    metadata: PatternMetadata = Field(default_factory=PatternMetadata)
    # Legacy ownership label. Kept for display, never used to filter.
    company: str | None = None
    domain: str | None = None
    domain_affinity: list[float] | None = None
    confidence: PatternConfidence | None = None


class PatternMatch(BaseModel):
    """Transient result of matching a signal against the catalogue."""

    pattern: Pattern
    score: float
    matched_rules: list[str] = Field(default_factory=list)


class TenantContext(BaseModel):
    """Tenant identity taken from the auth layer. Biases ranking, never filters."""

    company: str
    project: str | None = None
    user_id: str | None = None

    @property
    def tenant_id(self) -> str:
        return self.company


class TenantEmbeddingContext(BaseModel):
    """Tenant domain embedding supplied by the tenant embedding provider."""

    tenant_id: str
    embedding: list[float]
    domain_description: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
