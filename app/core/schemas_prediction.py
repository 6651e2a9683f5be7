"""Pydantic models for structure predictions."""

from typing import Any

from pydantic import BaseModel, Field


class FieldPrediction(BaseModel):
    name: str
    type: str
    required: bool = False
    default_value: Any | None = None
    validations: list[str] = Field(default_factory=list)


class SectionPrediction(BaseModel):
    name: str
    fields: list[FieldPrediction] = Field(default_factory=list)
    order: int = 0


class WorkflowStep(BaseModel):
    name: str
    type: str  # approval, investigation, task, ...
    assignee: str = "owner"
    conditions: list[str] = Field(default_factory=list)


class WorkflowPrediction(BaseModel):
    workflow_type: str
    steps: list[WorkflowStep] = Field(default_factory=list)
    confidence: float = 0.0


class StructurePrediction(BaseModel):
    """Predicted module definition.

    Treated as a value: refinement and auto-fix always return a new object.
    """

    module_type: str
    sections: list[SectionPrediction] = Field(default_factory=list)
    confidence: float = 0.0
    rationale: str = ""
    alternatives: list["StructurePrediction"] = Field(default_factory=list)
    workflow: WorkflowPrediction | None = None
    pattern_id: str | None = None  # source pattern, None for the generic fallback
