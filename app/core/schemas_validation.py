"""Pydantic models for prediction validation and auto-fix."""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

from app.core.schemas_prediction import StructurePrediction


class ValidationErrorCode(str, Enum):
    MISSING_MODULE_TYPE = "MISSING_MODULE_TYPE"
    MISSING_SECTIONS = "MISSING_SECTIONS"
    EMPTY_SECTION = "EMPTY_SECTION"
    MISSING_FIELD_NAME = "MISSING_FIELD_NAME"
    MISSING_FIELD_TYPE = "MISSING_FIELD_TYPE"
    INVALID_FIELD_TYPE = "INVALID_FIELD_TYPE"
    DUPLICATE_FIELD_NAME = "DUPLICATE_FIELD_NAME"
    DUPLICATE_SECTION_NAME = "DUPLICATE_SECTION_NAME"
    LOW_CONFIDENCE = "LOW_CONFIDENCE"
    MISSING_REQUIRED_FIELDS = "MISSING_REQUIRED_FIELDS"


class ValidationIssue(BaseModel):
    code: str
    field: str | None = None
    message: str
    severity: Literal["error", "warning"] = "error"


class AutoFix(BaseModel):
    """Structural correction the validator knows how to apply."""

    type: Literal["add", "replace", "remove"]
    target: str  # "sections", "sections[0].fields", "sections[1].fields[2].type"
    value: Any = None
    description: str | None = None


class ValidationSuggestion(BaseModel):
    code: str
    field: str | None = None
    message: str
    auto_fix: AutoFix | None = None


class ValidationResult(BaseModel):
    valid: bool
    errors: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[ValidationIssue] = Field(default_factory=list)
    suggestions: list[ValidationSuggestion] = Field(default_factory=list)


class AutoFixOutcome(BaseModel):
    """One round of auto-fix: the repaired copy plus what was applied."""

    prediction: StructurePrediction
    applied_fixes: list[str] = Field(default_factory=list)


class CompletenessReport(BaseModel):
    complete: bool
    missing_required: list[str] = Field(default_factory=list)
    missing_recommended: list[str] = Field(default_factory=list)
    completeness_score: float = 0.0
