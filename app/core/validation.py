"""Structural validation and auto-fix for structure predictions."""

import re
from typing import Any

from pydantic import ValidationError

from app.core.logging import get_logger
from app.core.prediction_engine import humanize_field_name
from app.core.schemas_prediction import StructurePrediction
from app.core.schemas_validation import (
    AutoFix,
    AutoFixOutcome,
    CompletenessReport,
    ValidationErrorCode,
    ValidationIssue,
    ValidationResult,
    ValidationSuggestion,
)

logger = get_logger(__name__)

VALID_FIELD_TYPES = {
    "text",
    "textarea",
    "number",
    "date",
    "time",
    "datetime",
    "select",
    "multiselect",
    "checkbox",
    "radio",
    "file",
    "image",
    "signature",
    "location",
    "user",
    "email",
    "phone",
    "url",
    "matrix",
    "checklist",
}

REQUIRED_FIELDS_BY_TYPE: dict[str, list[str]] = {
    "assessment": ["assessor", "date", "location"],
    "incident": ["reporter", "date", "location", "severity"],
    "permit": ["requester", "startDate", "endDate"],
    "audit": ["auditor", "auditDate", "area"],
    "action": ["assignee", "dueDate", "priority"],
    "custom": ["title", "date"],
}

RECOMMENDED_FIELDS = ["description", "status", "notes"]

LOW_CONFIDENCE_THRESHOLD = 0.5

_PATH_PART = re.compile(r"^(\w+)\[(\d+)\]$")


def _normalize(name: str) -> str:
    return re.sub(r"[^a-z0-9]", "", name.lower())


def _infer_required_field_type(field_name: str) -> str:
    name = field_name.lower()

    if "date" in name:
        return "date"
    if "time" in name:
        return "time"
    if "email" in name:
        return "email"
    if "phone" in name:
        return "phone"
    if "location" in name or "area" in name:
        return "location"
    if "assignee" in name or "user" in name or "reporter" in name:
        return "user"
    if "priority" in name or "severity" in name or "status" in name:
        return "select"
    if "description" in name or "notes" in name:
        return "textarea"
    return "text"


class ValidationService:
    """Checks predictions before they are shown and repairs what it can."""

    def validate(self, prediction: StructurePrediction) -> ValidationResult:
        """
        Validate a prediction.

        Errors make the prediction invalid; warnings do not. Every error the
        service knows how to repair comes with a suggestion carrying an AutoFix.
        """
        errors: list[ValidationIssue] = []
        warnings: list[ValidationIssue] = []
        suggestions: list[ValidationSuggestion] = []

        self._validate_module_type(prediction, errors, warnings)
        self._validate_sections(prediction, errors, warnings, suggestions)
        self._validate_fields(prediction, errors, suggestions)
        self._validate_confidence(prediction, warnings)
        self._validate_required_fields(prediction, errors, suggestions)
        self._check_duplicates(prediction, errors, suggestions)

        result = ValidationResult(
            valid=not errors,
            errors=errors,
            warnings=warnings,
            suggestions=suggestions,
        )
        logger.debug(
            f"Validated {prediction.module_type or '<missing>'} prediction",
            extra={"valid": result.valid, "errors": len(errors), "warnings": len(warnings)},
        )
        return result

    def auto_fix(self, prediction: StructurePrediction, validation: ValidationResult) -> AutoFixOutcome:
        """Apply every suggested fix once, in order, to a copy of the prediction."""
        data = prediction.model_dump()
        applied: list[str] = []

        for suggestion in validation.suggestions:
            if suggestion.auto_fix is None:
                continue
            if self._apply_fix(data, suggestion.auto_fix):
                applied.append(suggestion.message)

        try:
            fixed = StructurePrediction.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Auto-fix produced an invalid structure, discarding: {e}")
            return AutoFixOutcome(prediction=prediction.model_copy(deep=True), applied_fixes=[])

        return AutoFixOutcome(prediction=fixed, applied_fixes=applied)

    def check_completeness(self, prediction: StructurePrediction) -> CompletenessReport:
        required = REQUIRED_FIELDS_BY_TYPE.get(prediction.module_type, REQUIRED_FIELDS_BY_TYPE["custom"])
        present = self._field_names(prediction)

        missing_required = [f for f in required if not self._has_field(present, f)]
        missing_recommended = [f for f in RECOMMENDED_FIELDS if not self._has_field(present, f)]

        total = len(required) + len(RECOMMENDED_FIELDS)
        found = total - len(missing_required) - len(missing_recommended)

        return CompletenessReport(
            complete=not missing_required,
            missing_required=missing_required,
            missing_recommended=missing_recommended,
            completeness_score=found / total if total else 1.0,
        )

    # =========================
    # Checks
    # =========================

    @staticmethod
    def _validate_module_type(
        prediction: StructurePrediction,
        errors: list[ValidationIssue],
        warnings: list[ValidationIssue],
    ) -> None:
        if not prediction.module_type:
            errors.append(
                ValidationIssue(
                    code=ValidationErrorCode.MISSING_MODULE_TYPE.value,
                    message="Module type is required",
                )
            )
        elif prediction.module_type == "custom":
            warnings.append(
                ValidationIssue(
                    code="CUSTOM_MODULE_TYPE",
                    message="Using generic custom module type. Consider using a specific pattern.",
                    severity="warning",
                )
            )

    @staticmethod
    def _validate_sections(
        prediction: StructurePrediction,
        errors: list[ValidationIssue],
        warnings: list[ValidationIssue],
        suggestions: list[ValidationSuggestion],
    ) -> None:
        if not prediction.sections:
            errors.append(
                ValidationIssue(
                    code=ValidationErrorCode.MISSING_SECTIONS.value,
                    message="At least one section is required",
                )
            )
            message = 'Add a default "General Information" section'
            suggestions.append(
                ValidationSuggestion(
                    code="ADD_DEFAULT_SECTION",
                    message=message,
                    auto_fix=AutoFix(
                        type="add",
                        target="sections",
                        value={"name": "General Information", "fields": [], "order": 0},
                        description=message,
                    ),
                )
            )
            return

        for i, section in enumerate(prediction.sections):
            if not section.name.strip():
                errors.append(
                    ValidationIssue(
                        code=ValidationErrorCode.EMPTY_SECTION.value,
                        field=f"sections[{i}].name",
                        message=f"Section at index {i} is missing a name",
                    )
                )
            if not section.fields:
                warnings.append(
                    ValidationIssue(
                        code="EMPTY_SECTION_FIELDS",
                        field=f"sections[{i}].fields",
                        message=f'Section "{section.name or i}" has no fields',
                        severity="warning",
                    )
                )

    @staticmethod
    def _validate_fields(
        prediction: StructurePrediction,
        errors: list[ValidationIssue],
        suggestions: list[ValidationSuggestion],
    ) -> None:
        for s, section in enumerate(prediction.sections):
            for f, field in enumerate(section.fields):
                path = f"sections[{s}].fields[{f}]"

                if not field.name.strip():
                    errors.append(
                        ValidationIssue(
                            code=ValidationErrorCode.MISSING_FIELD_NAME.value,
                            field=f"{path}.name",
                            message=f"Field at {path} is missing a name",
                        )
                    )

                if field.type and field.type in VALID_FIELD_TYPES:
                    continue

                if not field.type:
                    code = ValidationErrorCode.MISSING_FIELD_TYPE
                    error = f'Field "{field.name}" is missing a type'
                    message = f'Set default type "text" for field "{field.name}"'
                    suggestion_code = "SET_DEFAULT_FIELD_TYPE"
                else:
                    code = ValidationErrorCode.INVALID_FIELD_TYPE
                    error = f'Invalid field type "{field.type}" for field "{field.name}"'
                    message = f'Change invalid type "{field.type}" to "text"'
                    suggestion_code = "FIX_FIELD_TYPE"

                errors.append(ValidationIssue(code=code.value, field=f"{path}.type", message=error))
                suggestions.append(
                    ValidationSuggestion(
                        code=suggestion_code,
                        field=f"{path}.type",
                        message=message,
                        auto_fix=AutoFix(type="replace", target=f"{path}.type", value="text", description=message),
                    )
                )

    @staticmethod
    def _validate_confidence(prediction: StructurePrediction, warnings: list[ValidationIssue]) -> None:
        if prediction.confidence < LOW_CONFIDENCE_THRESHOLD:
            warnings.append(
                ValidationIssue(
                    code=ValidationErrorCode.LOW_CONFIDENCE.value,
                    message=(
                        f"Low confidence score ({round(prediction.confidence * 100)}%). "
                        "Review prediction carefully."
                    ),
                    severity="warning",
                )
            )

    def _validate_required_fields(
        self,
        prediction: StructurePrediction,
        errors: list[ValidationIssue],
        suggestions: list[ValidationSuggestion],
    ) -> None:
        required = REQUIRED_FIELDS_BY_TYPE.get(prediction.module_type, REQUIRED_FIELDS_BY_TYPE["custom"])
        present = self._field_names(prediction)
        missing = [f for f in required if not self._has_field(present, f)]
        if not missing:
            return

        errors.append(
            ValidationIssue(
                code=ValidationErrorCode.MISSING_REQUIRED_FIELDS.value,
                message=f"Missing required fields: {', '.join(missing)}",
            )
        )
        for name in missing:
            message = f'Add required field "{name}"'
            suggestions.append(
                ValidationSuggestion(
                    code="ADD_REQUIRED_FIELD",
                    message=message,
                    auto_fix=AutoFix(
                        type="add",
                        target="sections[0].fields",
                        value={
                            "name": humanize_field_name(name),
                            "type": _infer_required_field_type(name),
                            "required": True,
                        },
                        description=message,
                    ),
                )
            )

    def _check_duplicates(
        self,
        prediction: StructurePrediction,
        errors: list[ValidationIssue],
        suggestions: list[ValidationSuggestion],
    ) -> None:
        section_renames = self._duplicate_renames([s.name for s in prediction.sections])
        if section_renames:
            errors.append(
                ValidationIssue(
                    code=ValidationErrorCode.DUPLICATE_SECTION_NAME.value,
                    message="Duplicate section names: "
                    + ", ".join(prediction.sections[i].name for i in section_renames),
                )
            )
            for i, new_name in section_renames.items():
                message = f'Rename duplicate section "{prediction.sections[i].name}" to "{new_name}"'
                suggestions.append(
                    ValidationSuggestion(
                        code="RENAME_DUPLICATE_SECTION",
                        field=f"sections[{i}].name",
                        message=message,
                        auto_fix=AutoFix(
                            type="replace", target=f"sections[{i}].name", value=new_name, description=message
                        ),
                    )
                )

        for s, section in enumerate(prediction.sections):
            field_renames = self._duplicate_renames([f.name for f in section.fields])
            if not field_renames:
                continue

            errors.append(
                ValidationIssue(
                    code=ValidationErrorCode.DUPLICATE_FIELD_NAME.value,
                    field=f"sections[{s}]",
                    message=f'Duplicate field names in "{section.name}": '
                    + ", ".join(section.fields[f].name for f in field_renames),
                )
            )
            for f, new_name in field_renames.items():
                path = f"sections[{s}].fields[{f}].name"
                message = f'Rename duplicate field "{section.fields[f].name}" to "{new_name}"'
                suggestions.append(
                    ValidationSuggestion(
                        code="RENAME_DUPLICATE_FIELD",
                        field=path,
                        message=message,
                        auto_fix=AutoFix(type="replace", target=path, value=new_name, description=message),
                    )
                )

    @staticmethod
    def _duplicate_renames(names: list[str]) -> dict[int, str]:
        """
        Index -> new name for every repeated name after its first occurrence.

        Repeats get a numeric suffix ("General_2", "General_3") that does not
        collide with any other name in the list.
        """
        taken = {_normalize(name) for name in names if name.strip()}
        counts: dict[str, int] = {}
        renames: dict[int, str] = {}

        for i, name in enumerate(names):
            key = _normalize(name)
            if not key:
                continue
            counts[key] = counts.get(key, 0) + 1
            if counts[key] == 1:
                continue

            suffix = counts[key]
            while _normalize(f"{name}_{suffix}") in taken:
                suffix += 1
            renames[i] = f"{name}_{suffix}"
            taken.add(_normalize(renames[i]))

        return renames

    # =========================
    # Helpers
    # =========================

    @staticmethod
    def _field_names(prediction: StructurePrediction) -> list[str]:
        return [_normalize(f.name) for s in prediction.sections for f in s.fields]

    @staticmethod
    def _has_field(normalized_names: list[str], required: str) -> bool:
        wanted = _normalize(required)
        return any(wanted in name for name in normalized_names)

    @staticmethod
    def _apply_fix(data: dict[str, Any], fix: AutoFix) -> bool:
        """Apply one fix to a dumped prediction in place. False when the target doesn't resolve."""
        try:
            if fix.type == "add":
                container = ValidationService._resolve(data, fix.target.split("."))
                if not isinstance(container, list):
                    return False
                container.append(fix.value)
                return True

            if fix.type == "replace":
                *parents, leaf = fix.target.split(".")
                parent = ValidationService._resolve(data, parents)
                if not isinstance(parent, dict) or leaf not in parent:
                    return False
                parent[leaf] = fix.value
                return True
        except (KeyError, IndexError, TypeError) as e:
            logger.debug(f"Could not apply fix to {fix.target}: {e}")
            return False

        return False

    @staticmethod
    def _resolve(data: Any, parts: list[str]) -> Any:
        current = data
        for part in parts:
            match = _PATH_PART.match(part)
            if match:
                current = current[match.group(1)][int(match.group(2))]
            else:
                current = current[part]
        return current
