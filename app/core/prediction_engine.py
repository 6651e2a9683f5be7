"""Structure prediction: pattern match -> sections, fields and workflow.

Matching order:
1. Vector similarity (when a vector store is wired, available and initialized)
2. Rule-based matching in the PatternLibrary
3. Generic "General Information" structure

A prediction is always produced. Refinements return new objects; the input
prediction is never mutated.
"""

import re
from typing import Literal

from app.core.contracts import VectorStore
from app.core.logging import get_logger
from app.core.pattern_library import PatternLibrary
from app.core.schemas_patterns import Pattern, PatternMatch, PatternSection, TenantContext
from app.core.schemas_prediction import (
    FieldPrediction,
    SectionPrediction,
    StructurePrediction,
    WorkflowPrediction,
    WorkflowStep,
)
from app.core.schemas_signal import ProcessedSignal

logger = get_logger(__name__)

ModificationTarget = Literal["section", "field", "workflow", "validation", "order", "type"]
ModificationAction = Literal["add", "remove", "modify"]

WORKFLOW_TYPES = {
    "review": "approval",
    "approve": "approval",
    "investigate": "investigation",
    "close": "completion",
    "assign": "assignment",
    "implement": "action",
    "verify": "verification",
    "plan": "planning",
    "execute": "execution",
    "report": "reporting",
    "request": "request",
    "activate": "activation",
}

WORKFLOW_ASSIGNEES = {
    "review": "reviewer",
    "approve": "manager",
    "investigate": "investigator",
    "close": "owner",
    "assign": "manager",
    "implement": "assignee",
    "verify": "verifier",
}

# Substring tests, first hit wins; anything else targets a field
TARGET_KEYWORDS: list[tuple[ModificationTarget, tuple[str, ...]]] = [
    ("section", ("section",)),
    ("workflow", ("workflow", "step")),
    ("validation", ("validation", "required")),
    ("order", ("order", "position")),
    ("type", ("type",)),
]

ACTION_KEYWORDS: list[tuple[ModificationAction, tuple[str, ...]]] = [
    ("add", ("add", "include", "create")),
    ("remove", ("remove", "delete", "exclude")),
]

TARGET_NOUNS: dict[ModificationTarget, str] = {
    "section": "section",
    "workflow": "step",
    "field": "field",
    "validation": "field",
    "type": "field",
    "order": "field",
}

EDIT_VERBS = r"(?:add|include|create|remove|delete|exclude|make|mark|set|change|update)"
ARTICLES = {"a", "an", "the", "new"}

DEFAULT_SECTION_NAME = "Custom Section"
DEFAULT_FIELD_NAME = "Custom Field"
GENERIC_CONFIDENCE = 0.3
WORKFLOW_CONFIDENCE = 0.85
ALTERNATIVE_PENALTY = 0.8
MAX_ALTERNATIVES = 2
MODIFIED_CONFIDENCE_FLOOR = 0.5
MODIFIED_CONFIDENCE_FACTOR = 0.95


def infer_field_type(field_name: str) -> str:
    """Guess an input type from a field name."""
    name = field_name.lower()

    if "date" in name:
        return "date"
    if "time" in name:
        return "time"
    if "email" in name:
        return "email"
    if "phone" in name:
        return "phone"
    if "number" in name or "count" in name:
        return "number"
    if "description" in name or "comment" in name:
        return "textarea"
    if "status" in name or "type" in name or "category" in name:
        return "select"
    return "text"


def humanize_field_name(name: str) -> str:
    """'startDate' -> 'Start Date', 'action_id' -> 'Action Id'."""
    spaced = re.sub(r"([A-Z])", r" \1", name)
    spaced = re.sub(r"[_\-]+", " ", spaced)
    words = spaced.split()
    return " ".join(w[:1].upper() + w[1:] for w in words)


def _title(text: str) -> str:
    return " ".join(w[:1].upper() + w[1:] for w in text.split())


def _normalize(name: str) -> str:
    return re.sub(r"[^a-z0-9]", "", name.lower())


class PredictionEngine:
    """Turns a processed signal into a StructurePrediction."""

    def __init__(
        self,
        library: PatternLibrary,
        vector_store: VectorStore | None = None,
        vector_min_score: float = 0.3,
    ):
        self.library = library
        self.vector_store = vector_store
        self.vector_min_score = vector_min_score

    def set_vector_store(self, vector_store: VectorStore | None) -> None:
        self.vector_store = vector_store

    # =========================
    # Prediction
    # =========================

    async def predict(
        self,
        signal: ProcessedSignal,
        tenant_context: TenantContext | None = None,
        include_alternatives: bool = True,
    ) -> StructurePrediction:
        """
        Predict a module structure for a processed signal.

        Args:
            signal: Output of SignalProcessor.process_signal
            tenant_context: Optional tenant, biases vector ranking only
            include_alternatives: Attach up to two rule-ranked alternatives

        Returns:
            StructurePrediction (generic structure when nothing matches)
        """
        match = await self._vector_match(signal, tenant_context)
        used_vector_search = match is not None

        if match is None:
            match = self.library.match_pattern(signal.intent_classification, tenant_context)

        if match is None:
            logger.info(
                "No pattern matched, using generic structure",
                extra={"domain": signal.intent_classification.domain},
            )
            return self.create_default_prediction(signal)

        pattern = match.pattern
        alternatives = (
            self._alternatives(signal, exclude_pattern_id=pattern.id) if include_alternatives else []
        )

        prediction = StructurePrediction(
            module_type=pattern.category.value,
            sections=self.generate_sections(pattern),
            confidence=match.score,
            rationale=self._build_rationale(pattern, signal, match.score, used_vector_search),
            alternatives=alternatives,
            workflow=self.generate_workflow(pattern),
            pattern_id=pattern.id,
        )

        logger.info(
            f"Predicted {prediction.module_type} from pattern {pattern.id}",
            extra={
                "score": round(match.score, 3),
                "method": "vector" if used_vector_search else "rules",
                "alternatives": len(alternatives),
            },
        )
        return prediction

    async def _vector_match(
        self,
        signal: ProcessedSignal,
        tenant_context: TenantContext | None,
    ) -> PatternMatch | None:
        store = self.vector_store
        if store is None or not store.is_available() or not store.is_initialized():
            return None

        try:
            return await store.find_best_match(
                self.build_query_text(signal), self.vector_min_score, tenant_context
            )
        except Exception as e:
            logger.warning(f"Vector search failed, falling back to rules: {e}")
            return None

    @staticmethod
    def build_query_text(signal: ProcessedSignal) -> str:
        """Domain, entities and intent joined into a short search query."""
        classification = signal.intent_classification
        parts: list[str] = []
        if classification.domain:
            parts.append(classification.domain)
        parts.extend(classification.entities)
        parts.append(classification.intent.value)
        return " ".join(parts)

    def create_default_prediction(self, signal: ProcessedSignal) -> StructurePrediction:
        domain = signal.intent_classification.domain or "general"
        return StructurePrediction(
            module_type="custom",
            sections=[
                SectionPrediction(
                    name="General Information",
                    fields=[
                        FieldPrediction(name="Title", type="text", required=True),
                        FieldPrediction(name="Description", type="textarea", required=False),
                        FieldPrediction(name="Date", type="date", required=True),
                    ],
                    order=0,
                )
            ],
            confidence=GENERIC_CONFIDENCE,
            rationale=f'No specific pattern matched for domain "{domain}". Using generic structure.',
        )

    def generate_sections(self, pattern: Pattern) -> list[SectionPrediction]:
        return [
            SectionPrediction(
                name=section.name,
                fields=self._section_fields(section, pattern.structure.default_fields if i == 0 else []),
                order=i,
            )
            for i, section in enumerate(pattern.structure.sections)
        ]

    def _section_fields(self, section: PatternSection, default_fields: list[str]) -> list[FieldPrediction]:
        fields = [
            FieldPrediction(name=humanize_field_name(name), type=infer_field_type(name), required=True)
            for name in default_fields
        ]

        prefix = section.name.split(" ")[0]
        for field_type in section.field_types:
            name = f"{prefix} {field_type[:1].upper()}{field_type[1:]}"
            # "auditDate" already yields "Audit Date" in the Audit Scope section
            if any(_normalize(f.name) == _normalize(name) for f in fields):
                continue
            fields.append(FieldPrediction(name=name, type=field_type, required=section.required))
        return fields

    def generate_workflow(self, pattern: Pattern) -> WorkflowPrediction:
        steps = [
            WorkflowStep(
                name=name[:1].upper() + name[1:],
                type=WORKFLOW_TYPES.get(name.lower(), "task"),
                assignee=WORKFLOW_ASSIGNEES.get(name.lower(), "owner"),
                conditions=["previous_step_complete"] if i > 0 else [],
            )
            for i, name in enumerate(pattern.structure.workflows)
        ]
        return WorkflowPrediction(
            workflow_type=pattern.category.value,
            steps=steps,
            confidence=WORKFLOW_CONFIDENCE,
        )

    def _alternatives(self, signal: ProcessedSignal, exclude_pattern_id: str) -> list[StructurePrediction]:
        alternatives = []
        for match in self.library.rank_patterns(signal.intent_classification):
            if match.pattern.id == exclude_pattern_id:
                continue
            alternatives.append(
                StructurePrediction(
                    module_type=match.pattern.category.value,
                    sections=self.generate_sections(match.pattern),
                    confidence=match.score * ALTERNATIVE_PENALTY,
                    rationale=f"Alternative: {match.pattern.name}",
                    workflow=self.generate_workflow(match.pattern),
                    pattern_id=match.pattern.id,
                )
            )
            if len(alternatives) >= MAX_ALTERNATIVES:
                break
        return alternatives

    @staticmethod
    def _build_rationale(
        pattern: Pattern,
        signal: ProcessedSignal,
        score: float,
        used_vector_search: bool,
    ) -> str:
        domain = signal.intent_classification.domain or "unknown"
        method = "vector similarity search" if used_vector_search else "rule-based matching"
        return (
            f'Matched "{pattern.name}" pattern ({round(score * 100)}% confidence) using {method} '
            f'based on domain "{domain}". Pattern includes {len(pattern.structure.sections)} sections '
            f"and {len(pattern.structure.workflows)} workflow stages."
        )

    # =========================
    # Refinement
    # =========================

    def apply_modification(self, prediction: StructurePrediction, instruction: str) -> StructurePrediction:
        """
        Apply a natural-language edit to a prediction.

        Supported edits: add/remove a section, add/remove a field, mark a field
        required, change a field's type, add/remove a workflow step. Anything
        unrecognized only lowers confidence and records the instruction.

        Args:
            prediction: Prediction to refine (left untouched)
            instruction: e.g. "add a photo evidence section"

        Returns:
            New StructurePrediction
        """
        target, action = self.parse_modification(instruction)
        updated = prediction.model_copy(deep=True)
        name = self._extract_name(instruction, TARGET_NOUNS[target])

        if target == "section":
            self._modify_sections(updated, action, name)
        elif target == "field":
            self._modify_fields(updated, action, name, instruction)
        elif target == "workflow":
            self._modify_workflow(updated, action, name)
        elif target == "validation":
            field = self._find_field(updated, name, instruction)
            if field is not None:
                field.required = not re.search(r"\b(optional|not required)\b", instruction, re.IGNORECASE)
        elif target == "type":
            field = self._find_field(updated, name, instruction)
            new_type = self._extract_new_type(instruction)
            if field is not None and new_type:
                field.type = new_type

        updated.confidence = max(MODIFIED_CONFIDENCE_FLOOR, prediction.confidence * MODIFIED_CONFIDENCE_FACTOR)
        updated.rationale = f"{prediction.rationale} Modified: {instruction}".strip()

        logger.info(
            f"Applied modification ({action} {target})",
            extra={"module_type": updated.module_type, "target_name": name},
        )
        return updated

    @staticmethod
    def parse_modification(instruction: str) -> tuple[ModificationTarget, ModificationAction]:
        lowered = instruction.lower()

        target: ModificationTarget = "field"
        for candidate, keywords in TARGET_KEYWORDS:
            if any(k in lowered for k in keywords):
                target = candidate
                break

        action: ModificationAction = "modify"
        for candidate, keywords in ACTION_KEYWORDS:
            if any(k in lowered for k in keywords):
                action = candidate
                break

        return target, action

    @staticmethod
    def _extract_name(instruction: str, noun: str) -> str | None:
        quoted = re.search(r"[\"']([^\"']+)[\"']", instruction)
        if quoted:
            return quoted.group(1).strip()

        named = re.search(r"\b(?:called|named)\s+([\w\s-]+?)\s*$", instruction, re.IGNORECASE)
        if named:
            return _title(named.group(1))

        before_noun = re.search(
            rf"\b{EDIT_VERBS}\s+(?:(?:a|an|the|new)\s+)*([\w\s-]+?)\s+{noun}s?\b",
            instruction,
            re.IGNORECASE,
        )
        if before_noun and before_noun.group(1).lower() not in ARTICLES:
            return _title(before_noun.group(1))
        return None

    @staticmethod
    def _extract_new_type(instruction: str) -> str | None:
        match = re.search(r"\bto\s+(?:an?\s+)?([a-z]+)\b", instruction, re.IGNORECASE)
        return match.group(1).lower() if match else None

    @staticmethod
    def _find_field(
        prediction: StructurePrediction,
        name: str | None,
        instruction: str,
    ) -> FieldPrediction | None:
        fields = [f for s in prediction.sections for f in s.fields]

        if name:
            wanted = _normalize(name)
            for field in fields:
                if _normalize(field.name) == wanted:
                    return field

        # Fall back to the longest field name mentioned in the instruction
        lowered = instruction.lower()
        mentioned = [f for f in fields if f.name and f.name.lower() in lowered]
        return max(mentioned, key=lambda f: len(f.name)) if mentioned else None

    @staticmethod
    def _modify_sections(prediction: StructurePrediction, action: ModificationAction, name: str | None) -> None:
        if action == "add":
            prediction.sections.append(
                SectionPrediction(name=name or DEFAULT_SECTION_NAME, fields=[], order=len(prediction.sections))
            )
        elif action == "remove" and name:
            wanted = _normalize(name)
            prediction.sections = [s for s in prediction.sections if _normalize(s.name) != wanted]
            for i, section in enumerate(prediction.sections):
                section.order = i

    def _modify_fields(
        self,
        prediction: StructurePrediction,
        action: ModificationAction,
        name: str | None,
        instruction: str,
    ) -> None:
        if action == "add":
            if not prediction.sections:
                prediction.sections.append(SectionPrediction(name=DEFAULT_SECTION_NAME, order=0))
            prediction.sections[-1].fields.append(
                FieldPrediction(name=name or DEFAULT_FIELD_NAME, type="text", required=False)
            )
        elif action == "remove":
            field = self._find_field(prediction, name, instruction)
            if field is None:
                return
            for section in prediction.sections:
                section.fields = [f for f in section.fields if f is not field]

    def _modify_workflow(self, prediction: StructurePrediction, action: ModificationAction, name: str | None) -> None:
        if action == "add":
            if prediction.workflow is None:
                prediction.workflow = WorkflowPrediction(
                    workflow_type=prediction.module_type, steps=[], confidence=MODIFIED_CONFIDENCE_FLOOR
                )
            step_name = name or "Custom Step"
            key = step_name.lower()
            prediction.workflow.steps.append(
                WorkflowStep(
                    name=step_name,
                    type=WORKFLOW_TYPES.get(key, "task"),
                    assignee=WORKFLOW_ASSIGNEES.get(key, "owner"),
                    conditions=["previous_step_complete"] if prediction.workflow.steps else [],
                )
            )
        elif action == "remove" and name and prediction.workflow is not None:
            wanted = _normalize(name)
            prediction.workflow.steps = [s for s in prediction.workflow.steps if _normalize(s.name) != wanted]
