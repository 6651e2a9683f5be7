"""Signal processing: turns free text into a classified, annotated signal.

Classification is deliberately heuristic (keyword scoring + ordered regex
domain sets, no model):
- Intent: keyword hits weighted by how early they appear in the input
- Domain: first matching regex set wins
- Entities: quoted phrases plus known domain terms present as whole words
- Anomalies: advisory flags, never errors

The processor holds no state; every method is a pure function of its input.
"""

import re
from datetime import UTC, datetime
from typing import Any

from app.core.logging import get_logger
from app.core.schemas_signal import (
    Anomaly,
    ContextSignal,
    HandlerRoute,
    IntentClassification,
    IntentType,
    ProcessedSignal,
)

logger = get_logger(__name__)


# Intent keyword sets, in tie-break order (IntentType declaration order)
INTENT_KEYWORDS: dict[IntentType, dict[str, Any]] = {
    IntentType.CREATE: {"keywords": ["create", "new", "add", "generate", "make"], "weight": 1.0},
    IntentType.MODIFY: {"keywords": ["update", "edit", "change", "modify", "revise"], "weight": 1.0},
    IntentType.QUERY: {"keywords": ["show", "list", "find", "get", "search", "display"], "weight": 1.0},
    IntentType.VALIDATE: {"keywords": ["check", "verify", "validate", "review", "approve"], "weight": 1.0},
    IntentType.DELETE: {"keywords": ["delete", "remove", "cancel", "revoke"], "weight": 1.0},
}

# Ordered domain regex sets; first match wins
DOMAIN_PATTERNS: list[tuple[str, list[str]]] = [
    # HSE
    ("safety", [r"safety", r"incident", r"hazard", r"risk", r"assessment", r"inspection"]),
    ("permit", [r"permit", r"authorization", r"approval", r"clearance"]),
    ("compliance", [r"compliance", r"audit", r"regulation", r"policy"]),
    ("workflow", [r"workflow", r"process", r"task", r"assignment"]),
    ("user", [r"user", r"account", r"profile", r"role", r"permission"]),
    # Design systems
    ("component", [r"component", r"button", r"input", r"card", r"modal", r"dialog", r"form", r"ui\b"]),
    ("token", [r"token", r"color", r"spacing", r"typography", r"scale", r"theme"]),
    ("accessibility", [r"accessibility", r"wcag", r"a11y", r"contrast", r"aria", r"screen.?reader"]),
    ("pattern", [r"pattern", r"layout", r"responsive", r"navigation", r"grid"]),
    ("review", [r"review", r"analyze", r"audit", r"check", r"validate", r"project"]),
    # Tooling
    ("scaffold", [r"scaffold", r"design.?system", r"generate.*project"]),
    ("storybook", [r"storybook", r"story", r"stories"]),
    ("mcp", [r"\bmcp\b", r"model.?context", r"tool.*definition"]),
    ("audit", [r"audit", r"scan", r"drift"]),
]

_COMPILED_DOMAINS = [
    (domain, [re.compile(p, re.IGNORECASE) for p in patterns])
    for domain, patterns in DOMAIN_PATTERNS
]

DOMAIN_TERMS = [
    "incident",
    "permit",
    "assessment",
    "report",
    "user",
    "role",
    "workflow",
    "task",
    "inspection",
    "audit",
    "location",
    "site",
]

HANDLER_MAP: dict[IntentType, tuple[str, int]] = {
    IntentType.CREATE: ("creation-handler", 1),
    IntentType.MODIFY: ("modification-handler", 2),
    IntentType.QUERY: ("query-handler", 3),
    IntentType.VALIDATE: ("validation-handler", 2),
    IntentType.DELETE: ("deletion-handler", 1),
}

TIME_PATTERNS = [
    re.compile(r"last\s+(week|month|year|day)", re.IGNORECASE),
    re.compile(r"this\s+(week|month|year)", re.IGNORECASE),
    re.compile(r"today", re.IGNORECASE),
    re.compile(r"yesterday", re.IGNORECASE),
    re.compile(r"since\s+\w+", re.IGNORECASE),
    re.compile(r"before\s+\w+", re.IGNORECASE),
    re.compile(r"after\s+\w+", re.IGNORECASE),
    re.compile(r"\d{4}-\d{2}-\d{2}"),
]

URGENCY_PATTERNS: list[tuple[str, list[str]]] = [
    ("critical", [r"urgent", r"emergency", r"critical", r"immediately", r"asap"]),
    ("high", [r"important", r"priority", r"soon", r"quickly"]),
    ("low", [r"whenever", r"no rush", r"when you can", r"eventually"]),
]

# Environment keys promoted to context signals
ENVIRONMENT_SIGNALS = {
    "current_module": "module_context",
    "user_role": "user_role",
    "location": "location_context",
}

LOW_CONFIDENCE_THRESHOLD = 0.5
NO_MATCH_CONFIDENCE = 0.3
MIN_INPUT_CHARS = 10
MAX_INPUT_CHARS = 1000


class SignalProcessor:
    """Classifies free text into intent, domain, entities and anomaly flags."""

    def classify_intent(self, text: str) -> IntentClassification:
        """
        Score every intent by its keyword hits and pick the best.

        Each keyword contributes `(1 + position_bonus * 0.5) * weight`, where
        `position_bonus = 1 - first_match_index / word_count`. Ties keep the
        intent declared first. With no hits the guess is QUERY at 0.3.

        Args:
            text: Raw user input

        Returns:
            IntentClassification
        """
        normalized = text.lower()
        words = normalized.split()

        best_intent = IntentType.QUERY
        best_score = 0.0

        for intent, config in INTENT_KEYWORDS.items():
            score = 0.0
            for keyword in config["keywords"]:
                index = next((i for i, word in enumerate(words) if keyword in word), -1)
                if index != -1:
                    position_bonus = 1 - index / len(words)
                    score += (1 + position_bonus * 0.5) * config["weight"]

            if score > best_score:
                best_score = score
                best_intent = intent

        confidence = min(best_score / 2, 1.0)

        classification = IntentClassification(
            intent=best_intent,
            confidence=confidence if confidence > 0 else NO_MATCH_CONFIDENCE,
            domain=self.detect_domain(normalized),
            entities=self.extract_entities(text),
        )

        logger.debug(
            f"Intent classified: {classification.intent.value} "
            f"(confidence: {classification.confidence:.2f})",
            extra={"domain": classification.domain, "entity_count": len(classification.entities)},
        )
        return classification

    def detect_domain(self, text: str) -> str | None:
        for domain, patterns in _COMPILED_DOMAINS:
            if any(p.search(text) for p in patterns):
                return domain
        return None

    def extract_entities(self, text: str) -> list[str]:
        """Quoted phrases and whole-word domain terms, in order of first occurrence."""
        found: list[tuple[int, str]] = []

        for match in re.finditer(r'"([^"]+)"', text):
            found.append((match.start(), match.group(1)))

        lowered = text.lower()
        for term in DOMAIN_TERMS:
            match = re.search(rf"\b{re.escape(term)}\b", lowered)
            if match:
                found.append((match.start(), term))

        entities: list[str] = []
        for _, entity in sorted(found, key=lambda item: item[0]):
            if entity not in entities:
                entities.append(entity)
        return entities

    def detect_context_signals(
        self,
        text: str,
        environment: dict[str, Any] | None = None,
    ) -> list[ContextSignal]:
        """Domain hint, time constraint and urgency from the text, plus environment hints."""
        signals: list[ContextSignal] = []
        now = datetime.now(UTC)

        domain = self.detect_domain(text.lower())
        if domain:
            signals.append(
                ContextSignal(type="domain_hint", value=domain, source="input_analysis", timestamp=now)
            )

        time_constraint = self._extract_time_constraint(text)
        if time_constraint:
            signals.append(
                ContextSignal(
                    type="time_constraint", value=time_constraint, source="input_analysis", timestamp=now
                )
            )

        urgency = self._detect_urgency(text)
        if urgency != "normal":
            signals.append(
                ContextSignal(type="urgency", value=urgency, source="input_analysis", timestamp=now)
            )

        for key, signal_type in ENVIRONMENT_SIGNALS.items():
            if environment and environment.get(key):
                signals.append(
                    ContextSignal(type=signal_type, value=environment[key], source="environment", timestamp=now)
                )

        return signals

    def detect_anomalies(self, text: str, classification: IntentClassification) -> list[Anomaly]:
        """Advisory flags about the input. These never block the pipeline."""
        anomalies: list[Anomaly] = []

        if classification.confidence < LOW_CONFIDENCE_THRESHOLD:
            anomalies.append(
                Anomaly(
                    type="low_confidence",
                    severity="medium",
                    description=(
                        f"Intent classification confidence is low ({classification.confidence:.2f}). "
                        "User intent may be ambiguous."
                    ),
                )
            )

        conflicting = self._detect_conflicting_intents(text)
        if len(conflicting) > 1:
            anomalies.append(
                Anomaly(
                    type="conflicting_intents",
                    severity="medium",
                    description=f"Multiple conflicting intents detected: {', '.join(i.value for i in conflicting)}",
                )
            )

        if not classification.entities and classification.intent != IntentType.QUERY:
            anomalies.append(
                Anomaly(
                    type="missing_entities",
                    severity="low",
                    description="No specific entities identified in the request. Additional context may be needed.",
                )
            )

        if len(text) < MIN_INPUT_CHARS:
            anomalies.append(
                Anomaly(
                    type="insufficient_input",
                    severity="low",
                    description="Input is very short. More details may improve processing accuracy.",
                )
            )

        if len(text) > MAX_INPUT_CHARS:
            anomalies.append(
                Anomaly(
                    type="complex_input",
                    severity="low",
                    description="Input is lengthy. Consider breaking into smaller requests for better handling.",
                )
            )

        return anomalies

    def route_signal(self, classification: IntentClassification) -> HandlerRoute:
        handler, priority = HANDLER_MAP.get(classification.intent, ("default-handler", 5))
        return HandlerRoute(
            handler=handler,
            priority=priority,
            metadata={
                "confidence": classification.confidence,
                "domain": classification.domain,
                "entity_count": len(classification.entities),
            },
        )

    def process_signal(
        self,
        text: str,
        environment: dict[str, Any] | None = None,
        context_signals: list[ContextSignal] | None = None,
    ) -> ProcessedSignal:
        """
        Run the full classification for one input.

        Args:
            text: Raw user input
            environment: Optional environment hints (current_module, user_role, location)
            context_signals: Caller-supplied signals, kept ahead of detected ones

        Returns:
            Immutable ProcessedSignal
        """
        classification = self.classify_intent(text)
        detected = self.detect_context_signals(text, environment)
        anomalies = self.detect_anomalies(text, classification)

        signal = ProcessedSignal(
            intent_classification=classification,
            context_signals=[*(context_signals or []), *detected],
            anomalies=anomalies,
            routing_decision=self.route_signal(classification),
        )

        logger.info(
            f"Processed signal as {classification.intent.value}",
            extra={
                "domain": classification.domain,
                "confidence": round(classification.confidence, 3),
                "anomalies": [a.type for a in anomalies],
            },
        )
        return signal

    def _extract_time_constraint(self, text: str) -> str | None:
        for pattern in TIME_PATTERNS:
            match = pattern.search(text)
            if match:
                return match.group(0)
        return None

    def _detect_urgency(self, text: str) -> str:
        for level, patterns in URGENCY_PATTERNS:
            if any(re.search(p, text, re.IGNORECASE) for p in patterns):
                return level
        return "normal"

    def _detect_conflicting_intents(self, text: str) -> list[IntentType]:
        normalized = text.lower()
        return [
            intent
            for intent, config in INTENT_KEYWORDS.items()
            if any(keyword in normalized for keyword in config["keywords"])
        ]
