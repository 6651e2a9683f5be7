"""Pattern library: in-memory catalogue, rule matching, grounding and fusion.

The library is domain-agnostic; domain patterns are loaded by the caller
(see app.core.seed_patterns).

Scoring:
1. Rule score: matched rule weights / total rule weights (0.0 - 1.0)
2. Scaled by the pattern's current confidence (decay + grounding boost)
3. Best score strictly above the match threshold wins; ties keep the
   pattern registered first

Tenants never filter the catalogue. Tenant-aware ranking happens in the
vector path, where the query embedding is fused with the tenant's domain
embedding (fuse_embeddings) before similarity search.
"""

import re
from datetime import UTC, datetime

from app.core.logging import get_logger
from app.core.schemas_patterns import (
    ApplicabilityRule,
    Pattern,
    PatternCategory,
    PatternConfidence,
    PatternMatch,
    PatternStructure,
    TenantContext,
)
from app.core.schemas_signal import IntentClassification

logger = get_logger(__name__)

DEFAULT_MATCH_THRESHOLD = 0.2
DEFAULT_DECAY_RATE = 0.01
DEFAULT_FUSION_ALPHA = 0.7

CONFIDENCE_FLOOR = 0.1
CONFIDENCE_CEILING = 1.0
GROUNDING_BOOST_PER_USE = 0.03
GROUNDING_BOOST_CAP = 0.3

SECONDS_PER_DAY = 86400.0


def _days_since(moment: datetime, now: datetime) -> float:
    """Continuous day count; naive datetimes are treated as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    return max(0.0, (now - moment).total_seconds() / SECONDS_PER_DAY)


class PatternLibrary:
    """Owns the pattern catalogue and every score derived from it."""

    def __init__(
        self,
        match_threshold: float = DEFAULT_MATCH_THRESHOLD,
        default_decay_rate: float = DEFAULT_DECAY_RATE,
    ):
        self.match_threshold = match_threshold
        self.default_decay_rate = default_decay_rate
        self._patterns: dict[str, Pattern] = {}

    # =========================
    # Catalogue
    # =========================

    def register_pattern(self, pattern: Pattern) -> None:
        self._patterns[pattern.id] = pattern

    def load_patterns(self, patterns: list[Pattern]) -> None:
        for pattern in patterns:
            self.register_pattern(pattern)
        logger.info(f"Loaded {len(patterns)} patterns", extra={"total": len(self._patterns)})

    def clear_patterns(self) -> None:
        self._patterns.clear()

    def get_pattern(self, pattern_id: str) -> Pattern | None:
        return self._patterns.get(pattern_id)

    def get_patterns_by_category(self, category: PatternCategory) -> list[Pattern]:
        return [p for p in self._patterns.values() if p.category == category]

    def get_all_patterns(self) -> list[Pattern]:
        return list(self._patterns.values())

    def get_pattern_structure(self, pattern_id: str) -> PatternStructure | None:
        pattern = self._patterns.get(pattern_id)
        return pattern.structure if pattern else None

    def has_patterns(self) -> bool:
        return bool(self._patterns)

    def pattern_count(self) -> int:
        return len(self._patterns)

    # =========================
    # Rule-based matching
    # =========================

    def match_pattern(
        self,
        classification: IntentClassification,
        tenant_context: TenantContext | None = None,
    ) -> PatternMatch | None:
        """
        Find the best matching pattern for a classification.

        Tenant context is accepted for symmetry with the vector path but never
        excludes a pattern: global and foreign-tenant patterns stay eligible.

        Args:
            classification: Intent classification to match against
            tenant_context: Optional tenant context (not a filter)

        Returns:
            Best PatternMatch above the threshold, or None
        """
        ranked = self.rank_patterns(classification)
        best = ranked[0] if ranked else None

        if best:
            logger.debug(
                f"Rule match: {best.pattern.id} (score: {best.score:.3f})",
                extra={"tenant": tenant_context.company if tenant_context else None},
            )
        return best

    def rank_patterns(self, classification: IntentClassification) -> list[PatternMatch]:
        """All patterns scoring above the threshold, best first (stable for ties)."""
        matches: list[PatternMatch] = []
        for pattern in self._patterns.values():
            raw_score, matched_rules = self._evaluate_pattern(pattern, classification)
            score = raw_score * self.current_confidence(pattern)
            if score > self.match_threshold:
                matches.append(PatternMatch(pattern=pattern, score=score, matched_rules=matched_rules))

        matches.sort(key=lambda m: m.score, reverse=True)
        return matches

    def _evaluate_pattern(
        self,
        pattern: Pattern,
        classification: IntentClassification,
    ) -> tuple[float, list[str]]:
        matched_rules: list[str] = []
        matched_weight = 0.0
        total_weight = 0.0

        for rule in pattern.applicability_rules:
            total_weight += rule.weight
            if self._evaluate_rule(rule, classification):
                matched_weight += rule.weight
                matched_rules.append(rule.field)

        score = matched_weight / total_weight if total_weight > 0 else 0.0
        return score, matched_rules

    def _evaluate_rule(self, rule: ApplicabilityRule, classification: IntentClassification) -> bool:
        value = self._get_field_value(rule.field, classification)
        if value is None:
            return False

        value = value.lower()
        expected = rule.value.lower()

        if rule.operator == "equals":
            return value == expected
        if rule.operator == "contains":
            return expected in value
        if rule.operator == "matches":
            try:
                return re.search(expected, value, re.IGNORECASE) is not None
            except re.error:
                return False
        return False

    @staticmethod
    def _get_field_value(field: str, classification: IntentClassification) -> str | None:
        if field == "intent":
            return classification.intent.value
        if field == "domain":
            return classification.domain
        if field == "confidence":
            return str(classification.confidence)
        if field == "entities":
            return " ".join(classification.entities)
        return None

    # =========================
    # Confidence decay / grounding
    # =========================

    def current_confidence(self, pattern: Pattern, now: datetime | None = None) -> float:
        """
        Effective confidence of a pattern, recomputed on every read.

        decayed = base - decay_rate * days_since(last_grounded)   (no decay if never grounded)
        boost   = min(0.3, grounding_count * 0.03)
        result  = clamp(decayed + boost, 0.1, 1.0)

        Patterns without confidence data are fully trusted (1.0).
        """
        confidence = pattern.confidence
        if confidence is None:
            return 1.0

        decayed = confidence.base
        if confidence.last_grounded is not None:
            days = _days_since(confidence.last_grounded, now or datetime.now(UTC))
            decayed -= confidence.decay_rate * days

        boost = min(GROUNDING_BOOST_CAP, confidence.grounding_count * GROUNDING_BOOST_PER_USE)
        return max(CONFIDENCE_FLOOR, min(CONFIDENCE_CEILING, decayed + boost))

    def get_pattern_confidence(self, pattern_id: str) -> float | None:
        pattern = self._patterns.get(pattern_id)
        if pattern is None:
            return None
        return self.current_confidence(pattern)

    def initialize_pattern_confidence(
        self,
        pattern_id: str,
        base: float = 1.0,
        decay_rate: float | None = None,
    ) -> Pattern | None:
        """Attach confidence data to a pattern that has none. Existing data is kept."""
        pattern = self._patterns.get(pattern_id)
        if pattern is None:
            return None
        if pattern.confidence is not None:
            return pattern

        updated = pattern.model_copy(
            update={
                "confidence": PatternConfidence(
                    base=base,
                    last_grounded=None,
                    grounding_count=0,
                    decay_rate=self.default_decay_rate if decay_rate is None else decay_rate,
                )
            }
        )
        self._patterns[pattern_id] = updated
        return updated

    def ground_pattern(self, pattern_id: str, success: bool) -> Pattern | None:
        """
        Record a production use of a pattern.

        Success resets the decay clock and increments the grounding count.
        Failure leaves grounding state untouched; negative outcomes flow
        through domain affinity instead.

        Returns:
            The (possibly updated) pattern, or None if the id is unknown
        """
        pattern = self._patterns.get(pattern_id)
        if pattern is None:
            return None
        if not success:
            return pattern

        confidence = pattern.confidence or PatternConfidence(
            base=1.0, decay_rate=self.default_decay_rate
        )
        grounded = confidence.model_copy(
            update={
                "last_grounded": datetime.now(UTC),
                "grounding_count": confidence.grounding_count + 1,
            }
        )
        metadata = pattern.metadata.model_copy(
            update={"usage_count": pattern.metadata.usage_count + 1, "updated_at": datetime.now(UTC)}
        )
        updated = pattern.model_copy(update={"confidence": grounded, "metadata": metadata})
        self._patterns[pattern_id] = updated

        logger.info(
            f"Grounded pattern {pattern_id}",
            extra={"grounding_count": grounded.grounding_count},
        )
        return updated

    # =========================
    # Embedding fusion / affinity
    # =========================

    @staticmethod
    def fuse_embeddings(
        query_embedding: list[float],
        tenant_embedding: list[float],
        alpha: float = DEFAULT_FUSION_ALPHA,
    ) -> list[float]:
        """
        Blend a query vector with a tenant domain vector.

        fused[i] = alpha * query[i] + (1 - alpha) * tenant[i]

        Mismatched dimensionality returns the query unchanged.
        """
        if len(query_embedding) != len(tenant_embedding):
            logger.debug(
                "Embedding dimension mismatch, skipping fusion",
                extra={"query_dim": len(query_embedding), "tenant_dim": len(tenant_embedding)},
            )
            return query_embedding

        return [
            alpha * q + (1 - alpha) * t
            for q, t in zip(query_embedding, tenant_embedding)
        ]

    def adjust_domain_affinity(
        self,
        pattern_id: str,
        embedding: list[float],
        delta: float,
    ) -> Pattern | None:
        """
        Move a pattern's affinity vector toward (delta > 0) or away from
        (delta < 0) a tenant embedding.

        Returns:
            Updated pattern, or None if the id is unknown or dimensions differ
        """
        pattern = self._patterns.get(pattern_id)
        if pattern is None:
            return None

        current = pattern.domain_affinity or [0.0] * len(embedding)
        if len(current) != len(embedding):
            logger.warning(
                f"Affinity dimension mismatch for pattern {pattern_id}",
                extra={"affinity_dim": len(current), "embedding_dim": len(embedding)},
            )
            return None

        affinity = [a + delta * e for a, e in zip(current, embedding)]
        updated = pattern.model_copy(update={"domain_affinity": affinity})
        self._patterns[pattern_id] = updated
        return updated
