"""Tests for the pattern catalogue and rule-based matching."""

from app.core.pattern_library import PatternLibrary
from app.core.schemas_patterns import (
    ApplicabilityRule,
    PatternCategory,
    PatternConfidence,
    TenantContext,
)
from app.core.schemas_signal import IntentClassification, IntentType


def _classification(
    intent: IntentType = IntentType.CREATE,
    confidence: float = 0.75,
    domain: str | None = None,
    entities: list[str] | None = None,
) -> IntentClassification:
    return IntentClassification(intent=intent, confidence=confidence, domain=domain, entities=entities or [])


# ============================================================================
# Catalogue
# ============================================================================


class TestCatalogue:
    def test_register_and_get(self, empty_library, make_pattern):
        pattern = make_pattern("p1")
        empty_library.register_pattern(pattern)

        assert empty_library.get_pattern("p1") == pattern
        assert empty_library.get_pattern("missing") is None
        assert empty_library.has_patterns()
        assert empty_library.pattern_count() == 1

    def test_register_replaces_same_id(self, empty_library, make_pattern):
        empty_library.register_pattern(make_pattern("p1", name="First"))
        empty_library.register_pattern(make_pattern("p1", name="Second"))

        assert empty_library.pattern_count() == 1
        assert empty_library.get_pattern("p1").name == "Second"

    def test_seed_catalogue(self, library):
        assert library.pattern_count() == 5
        assert [p.id for p in library.get_patterns_by_category(PatternCategory.PERMIT)] == ["hse-permit-default"]

    def test_pattern_structure(self, library):
        structure = library.get_pattern_structure("hse-incident-default")
        assert structure.workflows == ["investigate", "review", "close"]
        assert library.get_pattern_structure("missing") is None

    def test_clear(self, library):
        library.clear_patterns()
        assert not library.has_patterns()
        assert library.get_all_patterns() == []


# ============================================================================
# Rule matching
# ============================================================================


class TestMatchPattern:
    def test_seed_assessment_match(self, library, processor):
        classification = processor.classify_intent("create a safety assessment form")
        match = library.match_pattern(classification)

        assert match.pattern.id == "hse-assessment-default"
        assert match.score == 1.0
        assert match.matched_rules == ["intent", "domain", "entities"]

    def test_seed_incident_match_without_create_keyword(self, library, processor):
        classification = processor.classify_intent("report an incident at the site")
        match = library.match_pattern(classification)

        # safety 0.4 + incident 1.0 + report 0.6 out of 2.5
        assert match.pattern.id == "hse-incident-default"
        assert abs(match.score - 0.8) < 1e-9

    def test_seed_permit_and_audit(self, library, processor):
        permit = library.match_pattern(processor.classify_intent("create a work permit"))
        audit = library.match_pattern(processor.classify_intent("create an audit checklist"))

        assert permit.pattern.id == "hse-permit-default"
        assert audit.pattern.id == "hse-audit-default"

    def test_score_is_weighted_fraction(self, empty_library, make_pattern):
        empty_library.register_pattern(
            make_pattern(
                rules=[
                    ApplicabilityRule(field="intent", operator="equals", value="create", weight=1.0),
                    ApplicabilityRule(field="domain", operator="equals", value="permit", weight=3.0),
                ]
            )
        )
        match = empty_library.match_pattern(_classification(domain="safety"))
        assert match.score == 0.25

    def test_threshold_is_strict(self, empty_library, make_pattern):
        empty_library.register_pattern(
            make_pattern(
                rules=[
                    ApplicabilityRule(field="intent", operator="equals", value="create", weight=1.0),
                    ApplicabilityRule(field="domain", operator="equals", value="permit", weight=4.0),
                ]
            )
        )
        # 1 / 5 = 0.2 is not above the threshold
        assert empty_library.match_pattern(_classification(domain="safety")) is None

    def test_no_rules_never_match(self, empty_library, make_pattern):
        empty_library.register_pattern(make_pattern(rules=[]))
        assert empty_library.match_pattern(_classification()) is None

    def test_rule_operators_are_case_insensitive(self, empty_library, make_pattern):
        empty_library.register_pattern(
            make_pattern(rules=[ApplicabilityRule(field="domain", operator="contains", value="SAFE")])
        )
        assert empty_library.match_pattern(_classification(domain="safety")) is not None

    def test_matches_operator_uses_regex(self, empty_library, make_pattern):
        empty_library.register_pattern(
            make_pattern(rules=[ApplicabilityRule(field="entities", operator="matches", value=r"^permit\b")])
        )
        assert empty_library.match_pattern(_classification(entities=["permit", "site"])) is not None
        assert empty_library.match_pattern(_classification(entities=["site", "permit"])) is None

    def test_invalid_regex_never_matches(self, empty_library, make_pattern):
        empty_library.register_pattern(
            make_pattern(rules=[ApplicabilityRule(field="domain", operator="matches", value="[unclosed")])
        )
        assert empty_library.match_pattern(_classification(domain="[unclosed")) is None

    def test_confidence_field_rule(self, empty_library, make_pattern):
        empty_library.register_pattern(
            make_pattern(rules=[ApplicabilityRule(field="confidence", operator="equals", value="0.75")])
        )
        assert empty_library.match_pattern(_classification(confidence=0.75)) is not None

    def test_missing_domain_fails_domain_rules(self, empty_library, make_pattern):
        empty_library.register_pattern(
            make_pattern(rules=[ApplicabilityRule(field="domain", operator="contains", value="")])
        )
        assert empty_library.match_pattern(_classification(domain=None)) is None

    def test_ties_keep_first_registered(self, empty_library, make_pattern):
        empty_library.register_pattern(make_pattern("first"))
        empty_library.register_pattern(make_pattern("second"))

        assert empty_library.match_pattern(_classification()).pattern.id == "first"

    def test_tenant_context_does_not_filter(self, empty_library, make_pattern):
        empty_library.register_pattern(make_pattern("foreign", company="other-co"))

        match = empty_library.match_pattern(_classification(), TenantContext(company="acme"))
        assert match.pattern.id == "foreign"

    def test_score_scaled_by_current_confidence(self, empty_library, make_pattern):
        empty_library.register_pattern(make_pattern("half", confidence=PatternConfidence(base=0.5)))

        match = empty_library.match_pattern(_classification())
        assert match.score == 0.5

    def test_deterministic(self, library, processor):
        classification = processor.classify_intent("create an incident report")
        first = library.match_pattern(classification)
        second = library.match_pattern(classification)
        assert first == second


class TestRankPatterns:
    def test_ranked_best_first(self, library, processor):
        ranked = library.rank_patterns(processor.classify_intent("create a safety assessment form"))

        assert [m.pattern.id for m in ranked] == [
            "hse-assessment-default",
            "hse-incident-default",
            "hse-action-default",
            "hse-audit-default",
        ]
        scores = [m.score for m in ranked]
        assert scores == sorted(scores, reverse=True)

    def test_custom_threshold(self, make_pattern):
        lib = PatternLibrary(match_threshold=0.9)
        lib.register_pattern(make_pattern(confidence=PatternConfidence(base=0.8)))
        assert lib.rank_patterns(_classification()) == []
