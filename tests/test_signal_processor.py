"""Tests for heuristic signal processing."""

import pytest
from pydantic import ValidationError

from app.core.schemas_signal import ContextSignal, IntentType


class TestClassifyIntent:
    def test_create_intent_with_early_keywords(self, processor):
        result = processor.classify_intent("create a new incident report")
        assert result.intent == IntentType.CREATE
        # create@0 -> 1.5, new@2 -> 1.3; 2.8 / 2 capped at 1
        assert result.confidence == 1.0

    def test_single_keyword_confidence(self, processor):
        result = processor.classify_intent("update the permit")
        assert result.intent == IntentType.MODIFY
        assert result.confidence == 0.75

    def test_later_keyword_scores_lower(self, processor):
        early = processor.classify_intent("show incidents for the site")
        late = processor.classify_intent("incidents for the site show")
        assert early.intent == late.intent == IntentType.QUERY
        assert early.confidence > late.confidence

    def test_keyword_matches_inside_word(self, processor):
        result = processor.classify_intent("recreate it")
        assert result.intent == IntentType.CREATE

    def test_no_keyword_defaults_to_query(self, processor):
        result = processor.classify_intent("hello there")
        assert result.intent == IntentType.QUERY
        assert result.confidence == 0.3

    def test_empty_input_does_not_raise(self, processor):
        result = processor.classify_intent("")
        assert result.intent == IntentType.QUERY
        assert result.confidence == 0.3
        assert result.domain is None
        assert result.entities == []

    def test_tie_keeps_first_declared_intent(self, processor):
        # "editlist" hits MODIFY ("edit") and QUERY ("list") at the same position
        result = processor.classify_intent("editlist")
        assert result.intent == IntentType.MODIFY

    def test_higher_aggregate_wins(self, processor):
        result = processor.classify_intent("delete and remove then create")
        assert result.intent == IntentType.DELETE


class TestDomainAndEntities:
    def test_first_matching_domain_wins(self, processor):
        # "inspection" (safety) is checked before "audit" (compliance)
        assert processor.detect_domain("audit inspection schedule") == "safety"

    def test_permit_domain(self, processor):
        assert processor.detect_domain("request a work permit") == "permit"

    def test_component_domain(self, processor):
        assert processor.detect_domain("style the button component") == "component"

    def test_no_domain(self, processor):
        assert processor.detect_domain("hello there") is None

    def test_quoted_and_domain_terms_in_order(self, processor):
        entities = processor.extract_entities('create "Hot Work" permit for the site')
        assert entities == ["Hot Work", "permit", "site"]

    def test_domain_terms_must_be_whole_words(self, processor):
        assert processor.extract_entities("reporting incidents") == []

    def test_entities_deduplicated(self, processor):
        assert processor.extract_entities("permit permit permit") == ["permit"]


class TestAnomalies:
    def test_low_confidence(self, processor):
        classification = processor.classify_intent("hello there")
        types = [a.type for a in processor.detect_anomalies("hello there", classification)]
        assert types == ["low_confidence"]

    def test_conflicting_intents(self, processor):
        text = "create and delete the incident report"
        classification = processor.classify_intent(text)
        anomalies = processor.detect_anomalies(text, classification)
        conflict = next(a for a in anomalies if a.type == "conflicting_intents")
        assert "create" in conflict.description
        assert "delete" in conflict.description
        assert conflict.severity == "medium"

    def test_short_input_without_entities(self, processor):
        classification = processor.classify_intent("add")
        types = {a.type for a in processor.detect_anomalies("add", classification)}
        assert types == {"missing_entities", "insufficient_input"}

    def test_missing_entities_not_flagged_for_query(self, processor):
        text = "show everything please"
        classification = processor.classify_intent(text)
        types = {a.type for a in processor.detect_anomalies(text, classification)}
        assert "missing_entities" not in types

    def test_complex_input(self, processor):
        text = "create incident " * 80
        classification = processor.classify_intent(text)
        types = {a.type for a in processor.detect_anomalies(text, classification)}
        assert "complex_input" in types


class TestContextSignals:
    def test_detected_signals(self, processor):
        signals = processor.detect_context_signals("urgent incident report from yesterday")
        by_type = {s.type: s for s in signals}

        assert by_type["domain_hint"].value == "safety"
        assert by_type["time_constraint"].value == "yesterday"
        assert by_type["urgency"].value == "critical"
        assert all(s.source == "input_analysis" for s in signals)

    def test_normal_urgency_emits_nothing(self, processor):
        signals = processor.detect_context_signals("incident report")
        assert "urgency" not in {s.type for s in signals}

    def test_environment_signals(self, processor):
        signals = processor.detect_context_signals(
            "hello there",
            {"current_module": "permits", "user_role": "supervisor", "location": "Plant 4"},
        )
        env = {s.type: s.value for s in signals if s.source == "environment"}
        assert env == {
            "module_context": "permits",
            "user_role": "supervisor",
            "location_context": "Plant 4",
        }


class TestProcessSignal:
    def test_routing_decision(self, processor):
        signal = processor.process_signal("create a new incident report")
        assert signal.routing_decision.handler == "creation-handler"
        assert signal.routing_decision.priority == 1
        assert signal.routing_decision.metadata["domain"] == "safety"
        assert signal.routing_decision.metadata["entity_count"] == 2

    def test_query_routing(self, processor):
        signal = processor.process_signal("list permits")
        assert signal.routing_decision.handler == "query-handler"
        assert signal.routing_decision.priority == 3

    def test_caller_signals_come_first(self, processor):
        caller = ContextSignal(type="project", value="north-site")
        signal = processor.process_signal("create incident report", context_signals=[caller])
        assert signal.context_signals[0] == caller
        assert len(signal.context_signals) > 1

    def test_processed_signal_is_immutable(self, processor):
        signal = processor.process_signal("create incident report")
        with pytest.raises(ValidationError):
            signal.anomalies = []
