"""Built-in HSE (health, safety, environment) patterns.

The engine is domain-agnostic; this module is one example catalogue, loaded
at startup when LOAD_SEED_PATTERNS is on. Other domains ship their own list
and pass it to PatternLibrary.load_patterns.
"""

from app.core.schemas_patterns import (
    ApplicabilityRule,
    Pattern,
    PatternCategory,
    PatternSection,
    PatternStructure,
)
from app.core.schemas_signal import IntentType


def _create_rule() -> ApplicabilityRule:
    return ApplicabilityRule(field="intent", operator="equals", value=IntentType.CREATE.value, weight=0.5)


def hse_patterns() -> list[Pattern]:
    """Fresh copies of the HSE catalogue (patterns are replaced, never shared)."""
    return [
        Pattern(
            id="hse-assessment-default",
            name="Safety Assessment",
            category=PatternCategory.ASSESSMENT,
            description="Standard safety assessment form for HSE domain",
            structure=PatternStructure(
                sections=[
                    PatternSection(name="General Information", field_types=["text", "date", "select"]),
                    PatternSection(name="Hazard Identification", field_types=["checklist", "text"]),
                    PatternSection(name="Risk Evaluation", field_types=["matrix", "number"]),
                    PatternSection(name="Control Measures", field_types=["text", "checklist"]),
                ],
                workflows=["review", "approve"],
                default_fields=["assessor", "date", "location", "department"],
            ),
            applicability_rules=[
                _create_rule(),
                ApplicabilityRule(field="domain", operator="contains", value="safety", weight=0.8),
                ApplicabilityRule(field="entities", operator="contains", value="assessment", weight=1.0),
            ],
            domain="hse",
        ),
        Pattern(
            id="hse-incident-default",
            name="Incident Report",
            category=PatternCategory.INCIDENT,
            description="Standard incident reporting form for HSE domain",
            structure=PatternStructure(
                sections=[
                    PatternSection(name="Incident Details", field_types=["text", "date", "time", "select"]),
                    PatternSection(name="Investigation", field_types=["text", "checklist"]),
                    PatternSection(name="Root Cause", field_types=["text", "select"]),
                    PatternSection(name="Corrective Actions", field_types=["text", "date", "select"]),
                ],
                workflows=["investigate", "review", "close"],
                default_fields=["reporter", "date", "location", "severity", "type"],
            ),
            applicability_rules=[
                _create_rule(),
                ApplicabilityRule(field="domain", operator="contains", value="safety", weight=0.4),
                ApplicabilityRule(field="entities", operator="contains", value="incident", weight=1.0),
                ApplicabilityRule(field="entities", operator="contains", value="report", weight=0.6),
            ],
            domain="hse",
        ),
        Pattern(
            id="hse-permit-default",
            name="Work Permit",
            category=PatternCategory.PERMIT,
            description="Standard work permit form for HSE domain",
            structure=PatternStructure(
                sections=[
                    PatternSection(name="Permit Type", field_types=["select", "text"]),
                    PatternSection(name="Work Conditions", field_types=["checklist", "text"]),
                    PatternSection(name="Approvals", field_types=["signature", "date"]),
                    PatternSection(name="Duration", field_types=["date", "time"]),
                ],
                workflows=["request", "approve", "activate", "close"],
                default_fields=["requester", "approver", "startDate", "endDate", "location"],
            ),
            applicability_rules=[
                _create_rule(),
                ApplicabilityRule(field="domain", operator="contains", value="permit", weight=1.0),
                ApplicabilityRule(field="entities", operator="contains", value="permit", weight=1.0),
            ],
            domain="hse",
        ),
        Pattern(
            id="hse-audit-default",
            name="Safety Audit",
            category=PatternCategory.AUDIT,
            description="Standard safety audit form for HSE domain",
            structure=PatternStructure(
                sections=[
                    PatternSection(name="Audit Scope", field_types=["text", "select", "date"]),
                    PatternSection(name="Findings", field_types=["text", "checklist", "select"]),
                    PatternSection(name="Non-conformances", field_types=["text", "select", "number"]),
                    PatternSection(name="Follow-up", field_types=["text", "date", "select"]),
                ],
                workflows=["plan", "execute", "report", "follow-up"],
                default_fields=["auditor", "auditDate", "area", "standard"],
            ),
            applicability_rules=[
                _create_rule(),
                ApplicabilityRule(field="domain", operator="contains", value="compliance", weight=0.7),
                ApplicabilityRule(field="entities", operator="matches", value=r"\b(audit|inspection)\b", weight=1.0),
            ],
            domain="hse",
        ),
        Pattern(
            id="hse-action-default",
            name="Corrective Action",
            category=PatternCategory.ACTION,
            description="Standard corrective action form for HSE domain",
            structure=PatternStructure(
                sections=[
                    PatternSection(name="Action Details", field_types=["text", "select"]),
                    PatternSection(name="Assignee", field_types=["select", "text"]),
                    PatternSection(name="Due Date", field_types=["date"]),
                    PatternSection(name="Verification", field_types=["text", "checklist", "signature"]),
                ],
                workflows=["assign", "implement", "verify", "close"],
                default_fields=["actionId", "assignee", "dueDate", "priority", "status"],
            ),
            applicability_rules=[
                _create_rule(),
                ApplicabilityRule(field="domain", operator="contains", value="workflow", weight=0.6),
                ApplicabilityRule(field="entities", operator="contains", value="task", weight=1.0),
            ],
            domain="hse",
        ),
    ]
