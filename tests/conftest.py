"""Pytest configuration and fixtures."""

import os

# Settings are cached on first use, which can happen at import time
os.environ["ENGINE_ENV"] = "test"
os.environ.pop("VECTOR_URL", None)

import pytest  # noqa: E402

from app.core.pattern_library import PatternLibrary  # noqa: E402
from app.core.prediction_engine import PredictionEngine  # noqa: E402
from app.core.schemas_patterns import (  # noqa: E402
    ApplicabilityRule,
    Pattern,
    PatternCategory,
    PatternSection,
    PatternStructure,
)
from app.core.seed_patterns import hse_patterns  # noqa: E402
from app.core.signal_processor import SignalProcessor  # noqa: E402
from app.core.validation import ValidationService  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Set up test environment variables."""
    os.environ["ENGINE_ENV"] = "test"
    os.environ["OPENAI_API_KEY"] = "test-openai-key"
    os.environ.pop("VECTOR_URL", None)


@pytest.fixture
def processor() -> SignalProcessor:
    return SignalProcessor()


@pytest.fixture
def library() -> PatternLibrary:
    """Library loaded with the HSE seed catalogue."""
    lib = PatternLibrary()
    lib.load_patterns(hse_patterns())
    return lib


@pytest.fixture
def empty_library() -> PatternLibrary:
    return PatternLibrary()


@pytest.fixture
def validator() -> ValidationService:
    return ValidationService()


@pytest.fixture
def engine(library) -> PredictionEngine:
    return PredictionEngine(library)


@pytest.fixture
def make_pattern():
    """Factory for small single-purpose patterns."""

    def _make(
        pattern_id: str = "test-pattern",
        category: PatternCategory = PatternCategory.ASSESSMENT,
        rules: list[ApplicabilityRule] | None = None,
        sections: list[PatternSection] | None = None,
        workflows: list[str] | None = None,
        default_fields: list[str] | None = None,
        **kwargs,
    ) -> Pattern:
        return Pattern(
            id=pattern_id,
            name=kwargs.pop("name", pattern_id.replace("-", " ").title()),
            category=category,
            structure=PatternStructure(
                sections=sections if sections is not None else [PatternSection(name="Main Details", field_types=["text"])],
                workflows=workflows or [],
                default_fields=default_fields or [],
            ),
            applicability_rules=rules
            if rules is not None
            else [ApplicabilityRule(field="intent", operator="equals", value="create", weight=1.0)],
            **kwargs,
        )

    return _make
