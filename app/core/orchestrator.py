"""Cognitive pipeline orchestration.

Pipeline: signal processing -> prediction -> validation -> bounded auto-fix.

Every stage is timed and recorded as a StageResult. Stage exceptions are
captured on the StageResult and never escape execute().
"""

import inspect
import time
from collections.abc import Callable
from typing import Any, Literal

from app.core.contracts import TenantEmbeddingProvider, VectorStore
from app.core.logging import get_logger
from app.core.pattern_library import PatternLibrary
from app.core.prediction_engine import PredictionEngine
from app.core.schemas_patterns import TenantContext
from app.core.schemas_pipeline import PipelineConfig, PipelineResult, PipelineStage, StageResult
from app.core.schemas_prediction import StructurePrediction
from app.core.schemas_signal import ContextSignal, ProcessedSignal
from app.core.schemas_validation import AutoFixOutcome, ValidationResult
from app.core.signal_processor import SignalProcessor
from app.core.validation import ValidationService

logger = get_logger(__name__)

Outcome = Literal["accepted", "rejected"]


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


class Orchestrator:
    """Runs the cognitive pipeline and routes outcome feedback to the vector store."""

    def __init__(
        self,
        signal_processor: SignalProcessor,
        library: PatternLibrary,
        prediction_engine: PredictionEngine,
        validation_service: ValidationService,
        vector_store: VectorStore | None = None,
        tenant_provider: TenantEmbeddingProvider | None = None,
        default_config: PipelineConfig | None = None,
        affinity_delta: float = 0.1,
    ):
        self.signal_processor = signal_processor
        self.library = library
        self.prediction_engine = prediction_engine
        self.validation_service = validation_service
        self.vector_store = vector_store
        self.tenant_provider = tenant_provider
        self.default_config = default_config or PipelineConfig()
        self.affinity_delta = affinity_delta

    async def execute(
        self,
        user_input: str,
        context: list[ContextSignal] | None = None,
        config: PipelineConfig | None = None,
        tenant_context: TenantContext | None = None,
    ) -> PipelineResult:
        """
        Run the full pipeline for one input.

        Args:
            user_input: Free-text requirement
            context: Caller-supplied context signals
            config: Pipeline options (defaults apply when omitted)
            tenant_context: Optional tenant, biases vector ranking only

        Returns:
            PipelineResult; success mirrors the final validation
        """
        start = time.perf_counter()
        config = config or self.default_config
        stages: list[StageResult] = []

        stage, signal = await self._run_stage(
            PipelineStage.SIGNAL_PROCESSING,
            self.signal_processor.process_signal,
            user_input,
            None,
            context or [],
        )
        stages.append(stage)
        if not stage.success or signal is None:
            return self._result(False, start, stages)

        stage, prediction = await self._run_stage(
            PipelineStage.PREDICTION,
            self.prediction_engine.predict,
            signal,
            tenant_context,
            config.include_alternatives,
        )
        stages.append(stage)
        if not stage.success or prediction is None:
            return self._result(False, start, stages, signal=signal)

        result = await self._validate_and_fix(prediction, config, stages, start)
        result.signal = signal

        logger.info(
            f"Pipeline finished (success: {result.success})",
            extra={
                "module_type": result.prediction.module_type if result.prediction else None,
                "auto_fixed": result.auto_fixed,
                "duration_ms": round(result.processing_time_ms, 2),
            },
        )
        return result

    async def apply_modification(
        self,
        prediction: StructurePrediction,
        instruction: str,
        config: PipelineConfig | None = None,
    ) -> PipelineResult:
        """Refine a prediction, then validate and auto-fix it like execute() does."""
        start = time.perf_counter()
        config = config or self.default_config
        stages: list[StageResult] = []

        stage, modified = await self._run_stage(
            PipelineStage.PREDICTION,
            self.prediction_engine.apply_modification,
            prediction,
            instruction,
        )
        stages.append(stage)
        if not stage.success or modified is None:
            return self._result(False, start, stages, prediction=prediction)

        return await self._validate_and_fix(modified, config, stages, start)

    async def record_outcome(self, pattern_id: str, tenant_id: str, outcome: Outcome) -> bool:
        """
        Nudge a pattern's domain affinity toward (accepted) or away from
        (rejected) the tenant's embedding.

        Returns:
            True when the affinity was updated, False when the vector store or
            tenant provider is missing/unavailable or the tenant has no embedding
        """
        if self.vector_store is None or not self.vector_store.is_available():
            return False
        if self.tenant_provider is None or not self.tenant_provider.is_available():
            return False

        delta = self.affinity_delta if outcome == "accepted" else -self.affinity_delta

        try:
            context = await self.tenant_provider.get_context(tenant_id)
            if context is None or not context.embedding:
                logger.debug(f"No tenant embedding for {tenant_id}, skipping affinity update")
                return False
            updated = await self.vector_store.update_pattern_affinity(pattern_id, context.embedding, delta)
        except Exception as e:
            logger.error(f"Failed to record outcome for {pattern_id}: {e}")
            return False

        logger.info(
            f"Recorded {outcome} outcome for {pattern_id}",
            extra={"tenant_id": tenant_id, "delta": delta, "updated": updated},
        )
        return updated

    def get_health_status(self) -> dict[str, Any]:
        vector_ready = bool(
            self.vector_store and self.vector_store.is_available() and self.vector_store.is_initialized()
        )
        return {
            "patterns_loaded": self.library.pattern_count(),
            "vector_search_available": vector_ready,
            "services_ready": True,
        }

    # =========================
    # Internals
    # =========================

    async def _validate_and_fix(
        self,
        prediction: StructurePrediction,
        config: PipelineConfig,
        stages: list[StageResult],
        start: float,
    ) -> PipelineResult:
        stage, validation = await self._run_stage(
            PipelineStage.VALIDATION, self.validation_service.validate, prediction
        )
        stages.append(stage)
        if not stage.success or validation is None:
            return self._result(False, start, stages, prediction=prediction)

        applied_fixes: list[str] = []
        if config.enable_auto_fix and not validation.valid:
            for attempt in range(config.max_auto_fix_attempts):
                stage, outcome = await self._run_stage(
                    PipelineStage.AUTO_FIX, self._auto_fix_round, prediction, validation
                )
                stages.append(stage)
                if not stage.success or outcome is None:
                    break

                fixed, validation = outcome
                prediction = fixed.prediction
                applied_fixes.extend(fixed.applied_fixes)
                logger.debug(
                    f"Auto-fix round {attempt + 1}",
                    extra={"fixes": len(fixed.applied_fixes), "valid": validation.valid},
                )
                if validation.valid:
                    break

        return self._result(
            validation.valid,
            start,
            stages,
            prediction=prediction,
            validation=validation,
            applied_fixes=applied_fixes,
        )

    def _auto_fix_round(
        self,
        prediction: StructurePrediction,
        validation: ValidationResult,
    ) -> tuple[AutoFixOutcome, ValidationResult]:
        fixed = self.validation_service.auto_fix(prediction, validation)
        return fixed, self.validation_service.validate(fixed.prediction)

    @staticmethod
    async def _run_stage(stage: PipelineStage, func: Callable[..., Any], *args: Any) -> tuple[StageResult, Any]:
        """Run one stage, capturing timing and any exception."""
        stage_start = time.perf_counter()
        try:
            value = func(*args)
            if inspect.isawaitable(value):
                value = await value
        except Exception as e:
            logger.error(f"Stage {stage.value} failed: {e}", exc_info=True)
            return StageResult(stage=stage, success=False, duration_ms=_elapsed_ms(stage_start), error=str(e)), None

        return StageResult(stage=stage, success=True, duration_ms=_elapsed_ms(stage_start)), value

    @staticmethod
    def _result(
        success: bool,
        start: float,
        stages: list[StageResult],
        prediction: StructurePrediction | None = None,
        validation: ValidationResult | None = None,
        applied_fixes: list[str] | None = None,
        signal: ProcessedSignal | None = None,
    ) -> PipelineResult:
        return PipelineResult(
            success=success,
            prediction=prediction,
            validation=validation,
            auto_fixed=bool(applied_fixes),
            applied_fixes=applied_fixes or [],
            processing_time_ms=_elapsed_ms(start),
            stages=stages,
            signal=signal,
        )
