"""API endpoints for prediction, refinement, feedback and grounding."""

from fastapi import APIRouter, Depends, HTTPException

from app.core.engine import Engine, get_engine
from app.core.logging import get_logger
from app.core.schemas_api import (
    FeedbackRequest,
    FeedbackResponse,
    GroundRequest,
    GroundResponse,
    PredictRequest,
    RefineRequest,
    StatsResponse,
)
from app.core.schemas_feedback import FeedbackType
from app.core.schemas_pipeline import PipelineResult

logger = get_logger(__name__)

router = APIRouter()


@router.post("/predict", response_model=PipelineResult)
async def predict(request: PredictRequest, engine: Engine = Depends(get_engine)) -> PipelineResult:
    """
    Run the cognitive pipeline on a free-text requirement.

    Args:
        request: PredictRequest with input, optional context, config and tenant

    Returns:
        PipelineResult with prediction, validation and stage timings

    Raises:
        HTTPException 400: If input is blank
        HTTPException 500: If the pipeline fails unexpectedly
    """
    if not request.input.strip():
        raise HTTPException(status_code=400, detail="input must not be empty")

    try:
        logger.info(
            "Predicting structure",
            extra={"tenant": request.tenant.company if request.tenant else None},
        )
        return await engine.orchestrator.execute(
            request.input,
            context=request.context,
            config=request.config,
            tenant_context=request.tenant,
        )

    except Exception as e:
        error_msg = f"Prediction failed: {str(e)}"
        logger.error(error_msg)
        raise HTTPException(status_code=500, detail=error_msg) from e


@router.post("/refine", response_model=PipelineResult)
async def refine(request: RefineRequest, engine: Engine = Depends(get_engine)) -> PipelineResult:
    """Apply a natural-language modification to a prediction and re-validate it."""
    try:
        return await engine.orchestrator.apply_modification(
            request.prediction,
            request.modification,
            config=request.config,
        )

    except Exception as e:
        error_msg = f"Refinement failed: {str(e)}"
        logger.error(error_msg)
        raise HTTPException(status_code=500, detail=error_msg) from e


@router.post("/feedback", response_model=FeedbackResponse)
async def submit_feedback(request: FeedbackRequest, engine: Engine = Depends(get_engine)) -> FeedbackResponse:
    """
    Record user feedback on a prediction.

    Accepted/rejected feedback on a known pattern also nudges the pattern's
    domain affinity for the user's company; acceptance grounds the pattern.

    Args:
        request: FeedbackRequest

    Returns:
        FeedbackResponse with the stored feedback and derived learning signals
    """
    try:
        feedback = engine.feedback_service.submit_feedback(
            session_id=request.session_id,
            feedback_type=request.feedback_type,
            original_prediction=request.original_prediction,
            final_prediction=request.final_prediction,
            user_context=request.user_context,
            processing_time_ms=request.processing_time_ms,
        )
        signals = engine.feedback_service.derive_learning_signals(feedback)

        pattern_id = request.pattern_id or request.original_prediction.pattern_id
        affinity_updated = False
        if pattern_id and request.feedback_type in (FeedbackType.ACCEPTED, FeedbackType.REJECTED):
            affinity_updated = await engine.orchestrator.record_outcome(
                pattern_id,
                request.user_context.company_id,
                request.feedback_type.value,
            )
            if request.feedback_type == FeedbackType.ACCEPTED:
                engine.library.ground_pattern(pattern_id, success=True)

        return FeedbackResponse(
            feedback=feedback,
            learning_signals=signals,
            affinity_updated=affinity_updated,
        )

    except Exception as e:
        error_msg = f"Failed to record feedback: {str(e)}"
        logger.error(error_msg, extra={"session_id": request.session_id})
        raise HTTPException(status_code=500, detail=error_msg) from e


@router.post("/patterns/{pattern_id}/ground", response_model=GroundResponse)
async def ground_pattern(
    pattern_id: str,
    request: GroundRequest,
    engine: Engine = Depends(get_engine),
) -> GroundResponse:
    """
    Record a production use of a pattern.

    Raises:
        HTTPException 404: If the pattern is unknown
    """
    pattern = engine.library.ground_pattern(pattern_id, request.success)
    if pattern is None:
        raise HTTPException(status_code=404, detail=f"Pattern {pattern_id} not found")

    return GroundResponse(
        pattern_id=pattern.id,
        confidence=engine.library.current_confidence(pattern),
        grounding_count=pattern.confidence.grounding_count if pattern.confidence else 0,
    )


@router.get("/stats", response_model=StatsResponse)
async def get_stats(engine: Engine = Depends(get_engine)) -> StatsResponse:
    """Feedback statistics plus engine health."""
    return StatsResponse(
        feedback=engine.feedback_service.get_stats(),
        health=engine.orchestrator.get_health_status(),
    )
