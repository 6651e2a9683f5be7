"""API router for engine endpoints."""

from fastapi import APIRouter

from app.api import pipeline

router = APIRouter()

# Prediction, refinement, feedback and grounding routes
router.include_router(pipeline.router, tags=["pipeline"])
