"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse

from app.api import router as api_router
from app.core.engine import Engine, get_engine, start_engine


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Same engine the routes resolve, overrides included
    provider = app.dependency_overrides.get(get_engine, get_engine)
    await start_engine(provider())
    yield


app = FastAPI(
    title="Cognitive Structure Engine",
    description="Turns free-text requirements into validated module structures",
    version="0.1.0",
    lifespan=lifespan,
)


@app.get("/health")
async def health_check(engine: Engine = Depends(get_engine)) -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(
        content={"status": "ok", **engine.orchestrator.get_health_status()},
        status_code=200,
    )


app.include_router(api_router, prefix="/api", tags=["api"])


if __name__ == "__main__":
    import uvicorn

    from app.core.config import get_settings

    uvicorn.run("app.main:app", host="0.0.0.0", port=get_settings().PORT, log_level="info")
