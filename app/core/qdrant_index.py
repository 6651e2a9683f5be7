"""Qdrant helpers shared by the pattern and tenant indexes."""

import uuid

import httpx
from qdrant_client import AsyncQdrantClient
from qdrant_client.http.exceptions import ApiException
from qdrant_client.models import Distance, VectorParams

from app.core.logging import get_logger

logger = get_logger(__name__)

# Stable namespace so the same pattern/tenant id always maps to the same point
POINT_NAMESPACE = uuid.UUID("6f1c1d0e-8c3b-5b8a-9d52-3f1a7e2c4b10")

# Error responses and transport failures; callers fail closed on these
QDRANT_ERRORS = (ApiException, httpx.HTTPError)


def point_id(kind: str, key: str) -> str:
    """Deterministic Qdrant point id (UUID string) for an application key."""
    return str(uuid.uuid5(POINT_NAMESPACE, f"{kind}:{key}"))


def create_client(url: str, api_key: str | None = None, timeout: float = 10.0) -> AsyncQdrantClient:
    """Async client for a Qdrant server. No request is made until first use."""
    return AsyncQdrantClient(
        url=url,
        api_key=api_key,
        timeout=int(timeout),
        check_compatibility=False,
    )


async def ensure_collection(client: AsyncQdrantClient, name: str, size: int) -> None:
    """Create a cosine collection unless it already exists."""
    if await client.collection_exists(collection_name=name):
        return

    await client.create_collection(
        collection_name=name,
        vectors_config=VectorParams(size=size, distance=Distance.COSINE),
    )
    logger.info(f"Created collection {name}", extra={"size": size, "distance": "cosine"})
