"""Tenant domain embeddings stored in a Qdrant collection.

Each tenant has one point: the embedding of a short description of its
domain. The core only reads these; initialize() exists for bootstrapping.
"""

from datetime import UTC, datetime

from qdrant_client import AsyncQdrantClient
from qdrant_client.models import PointStruct, Record

from app.core.contracts import EmbeddingProvider
from app.core.logging import get_logger
from app.core.qdrant_index import QDRANT_ERRORS, ensure_collection, point_id
from app.core.schemas_patterns import TenantEmbeddingContext

logger = get_logger(__name__)


class TenantEmbeddingService:
    """Loads tenant embeddings lazily and caches them for the service lifetime."""

    def __init__(
        self,
        client: AsyncQdrantClient,
        embedder: EmbeddingProvider,
        collection: str = "tenants",
    ):
        self.client = client
        self.embedder = embedder
        self.collection = collection
        self._cache: dict[str, TenantEmbeddingContext] = {}

    def is_available(self) -> bool:
        return self.embedder.is_available()

    async def get_context(self, tenant_id: str) -> TenantEmbeddingContext | None:
        """Tenant embedding context, or None when unknown or the index is unreachable."""
        if tenant_id in self._cache:
            return self._cache[tenant_id]

        try:
            points = await self.client.retrieve(
                collection_name=self.collection,
                ids=[point_id("tenant", tenant_id)],
                with_payload=True,
                with_vectors=True,
            )
        except QDRANT_ERRORS as e:
            logger.error(f"Failed to load tenant context for {tenant_id}: {e}")
            return None

        if not points:
            return None

        context = self._to_context(tenant_id, points[0])
        if context is not None:
            self._cache[tenant_id] = context
        return context

    async def initialize(self, tenant_id: str, domain_description: str) -> TenantEmbeddingContext | None:
        """Embed a tenant's domain description and store it."""
        embedding = await self.embedder.embed(domain_description)
        if embedding is None:
            logger.warning(f"Failed to embed domain description for tenant {tenant_id}")
            return None

        now = datetime.now(UTC)
        context = TenantEmbeddingContext(
            tenant_id=tenant_id,
            embedding=embedding,
            domain_description=domain_description,
            created_at=now,
            updated_at=now,
        )

        try:
            await ensure_collection(self.client, self.collection, self.embedder.dimensions)
            await self.client.upsert(
                collection_name=self.collection,
                points=[
                    PointStruct(
                        id=point_id("tenant", tenant_id),
                        vector=embedding,
                        payload={
                            "tenant_id": tenant_id,
                            "domain_description": domain_description,
                            "created_at": now.isoformat(),
                            "updated_at": now.isoformat(),
                        },
                    )
                ],
                wait=True,
            )
        except QDRANT_ERRORS as e:
            logger.error(f"Failed to store tenant {tenant_id}: {e}")
            return None

        self._cache[tenant_id] = context
        logger.info("Initialized tenant embedding", extra={"tenant_id": tenant_id})
        return context

    @staticmethod
    def _to_context(tenant_id: str, point: Record) -> TenantEmbeddingContext | None:
        # Unnamed single-vector collections return a plain list
        vector = point.vector
        if not isinstance(vector, list) or not vector:
            return None
        payload = point.payload or {}
        return TenantEmbeddingContext(
            tenant_id=payload.get("tenant_id", tenant_id),
            embedding=vector,
            domain_description=payload.get("domain_description"),
            created_at=payload.get("created_at"),
            updated_at=payload.get("updated_at"),
        )
