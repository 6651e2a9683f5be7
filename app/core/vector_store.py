"""Qdrant-backed pattern search with tenant-aware soft ranking.

Search is never filtered by tenant. The query vector is fused with the
tenant's domain embedding, then the top hits are reranked by how well each
pattern's learned domain affinity lines up with that tenant.
"""

import numpy as np
from qdrant_client import AsyncQdrantClient
from qdrant_client.models import PointStruct, ScoredPoint

from app.core.contracts import EmbeddingProvider, TenantEmbeddingProvider
from app.core.logging import get_logger
from app.core.pattern_library import PatternLibrary
from app.core.qdrant_index import QDRANT_ERRORS, ensure_collection, point_id
from app.core.schemas_patterns import Pattern, PatternMatch, TenantContext

logger = get_logger(__name__)

SEARCH_LIMIT = 5


def _cosine(a: list[float], b: list[float]) -> float:
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    if va.shape != vb.shape:
        return 0.0
    norm = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if norm == 0.0:
        return 0.0
    return float(np.dot(va, vb) / norm)


def pattern_text(pattern: Pattern) -> str:
    """Text embedded for a pattern's vector."""
    sections = ", ".join(s.name for s in pattern.structure.sections)
    workflows = ", ".join(pattern.structure.workflows)
    return (
        f"{pattern.name}: {pattern.description}. Sections: {sections}. "
        f"Workflows: {workflows}. Category: {pattern.category.value}"
    )


class QdrantVectorStore:
    """Vector-store contract over Qdrant, resolving hits through the PatternLibrary."""

    def __init__(
        self,
        client: AsyncQdrantClient,
        embedder: EmbeddingProvider,
        library: PatternLibrary,
        collection: str = "patterns",
        tenant_provider: TenantEmbeddingProvider | None = None,
        fusion_alpha: float = 0.7,
        rerank_weight: float = 0.1,
    ):
        self.client = client
        self.embedder = embedder
        self.library = library
        self.collection = collection
        self.tenant_provider = tenant_provider
        self.fusion_alpha = fusion_alpha
        self.rerank_weight = rerank_weight
        self._initialized = False

    def is_available(self) -> bool:
        return self.embedder.is_available()

    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> bool:
        """Ensure the pattern collection exists."""
        try:
            await ensure_collection(self.client, self.collection, self.embedder.dimensions)
        except QDRANT_ERRORS as e:
            logger.error(f"Failed to initialize collection {self.collection}: {e}")
            return False

        self._initialized = True
        logger.info("Vector store ready", extra={"collection": self.collection})
        return True

    async def seed_patterns(self, patterns: list[Pattern]) -> bool:
        """Embed and upsert patterns. Patterns whose embedding fails are skipped."""
        if not self.is_available():
            logger.warning("Cannot seed patterns, embedding provider unavailable")
            return False
        if not self._initialized and not await self.initialize():
            return False

        vectors = await self.embedder.embed_many([pattern_text(p) for p in patterns])
        points = [
            PointStruct(
                id=point_id("pattern", pattern.id),
                vector=vector,
                payload={
                    "pattern_id": pattern.id,
                    "name": pattern.name,
                    "category": pattern.category.value,
                    "description": pattern.description,
                    "company": pattern.company,
                },
            )
            for pattern, vector in zip(patterns, vectors)
            if vector is not None
        ]
        if not points:
            return False

        try:
            await self.client.upsert(collection_name=self.collection, points=points, wait=True)
        except QDRANT_ERRORS as e:
            logger.error(f"Failed to seed patterns: {e}")
            return False

        logger.info(f"Seeded {len(points)} patterns", extra={"collection": self.collection})
        return True

    async def find_best_match(
        self,
        text: str,
        min_score: float = 0.3,
        tenant_context: TenantContext | None = None,
    ) -> PatternMatch | None:
        """
        Best pattern for a query by vector similarity.

        Args:
            text: Query text
            min_score: Minimum raw similarity for a hit to count
            tenant_context: Optional tenant, used only to bias ranking

        Returns:
            PatternMatch with matched_rules ["vector_similarity"], or None
        """
        if not self.is_available() or not self._initialized:
            return None

        query = await self.embedder.embed(text)
        if query is None:
            return None

        tenant_embedding = await self._tenant_embedding(tenant_context)
        vector = query
        if tenant_embedding is not None:
            vector = self.library.fuse_embeddings(query, tenant_embedding, self.fusion_alpha)

        try:
            response = await self.client.query_points(
                collection_name=self.collection,
                query=vector,
                limit=SEARCH_LIMIT,
                with_payload=True,
            )
        except QDRANT_ERRORS as e:
            logger.error(f"Vector search failed: {e}")
            return None

        best: PatternMatch | None = None
        for hit in response.points:
            if hit.score < min_score:
                continue
            pattern = self.library.get_pattern(self._payload(hit).get("pattern_id", ""))
            if pattern is None:
                continue

            score = hit.score + self._affinity_bonus(pattern, tenant_embedding)
            score = max(0.0, min(1.0, score))
            if best is None or score > best.score:
                best = PatternMatch(pattern=pattern, score=score, matched_rules=["vector_similarity"])

        if best:
            logger.debug(
                f"Vector match: {best.pattern.id} (score: {best.score:.3f})",
                extra={"tenant": tenant_context.tenant_id if tenant_context else None},
            )
        return best

    async def update_pattern_affinity(
        self,
        pattern_id: str,
        embedding: list[float],
        delta: float,
    ) -> bool:
        """Shift a pattern's affinity in the library and persist it to the point payload."""
        updated = self.library.adjust_domain_affinity(pattern_id, embedding, delta)
        if updated is None:
            return False

        try:
            await self.client.set_payload(
                collection_name=self.collection,
                payload={"domain_affinity": updated.domain_affinity},
                points=[point_id("pattern", pattern_id)],
                wait=True,
            )
        except QDRANT_ERRORS as e:
            # The in-memory affinity already moved; only persistence failed
            logger.warning(f"Failed to persist affinity for {pattern_id}: {e}")

        return True

    async def _tenant_embedding(self, tenant_context: TenantContext | None) -> list[float] | None:
        if tenant_context is None or self.tenant_provider is None:
            return None
        context = await self.tenant_provider.get_context(tenant_context.tenant_id)
        return context.embedding if context else None

    def _affinity_bonus(self, pattern: Pattern, tenant_embedding: list[float] | None) -> float:
        if not tenant_embedding or not pattern.domain_affinity:
            return 0.0
        return self.rerank_weight * _cosine(pattern.domain_affinity, tenant_embedding)

    @staticmethod
    def _payload(hit: ScoredPoint) -> dict:
        return hit.payload or {}
