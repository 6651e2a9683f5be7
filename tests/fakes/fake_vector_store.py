"""In-memory stand-ins for the vector store and tenant embedding provider."""

from app.core.pattern_library import PatternLibrary
from app.core.schemas_patterns import PatternMatch, TenantContext, TenantEmbeddingContext


class FakeVectorStore:
    """Returns a preset match and records every call it receives."""

    def __init__(
        self,
        library: PatternLibrary,
        match: PatternMatch | None = None,
        available: bool = True,
        initialized: bool = True,
    ):
        self.library = library
        self.match = match
        self.available = available
        self.initialized = initialized
        self.queries: list[tuple[str, float, TenantContext | None]] = []
        self.affinity_updates: list[tuple[str, list[float], float]] = []

    def is_available(self) -> bool:
        return self.available

    def is_initialized(self) -> bool:
        return self.initialized

    async def initialize(self) -> bool:
        self.initialized = True
        return True

    async def seed_patterns(self, patterns) -> bool:
        return True

    async def find_best_match(
        self,
        text: str,
        min_score: float = 0.3,
        tenant_context: TenantContext | None = None,
    ) -> PatternMatch | None:
        self.queries.append((text, min_score, tenant_context))
        return self.match

    async def update_pattern_affinity(self, pattern_id: str, embedding: list[float], delta: float) -> bool:
        self.affinity_updates.append((pattern_id, embedding, delta))
        return self.library.adjust_domain_affinity(pattern_id, embedding, delta) is not None


class FakeTenantProvider:
    """Tenant embeddings from a plain dict."""

    def __init__(self, embeddings: dict[str, list[float]] | None = None, available: bool = True):
        self.embeddings = embeddings or {}
        self.available = available

    def is_available(self) -> bool:
        return self.available

    async def get_context(self, tenant_id: str) -> TenantEmbeddingContext | None:
        embedding = self.embeddings.get(tenant_id)
        if embedding is None:
            return None
        return TenantEmbeddingContext(tenant_id=tenant_id, embedding=embedding)

    async def initialize(self, tenant_id: str, domain_description: str) -> TenantEmbeddingContext | None:
        self.embeddings[tenant_id] = [float(len(domain_description))]
        return await self.get_context(tenant_id)


class FakeEmbedder:
    """Deterministic embeddings from a lookup table; unknown texts get a default vector."""

    def __init__(
        self,
        vectors: dict[str, list[float] | None] | None = None,
        default: list[float] | None = None,
        available: bool = True,
    ):
        self.vectors = vectors or {}
        self.default = default if default is not None else [1.0, 0.0, 0.0]
        self.dimensions = len(self.default)
        self.available = available
        self.calls: list[str] = []

    def is_available(self) -> bool:
        return self.available

    async def embed(self, text: str) -> list[float] | None:
        self.calls.append(text)
        return self.vectors.get(text, self.default)

    async def embed_many(self, texts: list[str]) -> list[list[float] | None]:
        return [await self.embed(t) for t in texts]
