"""Collaborator contracts the core depends on.

Concrete adapters live in app.core.embeddings, app.core.vector_store and
app.core.tenant_embeddings; tests substitute in-memory fakes.
"""

from typing import Protocol

from app.core.schemas_patterns import Pattern, PatternMatch, TenantContext, TenantEmbeddingContext


class EmbeddingProvider(Protocol):
    dimensions: int

    def is_available(self) -> bool: ...

    async def embed(self, text: str) -> list[float] | None: ...

    async def embed_many(self, texts: list[str]) -> list[list[float] | None]: ...


class VectorStore(Protocol):
    def is_available(self) -> bool: ...

    def is_initialized(self) -> bool: ...

    async def initialize(self) -> bool: ...

    async def seed_patterns(self, patterns: list[Pattern]) -> bool: ...

    async def find_best_match(
        self,
        text: str,
        min_score: float = 0.3,
        tenant_context: TenantContext | None = None,
    ) -> PatternMatch | None: ...

    async def update_pattern_affinity(
        self,
        pattern_id: str,
        embedding: list[float],
        delta: float,
    ) -> bool: ...


class TenantEmbeddingProvider(Protocol):
    def is_available(self) -> bool: ...

    async def get_context(self, tenant_id: str) -> TenantEmbeddingContext | None: ...

    async def initialize(
        self,
        tenant_id: str,
        domain_description: str,
    ) -> TenantEmbeddingContext | None: ...
