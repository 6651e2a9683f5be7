"""OpenAI embeddings generation with validation."""

import asyncio

from openai import OpenAI, OpenAIError

from app.core.logging import get_logger

logger = get_logger(__name__)


class OpenAIEmbeddingProvider:
    """
    Embedding provider backed by the OpenAI embeddings API.

    The OpenAI client is synchronous; async callers go through a worker thread.
    Every async entry point fails closed (None) so vector search can degrade
    to rule-based matching.
    """

    def __init__(
        self,
        api_key: str | None,
        model: str = "text-embedding-3-small",
        dimensions: int = 1536,
        client: OpenAI | None = None,
    ):
        self.model = model
        self.dimensions = dimensions
        self._client = client or (OpenAI(api_key=api_key) if api_key else None)

    def is_available(self) -> bool:
        return self._client is not None

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """
        Generate embeddings for a list of texts.

        Args:
            texts: List of text strings to embed

        Returns:
            List of embedding vectors (each vector is list of floats)

        Raises:
            ValueError: If embedding dimension doesn't match expected dimensions
            OpenAIError: If OpenAI API call fails
        """
        if not texts or self._client is None:
            return []

        response = self._client.embeddings.create(model=self.model, input=texts)

        embeddings = []
        for i, embedding_obj in enumerate(response.data):
            embedding = embedding_obj.embedding

            # Validate dimension
            if len(embedding) != self.dimensions:
                raise ValueError(
                    f"Embedding dimension mismatch for text {i}: "
                    f"expected {self.dimensions}, got {len(embedding)}"
                )

            embeddings.append(embedding)

        logger.info(
            f"Generated {len(embeddings)} embeddings using {self.model}",
            extra={"model": self.model, "count": len(embeddings)},
        )
        return embeddings

    async def embed(self, text: str) -> list[float] | None:
        """Embed one text; None when unavailable, blank or on provider failure."""
        results = await self.embed_many([text])
        return results[0]

    async def embed_many(self, texts: list[str]) -> list[list[float] | None]:
        """Embed several texts in one call. Blank texts map to None."""
        if self._client is None:
            logger.warning("Embedding provider not configured (OPENAI_API_KEY not set)")
            return [None] * len(texts)

        positions = [i for i, t in enumerate(texts) if t and t.strip()]
        if not positions:
            return [None] * len(texts)

        try:
            vectors = await asyncio.to_thread(
                self.embed_texts, [texts[i].strip() for i in positions]
            )
        except (OpenAIError, ValueError) as e:
            logger.error(f"Failed to generate embeddings: {e}")
            return [None] * len(texts)

        results: list[list[float] | None] = [None] * len(texts)
        for position, vector in zip(positions, vectors):
            results[position] = vector
        return results
