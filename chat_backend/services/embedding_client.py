"""OpenAI embeddings client for turning message text into vectors."""

import asyncio
import logging
import math
from collections.abc import Sequence
from typing import Any

from openai import APIConnectionError, APIStatusError, AsyncOpenAI, RateLimitError

from chat_backend.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """The embedding provider failed or returned something unusable.

    ``is_retryable`` marks transient failures (rate limits, timeouts,
    connection problems, 5xx). The client itself never retries; that
    decision belongs to the caller.
    """

    def __init__(self, message: str, is_retryable: bool = False) -> None:
        super().__init__(message)
        self.is_retryable = is_retryable


class EmbeddingClient:
    """Client for the OpenAI embeddings API.

    ``embed_one`` issues exactly one provider call. ``embed_batch`` splits
    its input into chunks of at most ``batch_size`` texts, sends one call
    per chunk and stitches the vectors back together in input order. A
    batch either succeeds as a whole or raises ``ProviderError``; partial
    results are never returned.
    """

    DEFAULT_MODEL = "text-embedding-3-small"
    EMBEDDING_DIMENSION = 1536
    MAX_BATCH_SIZE = 2048  # OpenAI limit on inputs per request

    def __init__(
        self,
        settings: Settings | None = None,
        model: str | None = None,
        max_concurrency: int | None = None,
    ) -> None:
        """Initialize embedding client.

        Args:
            settings: Application settings. If None, loads from environment.
            model: Embedding model to use. Defaults to the configured model.
            max_concurrency: Chunks allowed in flight at once during
                ``embed_batch``. Defaults to the configured value.
        """
        self.settings = settings or get_settings()
        self.model = model or self.settings.openai_embedding_model or self.DEFAULT_MODEL
        self.max_concurrency = max_concurrency or self.settings.embedding_max_concurrency
        self._client: AsyncOpenAI | None = None

    @property
    def client(self) -> AsyncOpenAI:
        """Get or create OpenAI client (lazy initialization).

        The SDK's built-in retries are switched off so that one
        ``embed_one`` call maps to one request.
        """
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.settings.openai_api_key,
                timeout=self.settings.embedding_timeout_seconds,
                max_retries=0,
            )
        return self._client

    async def close(self) -> None:
        """Close the client."""
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def embed_one(self, text: str) -> list[float]:
        """Generate the embedding for a single text.

        Args:
            text: Non-empty text to embed

        Returns:
            The embedding vector

        Raises:
            ValueError: If text is empty
            ProviderError: If the call fails or the response is malformed
        """
        self._check_texts([text])
        vectors = await self._embed_chunk([text])
        return vectors[0]

    async def embed_batch(
        self,
        texts: Sequence[str],
        batch_size: int | None = None,
    ) -> list[list[float]]:
        """Generate embeddings for many texts, one provider call per chunk.

        Args:
            texts: Non-empty texts to embed
            batch_size: Maximum texts per provider call. Capped at
                MAX_BATCH_SIZE; defaults to it.

        Returns:
            One vector per input text; ``result[i]`` embeds ``texts[i]``

        Raises:
            ValueError: If batch_size < 1 or any text is empty
            ProviderError: If any chunk fails
        """
        if batch_size is not None and batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        if not texts:
            return []

        self._check_texts(texts)

        size = min(batch_size or self.MAX_BATCH_SIZE, self.MAX_BATCH_SIZE)
        chunks = [list(texts[i : i + size]) for i in range(0, len(texts), size)]

        if len(chunks) == 1:
            return await self._embed_chunk(chunks[0])

        logger.debug(
            f"Embedding {len(texts)} texts in {len(chunks)} chunks "
            f"(size {size}, concurrency {self.max_concurrency})"
        )

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def run_chunk(chunk: list[str]) -> list[list[float]]:
            async with semaphore:
                return await self._embed_chunk(chunk)

        tasks = [asyncio.create_task(run_chunk(chunk)) for chunk in chunks]
        try:
            chunk_results = await asyncio.gather(*tasks)
        except BaseException:
            # One chunk failed (or we were cancelled): stop the rest
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        return [vector for chunk_vectors in chunk_results for vector in chunk_vectors]

    async def _embed_chunk(self, texts: list[str]) -> list[list[float]]:
        """Send one provider request and validate the response.

        Args:
            texts: List of texts (max MAX_BATCH_SIZE)

        Returns:
            Vectors in the same order as ``texts``

        Raises:
            ProviderError: If the request fails or the response is malformed
        """
        try:
            response = await self.client.embeddings.create(
                input=texts,
                model=self.model,
                dimensions=self.EMBEDDING_DIMENSION,
            )
        except Exception as e:
            retryable = self._is_retryable(e)
            logger.warning(
                f"Embedding request failed for {len(texts)} texts "
                f"(retryable={retryable}): {e}"
            )
            raise ProviderError(
                f"Failed to generate embeddings: {e}",
                is_retryable=retryable,
            ) from e

        return self._parse_response(response, expected=len(texts))

    def _parse_response(self, response: Any, expected: int) -> list[list[float]]:
        """Extract vectors from a provider response, ordered by input index.

        Raises:
            ProviderError: On wrong arity, wrong dimension or non-numeric values
        """
        try:
            items = sorted(response.data, key=lambda item: item.index)
        except (AttributeError, TypeError) as e:
            raise ProviderError(f"Malformed embedding response: {e}") from e

        if len(items) != expected:
            raise ProviderError(
                f"Provider returned {len(items)} embeddings for {expected} inputs"
            )
        if [item.index for item in items] != list(range(expected)):
            raise ProviderError("Malformed embedding response: indices do not match inputs")

        vectors: list[list[float]] = []
        for item in items:
            vector = getattr(item, "embedding", None)
            if not isinstance(vector, list | tuple):
                raise ProviderError("Malformed embedding response: vector is not a list")
            if len(vector) != self.EMBEDDING_DIMENSION:
                raise ProviderError(
                    f"Provider returned a {len(vector)}-dimensional vector, "
                    f"expected {self.EMBEDDING_DIMENSION}"
                )
            if not all(_is_finite_number(value) for value in vector):
                raise ProviderError("Malformed embedding response: non-numeric value")
            vectors.append([float(value) for value in vector])

        return vectors

    @staticmethod
    def _check_texts(texts: Sequence[str]) -> None:
        for i, text in enumerate(texts):
            if not text or not text.strip():
                raise ValueError(f"Cannot embed empty text at index {i}")

    @staticmethod
    def _is_retryable(error: Exception) -> bool:
        """Classify a provider exception as transient or permanent."""
        # APITimeoutError is a subclass of APIConnectionError
        if isinstance(error, RateLimitError | APIConnectionError):
            return True
        if isinstance(error, APIStatusError):
            return error.status_code >= 500
        return False


def _is_finite_number(value: Any) -> bool:
    return (
        isinstance(value, int | float)
        and not isinstance(value, bool)
        and math.isfinite(value)
    )
