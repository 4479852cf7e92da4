"""Embed knowledge chunks and retrieval queries through a LangChain embeddings client.

Documents and queries are embedded asymmetrically: ``search_document`` texts go
through ``embed_documents`` and ``search_query`` texts through ``embed_query``,
so providers that distinguish the two (Cohere ``input_type``, instruction-tuned
Ollama models) bias each side appropriately.
"""

from __future__ import annotations

import logging
import time
from typing import List, Literal, Optional, Sequence

from langchain_core.embeddings import Embeddings
from tqdm import tqdm

from .errors import EmbeddingError
from .schemas import KnowledgeChunk
from .utils import iter_batches

logger = logging.getLogger(__name__)

InputType = Literal["search_document", "search_query"]

DEFAULT_DIMENSION = 1024
DEFAULT_BATCH_SIZE = 96
DEFAULT_BATCH_DELAY = 0.1


class EmbeddingService:
    """Fixed-dimension text embeddings with document/query modes.

    Args:
        client: LangChain embeddings instance (e.g., OllamaEmbeddings).
        dimension: Vector length every response must have.
        batch_size: Maximum texts per provider call.
        batch_delay: Seconds to pause between batches.
        provider: Provider name, used in error messages.
    """

    def __init__(
        self,
        client: Embeddings,
        dimension: int = DEFAULT_DIMENSION,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay: float = DEFAULT_BATCH_DELAY,
        provider: str = "ollama",
    ):
        if dimension <= 0:
            raise ValueError("dimension must be positive")
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.client = client
        self.dimension = dimension
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.provider = provider

    def embed(self, texts: Sequence[str], input_type: InputType) -> List[List[float]]:
        """Embed ``texts`` in one provider call."""
        try:
            if input_type == "search_query":
                vectors = [self.client.embed_query(text) for text in texts]
            else:
                vectors = self.client.embed_documents(list(texts))
        except EmbeddingError:
            raise
        except Exception as exc:
            raise EmbeddingError(
                f"Failed to generate {input_type} embeddings: {exc}",
                provider=self.provider,
            ) from exc
        return self._check(vectors, expected=len(texts))

    def embed_document(self, text: str) -> List[float]:
        return self.embed([text], "search_document")[0]

    def embed_query(self, text: str) -> List[float]:
        return self.embed([text], "search_query")[0]

    def embed_documents_batch(
        self,
        texts: Sequence[str],
        show_progress: bool = False,
    ) -> List[List[float]]:
        """
        Embed many documents, ``batch_size`` at a time.

        The first failing batch aborts the whole call so that a corpus is
        never indexed partially.

        Returns:
            Vectors in the same order as ``texts``.
        """
        if not texts:
            return []

        batches = list(iter_batches(texts, self.batch_size))
        vectors: List[List[float]] = []

        with tqdm(total=len(texts), desc="Embedding chunks", disable=not show_progress) as progress:
            for batch_idx, batch in enumerate(batches):
                logger.debug("Embedding batch %d/%d (%d texts)", batch_idx + 1, len(batches), len(batch))
                vectors.extend(self.embed(batch, "search_document"))
                progress.update(len(batch))

                if batch_idx < len(batches) - 1 and self.batch_delay > 0:
                    time.sleep(self.batch_delay)

        return vectors

    def embed_chunks(
        self,
        chunks: Sequence[KnowledgeChunk],
        show_progress: bool = False,
    ) -> List[KnowledgeChunk]:
        """Return copies of ``chunks`` with their embeddings attached."""
        vectors = self.embed_documents_batch([chunk.content for chunk in chunks], show_progress=show_progress)
        logger.info("Generated %d embeddings (%d dimensions each)", len(vectors), self.dimension)
        return [chunk.with_embedding(vector) for chunk, vector in zip(chunks, vectors)]

    def _check(self, vectors: Optional[List[List[float]]], expected: int) -> List[List[float]]:
        if expected == 0:
            return []
        if not vectors:
            raise EmbeddingError("No embeddings returned from provider", provider=self.provider)
        if len(vectors) != expected:
            raise EmbeddingError(
                f"Provider returned {len(vectors)} embeddings for {expected} texts",
                provider=self.provider,
            )

        checked: List[List[float]] = []
        for index, vector in enumerate(vectors):
            if vector is None or len(vector) == 0:
                raise EmbeddingError(f"Empty embedding at position {index}", provider=self.provider)
            if len(vector) != self.dimension:
                raise EmbeddingError(
                    f"Embedding at position {index} has {len(vector)} dimensions, expected {self.dimension}",
                    provider=self.provider,
                )
            checked.append([float(value) for value in vector])
        return checked
