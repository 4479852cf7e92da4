"""Vector stores for knowledge chunk embeddings.

``VectorStore`` implements the batching, readiness polling, metadata encoding
and result ordering shared by every backend. Backends supply the primitive
calls: ``index_exists``, ``create_index``, ``is_ready``, ``upsert``, ``query``,
``describe_stats`` and ``delete_all``.

Similarity is cosine: chunk and query texts vary a lot in length, and cosine
ignores vector magnitude.
"""

from __future__ import annotations

import logging
import os
import time
from abc import ABC, abstractmethod
from collections import Counter
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

import faiss
import numpy as np

from .errors import IndexNotReadyTimeout, VectorStoreError
from .metadata import CONTENT_KEY, JsonArrayMetadataCodec, MetadataCodec
from .schemas import IndexedRecord, KnowledgeChunk, RAGSearchResult
from .utils import iter_batches

logger = logging.getLogger(__name__)

# (chunk id, score, flattened metadata including content)
Match = Tuple[str, float, Dict[str, Any]]

SUPPORTED_METRICS = ("cosine",)


class VectorStore(ABC):
    """Base class for vector stores."""

    provider = "base"

    def __init__(
        self,
        codec: Optional[MetadataCodec] = None,
        upsert_batch_size: int = 100,
        upsert_delay: float = 0.0,
        ready_attempts: int = 30,
        ready_interval: float = 2.0,
    ):
        self.codec = codec or JsonArrayMetadataCodec()
        self.upsert_batch_size = upsert_batch_size
        self.upsert_delay = upsert_delay
        self.ready_attempts = ready_attempts
        self.ready_interval = ready_interval

    @abstractmethod
    def index_exists(self) -> bool:
        pass

    @abstractmethod
    def create_index(self, dimension: int, metric: str = "cosine") -> None:
        pass

    @abstractmethod
    def is_ready(self) -> bool:
        pass

    @abstractmethod
    def upsert(self, records: List[Dict[str, Any]]) -> None:
        """Write one batch of ``{"id", "values", "metadata"}`` records."""

    @abstractmethod
    def query(
        self,
        vector: Sequence[float],
        top_k: int,
        filter: Optional[Mapping[str, Any]] = None,
    ) -> List[Match]:
        pass

    @abstractmethod
    def describe_stats(self) -> Dict[str, Any]:
        pass

    @abstractmethod
    def delete_all(self) -> None:
        pass

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except VectorStoreError:
            raise
        except Exception as exc:
            raise VectorStoreError(
                f"Failed to {operation} ({self.provider}): {exc}",
                provider=self.provider,
                operation=operation,
            ) from exc

    def ensure_index_exists(self, dimension: int, metric: str = "cosine") -> bool:
        """
        Create the index unless it already exists, then wait until it is ready.

        Returns:
            True if the index was created by this call.

        Raises:
            IndexNotReadyTimeout: If the new index never reports ready.
            VectorStoreError: If the existence check or creation fails.
        """
        with self._guard("check index"):
            if self.index_exists():
                logger.info("Index already exists (%s)", self.provider)
                return False

        logger.info("Creating %s index (dimension=%d, metric=%s)", self.provider, dimension, metric)
        with self._guard("create index"):
            self.create_index(dimension, metric)
        self.wait_until_ready()
        return True

    def wait_until_ready(self) -> None:
        for attempt in range(1, self.ready_attempts + 1):
            try:
                if self.is_ready():
                    logger.info("Index is ready")
                    return
            except Exception as exc:
                logger.warning("Readiness check %d/%d failed: %s", attempt, self.ready_attempts, exc)
            if attempt < self.ready_attempts:
                time.sleep(self.ready_interval)

        raise IndexNotReadyTimeout(
            f"Index not ready after {self.ready_attempts} attempts",
            provider=self.provider,
            operation="create index",
        )

    def upsert_chunks(self, chunks: Sequence[KnowledgeChunk]) -> int:
        """
        Write embedded chunks to the store in batches.

        Returns:
            Number of vectors written.

        Raises:
            ValueError: If any chunk has no embedding (nothing is written).
            VectorStoreError: If a batch fails.
        """
        missing = [chunk.id for chunk in chunks if chunk.embedding is None]
        if missing:
            raise ValueError(f"Chunks missing embedding: {', '.join(missing)}")

        records = [
            {
                "id": chunk.id,
                "values": chunk.embedding,
                "metadata": self.codec.encode(chunk.metadata, chunk.content),
            }
            for chunk in chunks
        ]
        batches = list(iter_batches(records, self.upsert_batch_size))

        with self._guard("upsert"):
            for batch_idx, batch in enumerate(batches):
                logger.info("Upserting batch %d/%d (%d vectors)", batch_idx + 1, len(batches), len(batch))
                self.upsert(batch)
                if batch_idx < len(batches) - 1 and self.upsert_delay > 0:
                    time.sleep(self.upsert_delay)

        return len(records)

    def search_similar(
        self,
        query_vector: Sequence[float],
        top_k: int = 5,
        filter: Optional[Mapping[str, Any]] = None,
    ) -> List[RAGSearchResult]:
        """Return at most ``top_k`` hits, most similar first."""
        if top_k <= 0:
            return []

        with self._guard("query"):
            matches = self.query(query_vector, top_k, filter)

        results: List[RAGSearchResult] = []
        for chunk_id, score, raw in matches:
            content, metadata = self.codec.decode(raw)
            results.append(RAGSearchResult(id=chunk_id, score=float(score), content=content, metadata=metadata))

        results.sort(key=lambda result: result.score, reverse=True)
        return results[:top_k]

    def delete_all_vectors(self) -> None:
        with self._guard("delete vectors"):
            self.delete_all()
        logger.info("Deleted all vectors from index (%s)", self.provider)

    def get_stats(self) -> Dict[str, Any]:
        with self._guard("describe stats"):
            return self.describe_stats()


def matches_filter(metadata: Mapping[str, Any], filter: Mapping[str, Any]) -> bool:
    """
    Evaluate a Pinecone-style metadata filter.

    Supports plain equality, ``$eq``, ``$ne``, ``$in``, ``$nin``, ``$and`` and
    ``$or``. A list-valued field matches when any of its elements does.
    """
    for key, condition in filter.items():
        if key == "$and":
            if not all(matches_filter(metadata, sub) for sub in condition):
                return False
            continue
        if key == "$or":
            if not any(matches_filter(metadata, sub) for sub in condition):
                return False
            continue

        value = metadata.get(key)
        candidates = value if isinstance(value, list) else [value]
        if not isinstance(condition, Mapping):
            condition = {"$eq": condition}

        for op, expected in condition.items():
            if op == "$eq":
                ok = expected in candidates
            elif op == "$ne":
                ok = expected not in candidates
            elif op == "$in":
                ok = any(candidate in expected for candidate in candidates)
            elif op == "$nin":
                ok = not any(candidate in expected for candidate in candidates)
            else:
                raise ValueError(f"Unsupported filter operator: {op}")
            if not ok:
                return False
    return True


class FaissVectorStore(VectorStore):
    """
    In-process FAISS index with cosine similarity.

    Vectors are L2-normalised and searched by inner product. Chunk text and
    metadata live beside the index as ``IndexedRecord`` objects keyed by the
    FAISS vector id.
    """

    provider = "faiss"

    def __init__(
        self,
        dimension: Optional[int] = None,
        metric: str = "cosine",
        codec: Optional[MetadataCodec] = None,
        **kwargs,
    ):
        super().__init__(codec=codec, **kwargs)
        self.metric = metric
        self._index: Optional[faiss.Index] = None
        self._records: Dict[int, IndexedRecord] = {}
        self._vector_ids: Dict[str, int] = {}
        self._next_id = 0
        if dimension is not None:
            self.create_index(dimension, metric)

    @property
    def dimension(self) -> Optional[int]:
        return self._index.d if self._index is not None else None

    def index_exists(self) -> bool:
        return self._index is not None

    def create_index(self, dimension: int, metric: str = "cosine") -> None:
        if metric not in SUPPORTED_METRICS:
            raise ValueError(f"Unsupported metric for FAISS store: {metric}")
        self.metric = metric
        self._index = faiss.IndexIDMap2(faiss.IndexFlatIP(dimension))
        self._records = {}
        self._vector_ids = {}
        self._next_id = 0

    def is_ready(self) -> bool:
        return self._index is not None

    def _require_index(self) -> faiss.Index:
        if self._index is None:
            raise VectorStoreError("Index has not been created", provider=self.provider)
        return self._index

    def _as_matrix(self, vectors: Sequence[Sequence[float]]) -> np.ndarray:
        index = self._require_index()
        matrix = np.array(vectors, dtype="float32")
        if matrix.ndim != 2 or matrix.shape[1] != index.d:
            raise VectorStoreError(
                f"Vector dimension mismatch: expected {index.d}, got {matrix.shape[-1]}",
                provider=self.provider,
            )
        faiss.normalize_L2(matrix)
        return matrix

    def upsert(self, records: List[Dict[str, Any]]) -> None:
        index = self._require_index()
        latest = {record["id"]: record for record in records}
        if not latest:
            return

        matrix = self._as_matrix([record["values"] for record in latest.values()])
        vector_ids: List[int] = []
        for record in latest.values():
            previous = self._vector_ids.get(record["id"])
            if previous is not None:
                index.remove_ids(np.array([previous], dtype="int64"))
                del self._records[previous]

            vector_id = self._next_id
            self._next_id += 1
            metadata = dict(record["metadata"])
            content = str(metadata.pop(CONTENT_KEY, ""))
            self._records[vector_id] = IndexedRecord(
                vector_id=vector_id,
                chunk_id=record["id"],
                content=content,
                metadata=metadata,
            )
            self._vector_ids[record["id"]] = vector_id
            vector_ids.append(vector_id)

        index.add_with_ids(matrix, np.array(vector_ids, dtype="int64"))

    def _flat_metadata(self, record: IndexedRecord) -> Dict[str, Any]:
        return {**record.metadata, CONTENT_KEY: record.content}

    def query(
        self,
        vector: Sequence[float],
        top_k: int,
        filter: Optional[Mapping[str, Any]] = None,
    ) -> List[Match]:
        if self._index is None or self._index.ntotal == 0:
            return []

        matrix = self._as_matrix([vector])
        k = self._index.ntotal if filter else min(top_k, self._index.ntotal)
        scores, ids = self._index.search(matrix, k)

        matches: List[Match] = []
        for score, vector_id in zip(scores[0], ids[0]):
            if vector_id < 0:
                continue
            record = self._records.get(int(vector_id))
            if record is None:
                continue
            flat = self._flat_metadata(record)
            if filter:
                _, decoded = self.codec.decode(flat)
                if not matches_filter(decoded.model_dump(by_alias=True), filter):
                    continue
            matches.append((record.chunk_id, float(score), flat))
            if len(matches) >= top_k:
                break
        return matches

    def describe_stats(self) -> Dict[str, Any]:
        categories = Counter(str(record.metadata.get("category", "")) for record in self._records.values())
        return {
            "total_vector_count": self._index.ntotal if self._index is not None else 0,
            "dimension": self.dimension,
            "metric": self.metric,
            "categories": dict(categories),
        }

    def delete_all(self) -> None:
        if self._index is not None:
            self._index.reset()
        self._records = {}
        self._vector_ids = {}
        self._next_id = 0

    def write_artifacts(self, directory: Union[str, Path]) -> Tuple[Path, Path]:
        """Write ``index.faiss`` and ``chunks.jsonl`` into ``directory``."""
        index = self._require_index()
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)

        index_path = directory / "index.faiss"
        faiss.write_index(index, str(index_path))

        chunks_path = directory / "chunks.jsonl"
        with open(chunks_path, "w", encoding="utf-8") as handle:
            for vector_id in sorted(self._records):
                handle.write(self._records[vector_id].model_dump_json())
                handle.write("\n")
        return index_path, chunks_path

    @classmethod
    def from_artifacts(
        cls,
        directory: Union[str, Path],
        codec: Optional[MetadataCodec] = None,
    ) -> "FaissVectorStore":
        """
        Load a store written by ``write_artifacts``.

        Raises:
            FileNotFoundError: If either artifact is missing.
            ValueError: If the index and the records disagree.
        """
        directory = Path(directory)
        index_path = directory / "index.faiss"
        chunks_path = directory / "chunks.jsonl"
        if not index_path.exists():
            raise FileNotFoundError(f"Index file not found: {index_path}")
        if not chunks_path.exists():
            raise FileNotFoundError(f"Chunks file not found: {chunks_path}")

        store = cls(codec=codec)
        store._index = faiss.read_index(str(index_path))
        with open(chunks_path, "r", encoding="utf-8") as handle:
            for line in handle:
                if line.strip():
                    record = IndexedRecord.model_validate_json(line)
                    store._records[record.vector_id] = record
                    store._vector_ids[record.chunk_id] = record.vector_id

        if len(store._records) != store._index.ntotal:
            raise ValueError(
                f"Record count ({len(store._records)}) does not match "
                f"vector count ({store._index.ntotal})"
            )
        store._next_id = max(store._records, default=-1) + 1
        return store


class PineconeVectorStore(VectorStore):
    """
    Pinecone serverless index.

    Metadata lists are written as JSON strings by default. Pass ``client`` to
    reuse an existing ``pinecone.Pinecone`` instance.
    """

    provider = "pinecone"

    def __init__(
        self,
        index_name: str,
        api_key: Optional[str] = None,
        client: Any = None,
        cloud: str = "aws",
        region: str = "us-east-1",
        namespace: Optional[str] = None,
        codec: Optional[MetadataCodec] = None,
        upsert_delay: float = 0.5,
        **kwargs,
    ):
        super().__init__(codec=codec, upsert_delay=upsert_delay, **kwargs)
        if client is None:
            try:
                from pinecone import Pinecone
            except ImportError as exc:
                raise VectorStoreError(
                    "pinecone package not installed. Install with: pip install post-kb[pinecone]",
                    provider=self.provider,
                ) from exc
            api_key = api_key or os.environ.get("PINECONE_API_KEY")
            if not api_key:
                raise VectorStoreError(
                    "Pinecone API key not provided and PINECONE_API_KEY not set",
                    provider=self.provider,
                )
            client = Pinecone(api_key=api_key)

        self.client = client
        self.index_name = index_name
        self.cloud = cloud
        self.region = region
        self.namespace = namespace
        self._index = None

    def _handle(self):
        if self._index is None:
            self._index = self.client.Index(self.index_name)
        return self._index

    def index_exists(self) -> bool:
        return self.index_name in [idx.name for idx in self.client.list_indexes()]

    def create_index(self, dimension: int, metric: str = "cosine") -> None:
        self.client.create_index(
            name=self.index_name,
            dimension=dimension,
            metric=metric,
            spec={"serverless": {"cloud": self.cloud, "region": self.region}},
        )

    def is_ready(self) -> bool:
        return bool(self.client.describe_index(self.index_name).status["ready"])

    def upsert(self, records: List[Dict[str, Any]]) -> None:
        self._handle().upsert(vectors=records, namespace=self.namespace)

    def query(
        self,
        vector: Sequence[float],
        top_k: int,
        filter: Optional[Mapping[str, Any]] = None,
    ) -> List[Match]:
        response = self._handle().query(
            vector=list(vector),
            top_k=top_k,
            filter=dict(filter) if filter else None,
            include_metadata=True,
            namespace=self.namespace,
        )
        return [
            (match.id, match.score or 0.0, dict(match.metadata or {}))
            for match in response.matches
        ]

    def describe_stats(self) -> Dict[str, Any]:
        stats = self._handle().describe_index_stats()
        return {
            "total_vector_count": stats.total_vector_count,
            "dimension": stats.dimension,
            "index_fullness": getattr(stats, "index_fullness", None),
        }

    def delete_all(self) -> None:
        self._handle().delete(delete_all=True, namespace=self.namespace)
