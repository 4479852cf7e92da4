"""Tests for the vector stores."""

import json
from types import SimpleNamespace

import pytest

from post_kb.errors import IndexNotReadyTimeout, VectorStoreError
from post_kb.metadata import NativeArrayMetadataCodec
from post_kb.vector_store import FaissVectorStore, PineconeVectorStore, matches_filter

from conftest import DIM, make_chunk


def _embedded(embedding_service, chunks):
    return embedding_service.embed_chunks(chunks)


@pytest.fixture
def corpus(embedding_service):
    chunks = [
        make_chunk("pt-0", "value bomb thread structure and template", category="postType",
                   post_type="value-bomb-thread", keywords=["structure", "template"]),
        make_chunk("st-0", "short punchy sentences authentic voice", category="style", keywords=["voice"]),
        make_chunk("hk-0", "hook formulas for the first ten words", category="hook", keywords=["hook"]),
        make_chunk("pl-0", "manual processes leak revenue every day", category="pillar",
                   pillar="manual-processes-revenue-leaks"),
        make_chunk("ex-0", "restaurant in dubai cut no-shows by 38%", category="example", keywords=["dubai"]),
    ]
    return _embedded(embedding_service, chunks)


def test_search_returns_at_most_top_k_sorted(faiss_store, corpus, embedding_service):
    """Test results are bounded by top_k and ordered by score."""
    faiss_store.upsert_chunks(corpus)
    query = embedding_service.embed_query("value bomb thread template")

    results = faiss_store.search_similar(query, top_k=3)

    assert len(results) <= 3
    assert [r.score for r in results] == sorted((r.score for r in results), reverse=True)
    assert results[0].id == "pt-0"
    assert results[0].content == "value bomb thread structure and template"
    assert results[0].metadata.post_type == "value-bomb-thread"


def test_search_empty_store(faiss_store, embedding_service):
    """Test an empty index returns no results."""
    assert faiss_store.search_similar(embedding_service.embed_query("anything"), top_k=3) == []


def test_search_zero_top_k(faiss_store, corpus, embedding_service):
    """Test top_k of zero returns nothing."""
    faiss_store.upsert_chunks(corpus)
    assert faiss_store.search_similar(embedding_service.embed_query("hook"), top_k=0) == []


def test_search_with_filter(faiss_store, corpus, embedding_service):
    """Test metadata filters restrict results."""
    faiss_store.upsert_chunks(corpus)
    query = embedding_service.embed_query("value bomb thread template")

    results = faiss_store.search_similar(query, top_k=5, filter={"category": "style"})
    assert [r.id for r in results] == ["st-0"]

    results = faiss_store.search_similar(query, top_k=5, filter={"category": {"$in": ["hook", "pillar"]}})
    assert {r.id for r in results} == {"hk-0", "pl-0"}

    results = faiss_store.search_similar(query, top_k=5, filter={"keywords": "dubai"})
    assert [r.id for r in results] == ["ex-0"]


def test_upsert_replaces_existing_id(faiss_store, corpus, embedding_service):
    """Test re-upserting an id replaces the stored vector."""
    faiss_store.upsert_chunks(corpus)
    replacement = _embedded(embedding_service, [make_chunk("hk-0", "new hook text", category="hook")])
    faiss_store.upsert_chunks(replacement)

    assert faiss_store.describe_stats()["total_vector_count"] == len(corpus)
    results = faiss_store.search_similar(embedding_service.embed_query("new hook text"), top_k=1)
    assert results[0].content == "new hook text"


def test_upsert_requires_embeddings(faiss_store):
    """Test chunks without embeddings are rejected before any write."""
    with pytest.raises(ValueError, match="missing embedding"):
        faiss_store.upsert_chunks([make_chunk("c-0", "no vector")])
    assert faiss_store.describe_stats()["total_vector_count"] == 0


def test_upsert_batches(corpus, monkeypatch):
    """Test upserts are split into batches with a pause between them."""
    sleeps = []
    monkeypatch.setattr("post_kb.vector_store.time.sleep", sleeps.append)
    store = FaissVectorStore(dimension=DIM, upsert_batch_size=2, upsert_delay=0.5)

    written = store.upsert_chunks(corpus)

    assert written == 5
    assert sleeps == [0.5, 0.5]
    assert store.describe_stats()["total_vector_count"] == 5


def test_reindex_wipes_cleanly(faiss_store, corpus):
    """Test deleting everything then upserting nothing leaves zero vectors."""
    faiss_store.upsert_chunks(corpus)
    faiss_store.delete_all_vectors()
    faiss_store.upsert_chunks([])

    assert faiss_store.describe_stats()["total_vector_count"] == 0


def test_ensure_index_exists_is_idempotent():
    """Test the index is created once."""
    store = FaissVectorStore(ready_interval=0)
    assert store.ensure_index_exists(DIM) is True
    assert store.ensure_index_exists(DIM) is False
    assert store.dimension == DIM


def test_index_not_ready_timeout(monkeypatch):
    """Test readiness polling gives up after the configured attempts."""

    class NeverReady(FaissVectorStore):
        checks = 0

        def is_ready(self):
            NeverReady.checks += 1
            return False

    store = NeverReady(ready_attempts=3, ready_interval=0)
    with pytest.raises(IndexNotReadyTimeout):
        store.ensure_index_exists(DIM)
    assert NeverReady.checks == 3


def test_failed_readiness_checks_are_logged(caplog):
    """Test readiness errors are reported at warning level before the timeout."""

    class BrokenStatus(FaissVectorStore):
        def is_ready(self):
            raise ConnectionError("status endpoint unreachable")

    store = BrokenStatus(ready_attempts=2, ready_interval=0)
    with caplog.at_level("WARNING", logger="post_kb.vector_store"):
        with pytest.raises(IndexNotReadyTimeout):
            store.ensure_index_exists(DIM)

    warnings = [record for record in caplog.records if record.levelname == "WARNING"]
    assert len(warnings) == 2
    assert "status endpoint unreachable" in warnings[-1].getMessage()


def test_dimension_mismatch_raises(faiss_store, corpus):
    """Test vectors of the wrong size are rejected as a store error."""
    faiss_store.upsert_chunks(corpus)
    with pytest.raises(VectorStoreError):
        faiss_store.search_similar([0.1, 0.2], top_k=1)


def test_unsupported_metric():
    """Test only cosine is accepted."""
    with pytest.raises(ValueError):
        FaissVectorStore(dimension=DIM, metric="euclidean")


def test_artifacts_round_trip(tmp_path, faiss_store, corpus, embedding_service):
    """Test a written store loads back with the same search results."""
    faiss_store.upsert_chunks(corpus)
    faiss_store.write_artifacts(tmp_path)

    loaded = FaissVectorStore.from_artifacts(tmp_path)
    query = embedding_service.embed_query("hook formulas")

    assert loaded.describe_stats()["total_vector_count"] == len(corpus)
    assert [r.id for r in loaded.search_similar(query, top_k=3)] == [
        r.id for r in faiss_store.search_similar(query, top_k=3)
    ]
    lines = (tmp_path / "chunks.jsonl").read_text(encoding="utf-8").splitlines()
    assert json.loads(lines[0])["chunk_id"] == "pt-0"


def test_from_artifacts_missing_files(tmp_path):
    """Test loading from an empty directory fails clearly."""
    with pytest.raises(FileNotFoundError):
        FaissVectorStore.from_artifacts(tmp_path)


def test_matches_filter_operators():
    """Test the supported filter operators."""
    metadata = {"category": "postType", "keywords": ["structure", "template"], "pillar": ""}

    assert matches_filter(metadata, {"category": "postType"})
    assert matches_filter(metadata, {"category": {"$ne": "style"}})
    assert matches_filter(metadata, {"keywords": {"$in": ["template", "hook"]}})
    assert not matches_filter(metadata, {"keywords": {"$nin": ["template"]}})
    assert matches_filter(metadata, {"$or": [{"category": "hook"}, {"keywords": "structure"}]})
    assert not matches_filter(metadata, {"$and": [{"category": "postType"}, {"pillar": "automation-survival"}]})
    with pytest.raises(ValueError):
        matches_filter(metadata, {"category": {"$gt": 1}})


class FakePineconeIndex:
    def __init__(self):
        self.vectors = {}
        self.upsert_calls = []
        self.fail_query = False

    def upsert(self, vectors, namespace=None):
        self.upsert_calls.append(len(vectors))
        for record in vectors:
            self.vectors[record["id"]] = record

    def query(self, vector, top_k, filter=None, include_metadata=True, namespace=None):
        if self.fail_query:
            raise RuntimeError("503 service unavailable")
        matches = [
            SimpleNamespace(id=record["id"], score=1.0 / (rank + 1), metadata=record["metadata"])
            for rank, record in enumerate(self.vectors.values())
        ]
        return SimpleNamespace(matches=matches[:top_k])

    def describe_index_stats(self):
        return SimpleNamespace(total_vector_count=len(self.vectors), dimension=DIM)

    def delete(self, delete_all=False, namespace=None):
        if delete_all:
            self.vectors = {}


class FakePinecone:
    def __init__(self, ready_after=1):
        self.names = []
        self.created = []
        self.describe_calls = 0
        self.ready_after = ready_after
        self.index = FakePineconeIndex()

    def list_indexes(self):
        return [SimpleNamespace(name=name) for name in self.names]

    def create_index(self, name, dimension, metric, spec):
        self.created.append({"name": name, "dimension": dimension, "metric": metric, "spec": spec})
        self.names.append(name)

    def describe_index(self, name):
        self.describe_calls += 1
        return SimpleNamespace(status={"ready": self.describe_calls >= self.ready_after})

    def Index(self, name):
        return self.index


@pytest.fixture
def pinecone_client():
    return FakePinecone(ready_after=2)


@pytest.fixture
def pinecone_store(pinecone_client):
    return PineconeVectorStore("post-kb-test", client=pinecone_client, upsert_delay=0, ready_interval=0)


def test_pinecone_creates_index_and_waits(pinecone_store, pinecone_client):
    """Test index creation on a serverless spec, polling until ready."""
    assert pinecone_store.ensure_index_exists(DIM) is True
    assert pinecone_client.created == [
        {
            "name": "post-kb-test",
            "dimension": DIM,
            "metric": "cosine",
            "spec": {"serverless": {"cloud": "aws", "region": "us-east-1"}},
        }
    ]
    assert pinecone_client.describe_calls == 2
    assert pinecone_store.ensure_index_exists(DIM) is False


def test_pinecone_upsert_serializes_lists(pinecone_store, pinecone_client, corpus):
    """Test keywords are written as JSON strings and content travels in metadata."""
    pinecone_store.upsert_chunks(corpus)

    stored = pinecone_client.index.vectors["pt-0"]
    assert stored["metadata"]["keywords"] == '["structure", "template"]'
    assert stored["metadata"]["content"] == "value bomb thread structure and template"
    assert len(stored["values"]) == DIM


def test_pinecone_upsert_batches_of_100(pinecone_client, embedding_service):
    """Test the default batch size for upserts."""
    store = PineconeVectorStore("post-kb-test", client=pinecone_client, upsert_delay=0)
    chunks = [make_chunk(f"c-{i}", f"chunk number {i}") for i in range(250)]
    store.upsert_chunks(embedding_service.embed_chunks(chunks))

    assert pinecone_client.index.upsert_calls == [100, 100, 50]


def test_pinecone_search_decodes_metadata(pinecone_store, corpus):
    """Test query matches are decoded back into chunk metadata."""
    pinecone_store.upsert_chunks(corpus)
    results = pinecone_store.search_similar([0.0] * DIM, top_k=2)

    assert [r.id for r in results] == ["pt-0", "st-0"]
    assert results[0].metadata.keywords == ["structure", "template"]
    assert results[0].metadata.subcategory is None


def test_pinecone_stats_and_delete(pinecone_store, corpus):
    """Test stats and full wipe."""
    pinecone_store.upsert_chunks(corpus)
    assert pinecone_store.get_stats()["total_vector_count"] == 5

    pinecone_store.delete_all_vectors()
    assert pinecone_store.get_stats()["total_vector_count"] == 0


def test_pinecone_errors_are_wrapped(pinecone_store, pinecone_client):
    """Test provider errors surface as VectorStoreError with the cause."""
    pinecone_client.index.fail_query = True

    with pytest.raises(VectorStoreError) as exc_info:
        pinecone_store.search_similar([0.0] * DIM, top_k=3)

    assert exc_info.value.provider == "pinecone"
    assert exc_info.value.operation == "query"
    assert isinstance(exc_info.value.__cause__, RuntimeError)


def test_native_codec_on_faiss(embedding_service):
    """Test the native array codec works with list filters."""
    store = FaissVectorStore(dimension=DIM, codec=NativeArrayMetadataCodec())
    chunks = _embedded(embedding_service, [make_chunk("c-0", "text", keywords=["alpha", "beta"])])
    store.upsert_chunks(chunks)

    results = store.search_similar(embedding_service.embed_query("text"), top_k=1, filter={"keywords": "beta"})
    assert results[0].metadata.keywords == ["alpha", "beta"]
