"""Offline reindex job: knowledge documents -> embedded chunks -> vector index."""

from __future__ import annotations

import json
import os
import shutil
import sys
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from langchain_core.embeddings import Embeddings

from .chunker import KnowledgeChunkProcessor, get_processing_stats
from .embeddings import DEFAULT_BATCH_DELAY, DEFAULT_BATCH_SIZE, DEFAULT_DIMENSION, EmbeddingService
from .errors import UserAbort
from .schemas import KnowledgeChunk, Manifest
from .utils import safe_relpath, sha1_file
from .vector_store import FaissVectorStore, VectorStore


def sync_to_store(
    chunks: Sequence[KnowledgeChunk],
    store: VectorStore,
    dimension: int,
) -> Dict[str, Any]:
    """
    Replace the contents of ``store`` with ``chunks``.

    The index is created if needed, wiped, then filled; there is no
    incremental diffing.

    Returns:
        The store's stats after the upsert.
    """
    store.ensure_index_exists(dimension, metric="cosine")
    store.delete_all_vectors()
    store.upsert_chunks(chunks)
    return store.get_stats()


def _print_chunk_stats(stats: Dict[str, Dict[str, int]]) -> None:
    print(f"Chunk summary: total={stats['total']['chunks']}")
    for group in ("by_source", "by_category", "by_importance"):
        counts = ", ".join(f"{key}={value}" for key, value in sorted(stats[group].items()))
        print(f"  {group.replace('_', ' ')}: {counts or '-'}")


def build_kb(
    knowledge_dir: str,
    out_dir: str,
    embeddings_client: Embeddings,
    embed_model: str,
    provider: str = "ollama",
    dimension: int = DEFAULT_DIMENSION,
    batch_size: int = DEFAULT_BATCH_SIZE,
    batch_delay: float = DEFAULT_BATCH_DELAY,
    strict: bool = False,
    store: Optional[VectorStore] = None,
) -> Manifest:
    """
    Build the knowledge base from the markdown knowledge documents.

    Args:
        knowledge_dir: Directory containing the knowledge markdown files
        out_dir: Output directory for KB (creates versions/ subdirectory)
        embeddings_client: LangChain embeddings instance (e.g., OllamaEmbeddings)
        embed_model: Name of embedding model
        provider: Provider name (for manifest metadata and errors)
        dimension: Expected embedding dimension
        batch_size: Batch size for embedding
        batch_delay: Seconds to wait between embedding batches
        strict: Fail when a configured section heading is missing
        store: Optional remote vector store to sync as well (e.g., Pinecone)

    Returns:
        Manifest with build metadata

    Raises:
        UserAbort: If user cancels at prompt
        RuntimeError: If no chunks are generated
        KnowledgeSourceMissing: If a required document is absent
        MissingSectionError: In strict mode, if a heading is absent
        EmbeddingError: If the embedding provider fails
        VectorStoreError: If the remote store cannot be synced
    """
    start_time = time.perf_counter()

    processor = KnowledgeChunkProcessor(knowledge_dir, strict=strict)
    chunks = processor.process_all_knowledge()
    if not chunks:
        raise RuntimeError("No chunks generated; check knowledge directory and section headings.")

    stats = get_processing_stats(chunks)
    _print_chunk_stats(stats)
    if processor.missing_documents:
        print(f"Optional documents not found: {', '.join(processor.missing_documents)}")
    print("About to embed chunks and replace the index.")

    # Confirm with user if interactive
    if sys.stdin.isatty():
        answer = input("Proceed with rebuild? (y/n): ").strip().lower()
        if answer not in ("y", "yes"):
            raise UserAbort("KB rebuild aborted by user.")

    # Embed documents
    print(f"Starting embedding: chunks={len(chunks)}")
    embedding_service = EmbeddingService(
        embeddings_client,
        dimension=dimension,
        batch_size=batch_size,
        batch_delay=batch_delay,
        provider=provider,
    )
    embedded = embedding_service.embed_chunks(chunks, show_progress=True)

    print("Building FAISS index...")
    local_store = FaissVectorStore(dimension=dimension)
    local_stats = sync_to_store(embedded, local_store, dimension)

    remote_stats = None
    if store is not None:
        print(f"Syncing {store.provider} index...")
        remote_stats = sync_to_store(embedded, store, dimension)
        print(f"Remote index: vectors={remote_stats.get('total_vector_count')}")

    # Setup directories
    os.makedirs(out_dir, exist_ok=True)
    versions_dir = os.path.join(out_dir, "versions")
    os.makedirs(versions_dir, exist_ok=True)

    kb_version = datetime.now().strftime("%Y%m%d-%H%M%S")
    version_dir = os.path.join(versions_dir, kb_version)
    os.makedirs(version_dir, exist_ok=True)

    # Write artifacts
    print("Writing KB artifacts...")
    local_store.write_artifacts(version_dir)

    documents: List[Dict[str, Any]] = []
    for spec in processor.documents:
        path = os.path.join(knowledge_dir, spec.filename)
        if not os.path.isfile(path):
            continue
        documents.append(
            {
                "path": safe_relpath(path, knowledge_dir),
                "source": spec.source,
                "sha1": sha1_file(path),
                "chunks": sum(1 for chunk in chunks if chunk.id.startswith(f"{spec.id_prefix}-")),
            }
        )

    manifest = Manifest(
        kb_version=kb_version,
        knowledge_dir=knowledge_dir,
        build_time=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        embedding_model=embed_model,
        embedding_provider=provider,
        metric="cosine",
        dimension=dimension,
        doc_count=len(documents),
        chunk_count=local_stats["total_vector_count"],
        missing_documents=list(processor.missing_documents),
        chunk_stats=stats,
    )
    manifest_path = os.path.join(version_dir, "manifest.json")
    with open(manifest_path, "w", encoding="utf-8") as handle:
        json.dump(manifest.model_dump(), handle, ensure_ascii=False, indent=2)

    # Build log
    build_log = {
        "kb_version": kb_version,
        "knowledge_dir": knowledge_dir,
        "documents": documents,
        "missing_documents": list(processor.missing_documents),
        "strict": strict,
        "remote_store": {"provider": store.provider, "stats": remote_stats} if store is not None else None,
    }
    build_log_path = os.path.join(version_dir, "build_log.json")
    with open(build_log_path, "w", encoding="utf-8") as handle:
        json.dump(build_log, handle, ensure_ascii=False, indent=2, default=str)

    # Activate version
    print("Activating KB version (atomic switch)...")
    _activate_version(out_dir, version_dir)
    print("Atomic switch completed.")

    elapsed = time.perf_counter() - start_time
    print(f"Build summary: documents={len(documents)}, chunks={manifest.chunk_count}")
    print(f"Build summary: duration={elapsed:.1f}s, output_dir={version_dir}")
    print(f"Build summary: kb_version={kb_version}")

    return manifest


def _activate_version(out_dir: str, version_dir: str) -> None:
    """
    Atomically switch 'current' symlink to new version.

    Falls back to copying on systems that don't support atomic symlink replacement.
    """
    current_path = os.path.join(out_dir, "current")
    tmp_link = os.path.join(out_dir, "current_tmp")
    relative_target = os.path.relpath(version_dir, out_dir)

    if os.path.islink(tmp_link) or os.path.exists(tmp_link):
        if os.path.isdir(tmp_link) and not os.path.islink(tmp_link):
            shutil.rmtree(tmp_link)
        else:
            os.unlink(tmp_link)

    try:
        os.symlink(relative_target, tmp_link)
        os.replace(tmp_link, current_path)
    except OSError:
        if os.path.lexists(tmp_link):
            os.unlink(tmp_link)
        if os.path.islink(current_path):
            os.unlink(current_path)
        elif os.path.exists(current_path):
            shutil.rmtree(current_path)
        shutil.copytree(version_dir, current_path)
