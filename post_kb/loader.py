"""Load built knowledge bases from disk."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

from .schemas import Manifest
from .vector_store import FaissVectorStore


@dataclass
class KnowledgeBase:
    """A loaded knowledge base: searchable store plus build manifest."""
    store: FaissVectorStore
    manifest: Manifest


def load_kb(kb_path: str) -> KnowledgeBase:
    """
    Load a knowledge base from disk.

    Args:
        kb_path: Path to the knowledge base directory (e.g., "kb/current" or "kb/versions/20250101-120000")

    Returns:
        KnowledgeBase with the FAISS store and manifest

    Raises:
        FileNotFoundError: If required files are missing
        ValueError: If the artifacts disagree with each other or the manifest
    """
    kb_dir = Path(kb_path)
    manifest_file = kb_dir / "manifest.json"

    if not manifest_file.exists():
        raise FileNotFoundError(f"Manifest file not found: {manifest_file}")

    store = FaissVectorStore.from_artifacts(kb_dir)

    with open(manifest_file, "r", encoding="utf-8") as f:
        manifest = Manifest(**json.load(f))

    if store.dimension != manifest.dimension:
        raise ValueError(
            f"Index dimension {store.dimension} does not match manifest dimension {manifest.dimension}"
        )

    return KnowledgeBase(store=store, manifest=manifest)
