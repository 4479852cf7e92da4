"""Post KB - RAG knowledge base and prompt pipeline for on-brand social posts."""

from .builder import build_kb, sync_to_store
from .chunker import KnowledgeChunkProcessor, get_processing_stats
from .embeddings import EmbeddingService
from .errors import (
    EmbeddingError,
    GenerationError,
    IndexNotReadyTimeout,
    KnowledgeSourceMissing,
    MissingSectionError,
    PostKBError,
    UserAbort,
    VectorStoreError,
)
from .generation import PostGenerationService
from .loader import KnowledgeBase, load_kb
from .prompts import PromptBuilder
from .rag import RAGService
from .schemas import (
    GenerationContext,
    KnowledgeChunk,
    Manifest,
    PostGenerationRequest,
    PostGenerationResponse,
    RAGSearchResult,
)
from .vector_store import FaissVectorStore, PineconeVectorStore, VectorStore

__version__ = "0.1.0"

__all__ = [
    "build_kb",
    "sync_to_store",
    "load_kb",
    "KnowledgeBase",
    "KnowledgeChunkProcessor",
    "get_processing_stats",
    "EmbeddingService",
    "VectorStore",
    "FaissVectorStore",
    "PineconeVectorStore",
    "RAGService",
    "PromptBuilder",
    "PostGenerationService",
    "GenerationContext",
    "KnowledgeChunk",
    "Manifest",
    "PostGenerationRequest",
    "PostGenerationResponse",
    "RAGSearchResult",
    "PostKBError",
    "KnowledgeSourceMissing",
    "MissingSectionError",
    "EmbeddingError",
    "VectorStoreError",
    "IndexNotReadyTimeout",
    "GenerationError",
    "UserAbort",
]
