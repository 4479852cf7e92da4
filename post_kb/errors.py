"""Exception types raised by the knowledge base pipeline."""

from __future__ import annotations

from typing import Dict, List, Optional


class PostKBError(Exception):
    """Base class for pipeline errors."""


class KnowledgeSourceMissing(PostKBError, FileNotFoundError):
    """Raised when a required knowledge document is not on disk."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Required knowledge document not found: {path}")


class MissingSectionError(PostKBError):
    """Raised in strict mode when configured headings are absent from a document."""

    def __init__(self, missing: Dict[str, List[str]]):
        self.missing = missing
        details = "; ".join(
            f"{source}: {', '.join(headings)}" for source, headings in missing.items()
        )
        super().__init__(f"Expected sections not found ({details})")


class EmbeddingError(PostKBError):
    """Raised when the embedding provider fails or returns malformed vectors."""

    def __init__(self, message: str, provider: Optional[str] = None):
        self.provider = provider
        super().__init__(message)


EmbeddingProviderError = EmbeddingError


class VectorStoreError(PostKBError):
    """Raised when an index, upsert, query or delete call fails."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        operation: Optional[str] = None,
    ):
        self.provider = provider
        self.operation = operation
        super().__init__(message)


class IndexNotReadyTimeout(VectorStoreError):
    """Raised when a freshly created index never reports ready."""


class GenerationError(PostKBError):
    """Raised when the chat model call fails or returns nothing."""


class UserAbort(PostKBError):
    """Raised when user aborts the build process."""
