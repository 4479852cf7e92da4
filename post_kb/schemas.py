"""Data schemas for the post knowledge base."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


Source = Literal[
    "profile-context",
    "post-generation-knowledge",
    "desire-framework",
    "backend-engineering",
]
Category = Literal[
    "pillar",
    "postType",
    "style",
    "framework",
    "example",
    "hook",
    "profile",
    "technical",
]
Importance = Literal["critical", "high", "medium", "low"]
PostType = Literal[
    "value-bomb-thread",
    "client-story-thread",
    "contrarian-take",
    "pattern-recognition",
    "personal-journey",
    "engagement-question",
    "educational-deep-dive",
]
Platform = Literal["X", "LinkedIn"]
Pillar = Literal[
    "manual-processes-revenue-leaks",
    "automation-survival",
    "systems-work-while-sleep",
]

CATEGORIES = (
    "pillar",
    "postType",
    "style",
    "framework",
    "example",
    "hook",
    "profile",
    "technical",
)
IMPORTANCE_LEVELS = ("critical", "high", "medium", "low")
POST_TYPES = (
    "value-bomb-thread",
    "client-story-thread",
    "contrarian-take",
    "pattern-recognition",
    "personal-journey",
    "engagement-question",
    "educational-deep-dive",
)
PLATFORMS = ("X", "LinkedIn")

MetadataValue = Union[str, int, float, bool, List[str]]


class ChunkMetadata(BaseModel):
    """Labels attached to a knowledge chunk."""
    model_config = ConfigDict(populate_by_name=True)

    source: Source
    category: Category
    subcategory: Optional[str] = None
    pillar: Optional[Pillar] = None
    post_type: Optional[PostType] = Field(default=None, alias="postType")
    keywords: List[str] = Field(default_factory=list)
    importance: Importance = "medium"

    @field_validator("keywords")
    @classmethod
    def _normalize_keywords(cls, value: List[str]) -> List[str]:
        seen: List[str] = []
        for keyword in value:
            keyword = keyword.strip().lower()
            if keyword and keyword not in seen:
                seen.append(keyword)
        return seen


class KnowledgeChunk(BaseModel):
    """A labeled, retrievable section of a knowledge document."""
    id: str
    content: str
    metadata: ChunkMetadata
    embedding: Optional[List[float]] = None

    @field_validator("content")
    @classmethod
    def _content_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("chunk content must not be empty")
        return value

    def with_embedding(self, embedding: List[float]) -> "KnowledgeChunk":
        """Return a copy carrying ``embedding``; an indexed chunk is never re-embedded."""
        if self.embedding is not None:
            raise ValueError(f"Chunk {self.id} already has an embedding")
        return self.model_copy(update={"embedding": list(embedding)})


class RAGSearchResult(BaseModel):
    """A single similarity-search hit."""
    id: str
    score: float
    content: str
    metadata: ChunkMetadata


class IndexedRecord(BaseModel):
    """Represents a single stored vector in the local index."""
    vector_id: int
    chunk_id: str
    content: str
    metadata: Dict[str, MetadataValue] = Field(default_factory=dict)


class GenerationContext(BaseModel):
    """Optional caller-supplied steering for a generation request."""
    model_config = ConfigDict(populate_by_name=True)

    topic: Optional[str] = None
    trending_topic: Optional[str] = Field(default=None, alias="trendingTopic")
    technical_concept: Optional[str] = Field(default=None, alias="technicalConcept")

    def has_subject(self) -> bool:
        return any((self.topic, self.trending_topic, self.technical_concept))


class PostGenerationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    post_type: PostType = Field(alias="postType")
    platform: Platform
    context: Optional[GenerationContext] = None


class PreparedGeneration(BaseModel):
    system_prompt: str
    user_prompt: str
    rag_context: str


class ValidationResult(BaseModel):
    is_valid: bool
    issues: List[str] = Field(default_factory=list)


class PostMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    post_type: PostType = Field(alias="postType")
    pillar: Pillar
    platform: Platform
    character_count: int = Field(alias="characterCount")
    tweet_count: Optional[int] = Field(default=None, alias="tweetCount")
    estimated_engagement: str = Field(alias="estimatedEngagement")
    hook_type: str = Field(alias="hookType")


class PostGenerationResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content: str
    metadata: PostMetadata
    validation_issues: List[str] = Field(default_factory=list, alias="validationIssues")


class Manifest(BaseModel):
    """Knowledge base build manifest with metadata."""
    kb_version: str
    knowledge_dir: str
    build_time: str
    embedding_model: str
    embedding_provider: str
    metric: str
    dimension: int
    doc_count: int
    chunk_count: int
    missing_documents: List[str] = Field(default_factory=list)
    chunk_stats: Dict[str, Any] = Field(default_factory=dict)
