"""Shared fixtures: a deterministic embeddings client and a small knowledge corpus."""

import hashlib
import re
from pathlib import Path
from typing import List

import pytest
from langchain_core.embeddings import Embeddings

from post_kb.embeddings import EmbeddingService
from post_kb.schemas import ChunkMetadata, KnowledgeChunk, RAGSearchResult
from post_kb.vector_store import FaissVectorStore

DIM = 256

REPO_KNOWLEDGE_DIR = Path(__file__).resolve().parent.parent / "knowledge"

_TOKEN_RE = re.compile(r"[a-z0-9]+")


class HashEmbeddings(Embeddings):
    """Bag-of-words vectors: each token increments one md5-hashed slot."""

    def __init__(self, dimension: int = DIM):
        self.dimension = dimension
        self.document_calls: List[List[str]] = []
        self.query_calls: List[str] = []

    def _vector(self, text: str) -> List[float]:
        vector = [0.0] * self.dimension
        vector[0] = 0.01
        for token in _TOKEN_RE.findall(text.lower()):
            slot = int(hashlib.md5(token.encode("utf-8")).hexdigest(), 16) % self.dimension
            vector[slot] += 1.0
        return vector

    def embed_documents(self, texts: List[str]) -> List[List[float]]:
        self.document_calls.append(list(texts))
        return [self._vector(text) for text in texts]

    def embed_query(self, text: str) -> List[float]:
        self.query_calls.append(text)
        return self._vector(text)


class FailingBatchEmbeddings(HashEmbeddings):
    """Embeds normally until the ``fail_on``-th document batch, which raises."""

    def __init__(self, fail_on: int = 2, dimension: int = DIM):
        super().__init__(dimension)
        self.fail_on = fail_on

    def embed_documents(self, texts: List[str]) -> List[List[float]]:
        if len(self.document_calls) + 1 == self.fail_on:
            self.document_calls.append(list(texts))
            raise ConnectionError("provider dropped the connection")
        return super().embed_documents(texts)


POST_GENERATION_DOC = """# Post Generation Knowledge

## BRAND IDENTITY

Backend engineer running an automation studio for SMEs in the GCC.

## THREE DIFFERENTIATION PILLARS

### Pillar 1: Manual Processes = Revenue Leaks

Every manual step leaks money. Missed calls are missed bookings.

### Pillar 2: Automation Isn't Expense, It's Survival

Small teams compete because machines do the repetitive work.

### Pillar 3: Build Systems That Work While You Sleep

Bookings and reminders keep running at 3am.

## CONTENT STRATEGY FRAMEWORK

### 1. VALUE BOMB THREAD

Value bomb thread structure and template: hook tweet, then numbered tweets, one insight per tweet.

### 2. CLIENT STORY THREAD

Situation, leak, build, result.

### 3. CONTRARIAN TAKE

Everyone says X. In production, Y.

### 4. PATTERN RECOGNITION POST

Name the pattern and the exception.

### 5. PERSONAL JOURNEY / WAR STORY

Open on a moment, then the lesson.

### 6. ENGAGEMENT QUESTION POST

One observation, one question.

### 7. EDUCATIONAL DEEP-DIVE THREAD

Teach one concept from first principles.

## WRITING STYLE GUIDELINES

Writing style: authentic voice, short sentences, fragments, no emojis.

## CLIENT EXAMPLES AND CASE STUDIES

1. Restaurant in Dubai: bookings were copied by hand from calls into a spreadsheet. A bot cut no-shows by 38% in 2 months.

2. Clinic in India: reminders were sent by a receptionist every evening. Automated reminders saved 12 hours every week.

## ENGAGEMENT STRATEGY

Reply fast.

## HOOK FORMULAS (CRITICAL)

Hook formulas: "Most founders get this wrong." "2am. Production down."

## AUTHORITY POSITIONING

Show numbers.
"""

DESIRE_DOC = """# Owning a Desire

### Core Principle

People buy freedom from operational chaos, not software.

## The Framework Structure

Desire, obstacle, vehicle, proof.
"""

PROFILE_DOC = """# Profile

## Personal Identity

Engineer turned founder, ten years in payments infrastructure.

## Professional Background

Payments, SaaS, client work.
"""


def write_corpus(directory: Path, include_profile: bool = True) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    (directory / "postGenerationKnowledge.md").write_text(POST_GENERATION_DOC, encoding="utf-8")
    (directory / "OWNING_A_DESIRE_FRAMEWORK.md").write_text(DESIRE_DOC, encoding="utf-8")
    if include_profile:
        (directory / "profileContext.md").write_text(PROFILE_DOC, encoding="utf-8")
    return directory


def make_chunk(chunk_id: str, content: str, category: str = "framework", **metadata) -> KnowledgeChunk:
    return KnowledgeChunk(
        id=chunk_id,
        content=content,
        metadata=ChunkMetadata(source="post-generation-knowledge", category=category, **metadata),
    )


def make_result(chunk_id: str, category: str, score: float, content: str = None) -> RAGSearchResult:
    return RAGSearchResult(
        id=chunk_id,
        score=score,
        content=content or f"content of {chunk_id}",
        metadata=ChunkMetadata(source="post-generation-knowledge", category=category),
    )


@pytest.fixture
def embeddings_client():
    return HashEmbeddings()


@pytest.fixture
def embedding_service(embeddings_client):
    return EmbeddingService(embeddings_client, dimension=DIM, batch_size=4, batch_delay=0)


@pytest.fixture
def knowledge_dir(tmp_path):
    return write_corpus(tmp_path / "knowledge")


@pytest.fixture
def faiss_store():
    return FaissVectorStore(dimension=DIM, ready_interval=0)
