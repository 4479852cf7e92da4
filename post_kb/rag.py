"""Turn a generation request into a compact, prioritized knowledge block.

Retrieval asks the index for *how to write* a post type (structure, voice,
hooks) rather than for subject-matter facts, so the model stays free to pick
its own subject while keeping the brand's tone.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .embeddings import EmbeddingService
from .schemas import GenerationContext, RAGSearchResult
from .vector_store import VectorStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContextSection:
    """One slot of the context block, filled from a single chunk category."""
    category: str
    heading: str
    max_chunks: int = 1


CONTEXT_SECTIONS = (
    ContextSection("postType", "## POST TYPE STRUCTURE AND TEMPLATE"),
    ContextSection("style", "## AUTHENTIC VOICE AND STYLE PATTERNS"),
    ContextSection("hook", "## HOOK FORMULA"),
)

DIVERSITY_INSTRUCTION = (
    "## CONTENT VARIETY\n"
    "Use the guidance above for structure and voice only. Pick a fresh subject "
    "from your own engineering knowledge (databases, APIs, cloud, automation, "
    "performance, architecture, security, DevOps) and avoid repeating the same "
    "client story or technology twice in a row."
)

FALLBACK_CONTEXT = (
    "## NO KNOWLEDGE BASE CONTEXT AVAILABLE\n"
    "No style or structure guidance was retrieved for this request. Rely on "
    "your own voice and expertise: write like a practising backend engineer, "
    "short sentences, concrete numbers, no corporate speak."
)

SECTION_SEPARATOR = "\n\n---\n\n"


class RAGService:
    """
    Retrieval orchestrator.

    Args:
        embedding_service: Embeds the synthetic query.
        vector_store: Index searched for knowledge chunks.
        top_k: Number of chunks retrieved per request.
        sections: Ordered context slots; earlier slots come first.
        diversity_instruction: Static paragraph appended to every context.
        max_chunk_chars: Characters kept from each selected chunk.
    """

    def __init__(
        self,
        embedding_service: EmbeddingService,
        vector_store: VectorStore,
        top_k: int = 3,
        sections: Sequence[ContextSection] = CONTEXT_SECTIONS,
        diversity_instruction: str = DIVERSITY_INSTRUCTION,
        max_chunk_chars: int = 2000,
    ):
        self.embedding_service = embedding_service
        self.vector_store = vector_store
        self.top_k = top_k
        self.sections = tuple(sections)
        self.diversity_instruction = diversity_instruction
        self.max_chunk_chars = max_chunk_chars

    def build_semantic_query(self, post_type: str, context: Optional[GenerationContext] = None) -> str:
        parts = [f"{post_type.replace('-', ' ')} post structure, template and writing style guidance"]

        if context is not None:
            if context.topic:
                parts.append(f"about {context.topic}")
            if context.trending_topic:
                parts.append(f"related to {context.trending_topic}")
            if context.technical_concept:
                parts.append(f"explaining {context.technical_concept}")

        parts.append("with authentic voice patterns and hook formulas")
        return " ".join(parts)

    @staticmethod
    def group_by_category(results: Sequence[RAGSearchResult]) -> Dict[str, List[RAGSearchResult]]:
        grouped: Dict[str, List[RAGSearchResult]] = {}
        for result in results:
            grouped.setdefault(result.metadata.category, []).append(result)
        return grouped

    def max_context_chars(self) -> int:
        """Upper bound on the length of any ``build_context`` output."""
        slots = [
            len(section.heading) + 1 + self.max_chunk_chars
            for section in self.sections
            for _ in range(section.max_chunks)
        ]
        separators = len(SECTION_SEPARATOR) * max(len(slots), 1)
        body = max(sum(slots), len(FALLBACK_CONTEXT))
        return body + separators + len(self.diversity_instruction)

    def build_context(self, results: Sequence[RAGSearchResult]) -> str:
        """
        Compress search results into the context block.

        Each configured section takes its best-scoring chunk(s) of the
        matching category; everything else is dropped. When no section can
        be filled the fallback text is used instead.
        """
        grouped = self.group_by_category(results)
        blocks: List[str] = []

        for section in self.sections:
            candidates = sorted(grouped.get(section.category, []), key=lambda r: r.score, reverse=True)
            for result in candidates[: section.max_chunks]:
                blocks.append(f"{section.heading}\n{result.content[: self.max_chunk_chars].strip()}")

        if not blocks:
            blocks.append(FALLBACK_CONTEXT)
        blocks.append(self.diversity_instruction)
        return SECTION_SEPARATOR.join(blocks)

    def search(
        self,
        post_type: str,
        context: Optional[GenerationContext] = None,
        filter: Optional[Mapping[str, Any]] = None,
    ) -> List[RAGSearchResult]:
        """Embed the synthetic query and return the raw top-k hits."""
        query = self.build_semantic_query(post_type, context)
        logger.debug("RAG query: %s", query)

        query_vector = self.embedding_service.embed_query(query)
        results = self.vector_store.search_similar(query_vector, top_k=self.top_k, filter=filter)

        for result in results:
            logger.debug("Retrieved %s (%s, score=%.3f)", result.id, result.metadata.category, result.score)
        return results

    def retrieve_context(
        self,
        post_type: str,
        context: Optional[GenerationContext] = None,
        filter: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """
        Retrieve the knowledge block for a post type.

        Zero hits is not an error: the fallback text is returned instead.

        Raises:
            EmbeddingError: If the query cannot be embedded.
            VectorStoreError: If the index cannot be searched.
        """
        results = self.search(post_type, context, filter=filter)
        if not results:
            logger.info("No knowledge retrieved for %s, using fallback context", post_type)
        return self.build_context(results)

    def get_retrieval_stats(self, results: Sequence[RAGSearchResult]) -> Dict[str, Any]:
        top = results[0] if results else None
        return {
            "total_results": len(results),
            "avg_score": sum(r.score for r in results) / len(results) if results else 0.0,
            "categories": dict(Counter(r.metadata.category for r in results)),
            "top_result": {
                "id": top.id,
                "category": top.metadata.category,
                "score": top.score,
                "preview": top.content[:100],
            } if top else None,
        }
