"""Turn the markdown knowledge documents into labeled knowledge chunks.

Every document is described by a ``DocumentSpec``: which file to read, whether
it must exist, and which literal headings delimit its sections. Each matched
section becomes one ``KnowledgeChunk`` (or several, for sections split into
numbered items or oversized technical sections).
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

from .errors import KnowledgeSourceMissing, MissingSectionError
from .schemas import ChunkMetadata, KnowledgeChunk
from .utils import (
    BACKEND_TERMS,
    DEFAULT_VOCABULARIES,
    STYLE_TERMS,
    extract_keywords,
    extract_section,
    split_large_section,
    split_numbered_items,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SectionSpec:
    """Where a section starts and ends, and how its chunk is labeled."""
    start: str
    end: Optional[str]
    category: str
    subcategory: Optional[str] = None
    pillar: Optional[str] = None
    post_type: Optional[str] = None
    keywords: Tuple[str, ...] = ()
    importance: str = "high"
    split_numbered: bool = False
    min_length: int = 0
    split_over: Optional[int] = None
    max_length: int = 2000


@dataclass(frozen=True)
class DocumentSpec:
    source: str
    filename: str
    id_prefix: str
    required: bool
    sections: Tuple[SectionSpec, ...]
    vocabularies: Dict[str, Sequence[str]] = field(default_factory=lambda: dict(DEFAULT_VOCABULARIES))


def _chained(
    headings: Sequence[Tuple[str, str, str]],
    last_end: Optional[str],
    **common,
) -> Tuple[SectionSpec, ...]:
    """Sections that each run until the next heading in the list."""
    specs = []
    for index, (heading, category, subcategory) in enumerate(headings):
        end = headings[index + 1][0] if index + 1 < len(headings) else last_end
        specs.append(
            SectionSpec(
                start=heading,
                end=end,
                category=category,
                subcategory=subcategory,
                importance="high" if category == "example" else "medium",
                **common,
            )
        )
    return tuple(specs)


PROFILE_CONTEXT = DocumentSpec(
    source="profile-context",
    filename="profileContext.md",
    id_prefix="profile",
    required=False,
    sections=(
        SectionSpec(
            "## Personal Identity", "## Professional Background", "profile",
            subcategory="identity", keywords=("identity", "personal", "brand"), importance="critical",
        ),
        SectionSpec(
            "### Technical Expertise", "### Company Focus", "profile",
            subcategory="expertise", keywords=("expertise", "technical", "backend", "ai", "automation"),
            importance="critical",
        ),
        SectionSpec(
            "## Target Audience", "## Brand Positioning", "profile",
            subcategory="audience", keywords=("audience", "sme", "gcc", "india"), importance="high",
        ),
        SectionSpec(
            "## Brand Positioning", "## Voice and Tone", "profile",
            subcategory="positioning", keywords=("positioning", "brand"), importance="high",
        ),
        SectionSpec(
            "## Voice and Tone", "## Content Themes", "style",
            subcategory="voice", keywords=("voice", "tone", "style", "writing"), importance="critical",
        ),
    ),
)

_POST_TYPE_HEADINGS = (
    ("### 1. VALUE BOMB THREAD", "value-bomb-thread"),
    ("### 2. CLIENT STORY THREAD", "client-story-thread"),
    ("### 3. CONTRARIAN TAKE", "contrarian-take"),
    ("### 4. PATTERN RECOGNITION POST", "pattern-recognition"),
    ("### 5. PERSONAL JOURNEY / WAR STORY", "personal-journey"),
    ("### 6. ENGAGEMENT QUESTION POST", "engagement-question"),
    ("### 7. EDUCATIONAL DEEP-DIVE THREAD", "educational-deep-dive"),
)

POST_GENERATION_KNOWLEDGE = DocumentSpec(
    source="post-generation-knowledge",
    filename="postGenerationKnowledge.md",
    id_prefix="post-gen",
    required=True,
    sections=(
        SectionSpec(
            "## BRAND IDENTITY", "## THREE DIFFERENTIATION PILLARS", "framework",
            subcategory="brand-identity",
            keywords=("brand", "identity", "expertise", "target-audience", "sme", "gcc", "india"),
            importance="critical",
        ),
        SectionSpec(
            "### Pillar 1: Manual Processes = Revenue Leaks", "### Pillar 2:", "pillar",
            pillar="manual-processes-revenue-leaks",
            keywords=("manual", "processes", "revenue", "leaks", "inefficiency", "automation"),
            importance="critical",
        ),
        SectionSpec(
            "### Pillar 2: Automation Isn't Expense, It's Survival", "### Pillar 3:", "pillar",
            pillar="automation-survival",
            keywords=("automation", "survival", "expense", "roi", "competitive", "advantage"),
            importance="critical",
        ),
        SectionSpec(
            "### Pillar 3: Build Systems That Work While You Sleep", "## CONTENT STRATEGY FRAMEWORK", "pillar",
            pillar="systems-work-while-sleep",
            keywords=("systems", "automation", "24/7", "scalability", "freedom", "leverage"),
            importance="critical",
        ),
    )
    + tuple(
        SectionSpec(
            heading,
            _POST_TYPE_HEADINGS[index + 1][0] if index + 1 < len(_POST_TYPE_HEADINGS) else "## WRITING STYLE GUIDELINES",
            "postType",
            post_type=post_type,
            keywords=(post_type.replace("-", " "), "structure", "template", "format"),
            importance="critical",
        )
        for index, (heading, post_type) in enumerate(_POST_TYPE_HEADINGS)
    )
    + (
        SectionSpec(
            "## WRITING STYLE GUIDELINES", "## CLIENT EXAMPLES AND CASE STUDIES", "style",
            subcategory="writing-style",
            keywords=("writing", "style", "tone", "voice", "short", "punchy", "hook"),
            importance="critical",
        ),
        SectionSpec(
            "## CLIENT EXAMPLES AND CASE STUDIES", "## ENGAGEMENT STRATEGY", "example",
            subcategory="client-story", importance="high", split_numbered=True, min_length=100,
        ),
        SectionSpec(
            "## HOOK FORMULAS (CRITICAL)", "## AUTHORITY POSITIONING", "hook",
            subcategory="hook-formulas",
            keywords=("hook", "opening", "engagement", "first-10-words", "attention"),
            importance="critical",
        ),
        SectionSpec(
            "## COMMON MISTAKES TO AVOID", "## METRICS AND OPTIMIZATION", "framework",
            subcategory="mistakes-to-avoid",
            keywords=("mistakes", "avoid", "errors", "pitfalls", "best-practices"),
            importance="high",
        ),
    ),
)

DESIRE_FRAMEWORK = DocumentSpec(
    source="desire-framework",
    filename="OWNING_A_DESIRE_FRAMEWORK.md",
    id_prefix="desire",
    required=True,
    sections=(
        SectionSpec(
            "### Core Principle", "## The Framework Structure", "framework",
            subcategory="core-desire", keywords=("desire", "freedom", "owning", "positioning", "brand"),
            importance="critical",
        ),
        SectionSpec(
            "## Application to the Brand", "## Content Strategy Integration", "framework",
            subcategory="brand-positioning",
            keywords=("freedom", "operational-chaos", "sme", "positioning", "pillars"),
            importance="critical",
        ),
        SectionSpec(
            "## Content Strategy Integration", "## Implementation Rules for Content Generation", "framework",
            subcategory="content-strategy",
            keywords=("freedom", "outcomes", "transformation", "desire", "hook"),
            importance="critical",
        ),
        SectionSpec(
            "## Implementation Rules for Content Generation", "## Integration with Existing Frameworks", "framework",
            subcategory="implementation-rules",
            keywords=("desire-first", "freedom", "emotional", "anchor", "embody"),
            importance="critical",
        ),
        SectionSpec(
            "### Story Angle Examples", "## Implementation Rules for Content Generation", "example",
            subcategory="story-angles", keywords=("freedom", "transformation", "before-after", "outcomes"),
            importance="high",
        ),
    ),
)

BACKEND_ENGINEERING = DocumentSpec(
    source="backend-engineering",
    filename="backendEngineeringKnowledge.md",
    id_prefix="backend",
    required=False,
    vocabularies={"backend": BACKEND_TERMS},
    sections=_chained(
        (
            ("## Database Engineering & Optimization", "technical", "database"),
            ("### Relational Databases (SQL)", "technical", "sql-databases"),
            ("### NoSQL Databases", "technical", "nosql-databases"),
            ("### Database Design Patterns", "technical", "database-design"),
            ("## API Development & Architecture", "technical", "api"),
            ("### RESTful API Design", "technical", "rest-api"),
            ("### GraphQL APIs", "technical", "graphql"),
            ("### gRPC & Protocol Buffers", "technical", "grpc"),
            ("## System Architecture & Design", "technical", "architecture"),
            ("### Microservices Architecture", "technical", "microservices"),
            ("### Message Queues & Streaming", "technical", "message-queues"),
            ("## Performance & Scalability", "technical", "performance"),
            ("### Caching Strategies", "technical", "caching"),
            ("### Load Balancing", "technical", "load-balancing"),
            ("## Cloud Infrastructure", "technical", "cloud"),
            ("## DevOps & CI/CD", "technical", "devops"),
            ("### Monitoring & Observability", "technical", "monitoring"),
            ("## Security & Authentication", "technical", "security"),
            ("## Real-World Implementation Scenarios", "example", "implementation"),
            ("## Performance Optimization Case Studies", "example", "optimization"),
            ("## Common Backend Challenges & Solutions", "example", "challenges"),
        ),
        last_end=None,
        min_length=200,
        split_over=3000,
        max_length=2000,
    ),
)

HUMAN_BEHAVIOUR = DocumentSpec(
    source="profile-context",
    filename="humanBehaviour.md",
    id_prefix="human-behaviour",
    required=False,
    vocabularies={"style": STYLE_TERMS},
    sections=(
        SectionSpec("## Category 1: Short, Punchy Wisdom", "## Category 2:", "style",
                    subcategory="punchy-wisdom", importance="critical", min_length=100),
        SectionSpec("## Category 2: The Hook + Insight Pattern", "## Category 3:", "style",
                    subcategory="hook-insight", importance="critical", min_length=100),
        SectionSpec("## Category 3: Thread Starter / Teaser Pattern", "## Category 4:", "style",
                    subcategory="thread-starter", importance="critical", min_length=100),
        SectionSpec("## Category 4: Technical/Educational (Still Human)", "## Category 5:", "style",
                    subcategory="technical-human", importance="critical", min_length=100),
        SectionSpec("## Category 5: Quote/Reframe Pattern", "## Key Human Writing Patterns", "style",
                    subcategory="quote-reframe", importance="critical", min_length=100),
        SectionSpec("## Key Human Writing Patterns", None, "style",
                    subcategory="human-patterns", importance="critical", min_length=100),
    ),
)

DEFAULT_DOCUMENTS: Tuple[DocumentSpec, ...] = (
    PROFILE_CONTEXT,
    POST_GENERATION_KNOWLEDGE,
    DESIRE_FRAMEWORK,
    BACKEND_ENGINEERING,
    HUMAN_BEHAVIOUR,
)


class KnowledgeChunkProcessor:
    """Parse the knowledge documents of a directory into ``KnowledgeChunk`` objects.

    Args:
        knowledge_dir: Directory holding the markdown documents.
        documents: Document configuration table.
        strict: Raise ``MissingSectionError`` when a configured heading is not
            found, instead of silently skipping that section.
    """

    def __init__(
        self,
        knowledge_dir: Union[str, Path],
        documents: Sequence[DocumentSpec] = DEFAULT_DOCUMENTS,
        strict: bool = False,
    ):
        self.knowledge_dir = Path(knowledge_dir)
        self.documents = tuple(documents)
        self.strict = strict
        self.missing_documents: List[str] = []

    def process_all_knowledge(self) -> List[KnowledgeChunk]:
        """
        Process every configured document into chunks.

        Returns:
            Chunks in document order, then section order.

        Raises:
            KnowledgeSourceMissing: If a required document is absent.
            MissingSectionError: In strict mode, if any heading is absent.
            ValueError: If two chunks end up with the same id.
        """
        chunks: List[KnowledgeChunk] = []
        missing_sections: Dict[str, List[str]] = {}
        self.missing_documents = []

        for spec in self.documents:
            doc_chunks, missing = self.process_document(spec)
            chunks.extend(doc_chunks)
            if missing:
                missing_sections[spec.filename] = missing

        if self.strict and missing_sections:
            raise MissingSectionError(missing_sections)

        seen: Dict[str, int] = Counter(chunk.id for chunk in chunks)
        duplicates = sorted(chunk_id for chunk_id, count in seen.items() if count > 1)
        if duplicates:
            raise ValueError(f"Duplicate chunk ids: {', '.join(duplicates)}")

        logger.info("Processed %d total knowledge chunks", len(chunks))
        return chunks

    def process_document(self, spec: DocumentSpec) -> Tuple[List[KnowledgeChunk], List[str]]:
        """
        Extract the configured sections of a single document.

        Returns:
            (chunks, start headings that were not found)
        """
        path = self.knowledge_dir / spec.filename
        if not path.is_file():
            if spec.required:
                raise KnowledgeSourceMissing(str(path))
            logger.warning("%s not found, skipping", spec.filename)
            self.missing_documents.append(spec.filename)
            return [], []

        content = path.read_text(encoding="utf-8")
        chunks: List[KnowledgeChunk] = []
        missing: List[str] = []

        for section in spec.sections:
            text = extract_section(content, section.start, section.end)
            if text is None:
                logger.debug("Section %r not found in %s", section.start, spec.filename)
                missing.append(section.start)
                continue
            if len(text) < section.min_length:
                continue

            for subcategory, piece in self._pieces(section, text):
                chunks.append(
                    KnowledgeChunk(
                        id=f"{spec.id_prefix}-{len(chunks)}",
                        content=piece,
                        metadata=ChunkMetadata(
                            source=spec.source,
                            category=section.category,
                            subcategory=subcategory,
                            pillar=section.pillar,
                            post_type=section.post_type,
                            keywords=list(section.keywords) or extract_keywords(piece, spec.vocabularies),
                            importance=section.importance,
                        ),
                    )
                )

        logger.info("Extracted %d chunks from %s", len(chunks), spec.filename)
        return chunks, missing

    @staticmethod
    def _pieces(section: SectionSpec, text: str) -> List[Tuple[Optional[str], str]]:
        """Split a section into (subcategory, text) pieces."""
        if section.split_numbered:
            items = split_numbered_items(text, min_length=section.min_length)
            return [(section.subcategory, item) for item in items]

        if section.split_over is not None and len(text) > section.split_over:
            parts = split_large_section(text, section.max_length)
            return [
                (f"{section.subcategory}-{index}" if section.subcategory else None, part)
                for index, part in enumerate(parts, start=1)
            ]

        return [(section.subcategory, text)]


def get_processing_stats(chunks: Sequence[KnowledgeChunk]) -> Dict[str, Dict[str, int]]:
    """Count chunks by source, category and importance."""
    return {
        "total": {"chunks": len(chunks)},
        "by_source": dict(Counter(chunk.metadata.source for chunk in chunks)),
        "by_category": dict(Counter(chunk.metadata.category for chunk in chunks)),
        "by_importance": dict(Counter(chunk.metadata.importance for chunk in chunks)),
    }
