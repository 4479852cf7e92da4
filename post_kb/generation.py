"""Post generation: retrieval, prompting, the LLM call and output checks."""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage

from .errors import GenerationError
from .prompts import PromptBuilder
from .rag import RAGService
from .schemas import (
    PostGenerationRequest,
    PostGenerationResponse,
    PostMetadata,
    PreparedGeneration,
    ValidationResult,
)

logger = logging.getLogger(__name__)

THREAD_POST_TYPES = ("value-bomb-thread", "client-story-thread", "educational-deep-dive")
METRIC_POST_TYPES = ("value-bomb-thread", "client-story-thread")
MIN_THREAD_TWEETS = 3

# Astral-plane characters plus the misc symbols / dingbats blocks.
_EMOJI_RE = re.compile("[\U00010000-\U0010FFFF\u2600-\u27BF]")
_METRIC_RE = re.compile(r"\d+%|\d+\s*(hours?|days?|months?|years?)|₹\d+", re.IGNORECASE)
_TWEET_MARKER_RE = re.compile(r"Tweet \d+")
_CLOCK_TIME_RE = re.compile(r"\d+ ?(am|pm)")
_DATA_HOOK_RE = re.compile(r"\d+%|\d+ clients")

CORPORATE_SPEAK = ("leverage", "synergize", "paradigm shift")
AI_PHRASES = ("Great question!", "Thanks for sharing", "I appreciate")

ENGAGEMENT_ESTIMATES: Dict[str, str] = {
    "value-bomb-thread": "High (educational content performs well)",
    "client-story-thread": "Very High (transformation stories resonate)",
    "contrarian-take": "High (sparks debate and shares)",
    "pattern-recognition": "Medium-High (thought leadership)",
    "personal-journey": "Medium (builds connection)",
    "engagement-question": "Medium-High (designed for replies)",
    "educational-deep-dive": "High (valuable technical content)",
}

POST_TYPE_CATALOGUE: List[Dict[str, str]] = [
    {
        "id": "value-bomb-thread",
        "name": "Value Bomb Thread",
        "description": "Educational thread packed with actionable insights (5-10 tweets)",
        "estimated_time": "2-3 min",
    },
    {
        "id": "client-story-thread",
        "name": "Client Success Story",
        "description": "Transformation narrative with real results (6-8 tweets)",
        "estimated_time": "1-2 min",
    },
    {
        "id": "contrarian-take",
        "name": "Contrarian Take",
        "description": "Challenge common beliefs (1-3 sentences)",
        "estimated_time": "30 sec",
    },
    {
        "id": "pattern-recognition",
        "name": "Pattern Recognition",
        "description": "Show expertise through identifying patterns (4-6 sentences)",
        "estimated_time": "1 min",
    },
    {
        "id": "personal-journey",
        "name": "War Story",
        "description": "Personal experience and lessons learned (5-7 sentences)",
        "estimated_time": "1-2 min",
    },
    {
        "id": "engagement-question",
        "name": "Engagement Question",
        "description": "Spark conversation and build community (2-4 sentences)",
        "estimated_time": "30 sec",
    },
    {
        "id": "educational-deep-dive",
        "name": "Educational Thread",
        "description": "Deep technical teaching with examples (8-10 tweets)",
        "estimated_time": "3-4 min",
    },
]


def list_post_types() -> List[Dict[str, str]]:
    """Catalogue of supported post types with display names."""
    return [dict(entry) for entry in POST_TYPE_CATALOGUE]


def validate_content(content: str, post_type: str) -> ValidationResult:
    """
    Advisory lint of generated text.

    Threads (``THREAD_POST_TYPES``) must carry at least ``MIN_THREAD_TWEETS``
    "Tweet N" lines. ``educational-deep-dive`` is written as a thread, so it
    is checked as one even though its id does not contain "thread".

    Issues are returned, never raised; the caller decides whether to show them.
    """
    issues: List[str] = []
    lowered = content.lower()

    if _EMOJI_RE.search(content):
        issues.append("Contains emojis (forbidden)")

    if any(term in lowered for term in CORPORATE_SPEAK):
        issues.append("Contains corporate speak")

    if any(phrase in content for phrase in AI_PHRASES):
        issues.append("Contains AI-sounding phrases")

    if post_type in METRIC_POST_TYPES and not _METRIC_RE.search(content):
        issues.append("Missing specific numbers/metrics")

    if post_type in THREAD_POST_TYPES:
        tweets = [line for line in content.splitlines() if line.strip().startswith("Tweet")]
        if len(tweets) < MIN_THREAD_TWEETS:
            issues.append(f"Thread too short (needs at least {MIN_THREAD_TWEETS} tweets)")

    return ValidationResult(is_valid=not issues, issues=issues)


def _detect_pillar(lowered: str) -> str:
    if "automation" in lowered and ("survival" in lowered or "expense" in lowered):
        return "automation-survival"
    if "system" in lowered and ("sleep" in lowered or "24/7" in lowered):
        return "systems-work-while-sleep"
    return "manual-processes-revenue-leaks"


def _detect_hook(first_line: str) -> str:
    if "most" in first_line and "wrong" in first_line:
        return "counterintuitive"
    if _CLOCK_TIME_RE.search(first_line):
        return "story-opening"
    if "every" in first_line or "pattern" in first_line:
        return "pattern-recognition"
    if _DATA_HOOK_RE.search(first_line):
        return "data-results"
    return "problem-statement"


def extract_metadata(content: str, post_type: str, platform: str) -> PostMetadata:
    """
    Heuristic classification of generated text; no external calls.

    ``tweet_count`` is set for every type in ``THREAD_POST_TYPES``, which
    includes ``educational-deep-dive``, and is None for single posts.
    """
    first_line = next((line for line in content.splitlines() if line.strip()), "").lower()
    tweet_count = len(_TWEET_MARKER_RE.findall(content)) if post_type in THREAD_POST_TYPES else None

    return PostMetadata(
        post_type=post_type,
        pillar=_detect_pillar(content.lower()),
        platform=platform,
        character_count=len(content),
        tweet_count=tweet_count,
        estimated_engagement=ENGAGEMENT_ESTIMATES.get(post_type, "Medium"),
        hook_type=_detect_hook(first_line),
    )


class PostGenerationService:
    """
    Sequences retrieval, prompt building and (optionally) the LLM call.

    Args:
        rag_service: Retrieval orchestrator.
        prompt_builder: Prompt composer (default ``PromptBuilder()``).
        llm: LangChain chat model; required only by ``generate``.
    """

    def __init__(
        self,
        rag_service: RAGService,
        prompt_builder: Optional[PromptBuilder] = None,
        llm: Optional[BaseChatModel] = None,
    ):
        self.rag_service = rag_service
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.llm = llm

    def prepare_generation(self, request: PostGenerationRequest) -> PreparedGeneration:
        """Retrieve context and build prompts without calling the LLM."""
        rag_context = self.rag_service.retrieve_context(request.post_type, request.context)
        system_prompt, user_prompt = self.prompt_builder.build_prompt(
            request.post_type,
            request.platform,
            rag_context,
            request.context,
        )
        return PreparedGeneration(system_prompt=system_prompt, user_prompt=user_prompt, rag_context=rag_context)

    def generate(self, request: PostGenerationRequest) -> PostGenerationResponse:
        """
        Generate a post end to end.

        Returns:
            Generated content, metadata and advisory validation issues.

        Raises:
            GenerationError: If no LLM is configured, or it fails or returns nothing.
            EmbeddingError, VectorStoreError: If retrieval fails.
        """
        if self.llm is None:
            raise GenerationError("No chat model configured for generation")

        prepared = self.prepare_generation(request)
        messages = [SystemMessage(content=prepared.system_prompt), HumanMessage(content=prepared.user_prompt)]

        try:
            reply = self.llm.invoke(messages)
        except Exception as exc:
            raise GenerationError(f"Post generation failed: {exc}") from exc

        content = reply.content if isinstance(reply.content, str) else ""
        content = content.strip()
        if not content:
            raise GenerationError("Chat model returned empty content")

        validation = self.validate_content(content, request.post_type)
        if validation.issues:
            logger.info("Generated %s has issues: %s", request.post_type, "; ".join(validation.issues))

        return PostGenerationResponse(
            content=content,
            metadata=self.extract_metadata(content, request.post_type, request.platform),
            validation_issues=validation.issues,
        )

    def validate_content(self, content: str, post_type: str) -> ValidationResult:
        return validate_content(content, post_type)

    def extract_metadata(self, content: str, post_type: str, platform: str) -> PostMetadata:
        return extract_metadata(content, post_type, platform)

    def list_post_types(self) -> List[Dict[str, str]]:
        return list_post_types()
