"""Tests for prompt composition."""

from post_kb.prompts import (
    CHOOSE_OWN_SUBJECT,
    DEFAULT_PERSONA,
    PLATFORM_GUIDANCE,
    POST_TYPE_GUIDANCE,
    PromptBuilder,
    format_post_type_name,
)
from post_kb.schemas import POST_TYPES, GenerationContext

RAG_CONTEXT = "## POST TYPE STRUCTURE AND TEMPLATE\nHook tweet, then numbered tweets."


def test_format_post_type_name():
    """Test display names from post type ids."""
    assert format_post_type_name("value-bomb-thread") == "Value Bomb Thread"
    assert format_post_type_name("educational-deep-dive") == "Educational Deep Dive"


def test_prompts_are_deterministic():
    """Test identical inputs give byte-identical prompts."""
    builder = PromptBuilder()
    first = builder.build_prompt("contrarian-take", "X", RAG_CONTEXT, GenerationContext())
    second = builder.build_prompt("contrarian-take", "X", RAG_CONTEXT, GenerationContext())
    assert first == second


def test_system_prompt_embeds_context_verbatim():
    """Test retrieved context appears unchanged after the persona."""
    system_prompt, _ = PromptBuilder().build_prompt("value-bomb-thread", "X", RAG_CONTEXT)

    assert system_prompt.startswith(DEFAULT_PERSONA)
    assert RAG_CONTEXT in system_prompt
    assert system_prompt.index(RAG_CONTEXT) < system_prompt.index("HUMAN WRITING RULES")
    assert "NO emojis" in system_prompt


def test_context_with_braces_is_not_formatted():
    """Test retrieved text containing format fields is inserted literally."""
    context = "Template: {topic} goes here, {0} and {{braces}}"
    system_prompt, _ = PromptBuilder().build_prompt("contrarian-take", "X", context)
    assert context in system_prompt


def test_user_prompt_names_type_and_platform():
    """Test the request line and structural guidance."""
    _, user_prompt = PromptBuilder().build_prompt("value-bomb-thread", "LinkedIn", RAG_CONTEXT)

    assert user_prompt.startswith("Generate a Value Bomb Thread for LinkedIn.")
    assert POST_TYPE_GUIDANCE["value-bomb-thread"] in user_prompt
    assert PLATFORM_GUIDANCE["LinkedIn"] in user_prompt


def test_user_prompt_without_topic_authorizes_own_subject():
    """Test the model may choose its subject when no topic is given."""
    _, user_prompt = PromptBuilder().build_prompt("pattern-recognition", "X", RAG_CONTEXT)
    assert CHOOSE_OWN_SUBJECT in user_prompt


def test_user_prompt_with_context():
    """Test user context lines replace the free-subject instruction."""
    context = GenerationContext(topic="booking bots", trending_topic="AI agents", technical_concept="rate limiting")
    _, user_prompt = PromptBuilder().build_prompt("educational-deep-dive", "X", RAG_CONTEXT, context)

    assert "Topic: booking bots" in user_prompt
    assert "Trending Topic: AI agents" in user_prompt
    assert "Technical Concept to Explain: rate limiting" in user_prompt
    assert CHOOSE_OWN_SUBJECT not in user_prompt


def test_every_post_type_has_guidance():
    """Test the guidance table covers every post type."""
    assert set(POST_TYPE_GUIDANCE) == set(POST_TYPES)


def test_custom_persona():
    """Test the persona header is configurable."""
    system_prompt = PromptBuilder(persona="You write for a fintech founder.").build_system_prompt(RAG_CONTEXT)
    assert system_prompt.startswith("You write for a fintech founder.")
