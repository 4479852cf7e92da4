"""System and user prompt composition for post generation."""

from __future__ import annotations

from typing import Dict, Optional, Tuple

from .schemas import GenerationContext

DEFAULT_PERSONA = (
    "You are an expert content generator for a backend engineer and AI automation "
    "specialist who co-founded a small engineering studio. They build booking "
    "systems, payment flows, chatbots and internal automation for growing "
    "businesses, and they write about it from the trenches."
)

REASONING_PHASES = """BEFORE YOU WRITE (think silently, do not output this):
1. Pick ONE concrete engineering situation: a system, a client type, a number that changed.
2. Decide the single takeaway a founder or engineer should remember.
3. Choose the hook from the formulas above that fits that takeaway.
4. Draft, then cut every sentence that does not earn its place."""

STRUCTURAL_FORMULAS = """STRUCTURAL FORMULAS:
- Problem -> cost of the problem -> what we built -> measurable result.
- Myth -> why people believe it -> what actually happens in production -> the fix.
- Before (manual, slow, leaking money) -> after (automated, running overnight)."""

HUMAN_WRITING_RULES = """CRITICAL: WRITE LIKE A HUMAN ON X, NOT AN AI

HUMAN WRITING RULES (NON-NEGOTIABLE):
1. Use SHORT, PUNCHY sentences. Period. Like this.
2. Vary rhythm dramatically: "Short. Very short. Then something longer that flows naturally."
3. Be intentionally imperfect: occasional lowercase starts, missing apostrophes ("Thats" not "That's")
4. Use casual language: "stupid money" "pretty much it"
5. Create emphasis through repetition: "Stop X. Stop Y. Stop Z."
6. Use negation for contrast: "Not luck. Not algorithm magic. Just human psychology."
7. Write fragments for punch: "Life changing." "Zero downtime." "Revenue up 42%."
8. NO emojis.
9. NO hashtags on X."""

FORBIDDEN_PHRASES = """FORBIDDEN PHRASES (never use):
- "leverage", "synergize", "paradigm shift" and any other corporate speak
- "Great question!", "Thanks for sharing", "I appreciate"
- "In today's fast-paced world", "Let's dive in", "game-changer\""""

VOICE_EXAMPLES = """VOICE EXAMPLES:
- "Client was losing 40 bookings a month to missed calls. We added a WhatsApp bot. Took 3 days."
- "Most people think scaling is a server problem. Its usually a query problem."
- "2am. Payment webhook failing silently. Thats how I learned to love idempotency keys.\""""

CONTENT_APPROACH = """CONTENT APPROACH:
1. Use the STYLE and STRUCTURE guidance above as your voice and tone template
2. Draw from your broad technical knowledge (databases, APIs, cloud, DevOps, performance, automation, architecture, security)
3. Generate UNIQUE, VARIED content: different technical angles, client situations and business outcomes
4. Focus on POSITIVE transformation stories, growth journeys and optimization wins, not only crises
5. Be authentic, conversational and value-driven

EVERY POST MUST SOUND LIKE IT WAS WRITTEN BY A REAL HUMAN ENGINEER, NOT AN AI."""

POST_TYPE_GUIDANCE: Dict[str, str] = {
    "value-bomb-thread": (
        "Structure: a hook tweet, then 5-10 numbered tweets (\"Tweet 1:\", \"Tweet 2:\", ...), "
        "each with one actionable insight and at least one specific number, then a closing takeaway."
    ),
    "client-story-thread": (
        "Structure: 6-8 numbered tweets (\"Tweet 1:\", ...). Situation, the leak it caused, "
        "what was built, the measured result (percentages, hours, money), the lesson."
    ),
    "contrarian-take": (
        "Structure: 1-3 sentences. State the common belief, reject it, give the production reality."
    ),
    "pattern-recognition": (
        "Structure: 4-6 sentences. \"Every X I've seen does Y.\" Name the pattern, show why it happens, "
        "say what the exceptions do differently."
    ),
    "personal-journey": (
        "Structure: 5-7 sentences. Open on a concrete moment (time, place, what broke), "
        "then what you did and what you would tell your past self."
    ),
    "engagement-question": (
        "Structure: 2-4 sentences. Share a short, specific observation, then ask one "
        "question engineers or founders can answer from their own experience."
    ),
    "educational-deep-dive": (
        "Structure: 8-10 numbered tweets (\"Tweet 1:\", ...). Teach one technical concept "
        "from first principles with a real example and a concrete before/after number."
    ),
}

PLATFORM_GUIDANCE: Dict[str, str] = {
    "X": (
        "Platform format (X): keep each tweet under 280 characters, no hashtags, "
        "label thread tweets \"Tweet 1:\", \"Tweet 2:\" and so on."
    ),
    "LinkedIn": (
        "Platform format (LinkedIn): one post, short paragraphs separated by blank lines, "
        "first line works as the hook before \"see more\", at most 3 hashtags at the end."
    ),
}

CHOOSE_OWN_SUBJECT = (
    "No topic was given. Choose the subject yourself from your own engineering "
    "experience; pick something specific rather than generic advice."
)

VARIETY_INSTRUCTIONS = (
    "Avoid repetitive themes - explore different domains (databases, APIs, cloud, "
    "automation, performance, architecture, security, DevOps, etc.)\n"
    "Focus on POSITIVE transformation stories and growth wins, not just crisis scenarios."
)


def format_post_type_name(post_type: str) -> str:
    """``value-bomb-thread`` -> ``Value Bomb Thread``."""
    return " ".join(word[:1].upper() + word[1:] for word in post_type.split("-"))


class PromptBuilder:
    """Deterministic prompt composition: same inputs, same prompts."""

    def __init__(self, persona: str = DEFAULT_PERSONA):
        self.persona = persona

    def build_prompt(
        self,
        post_type: str,
        platform: str,
        rag_context: str,
        context: Optional[GenerationContext] = None,
    ) -> Tuple[str, str]:
        """Return ``(system_prompt, user_prompt)``."""
        return self.build_system_prompt(rag_context), self.build_user_prompt(post_type, platform, context)

    def build_system_prompt(self, rag_context: str) -> str:
        # Retrieved text is concatenated, never passed through str.format.
        parts = [
            self.persona,
            rag_context,
            HUMAN_WRITING_RULES,
            REASONING_PHASES,
            STRUCTURAL_FORMULAS,
            FORBIDDEN_PHRASES,
            VOICE_EXAMPLES,
            CONTENT_APPROACH,
        ]
        return "\n\n".join(parts)

    def build_user_prompt(
        self,
        post_type: str,
        platform: str,
        context: Optional[GenerationContext] = None,
    ) -> str:
        name = format_post_type_name(post_type)
        lines = [f"Generate a {name} for {platform}.", ""]

        if context is not None:
            if context.topic:
                lines.append("Topic: " + context.topic)
            if context.trending_topic:
                lines.append("Trending Topic: " + context.trending_topic)
            if context.technical_concept:
                lines.append("Technical Concept to Explain: " + context.technical_concept)
            if context.has_subject():
                lines.append("")

        guidance = POST_TYPE_GUIDANCE.get(post_type)
        if guidance:
            lines.append(guidance)
        platform_guidance = PLATFORM_GUIDANCE.get(platform)
        if platform_guidance:
            lines.append(platform_guidance)

        if context is None or not context.has_subject():
            lines.append("")
            lines.append(CHOOSE_OWN_SUBJECT)

        lines.append("")
        lines.append(
            f"Generate a {name} for {platform} following the style guidelines while being "
            "CREATIVE and VARIED in your technical examples and client scenarios."
        )
        lines.append(VARIETY_INSTRUCTIONS)
        return "\n".join(lines)
