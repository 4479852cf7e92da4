"""Utility functions for knowledge processing."""

from __future__ import annotations

import hashlib
import os
import re
from typing import Dict, Iterable, List, Optional, Sequence


def sha1_file(path: str) -> str:
    """Calculate SHA1 hash of a file."""
    digest = hashlib.sha1()
    with open(path, "rb") as handle:
        for chunk in iter(lambda: handle.read(1024 * 1024), b""):
            digest.update(chunk)
    return digest.hexdigest()


def safe_relpath(path: str, base: str) -> str:
    """Get relative path, falling back to absolute on error."""
    try:
        return os.path.relpath(path, base)
    except ValueError:
        return path


def extract_section(content: str, start_heading: str, end_heading: Optional[str]) -> Optional[str]:
    """
    Extract the text between two literal headings.

    The start heading line is included. The section runs up to the first
    occurrence of ``end_heading`` after the start heading, or to the end of
    the document when ``end_heading`` is None or never appears.

    Returns:
        Trimmed section text, or None when the start heading is absent.
    """
    start = content.find(start_heading)
    if start == -1:
        return None

    if end_heading is None:
        return content[start:].strip()

    end = content.find(end_heading, start + len(start_heading))
    if end == -1:
        return content[start:].strip()
    return content[start:end].strip()


def split_large_section(text: str, max_len: int) -> List[str]:
    """Split text on line boundaries into pieces of at most ``max_len`` characters.

    A line that would overflow the current piece starts the next one. A single
    line longer than ``max_len`` is kept whole.
    """
    if max_len <= 0 or len(text) <= max_len:
        return [text]

    pieces: List[str] = []
    current = ""
    for line in text.split("\n"):
        if current.strip() and len(current) + len(line) > max_len:
            pieces.append(current.strip())
            current = line + "\n"
        else:
            current += line + "\n"

    if current.strip():
        pieces.append(current.strip())
    return [piece for piece in pieces if piece]


def iter_batches(items: Sequence, batch_size: int) -> Iterable[List]:
    """Yield batches of items."""
    for start in range(0, len(items), batch_size):
        yield list(items[start : start + batch_size])


# Numbered list items at the start of a line: "1. ", "2) "
_NUMBERED_ITEM_RE = re.compile(r"(?m)^[ \t]*\d{1,2}[.)][ \t]+")


def split_numbered_items(text: str, min_length: int = 0) -> List[str]:
    """
    Split text containing a numbered list into one string per item.

    Text before the first item is kept as its own fragment. Fragments shorter
    than ``min_length`` characters (headers, blank lines) are dropped.
    """
    matches = list(_NUMBERED_ITEM_RE.finditer(text))
    if not matches:
        items = [text.strip()]
    else:
        items = []
        prefix = text[: matches[0].start()].strip()
        if prefix:
            items.append(prefix)
        for index, match in enumerate(matches):
            end = matches[index + 1].start() if index + 1 < len(matches) else len(text)
            item = text[match.start() : end].strip()
            if item:
                items.append(item)

    return [item for item in items if len(item) >= min_length]


TECHNICAL_TERMS = (
    "database", "api", "redis", "postgresql", "nodejs", "laravel",
    "caching", "automation", "chatbot", "booking", "payment",
    "performance", "optimization", "scaling", "rate-limiting",
)
BUSINESS_TERMS = (
    "revenue", "roi", "cost", "savings", "growth", "efficiency",
    "manual", "automated", "freedom", "time", "scalability",
)
GEOGRAPHIC_TERMS = (
    "dubai", "gcc", "india", "uae", "saudi", "restaurant", "fintech", "ecommerce",
)
BACKEND_TERMS = (
    "postgresql", "mysql", "mongodb", "redis", "dynamodb", "cassandra",
    "indexing", "query optimization", "sql", "nosql", "database",
    "rest", "graphql", "grpc", "api", "webhook", "endpoint", "jwt",
    "microservices", "monolith", "serverless", "architecture",
    "event-driven", "message queue", "kafka", "rabbitmq",
    "caching", "cdn", "load balancing", "scaling", "performance",
    "latency", "throughput", "aws", "azure", "gcp", "cloud", "lambda",
    "kubernetes", "docker", "container", "ci/cd", "github actions",
    "deployment", "monitoring", "observability", "prometheus", "grafana",
    "security", "encryption", "oauth", "authentication", "authorization",
    "rbac", "tls",
)
STYLE_TERMS = (
    "human", "authentic", "casual", "conversational", "punchy",
    "lowercase", "fragments", "rhythm", "imperfection", "hook", "thread",
    "teaser", "pattern", "style", "voice", "short sentences",
    "repetition", "emphasis", "natural",
)


DEFAULT_VOCABULARIES: Dict[str, Sequence[str]] = {
    "technical": TECHNICAL_TERMS,
    "business": BUSINESS_TERMS,
    "geographic": GEOGRAPHIC_TERMS,
}


def extract_keywords(
    text: str,
    vocabularies: Optional[Dict[str, Sequence[str]]] = None,
) -> List[str]:
    """Collect vocabulary terms that occur in ``text`` (substring match, lowercase)."""
    lowered = text.lower()
    found: List[str] = []
    for terms in (vocabularies or DEFAULT_VOCABULARIES).values():
        for term in terms:
            if term in lowered and term not in found:
                found.append(term)
    return found
