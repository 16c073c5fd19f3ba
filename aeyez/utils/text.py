"""
Text helpers shared by the claim extractor and the scoring engine.

All functions are pure and deterministic.
"""

import math
import re

from aeyez.config.constants import CHARS_PER_TOKEN

SENTENCE_BOUNDARY_PATTERN = re.compile(r"[.!?]+")
PARAGRAPH_BOUNDARY_PATTERN = re.compile(r"\n\s*\n")
CODE_FENCE_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


def count_tokens(text: str) -> int:
    """
    Approximate the token count of text as ceil(len / 4).

    Used wherever a backend does not report usage and for the extractor's
    oversized-chunk guard.

    Examples:
        >>> count_tokens("")
        0
        >>> count_tokens("hello")
        2
    """
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def normalize_domain(domain: str) -> str:
    """
    Normalize a site domain for lexical matching.

    Lowercases, strips surrounding whitespace, any http(s) scheme, a leading
    "www." and trailing slashes.

    Examples:
        >>> normalize_domain("https://www.Example.com/")
        'example.com'
    """
    normalized = domain.strip().lower()
    normalized = re.sub(r"^https?://", "", normalized)
    if normalized.startswith("www."):
        normalized = normalized[len("www.") :]
    return normalized.rstrip("/")


def strip_code_fences(text: str) -> str:
    """
    Return the body of the first ``` or ```json fenced block, or the trimmed text.

    Examples:
        >>> strip_code_fences('```json\\n[1, 2]\\n```')
        '[1, 2]'
        >>> strip_code_fences('  [1]  ')
        '[1]'
    """
    match = CODE_FENCE_PATTERN.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def split_sentences(text: str, min_length: int = 0) -> list[str]:
    """
    Split text on runs of '.', '!' and '?' and return trimmed sentences.

    Sentences shorter than min_length characters (after trimming) are dropped.
    """
    sentences = (s.strip() for s in SENTENCE_BOUNDARY_PATTERN.split(text))
    return [s for s in sentences if s and len(s) >= min_length]


def split_paragraphs(text: str) -> list[str]:
    """Split text on blank lines and return the non-empty trimmed segments."""
    segments = (s.strip() for s in PARAGRAPH_BOUNDARY_PATTERN.split(text))
    return [s for s in segments if s]
