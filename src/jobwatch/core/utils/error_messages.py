"""Reduce verbose backend error text to short user-facing messages."""

import re
from typing import Optional

MAX_MESSAGE_LENGTH = 200

QUOTA_MESSAGE = "API quota exceeded. Please try again later or upgrade your plan."
RATE_LIMIT_MESSAGE = "Too many requests. Please wait a moment and try again."
GENERATION_FAILED_PREFIX = "AI generation failed:"
TECHNICAL_ERROR_MESSAGE = (
    "We encountered an issue generating your content. Please try again in a moment."
)
GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again."

_QUOTA_SENTENCE = re.compile(r"You exceeded your current quota[^.]*\.", re.IGNORECASE)
_SENTENCE_END = re.compile(r"[.!?]\s")

# Upstream provider details that should never reach an end user
_TECHNICAL_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"API key",
        r"api.*key",
        r"expired.*key",
        r"renew.*key",
        r"authentication.*failed",
        r"unauthorized",
        r"INVALID_ARGUMENT",
        r"googleapis\.com",
        r"generativelanguage",
        r"API_KEY_INVALID",
    )
]


def normalize_job_error(error: str) -> str:
    """Return a short message for a failed job's error text.

    First match wins: quota exhaustion, rate limiting, an "AI generation
    failed:" prefix with a short first sentence, otherwise truncation to
    200 characters. Never raises.
    """
    if not error:
        return ""

    if "quota" in error.lower():
        match = _QUOTA_SENTENCE.search(error)
        if match and len(match.group(0)) <= MAX_MESSAGE_LENGTH:
            return match.group(0)
        return QUOTA_MESSAGE

    if "rate limit" in error or "Too Many Requests" in error:
        return RATE_LIMIT_MESSAGE

    if GENERATION_FAILED_PREFIX in error:
        after_prefix = error.split(GENERATION_FAILED_PREFIX, 1)[1]
        first_sentence = _SENTENCE_END.split(after_prefix, 1)[0]
        if first_sentence.strip() and len(first_sentence) < MAX_MESSAGE_LENGTH:
            return f"{GENERATION_FAILED_PREFIX} {first_sentence.strip()}"

    if len(error) > MAX_MESSAGE_LENGTH:
        return error[: MAX_MESSAGE_LENGTH - 3] + "..."

    return error


def sanitize_error_message(message: Optional[str]) -> str:
    """Hide technical provider errors (keys, auth, upstream hosts) behind a generic message."""
    if not message:
        return GENERIC_ERROR_MESSAGE
    if any(pattern.search(message) for pattern in _TECHNICAL_PATTERNS):
        return TECHNICAL_ERROR_MESSAGE
    return message
