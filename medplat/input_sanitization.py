"""
Input sanitization for free-text request fields.

Topics and domain tags end up inside LLM prompts and log lines, so they are
stripped of markup and control characters and length-capped.
"""
import re
from typing import Iterable, Optional

MAX_TOPIC_LENGTH = 200
MAX_LANGUAGE_LENGTH = 16
MAX_DOMAIN_LENGTH = 64
MAX_DOMAINS = 20

_HTML_TAG = re.compile(r"<[^>]+>")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_WHITESPACE = re.compile(r"\s+")


def sanitize_text(text: Optional[str], max_length: Optional[int] = None) -> str:
    """Strip HTML tags and control characters, collapse whitespace, truncate."""
    if not text:
        return ""
    text = _HTML_TAG.sub("", text)
    text = _CONTROL_CHARS.sub("", text)
    text = _WHITESPACE.sub(" ", text).strip()
    if max_length and len(text) > max_length:
        text = text[:max_length].rstrip()
    return text


def sanitize_topic(text: Optional[str]) -> str:
    return sanitize_text(text, max_length=MAX_TOPIC_LENGTH)


def sanitize_language(text: Optional[str]) -> str:
    return sanitize_text(text, max_length=MAX_LANGUAGE_LENGTH).lower() or "en"


def normalize_domains(domains: Optional[Iterable[str]]) -> list[str]:
    """Lower-case, de-duplicate and cap domain tags, keeping first-seen order."""
    seen: list[str] = []
    for domain in domains or []:
        tag = sanitize_text(str(domain), max_length=MAX_DOMAIN_LENGTH).lower()
        if tag and tag not in seen:
            seen.append(tag)
        if len(seen) >= MAX_DOMAINS:
            break
    return seen
