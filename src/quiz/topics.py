"""
Topic keys and topic matching.

Weak topics are tracked as "{year}-{subject}-{topic}" keys. A question
belongs to a weak topic when its topic is a substring of the key.
"""

from __future__ import annotations

import re

_UNIT_PREFIX = re.compile(r"unit\s*\d+\s*:\s*")
_WHITESPACE = re.compile(r"\s+")


def topic_key(year: int, subject: str, topic: str) -> str:
    """Build the weak-topic key for a (year, subject, topic) triple."""
    return f"{year}-{subject}-{topic}"


def key_matches_topic(key: str, topic: str) -> bool:
    """Substring match of a question topic against a weak-topic key."""
    return bool(topic) and topic in key


def matches_any_key(keys: list[str], topic: str) -> bool:
    return any(key_matches_topic(key, topic) for key in keys)


def normalize_topic(topic: str) -> str:
    """Lowercase, drop "Unit N:" prefixes and collapse whitespace."""
    normalized = _UNIT_PREFIX.sub("", topic.lower())
    return _WHITESPACE.sub(" ", normalized).strip()


def is_topic_match(candidate: str, target: str) -> bool:
    """
    Flexible topic comparison used when looking up stored quizzes.

    Matches on equality, on containment after normalization, or when a
    significant word (longer than 3 characters) of one appears in the other.
    """
    if candidate == target:
        return True

    a = normalize_topic(candidate)
    b = normalize_topic(target)
    if not a or not b:
        return False
    if a in b or b in a:
        return True
    return any(len(word) > 3 and word in b for word in a.split(" "))
