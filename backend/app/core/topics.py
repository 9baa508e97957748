import re
from typing import Iterable, Optional, Set, TypeVar

# Tokens shorter than this ("de", "con", "los") never count towards a match.
MIN_TOKEN_LENGTH = 4

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")

T = TypeVar("T")


def normalize_topic(text: str) -> str:
    """Lowercase and drop everything that is not an ASCII letter, digit or whitespace."""
    return _NON_ALNUM.sub("", (text or "").lower())


def significant_tokens(text: str) -> Set[str]:
    """
    Returns the set of tokens of a topic that take part in similarity matching.

    Args:
        text (str): A free-text learning topic.

    Returns:
        Set[str]: Normalized whitespace tokens longer than three characters.
    """
    return {word for word in normalize_topic(text).split() if len(word) >= MIN_TOKEN_LENGTH}


def topics_are_similar(topic_a: str, topic_b: str) -> bool:
    """
    Decides whether two topics describe the same learning subject.

    Two topics match when they share at least two significant tokens, or when
    the shorter one has at most two significant tokens and they share one
    (so that short topics like "React hooks" can still match).
    """
    words_a = significant_tokens(topic_a)
    words_b = significant_tokens(topic_b)
    overlap = len(words_a & words_b)
    smaller = min(len(words_a), len(words_b))
    return overlap >= 2 or (smaller <= 2 and overlap >= 1)


def find_similar(topic: str, candidates: Iterable[T], key=lambda c: c.topic) -> Optional[T]:
    """
    Returns the first candidate whose topic matches, or None.

    Candidates are expected in recency order; ties resolve to the first match.
    """
    for candidate in candidates:
        if topics_are_similar(topic, key(candidate)):
            return candidate
    return None
