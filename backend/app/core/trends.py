from typing import List, Optional
from urllib.parse import urlparse

# Freshness window of the search -> initial heat score.
HEAT_SCORES = {
    "d7": 90,
    "w1": 75,
    "m1": 50,
}
DEFAULT_HEAT_SCORE = 30

MIN_KEYWORD_LENGTH = 4


def heat_score_for_window(window: Optional[str]) -> int:
    """
    Initial heat of a trend from the recency window it was found in.

    Fixed at insert time; scores are never recomputed for existing trends.
    """
    return HEAT_SCORES.get((window or "").strip().lower(), DEFAULT_HEAT_SCORE)


def source_from_url(url: str) -> str:
    """Hostname of the url without a leading "www."; the raw url when it has no hostname."""
    hostname = urlparse(url or "").hostname
    if not hostname:
        return url or ""
    return hostname[4:] if hostname.startswith("www.") else hostname


def keywords_from_query(query: str) -> List[str]:
    return [word for word in (query or "").split() if len(word) >= MIN_KEYWORD_LENGTH]
