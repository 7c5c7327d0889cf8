"""Keyword-overlap duplicate detection for new issue titles.

A new title is split into lower-cased keywords and each existing issue is
scored by the fraction of those keywords found anywhere in its title.
Matching is plain substring containment, so "log" matches inside "login".
Scores are relative to the query's keyword count, not the candidate's.
"""

from typing import Iterable, List

from issuetrack.errors import InvalidRecord
from issuetrack.logging import get_logger
from issuetrack.models import Issue, SimilarityCandidate

logger = get_logger("similarity")

MIN_QUERY_LENGTH = 3
MIN_TOKEN_LENGTH = 3
SIMILARITY_THRESHOLD = 0.4
MAX_CANDIDATES = 3


def should_check_duplicates(title: str) -> bool:
    """Return True if a title is long enough to be worth a duplicate check.

    Args:
        title: Candidate issue title.

    Returns:
        False for empty titles and titles shorter than 3 characters.
    """
    if not title:
        return False
    return len(title.strip()) >= MIN_QUERY_LENGTH


def tokenize_title(title: str) -> List[str]:
    """Split a title into meaningful keywords.

    Args:
        title: Title to tokenize.

    Returns:
        Lower-cased tokens split on single spaces, keeping only tokens
        longer than 2 characters. Duplicates are kept.
    """
    if not title:
        return []
    return [word for word in title.lower().split(" ") if len(word) >= MIN_TOKEN_LENGTH]


def score_title(tokens: List[str], title: str) -> float:
    """Fraction of tokens occurring as substrings of a lower-cased title.

    Args:
        tokens: Query keywords from tokenize_title().
        title: Existing issue title.

    Returns:
        Score from 0.0 to 1.0, or 0.0 when there are no tokens.
    """
    if not tokens:
        return 0.0
    haystack = title.lower()
    matches = sum(1 for token in tokens if token in haystack)
    return matches / len(tokens)


def _title_of(issue: Issue) -> str:
    title = getattr(issue, "title", None)
    if not isinstance(title, str):
        raise InvalidRecord(f"Issue {getattr(issue, 'id', None)!r} has no title")
    return title


def find_similar_issues(
    query: str,
    corpus: Iterable[Issue],
    threshold: float = SIMILARITY_THRESHOLD,
    limit: int = MAX_CANDIDATES,
) -> List[SimilarityCandidate]:
    """Find existing issues that look like duplicates of a new title.

    Args:
        query: Title of the issue about to be created.
        corpus: Existing issues. Not consumed when the query is trivial.
        threshold: Scores must be strictly greater than this to qualify.
        limit: Maximum number of candidates returned.

    Returns:
        Candidates sorted by descending score. Equal scores keep corpus
        order. Empty when nothing qualifies.

    Raises:
        InvalidRecord: If a corpus record has a missing or non-text title.
    """
    if not should_check_duplicates(query):
        return []

    tokens = tokenize_title(query)
    if not tokens:
        return []

    candidates = []
    for issue in corpus:
        score = score_title(tokens, _title_of(issue))
        if score > threshold:
            candidates.append(SimilarityCandidate(issue=issue, score=score))

    # list.sort is stable, so ties keep corpus order
    candidates.sort(key=lambda c: c.score, reverse=True)
    shortlist = candidates[:limit]

    logger.debug(
        "Duplicate check for %r: %d token(s), %d qualifying, %d returned",
        query,
        len(tokens),
        len(candidates),
        len(shortlist),
    )
    return shortlist
