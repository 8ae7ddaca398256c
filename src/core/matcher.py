"""Quick-reply matching logic (core domain).

Every eligible candidate is scored by the first strategy in the cascade that
applies to it:

1. exact       normalized message equals the shortcut
2. exact word  shortcut (or each of its words) appears as a message word
3. contains    substring containment in either direction
4. keyword     stopword-filtered keyword overlap
5. fuzzy       best per-word Levenshtein similarity

The best scored candidate wins if it clears ``CONFIDENCE_FLOOR``.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional

from core.models import (
    MATCH_CONTAINS,
    MATCH_EXACT,
    MATCH_FUZZY,
    MATCH_KEYWORD,
    Candidate,
    MatchResult,
)
from core.stopwords import default_stopwords

LOGGER = logging.getLogger(__name__)

EXACT_SCORE = 1.0
EXACT_WORD_SCORE = 0.95
CONTAINS_WEIGHT = 0.85
KEYWORD_WEIGHT = 0.75
FUZZY_WEIGHT = 0.65

KEYWORD_MIN_OVERLAP = 0.4
KEYWORD_MIN_LENGTH = 3
FUZZY_MIN_SIMILARITY = 0.75
FUZZY_MIN_WORD_LENGTH = 3

CONFIDENCE_FLOOR = 0.5

_NON_WORD = re.compile(r"[^\w]")
_NON_WORD_OR_SPACE = re.compile(r"[^\w\s]")


def normalize(text: str) -> str:
    return text.strip().lower()


def tokenize(normalized_text: str) -> List[str]:
    """Split on whitespace and strip non-word characters from each token."""

    return [_NON_WORD.sub("", word) for word in normalized_text.split()]


def extract_keywords(text: str, stopwords: frozenset[str]) -> List[str]:
    """Return keywords: words of 3+ characters that are not stopwords."""

    cleaned = _NON_WORD_OR_SPACE.sub(" ", text.lower())
    return [
        word
        for word in cleaned.split()
        if len(word) >= KEYWORD_MIN_LENGTH and word not in stopwords
    ]


def levenshtein_distance(first: str, second: str) -> int:
    """Classic edit distance with unit insert, delete, and substitute costs."""

    if not first:
        return len(second)
    if not second:
        return len(first)

    previous = list(range(len(second) + 1))
    for i, first_char in enumerate(first, start=1):
        current = [i]
        for j, second_char in enumerate(second, start=1):
            cost = 0 if first_char == second_char else 1
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + cost,
                )
            )
        previous = current
    return previous[-1]


def similarity(first: str, second: str) -> float:
    """Return 1 - distance / longer length, in [0, 1]."""

    longest = max(len(first), len(second))
    if longest == 0:
        return 1.0
    return 1 - levenshtein_distance(first, second) / longest


def _best_word_similarity(message_words: List[str], shortcut_words: List[str]) -> float:
    best = 0.0
    for word in message_words:
        if len(word) < FUZZY_MIN_WORD_LENGTH:
            continue
        for shortcut_word in shortcut_words:
            if len(shortcut_word) < FUZZY_MIN_WORD_LENGTH:
                continue
            best = max(best, similarity(word, shortcut_word))
    return best


def _score_candidate(
    candidate: Candidate,
    message: str,
    message_words: List[str],
    message_keywords: List[str],
    stopwords: frozenset[str],
) -> Optional[MatchResult]:
    shortcut = normalize(candidate.shortcut)
    shortcut_words = tokenize(shortcut)

    if message == shortcut:
        return MatchResult(candidate, EXACT_SCORE, MATCH_EXACT)

    if shortcut in message_words or all(word in message_words for word in shortcut_words):
        return MatchResult(candidate, EXACT_WORD_SCORE, MATCH_EXACT)

    if shortcut in message or message in shortcut:
        ratio = min(len(shortcut), len(message)) / max(len(shortcut), len(message))
        return MatchResult(candidate, CONTAINS_WEIGHT * ratio, MATCH_CONTAINS)

    shortcut_keywords = extract_keywords(shortcut, stopwords)
    shortcut_keyword_set = set(shortcut_keywords)
    shared = [keyword for keyword in message_keywords if keyword in shortcut_keyword_set]
    if shared:
        overlap = len(shared) / max(len(message_keywords), len(shortcut_keywords))
        if overlap >= KEYWORD_MIN_OVERLAP:
            return MatchResult(candidate, KEYWORD_WEIGHT * overlap, MATCH_KEYWORD)

    best_similarity = _best_word_similarity(message_words, shortcut_words)
    if best_similarity >= FUZZY_MIN_SIMILARITY:
        return MatchResult(candidate, FUZZY_WEIGHT * best_similarity, MATCH_FUZZY)

    return None


def is_eligible(candidate: Candidate) -> bool:
    shortcut = candidate.shortcut
    return bool(candidate.active and isinstance(shortcut, str) and shortcut.strip())


def score_candidates(
    message_text: str,
    candidates: Iterable[Candidate],
    stopwords: Optional[frozenset[str]] = None,
) -> List[MatchResult]:
    """Score every eligible candidate, best first.

    Candidates with equal scores keep their input order. No confidence floor
    is applied here; callers that only want a decision use ``find_best_match``.
    """

    if not message_text or not message_text.strip():
        return []

    if stopwords is None:
        stopwords = default_stopwords()

    message = normalize(message_text)
    message_words = tokenize(message)
    message_keywords = extract_keywords(message, stopwords)

    results: List[MatchResult] = []
    for candidate in candidates:
        if not is_eligible(candidate):
            continue
        result = _score_candidate(candidate, message, message_words, message_keywords, stopwords)
        if result is not None:
            results.append(result)

    results.sort(key=lambda result: result.score, reverse=True)
    return results


def find_best_match(
    message_text: str,
    candidates: Iterable[Candidate],
    stopwords: Optional[frozenset[str]] = None,
) -> Optional[MatchResult]:
    """Return the best candidate for the message, or None below the floor."""

    results = score_candidates(message_text, candidates, stopwords)
    if not results:
        return None

    best = results[0]
    if best.score < CONFIDENCE_FLOOR:
        LOGGER.debug(
            "Best match score too low (%.3f) for %r",
            best.score,
            message_text[:50],
        )
        return None

    LOGGER.info(
        "Matched shortcut %r via %s (score %.3f)",
        best.candidate.shortcut,
        best.match_type,
        best.score,
    )
    return best
