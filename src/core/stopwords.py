"""Keyword stoplist loading.

The stoplist is a plain text data file so it can be extended (more languages,
slang spellings) without touching the scoring code.
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Iterable, Optional

DEFAULT_STOPWORDS_PATH = os.path.join(os.path.dirname(__file__), "data", "stopwords.txt")


def parse_stopwords(lines: Iterable[str]) -> frozenset[str]:
    """Return lower-cased words, skipping blanks and # comments."""

    words: set[str] = set()
    for line in lines:
        word = line.strip().lower()
        if not word or word.startswith("#"):
            continue
        words.add(word)
    return frozenset(words)


def load_stopwords(path: Optional[str] = None) -> frozenset[str]:
    """Load a stoplist file, defaulting to the bundled English/Urdu list."""

    path = path or DEFAULT_STOPWORDS_PATH
    if not os.path.exists(path):
        raise FileNotFoundError(f"Stopwords file not found: {path}")

    with open(path, "r", encoding="utf-8") as handle:
        return parse_stopwords(handle)


@lru_cache(maxsize=1)
def default_stopwords() -> frozenset[str]:
    return load_stopwords(DEFAULT_STOPWORDS_PATH)
