"""
Text normalization helpers.

normalize_text() case-folds for query compilation, lexical scoring and
tokenizing; collapse_whitespace() keeps case and is what cache keys and
encoders see.
"""
import re
from typing import List

TOKEN_PATTERN = re.compile(r"[a-z0-9]+(?:['\-][a-z0-9]+)*")
WHITESPACE_PATTERN = re.compile(r"\s+")

MIN_TERM_LENGTH = 3

STOPWORDS = frozenset({
    "and", "are", "but", "can", "does", "for", "from", "has", "have", "how",
    "into", "its", "not", "of", "on", "or", "that", "the", "their", "there",
    "these", "this", "those", "was", "were", "what", "when", "where", "which",
    "who", "why", "will", "with", "within", "without", "about", "between",
    "among", "than", "then", "they", "them", "our", "your", "via", "upon",
})


def collapse_whitespace(text: str) -> str:
    return WHITESPACE_PATTERN.sub(" ", text or "").strip()


def normalize_text(text: str) -> str:
    """Case-fold and collapse whitespace."""
    return collapse_whitespace(text).casefold()


def tokenize(text: str) -> List[str]:
    return TOKEN_PATTERN.findall(normalize_text(text))


def query_terms(query: str) -> List[str]:
    """
    Distinct content terms of a query, in first-seen order.
    
    Drops stopwords and tokens shorter than MIN_TERM_LENGTH.
    """
    seen = set()
    terms = []
    for token in tokenize(query):
        if len(token) < MIN_TERM_LENGTH or token in STOPWORDS or token in seen:
            continue
        seen.add(token)
        terms.append(token)
    return terms


def word_count(text: str) -> int:
    return len(text.split()) if text else 0
