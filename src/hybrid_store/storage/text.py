"""
Term-coverage text ranking shared by the storage backends.
"""

from __future__ import annotations

import re

MAX_QUERY_TERMS = 8


def query_terms(query: str, max_terms: int = MAX_QUERY_TERMS) -> list[str]:
    terms = re.findall(r"[a-zA-Z0-9_]{3,}", query.lower())
    unique_terms: list[str] = []
    for term in terms:
        if term not in unique_terms:
            unique_terms.append(term)
        if len(unique_terms) >= max_terms:
            break
    if unique_terms:
        return unique_terms
    fallback = query.strip().lower()
    return [fallback] if fallback else []


def term_coverage(content: str, terms: list[str]) -> float:
    """Fraction of *terms* occurring in *content* (case-insensitive), in ``[0, 1]``."""
    if not terms:
        return 0.0
    haystack = content.lower()
    matched = sum(1 for term in terms if term in haystack)
    return matched / len(terms)
