"""
Catalog Matcher

Finds the catalog entry a free-text product reference points at.

DESIGN DECISION: The similarity score is a crude token-overlap heuristic,
not an edit distance. It is cheap, explainable to a seller ("fone" finds
"fone bluetooth"), and the staged lookup below means the score is only
consulted once the cheap exact and prefix checks have failed.

Known quirk kept as observed: the +0.5 containment bonus is not scaled by
length, so a short query can score high against a long name through the
bonus alone.
"""

from typing import Optional, Sequence

import structlog

from ledger_assistant.models.ledger import CatalogEntry, MatchCandidate


logger = structlog.get_logger(__name__)

DEFAULT_MATCH_THRESHOLD = 0.6
DEFAULT_SUGGESTION_THRESHOLD = 0.3
DEFAULT_MAX_SUGGESTIONS = 3

EXACT_TOKEN_WEIGHT = 1.0
PARTIAL_TOKEN_WEIGHT = 0.7
CONTAINMENT_BONUS = 0.5


def normalize(text: Optional[str]) -> str:
    """Lower-case and trim. Accents are kept."""
    return (text or "").lower().strip()


def _tokens(text: str) -> list[str]:
    return [t for t in text.split() if len(t) > 1]


def similarity(name: str, query: str) -> float:
    """
    Score how well `query` describes `name`, in [0, 1].

    Both arguments are expected to be normalized already.

    - every query token equal to a name token adds 1.0
    - otherwise, a query token that contains or is contained in a name
      token adds 0.7
    - either full string containing the other adds a flat 0.5
    - the sum is divided by the larger token count and capped at 1
    """
    name_tokens = _tokens(name)
    query_tokens = _tokens(query)
    if not name_tokens or not query_tokens:
        return 0.0

    accumulator = 0.0
    for q in query_tokens:
        if q in name_tokens:
            accumulator += EXACT_TOKEN_WEIGHT
        elif any(q in n or n in q for n in name_tokens):
            accumulator += PARTIAL_TOKEN_WEIGHT

    if query in name or name in query:
        accumulator += CONTAINMENT_BONUS

    return min(1.0, accumulator / max(len(name_tokens), len(query_tokens)))


def score_catalog(
    catalog: Sequence[CatalogEntry],
    query: str,
    threshold: float,
) -> list[MatchCandidate]:
    """
    Score every entry and keep those strictly above `threshold`.

    Highest score first. sorted() is stable, so equal scores keep
    catalog order.
    """
    search = normalize(query)
    candidates = []
    for entry in catalog:
        score = similarity(normalize(entry.name), search)
        if score > threshold:
            candidates.append(MatchCandidate(entry=entry, score=score))
    return sorted(candidates, key=lambda c: c.score, reverse=True)


def match(
    catalog: Sequence[CatalogEntry],
    query: Optional[str],
    threshold: float = DEFAULT_MATCH_THRESHOLD,
) -> Optional[CatalogEntry]:
    """
    Find the product a query refers to, or None.

    Stages, first hit wins:
    1. exact normalized name
    2. either string is a prefix of the other
    3. best similarity score at or above the threshold
    4. any query word longer than 2 characters found inside a name
    """
    search = normalize(query)
    if not search or not catalog:
        return None

    for entry in catalog:
        if normalize(entry.name) == search:
            logger.debug("catalog_match", stage="exact", product=entry.name)
            return entry

    for entry in catalog:
        name = normalize(entry.name)
        if name.startswith(search) or search.startswith(name):
            logger.debug("catalog_match", stage="prefix", product=entry.name)
            return entry

    scored = [
        c for c in score_catalog(catalog, search, 0.0)
        if c.score >= threshold
    ]
    if scored:
        best = scored[0]
        logger.debug(
            "catalog_match",
            stage="score",
            product=best.entry.name,
            score=round(best.score, 3),
        )
        return best.entry

    words = [w for w in search.split() if len(w) > 2]
    for entry in catalog:
        name = normalize(entry.name)
        if any(w in name for w in words):
            logger.debug("catalog_match", stage="keyword", product=entry.name)
            return entry

    logger.debug("catalog_no_match", query=search, catalog_size=len(catalog))
    return None


def suggest(
    catalog: Sequence[CatalogEntry],
    query: Optional[str],
    threshold: float = DEFAULT_SUGGESTION_THRESHOLD,
    limit: int = DEFAULT_MAX_SUGGESTIONS,
) -> list[MatchCandidate]:
    """Up to `limit` alternatives scoring strictly above `threshold`."""
    search = normalize(query)
    if not search:
        return []
    return score_catalog(catalog, search, threshold)[:limit]
