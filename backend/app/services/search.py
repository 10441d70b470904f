"""
RELEVANCE SEARCH OVER THE STUDY CATALOG

Pipeline:
1. Tokenize: lowercase, split on whitespace/punctuation, drop short words
   and stop words
2. With a category, that category's keyword phrases found in the query go
   first and swallow any generic word they contain
3. No tokens left -> most recent materials
4. Substring pre-filter in the database, then a looser stem pattern if that
   finds nothing
5. Weighted scoring, stable sort, truncate

Weights live in SCORING_WEIGHTS so the ranking policy can be tested on its own.
"""
import re
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from sqlalchemy import String, cast, or_
from sqlalchemy.orm import Session

from app.core.categories import NCLEX_CATEGORIES
from app.models.material import Material

logger = logging.getLogger(__name__)


SCORING_WEIGHTS: Dict[str, int] = {
    "category_exact": 8,   # material is in the requested category
    "title": 5,
    "category_field": 6,
    "topic": 4,            # per matching topic
    "keywords": 4,
    "description": 2,
    "combo_per_match": 2,  # x total match count, only when >1 distinct token matched
}

STOP_WORDS = frozenset({
    "i", "me", "my", "the", "a", "an", "and", "or", "but", "in", "on", "at",
    "to", "for", "of", "with", "by", "as", "is", "are", "was", "were", "be",
    "been", "being", "have", "has", "had", "do", "does", "did", "will", "would",
    "could", "should", "may", "might", "must", "can", "shall", "that", "this",
    "these", "those", "am", "looking", "topics", "currently", "want", "need",
    "like", "about", "some", "any", "help", "study", "learn", "please",
    "material", "materials", "exam", "exams", "paper", "papers", "test", "tests",
    "preparing", "studying", "buy", "purchase", "nclex", "rn", "pn",
    "notes", "topic", "show", "get", "give", "what", "you", "your",
})

MIN_TOKEN_LENGTH = 3

_SPLIT_RE = re.compile(r"[\s.,!?;:()\"']+")


@dataclass
class SearchHit:
    material: Material
    relevance_score: int
    matched_tokens: List[str] = field(default_factory=list)


def extract_tokens(query: str, category: Optional[str] = None) -> List[str]:
    """
    Search terms for a free-text query.

    Examples:
        "cardiac pharmacology" -> ["cardiac", "pharmacology"]
        "I need anxiety and grief notes", "Psychosocial Integrity"
            -> ["anxiety", "grief"]
        "study material for the exam" -> []
    """
    text = (query or "").lower().strip()
    if not text:
        return []

    phrases: List[str] = []
    if category:
        for keyword in NCLEX_CATEGORIES.get(category, []):
            phrase = keyword.lower()
            if phrase in text:
                phrases.append(phrase)

    words = [
        w for w in _SPLIT_RE.split(text)
        if len(w) >= MIN_TOKEN_LENGTH
        and w not in STOP_WORDS
        and not any(w in p or p in w for p in phrases)
    ]

    tokens: List[str] = []
    for token in phrases + words:
        if token not in tokens:
            tokens.append(token)
    return tokens


def stem(token: str) -> str:
    """Shortened form used by the looser retry: drop up to two trailing characters, keep at least four."""
    return token[:max(4, len(token) - 2)]


def score_material(material: Material, tokens: Sequence[str], category: Optional[str] = None) -> SearchHit:
    w = SCORING_WEIGHTS
    score = 0
    matches: Dict[str, int] = {}

    def hit(token: str, points: int, count: int = 1):
        nonlocal score
        score += points * count
        matches[token] = matches.get(token, 0) + count

    material_category = (material.category or "").lower()
    if category and material_category == category.lower():
        score += w["category_exact"]

    title = (material.title or "").lower()
    description = (material.description or "").lower()
    topics = [t.lower() for t in (material.topics or [])]
    keywords = [k.lower() for k in (material.keywords or [])]

    for token in tokens:
        if token in title:
            hit(token, w["title"])
        if token in material_category:
            hit(token, w["category_field"])
        topic_hits = sum(1 for t in topics if token in t)
        if topic_hits:
            hit(token, w["topic"], topic_hits)
        if any(token in k for k in keywords):
            hit(token, w["keywords"])
        if token in description:
            hit(token, w["description"])

    if len(matches) > 1:
        score += w["combo_per_match"] * sum(matches.values())

    return SearchHit(material=material, relevance_score=score, matched_tokens=list(matches))


def _candidates(db: Session, tokens: Sequence[str], category: Optional[str], fetch: int) -> List[Material]:
    conditions = []
    for token in tokens:
        pattern = f"%{token}%"
        conditions.extend([
            Material.title.ilike(pattern),
            Material.category.ilike(pattern),
            cast(Material.topics, String).ilike(pattern),
            cast(Material.keywords, String).ilike(pattern),
            Material.description.ilike(pattern),
        ])
    q = db.query(Material).filter(or_(*conditions))
    if category:
        q = q.filter(Material.category == category)
    return q.order_by(Material.id).limit(fetch).all()


def most_recent(db: Session, category: Optional[str] = None, limit: int = 5) -> List[Material]:
    q = db.query(Material)
    if category:
        q = q.filter(Material.category == category)
    return q.order_by(Material.created_at.desc(), Material.id.desc()).limit(limit).all()


def search(db: Session, query: str, category: Optional[str] = None, limit: int = 10) -> List[SearchHit]:
    """Ranked materials for a query. Ties keep catalog insertion order."""
    tokens = extract_tokens(query, category)
    logger.info(f"[SEARCH] query={query!r} category={category!r} tokens={tokens}")

    if not tokens:
        fallback = most_recent(db, category, limit)
        return [SearchHit(material=m, relevance_score=0) for m in fallback]

    # Candidates are the first 2 x limit matching rows by id, ranked afterwards;
    # a better match beyond that window is not considered.
    results = _candidates(db, tokens, category, limit * 2)
    if not results:
        stems = list(dict.fromkeys(stem(t) for t in tokens))
        if stems != tokens:
            logger.info(f"[SEARCH] No direct matches, retrying with stems {stems}")
            results = _candidates(db, stems, category, limit * 2)
            tokens = stems

    hits = [score_material(m, tokens, category) for m in results]
    hits = [h for h in hits if h.relevance_score > 0]
    # sorted() is stable, equal scores keep id order
    hits = sorted(hits, key=lambda h: h.relevance_score, reverse=True)[:limit]

    logger.info(f"[SEARCH] {len(hits)} result(s)")
    return hits
