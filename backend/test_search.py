"""Relevance search: tokenizer, scoring weights, fallbacks and ranking."""
import pytest

from app.models.material import Material
from app.services.search import (
    SCORING_WEIGHTS,
    extract_tokens,
    score_material,
    search,
    stem,
)

PHYS = "Physiological Integrity"
PSYCH = "Psychosocial Integrity"
SAFE = "Safe and Effective Care Environment"
HEALTH = "Health Promotion and Maintenance"


@pytest.fixture
def catalog(add_material):
    return [
        add_material("Cardiac Pharmacology Review", ["cardiac disorders", "pharmacology"], PHYS,
                     price="9.99", description="Drug actions for the heart",
                     keywords=["digoxin", "heart failure"]),
        add_material("Anxiety and Grief Care", ["mental health", "grief"], PSYCH,
                     description="Therapeutic communication for anxiety"),
        add_material("Infection Control Basics", ["infection control"], SAFE),
        add_material("Prenatal Care Guide", ["prenatal care"], HEALTH, price="4.50"),
    ]


# ==============================================================================
# TOKENIZER
# ==============================================================================

def test_extract_tokens_plain_words():
    assert extract_tokens("cardiac pharmacology") == ["cardiac", "pharmacology"]


def test_extract_tokens_drops_stop_words_and_short_words():
    assert extract_tokens("study material for the exam") == []
    assert extract_tokens("IV therapy") == ["therapy"]


def test_extract_tokens_category_phrases_first():
    tokens = extract_tokens("I need anxiety and grief notes", PSYCH)
    assert tokens == ["anxiety", "grief"]


def test_extract_tokens_phrase_swallows_its_words():
    tokens = extract_tokens("infection control for nurses", SAFE)
    assert tokens[0] == "infection control"
    assert "infection" not in tokens
    assert "control" not in tokens
    assert "nurses" in tokens


def test_extract_tokens_deduplicates_and_splits_punctuation():
    assert extract_tokens("Cardiac, cardiac! (cardiac)") == ["cardiac"]


def test_stem_keeps_at_least_four_characters():
    assert stem("pharmacologic") == "pharmacolog"
    assert stem("grief") == "grief"[:4]
    assert stem("abc") == "abc"


# ==============================================================================
# SCORING
# ==============================================================================

def _material(**kw):
    defaults = dict(title="", topics=[], category=PHYS, description="", keywords=[])
    defaults.update(kw)
    return Material(**defaults)


def test_score_single_token_title_and_topic():
    m = _material(title="Cardiac Review", topics=["cardiac disorders"])
    hit = score_material(m, ["cardiac"])
    assert hit.relevance_score == SCORING_WEIGHTS["title"] + SCORING_WEIGHTS["topic"]
    assert hit.matched_tokens == ["cardiac"]


def test_score_counts_each_matching_topic():
    m = _material(topics=["cardiac disorders", "cardiac meds", "renal"])
    assert score_material(m, ["cardiac"]).relevance_score == 2 * SCORING_WEIGHTS["topic"]


def test_score_combo_bonus_needs_two_distinct_tokens():
    m = _material(title="Cardiac Review", topics=["cardiac disorders"], keywords=["digoxin"])
    hit = score_material(m, ["cardiac", "digoxin"])
    # cardiac: title + topic, digoxin: keywords, then 2 x 3 matches
    expected = 5 + 4 + 4 + SCORING_WEIGHTS["combo_per_match"] * 3
    assert hit.relevance_score == expected
    assert set(hit.matched_tokens) == {"cardiac", "digoxin"}


def test_score_category_field_and_description():
    m = _material(category=PSYCH, description="integrity of the self")
    hit = score_material(m, ["integrity"])
    assert hit.relevance_score == SCORING_WEIGHTS["category_field"] + SCORING_WEIGHTS["description"]


def test_score_exact_category_bonus_is_case_insensitive():
    m = _material(title="Cardiac Review")
    without = score_material(m, ["cardiac"]).relevance_score
    with_category = score_material(m, ["cardiac"], PHYS.upper()).relevance_score
    assert with_category - without == SCORING_WEIGHTS["category_exact"]


def test_score_adding_a_matching_field_never_lowers_score():
    base = _material(title="Cardiac Review")
    richer = _material(title="Cardiac Review", description="cardiac output basics")
    assert score_material(richer, ["cardiac"]).relevance_score > score_material(base, ["cardiac"]).relevance_score


@pytest.mark.parametrize("material", [
    _material(title="Cardiac Pharmacology Review"),
    _material(title="Cardiac Review", topics=["cardiac disorders"], keywords=["pharmacology"]),
    _material(title="Pharmacology Basics", description="cardiac drugs"),
])
def test_score_never_drops_as_more_tokens_match(material):
    tokens = ["cardiac", "pharmacology", "digoxin"]
    scores = [score_material(material, tokens[:n]).relevance_score for n in range(1, len(tokens) + 1)]
    assert scores == sorted(scores)
    # the combo bonus starts with the second matched token
    assert scores[1] > scores[0]


def test_score_no_match_is_zero():
    assert score_material(_material(title="Renal"), ["cardiac"]).relevance_score == 0


# ==============================================================================
# SEARCH
# ==============================================================================

def test_search_finds_best_match_first(db, catalog):
    hits = search(db, "cardiac digoxin")
    assert hits[0].material.id == catalog[0].id
    assert hits[0].relevance_score > 0


def test_search_title_match_on_two_tokens_scores_at_least_fourteen(db, catalog):
    hits = search(db, "cardiac pharmacology")
    assert hits[0].material.title == "Cardiac Pharmacology Review"
    # two title hits plus the combo bonus on two matches
    assert hits[0].relevance_score >= 2 * SCORING_WEIGHTS["title"] + 2 * SCORING_WEIGHTS["combo_per_match"]


def test_search_without_tokens_returns_most_recent(db, catalog):
    hits = search(db, "the exam please", limit=3)
    assert [h.material.id for h in hits] == [catalog[3].id, catalog[2].id, catalog[1].id]
    assert all(h.relevance_score == 0 for h in hits)


def test_search_empty_query_with_category_lists_that_category(db, catalog):
    hits = search(db, "", category=PSYCH)
    assert [h.material.id for h in hits] == [catalog[1].id]


def test_search_respects_category_filter(db, catalog):
    hits = search(db, "care", category=HEALTH)
    assert [h.material.id for h in hits] == [catalog[3].id]


def test_search_retries_with_stems(db, catalog):
    hits = search(db, "pharmacologic")
    assert [h.material.id for h in hits] == [catalog[0].id]


def test_search_no_results(db, catalog):
    assert search(db, "dermatology") == []


def test_search_ties_keep_insertion_order(db, add_material):
    first = add_material("Renal Review A", ["renal disorders"], PHYS)
    second = add_material("Renal Review B", ["renal disorders"], PHYS)
    hits = search(db, "renal")
    assert [h.material.id for h in hits] == [first.id, second.id]
    assert hits[0].relevance_score == hits[1].relevance_score


def test_search_limit(db, add_material):
    for i in range(6):
        add_material(f"Fluids Part {i}", ["fluids"], PHYS)
    assert len(search(db, "fluids", limit=4)) == 4
