"""
NCLEX test plan categories.

The catalog recognises exactly these four study domains. Order matters: the
chat flow lets a user pick a category by its 1-based position in this table.
Each category carries the keyword phrases that Relevance Search promotes ahead
of generic words when the search is scoped to that category.
"""
from typing import Dict, List, Optional

NCLEX_CATEGORIES: Dict[str, List[str]] = {
    "Safe and Effective Care Environment": [
        "patient safety", "infection control", "legal responsibilities", "ethics",
        "delegation", "prioritization", "management of care", "emergency preparedness",
        "HIPAA", "patient rights", "confidentiality",
    ],
    "Health Promotion and Maintenance": [
        "growth and development", "prenatal care", "postnatal care",
        "health screening", "immunizations", "lifestyle modification",
        "health education", "disease prevention",
    ],
    "Psychosocial Integrity": [
        "mental health", "depression", "anxiety", "schizophrenia",
        "crisis intervention", "substance abuse", "therapeutic communication",
        "coping mechanisms", "stress management", "abuse", "neglect", "grief",
    ],
    "Physiological Integrity": [
        "medical-surgical nursing", "pharmacology", "drug actions",
        "side effects", "IV therapy", "fluids", "oxygenation",
        "respiratory care", "cardiac disorders", "renal disorders",
        "neurological disorders", "endocrine disorders",
        "fluid and electrolyte balance", "acute illness",
        "chronic illness management", "wound care",
    ],
}

CATEGORY_NAMES: List[str] = list(NCLEX_CATEGORIES)

# Short blurbs for the category menu
CATEGORY_HIGHLIGHTS: Dict[str, List[str]] = {
    "Safe and Effective Care Environment": [
        "Patient safety & infection control",
        "Legal responsibilities & ethics",
        "Delegation & prioritization",
    ],
    "Health Promotion and Maintenance": [
        "Growth & development",
        "Health screening & immunizations",
        "Disease prevention",
    ],
    "Psychosocial Integrity": [
        "Mental health disorders",
        "Therapeutic communication",
        "Crisis intervention",
    ],
    "Physiological Integrity": [
        "Medical-surgical nursing",
        "Pharmacology",
        "Acute & chronic illness",
    ],
}


def category_by_number(number: int) -> Optional[str]:
    """1-based lookup into the fixed category order."""
    if 1 <= number <= len(CATEGORY_NAMES):
        return CATEGORY_NAMES[number - 1]
    return None


def is_valid_category(name: Optional[str]) -> bool:
    return name in NCLEX_CATEGORIES
