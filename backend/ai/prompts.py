"""
Prompt templates for the NCLEX study assistant.

Only the free-form answer prompt asks for JSON; it lets the model either
answer in text or hand the conversation back to the scripted purchase flow.
Practice questions and study answers are plain text.
"""
from typing import Optional, Sequence

from app.core.categories import CATEGORY_NAMES

PERSONA = """You are NurseNCLEX, an expert tutor for NCLEX-RN and NCLEX-PN exam preparation.
You give accurate, evidence-based explanations and test-taking guidance.
Use NCLEX test plan language, stay supportive and clear, and always emphasize
safety, prioritization and patient-centered care."""

CATEGORIES_DESC = """NCLEX Test Plan Categories:
1. Safe and Effective Care Environment (patient safety, legal/ethics, management, infection control)
2. Health Promotion and Maintenance (growth & development, health screening, disease prevention)
3. Psychosocial Integrity (mental health, therapeutic communication, coping, crisis)
4. Physiological Integrity (medical-surgical, pharmacology, risk reduction, adaptation)"""


def _materials_snippet(materials: Sequence, limit: int = 3) -> str:
    if not materials:
        return ""
    lines = ["Relevant materials in our catalog:"]
    for i, m in enumerate(list(materials)[:limit], 1):
        desc = m.description or "Comprehensive review material"
        if len(desc) > 100:
            desc = desc[:100] + "..."
        lines.append(f"{i}. {m.title} | Category: {m.category} | Focus: {desc}")
    return "\n".join(lines)


# ==============================================================================
# FREE-FORM ANSWER (JSON OUTPUT)
# ==============================================================================

ANSWER_FORMAT = """Reply with ONE JSON object and nothing else, in one of two shapes.

To answer the student directly:
{"kind": "text", "text": "<your answer, Telegram Markdown allowed>"}

When the student wants to buy, download, or browse study materials:
{"kind": "directive", "step": "category_selection"}
  - use this when they have not said what topic or category they want
{"kind": "directive", "step": "material_selection", "query": "<search words>", "category": "<category or null>"}
  - use this when they named a topic; category must be one of:
""" + "\n".join(f"    {name}" for name in CATEGORY_NAMES)


def build_answer_prompt(user_name: Optional[str], level: Optional[str], message: str, materials: Sequence = ()) -> str:
    """Prompt for an unscripted message. The model may answer or redirect to the purchase flow."""
    return f"""{PERSONA}

Student: {user_name or "Future Nurse"}
Focus area: {level or "NCLEX Candidate"}

{CATEGORIES_DESC}

Student message: "{message}"

{_materials_snippet(materials)}

Answer guidelines:
1. Focused, evidence-based, NCLEX-style clinical judgment
2. Include specific nursing interventions when relevant
3. Offer 1-2 study tips or mnemonics
4. Keep it concise (3-5 key points) and name the test plan category if it applies
5. Mention /buy if one of the catalog materials above fits

{ANSWER_FORMAT}
"""


# ==============================================================================
# PLAIN-TEXT PROMPTS
# ==============================================================================

def build_study_prompt(user_name: Optional[str], message: str, materials: Sequence = ()) -> str:
    return f"""{PERSONA}

Student: {user_name or "Future Nurse"}

{CATEGORIES_DESC}

Student query: "{message}"

{_materials_snippet(materials)}

Give a focused answer in 3-5 key points with clinical judgment, prioritization
and safety. Add one study tip. End with a short encouraging note."""


def build_practice_prompt(topic: str, category: Optional[str] = None, count: int = 5) -> str:
    scope = f"in the NCLEX category: {category}" if category else "covering general nursing concepts"
    return f"""{PERSONA}

Generate {count} NCLEX-style practice questions {scope}.

Topic: {topic or "General Nursing"}

For each question:
1. A scenario-based question
2. Options A-D with one correct answer and three plausible distractors
3. The correct answer
4. A short rationale, including why the distractors are wrong

Mix prioritization, delegation, patient teaching and medication safety
questions. Use plain text suitable for a chat message."""
