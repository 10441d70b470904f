"""
Deterministic reply templates.

Every step of the chat flow has a fixed reply here, and every text-generation
consumer falls back to one of these when the model is unavailable. Output is
Telegram Markdown (legacy): *bold*, `code`.
"""
from typing import Optional, Sequence

from app.core.categories import CATEGORY_HIGHLIGHTS, CATEGORY_NAMES

RETRY_MESSAGE = "🚨 Something went wrong on our side. Please try again, or type /buy to start over."


def _short(text: Optional[str], limit: int, default: str) -> str:
    if not text:
        return default
    return text if len(text) <= limit else text[:limit] + "..."


def _topics(topics: Optional[Sequence[str]], limit: int = 3) -> str:
    if not topics:
        return "General NCLEX topics"
    return ", ".join(list(topics)[:limit])


def _price(material) -> str:
    if material.is_free:
        return "Free"
    return f"{material.price} {material.currency or 'USD'}"


# ==============================================================================
# COMMANDS
# ==============================================================================

def welcome(name: Optional[str] = None) -> str:
    greeting = f"👋 Hi {name}!" if name else "👋 Hi!"
    return (
        f"{greeting} I'm *NurseAid*, your NCLEX study buddy.\n"
        "I can help with topic reviews, study materials and practice questions.\n\n"
        "Commands:\n"
        "• /help - show help\n"
        "• /buy - browse and download study materials\n"
        "• /cancel - stop the current flow\n"
        "• resume - continue where you left off\n\n"
        "What topic would you like help with today?"
    )


def help_text() -> str:
    return (
        "You can:\n"
        "• Use /buy to browse materials by NCLEX category\n"
        "• Ask for notes on a topic: \"cardiac materials\"\n"
        "• Request practice questions: \"practice questions on pharmacology\"\n"
        "• Or just ask a study question!"
    )


def resume(name: Optional[str], level: Optional[str]) -> str:
    who = name or "there"
    if level and level != "unknown":
        return (
            f"Resuming your study, {who}. Last time you looked at *{level}*.\n"
            "Type /buy to browse materials again, or ask for practice questions."
        )
    return f"Welcome back, {who}! Type /buy to browse materials or ask me a study question."


def cancelled() -> str:
    return "👍 Cancelled. Type /buy whenever you want to browse again."


def nothing_to_cancel() -> str:
    return "There's nothing to cancel. Type /buy to browse study materials."


# ==============================================================================
# PURCHASE FLOW
# ==============================================================================

def category_menu() -> str:
    lines = ["🎯 *NCLEX Study Materials*", "", "Please select which category you're preparing for:", ""]
    for i, name in enumerate(CATEGORY_NAMES, 1):
        lines.append(f"{i}. *{name}*")
        for blurb in CATEGORY_HIGHLIGHTS.get(name, []):
            lines.append(f"   • {blurb}")
        lines.append("")
    lines.append(f"Reply with the *CATEGORY NAME* or *NUMBER* (1-{len(CATEGORY_NAMES)})")
    return "\n".join(lines)


def invalid_category() -> str:
    return "🤔 I didn't recognise that category.\n\n" + category_menu()


def no_materials(category: Optional[str] = None) -> str:
    where = f" for *{category}*" if category else ""
    return (
        f"📭 No materials found{where} yet.\n\n"
        "Please pick another category, or type /cancel to stop."
    )


def material_list(materials: Sequence, category: Optional[str] = None) -> str:
    heading = f"📚 *{category} Materials*" if category else f"📚 *I found {len(materials)} materials*"
    lines = [heading, ""]
    for i, m in enumerate(materials, 1):
        lines.append(f"{i}. *{m.title}*")
        lines.append(f"   📝 {_short(m.description, 60, 'Comprehensive NCLEX review material')}")
        lines.append(f"   🎯 Topics: {_topics(m.topics)}")
        lines.append(f"   💵 {_price(m)}")
        lines.append("")
    lines.append(f"💡 Reply with the *NUMBER* (1-{len(materials)}) to select a material.")
    lines.append('Or type "back" to choose a different category.')
    return "\n".join(lines)


def invalid_selection(count: int) -> str:
    return (
        f"❌ Please select a valid number between 1 and {count}.\n\n"
        'Reply with the number of the material you want, or "back".'
    )


def confirmation(material, category: Optional[str], code: str) -> str:
    return (
        "✅ *Purchase Confirmation*\n\n"
        f"📦 *Selected Material:* {material.title}\n"
        f"📚 *Category:* {category or material.category}\n"
        f"🎯 *Topics:* {_topics(material.topics, limit=10)}\n"
        f"💵 *Price:* {_price(material)}\n\n"
        f"🎟️ *Your Code:* `{code}`\n\n"
        '📥 Ready to download? Type "download" or your code to continue.\n'
        '🔄 To choose a different material, type "back".'
    )


def confirmation_reprompt() -> str:
    return 'Please type "download" or your code to get your file, or "back" to choose a different material.'


def preparing_download(material) -> str:
    return f"📄 Preparing *{material.title}*..."


def delivered() -> str:
    return "🎉 *File sent successfully!*\n\nNeed more materials or have questions? Just ask! 💬"


def too_large() -> str:
    return (
        "📁 This file is too large to send over Telegram. "
        "Please choose a different material or contact support for a direct link."
    )


def not_found() -> str:
    return "❌ Sorry, that file could not be found in our storage. Please try another material."


def send_failed() -> str:
    return "❌ Sorry, there was an error sending the file. Please try again or choose a different material."


# ==============================================================================
# SEARCH, STUDY AND PRACTICE
# ==============================================================================

def searching() -> str:
    return "🔍 Searching for study materials related to your topic..."


def no_search_results() -> str:
    return (
        "📭 I couldn't find specific NCLEX materials for that.\n\n"
        "Try:\n"
        "• Asking about a specific NCLEX category\n"
        "• Using /buy to browse materials\n"
        "• Requesting practice questions on a topic"
    )


def study_results(materials: Sequence) -> str:
    lines = ["🧠 *NCLEX Study Assistant*", "", f"I found {len(materials)} materials for your query:", ""]
    for i, m in enumerate(list(materials)[:3], 1):
        lines.append(f"{i}. *{m.title}*")
        lines.append(f"   📚 Category: {m.category or 'General'}")
        lines.append(f"   🎯 Topics: {_topics(m.topics)}")
        if m.description:
            lines.append(f"   📝 {_short(m.description, 80, '')}")
        lines.append("")
    lines.append("💡 To get any of these, type /buy")
    lines.append("📚 For practice questions, ask about a specific topic")
    return "\n".join(lines)


def clarify_no_results() -> str:
    return (
        "🔍 *No NCLEX Materials Found*\n\n"
        "I couldn't find materials matching your search.\n\n"
        "Please specify:\n"
        "• Which of the 4 main categories?\n"
        "• Specific topics within that category\n\n"
        'Example: "pharmacology questions for cardiac care"'
    )


def clarify_weak_matches() -> str:
    return (
        "🔍 *Need More Specifics*\n\n"
        "I found some materials but they're not a close match.\n\n"
        "Could you tell me:\n"
        "• Which test plan category?\n"
        "• What's your biggest challenge?"
    )


def clarify_many_results(areas: Sequence[str]) -> str:
    listed = "\n".join(f"• {a}" for a in areas)
    return (
        "📚 *Multiple Options Available*\n\n"
        f"I found materials in these areas:\n{listed}\n\n"
        "Which one are you most interested in?"
    )


def practice_questions(topic: str, category: Optional[str] = None) -> str:
    where = f" in {category}" if category else ""
    return (
        f"🧠 *NCLEX Practice Questions{where}*\n\n"
        f"Topic: {topic or 'General Nursing'}\n\n"
        "1. What is the priority nursing intervention?\n"
        "2. Which assessment finding requires immediate action?\n"
        "3. How would you evaluate patient understanding?\n"
        "4. What are potential complications to monitor?\n"
        "5. Which teaching point is most important?\n\n"
        "💡 *NCLEX Tip:* Focus on safety, prioritization, and patient-centered care!"
    )


def practice_header(body: str) -> str:
    return f"🧠 *NCLEX Practice Questions*\n\n{body}"


def generating_questions() -> str:
    return "🧠 Generating practice questions for your topic..."


def thinking() -> str:
    return "Let me think... 🤖"
