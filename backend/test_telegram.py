"""Telegram bridge helpers that do not need a live bot."""
from types import SimpleNamespace

from app.telegram.handlers import MAX_MESSAGE_CHARS, _split_message
from app.telegram.utils import display_name, ensure_study_user


def _update(user_id=99, username=None, first_name=None, last_name=None):
    tg_user = SimpleNamespace(id=user_id, username=username, first_name=first_name, last_name=last_name)
    return SimpleNamespace(effective_user=tg_user)


def test_short_message_is_one_part():
    assert _split_message("hello") == ["hello"]


def test_long_message_splits_on_newlines():
    line = "x" * 100
    text = "\n".join([line] * 100)  # ~10k characters
    parts = _split_message(text)
    assert len(parts) > 1
    assert all(len(p) <= MAX_MESSAGE_CHARS for p in parts)
    assert sum(p.count("x") for p in parts) == 100 * 100


def test_unbroken_text_is_hard_split():
    parts = _split_message("y" * (MAX_MESSAGE_CHARS * 2 + 5))
    assert [len(p) for p in parts] == [MAX_MESSAGE_CHARS, MAX_MESSAGE_CHARS, 5]


def test_display_name():
    assert display_name(_update(username="nurse_amy", first_name="Amy")) == "nurse_amy"
    assert display_name(_update(first_name="Amy", last_name="Lee")) == "Amy Lee"
    assert display_name(_update()) is None


def test_ensure_study_user_from_update(db):
    user = ensure_study_user(db, _update(user_id=12345, first_name="Amy"))
    assert user.telegram_id == "12345"
    assert user.name == "Amy"
