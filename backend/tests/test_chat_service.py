"""Tests for chat/service.py and chat/store.py — conversation turn handling."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from conftest import StubGenerator

from backend.app.ai.service import LocalFallbackClient
from backend.app.chat import store as chat_store
from backend.app.chat.exceptions import (
    InvalidRequest,
    PersistenceError,
    UpstreamRejected,
    UpstreamUnavailable,
    UserNotFound,
)
from backend.app.chat.service import get_history, handle_chat_turn
from backend.app.config.settings import settings
from backend.app.models.conversation import Conversation, ConversationMessage


def _messages(db, user):
    convo = db.query(Conversation).filter(Conversation.user_id == user.id).first()
    if convo is None:
        return []
    return [(m.role, m.text) for m in convo.messages]


# ── handle_chat_turn ──────────────────────────────────────────────────────────

class TestHandleChatTurn:
    def test_fallback_reply_appends_user_and_model_turns(self, db, alice):
        result = handle_chat_turn(db, "alice", "hello", generator=LocalFallbackClient())

        assert "hello" in result.reply
        assert result.reply == (
            'Local-mode reply: I heard "hello" - set GOOGLE_API_KEY to enable real AI.'
        )
        assert _messages(db, alice) == [("user", "hello"), ("model", result.reply)]

    def test_fallback_is_default_without_credential(self, db, alice, monkeypatch):
        monkeypatch.setattr(settings, "GOOGLE_API_KEY", None)
        result = handle_chat_turn(db, "alice", "ping")
        assert result.reply.startswith("Local-mode reply")
        assert len(_messages(db, alice)) == 2

    def test_each_turn_adds_exactly_two_messages(self, db, alice):
        gen = StubGenerator()
        handle_chat_turn(db, "alice", "one", generator=gen)
        before = len(_messages(db, alice))
        handle_chat_turn(db, "alice", "two", generator=gen)
        assert len(_messages(db, alice)) == before + 2

    def test_sequential_turns_preserve_order_and_alternate_roles(self, db, alice):
        gen = StubGenerator(reply="ok")
        handle_chat_turn(db, "alice", "first", generator=gen)
        handle_chat_turn(db, "alice", "second", generator=gen)

        assert _messages(db, alice) == [
            ("user", "first"),
            ("model", "ok"),
            ("user", "second"),
            ("model", "ok"),
        ]

    def test_generator_receives_full_history(self, db, alice):
        gen = StubGenerator(reply="r")
        handle_chat_turn(db, "alice", "first", generator=gen)
        handle_chat_turn(db, "alice", "second", generator=gen)

        history, model = gen.calls[-1]
        assert history == [("user", "first"), ("model", "r"), ("user", "second")]
        assert model == settings.GEMINI_MODEL

    def test_model_override(self, db, alice):
        gen = StubGenerator()
        handle_chat_turn(db, "alice", "hi", model="gemini-pro", generator=gen)
        assert gen.calls[0][1] == "gemini-pro"

    def test_blank_model_uses_default(self, db, alice):
        gen = StubGenerator()
        handle_chat_turn(db, "alice", "hi", model="  ", generator=gen)
        assert gen.calls[0][1] == settings.GEMINI_MODEL

    def test_username_is_trimmed(self, db, alice):
        result = handle_chat_turn(db, "  alice ", "hi", generator=StubGenerator())
        assert result.conversation.user_id == alice.id

    def test_conversation_updated_at_refreshed(self, db, alice):
        gen = StubGenerator()
        first = handle_chat_turn(db, "alice", "one", generator=gen).conversation
        stamp = first.updated_at
        second = handle_chat_turn(db, "alice", "two", generator=gen).conversation
        assert second.id == first.id
        assert second.updated_at >= stamp

    @pytest.mark.parametrize("error", [
        UpstreamRejected("quota exceeded"),
        UpstreamUnavailable("Gemini request timed out"),
    ])
    def test_generation_failure_keeps_user_turn(self, db, alice, error):
        with pytest.raises(type(error)):
            handle_chat_turn(db, "alice", "hello", generator=StubGenerator(error=error))

        assert _messages(db, alice) == [("user", "hello")]

    def test_failure_then_success_keeps_both_user_turns(self, db, alice):
        with pytest.raises(UpstreamRejected):
            handle_chat_turn(
                db, "alice", "lost?", generator=StubGenerator(error=UpstreamRejected("x"))
            )
        gen = StubGenerator(reply="back")
        handle_chat_turn(db, "alice", "retry", generator=gen)

        assert _messages(db, alice) == [
            ("user", "lost?"),
            ("user", "retry"),
            ("model", "back"),
        ]
        assert gen.calls[0][0] == [("user", "lost?"), ("user", "retry")]

    @pytest.mark.parametrize("username,message", [
        ("alice", ""),
        ("alice", "   "),
        ("alice", None),
        ("", "hello"),
        ("  ", "hello"),
        (None, "hello"),
    ])
    def test_missing_fields_rejected_without_mutation(self, db, alice, username, message):
        gen = StubGenerator()
        with pytest.raises(InvalidRequest) as exc_info:
            handle_chat_turn(db, username, message, generator=gen)

        assert exc_info.value.message == "username and message required"
        assert exc_info.value.status_code == 400
        assert db.query(Conversation).count() == 0
        assert db.query(ConversationMessage).count() == 0
        assert gen.calls == []

    def test_unknown_user_creates_nothing(self, db, alice):
        gen = StubGenerator()
        with pytest.raises(UserNotFound):
            handle_chat_turn(db, "bob", "hello", generator=gen)

        assert db.query(Conversation).count() == 0
        assert gen.calls == []

    def test_persistence_failure_surfaces(self, db, alice):
        with patch(
            "backend.app.chat.service.get_or_create_conversation",
            side_effect=PersistenceError(),
        ):
            with pytest.raises(PersistenceError) as exc_info:
                handle_chat_turn(db, "alice", "hello", generator=StubGenerator())
        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "Server error"


# ── Conversation store ───────────────────────────────────────────────────────

class TestConversationStore:
    def test_get_or_create_returns_existing(self, db, alice):
        first = chat_store.get_or_create_conversation(db, alice)
        second = chat_store.get_or_create_conversation(db, alice)
        assert first.id == second.id
        assert db.query(Conversation).count() == 1

    def test_find_conversation_none_before_first_chat(self, db, alice):
        assert chat_store.find_conversation(db, alice.id) is None

    def test_concurrent_create_rereads_existing(self, db, alice):
        existing = Conversation(user_id=alice.id)
        db.add(existing)
        db.commit()
        existing_id = existing.id

        real_find = chat_store.find_conversation
        calls = {"n": 0}

        def _find(session, user_id):
            # First lookup misses, as if another request created it in between
            calls["n"] += 1
            if calls["n"] == 1:
                return None
            return real_find(session, user_id)

        with patch("backend.app.chat.store.find_conversation", side_effect=_find):
            convo = chat_store.get_or_create_conversation(db, alice)

        assert convo.id == existing_id
        assert calls["n"] == 2
        assert db.query(Conversation).count() == 1

    def test_empty_message_text_rejected_by_database(self, db, alice):
        from sqlalchemy.exc import IntegrityError

        convo = chat_store.get_or_create_conversation(db, alice)
        db.add(ConversationMessage(conversation_id=convo.id, role="user", text=""))
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()
        assert db.query(ConversationMessage).count() == 0

    def test_append_empty_text_raises_persistence_error(self, db, alice):
        from backend.app.models.conversation import MessageRole

        convo = chat_store.get_or_create_conversation(db, alice)
        with pytest.raises(PersistenceError):
            chat_store.append_message(db, convo, MessageRole.MODEL, "")
        assert db.query(ConversationMessage).count() == 0

    def test_append_message_is_visible_to_next_find(self, db, alice):
        from backend.app.models.conversation import MessageRole

        convo = chat_store.get_or_create_conversation(db, alice)
        chat_store.append_message(db, convo, MessageRole.USER, "hi")

        found = chat_store.find_conversation(db, alice.id)
        assert [(m.role, m.text) for m in found.messages] == [("user", "hi")]


# ── get_history ───────────────────────────────────────────────────────────────

class TestGetHistory:
    def test_empty_before_first_chat(self, db, alice):
        assert get_history(db, "alice") == []

    def test_returns_ordered_messages(self, db, alice):
        handle_chat_turn(db, "alice", "hello", generator=StubGenerator(reply="hey"))
        assert [(m.role, m.text) for m in get_history(db, "alice")] == [
            ("user", "hello"),
            ("model", "hey"),
        ]

    def test_unknown_user(self, db):
        with pytest.raises(UserNotFound):
            get_history(db, "bob")

    def test_blank_username(self, db):
        with pytest.raises(InvalidRequest):
            get_history(db, " ")
