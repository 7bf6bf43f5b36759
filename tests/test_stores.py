from datetime import timedelta

import pytest

from src.room_of_requirements.domain.base import utc_now
from src.room_of_requirements.domain.chat_models import ChatMessage
from src.room_of_requirements.infrastructure.compost_store import InMemoryCompostingSessionStore
from src.room_of_requirements.infrastructure.conversation_store import (
    InMemoryConversationStore,
    get_conversation_store,
)


def test_conversation_get_or_create_is_idempotent():
    store = InMemoryConversationStore()
    first = store.get_or_create("s")
    assert store.get_or_create("s") is first
    assert first.stage == "concept"
    assert first.concept_understood is False


def test_append_to_missing_session_raises():
    with pytest.raises(KeyError):
        InMemoryConversationStore().append_message("nope", ChatMessage(role="user", content="x"))


def test_export_is_a_copy():
    store = InMemoryConversationStore()
    store.get_or_create("s")
    store.append_message("s", ChatMessage(role="user", content="x"))
    snap = store.export("s")
    snap.messages.clear()
    assert len(store.get("s").messages) == 1
    assert store.export("missing") is None


def test_sweep_drops_only_stale_sessions():
    store = InMemoryConversationStore()
    store.get_or_create("old")
    store.append_message("old", ChatMessage(role="user", content="x", timestamp=utc_now() - timedelta(hours=30)))
    store.get_or_create("new")
    store.append_message("new", ChatMessage(role="user", content="y"))
    store.get_or_create("empty")

    assert store.sweep(24) == 1
    assert store.get("old") is None
    assert store.get("new") is not None
    assert store.get("empty") is not None


def test_conversation_store_singleton():
    assert get_conversation_store() is get_conversation_store()


def test_compost_update_merges_and_bumps_timestamp():
    store = InMemoryCompostingSessionStore()
    sess = store.create("Old App")
    updated = store.update(sess.id, project_description="notes", status="describing")
    assert updated.project_description == "notes"
    assert updated.status == "describing"
    assert updated.project_name == "Old App"
    assert updated.updated_at >= sess.updated_at
    assert store.get(sess.id) is updated
    assert store.update("missing", status="completed") is None


def test_compost_delete_and_list():
    store = InMemoryCompostingSessionStore()
    a = store.create()
    store.create("B")
    assert a.project_name == "Untitled Project"
    assert len(store.list()) == 2
    assert store.delete(a.id) is True
    assert store.delete(a.id) is False
    assert len(store.list()) == 1
