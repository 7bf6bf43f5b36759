import pytest

from src.room_of_requirements.core.state_machine import (
    Signal,
    evaluate_transitions,
    next_state,
)
from src.room_of_requirements.domain.chat_models import ChatMessage, ConversationSession


def _session(*pairs, stage="concept", understood=False):
    return ConversationSession(
        id="s1",
        stage=stage,
        concept_understood=understood,
        messages=[ChatMessage(role=r, content=c) for r, c in pairs],
    )


def test_next_state_is_pure_and_only_moves_from_concept():
    assert next_state("concept", Signal.CONCEPT_UNDERSTOOD) == "description"
    assert next_state("description", Signal.CONCEPT_UNDERSTOOD) == "description"
    assert next_state("prd", Signal.ENTER_ROOM) == "prd"
    assert next_state("concept", Signal.MARKETPLACE_INTENT) == "concept"


def test_manual_signal_validates_target():
    assert next_state("concept", Signal.MANUAL, "tasks") == "tasks"
    with pytest.raises(ValueError):
        next_state("concept", Signal.MANUAL, "nowhere")


def test_room_entry_requires_three_messages():
    short = _session(("assistant", "Hi there"), ("user", "Let's enter the room"))
    assert not evaluate_transitions(short).has(Signal.ENTER_ROOM)

    enough = _session(
        ("user", "I want a recipe app"),
        ("assistant", "Tell me more"),
        ("user", "Let's enter the room"),
    )
    result = evaluate_transitions(enough)
    assert result.has(Signal.ENTER_ROOM)
    assert result.stage == "concept"


def test_room_entry_takes_precedence_over_marketplace():
    sess = _session(
        ("user", "idea"),
        ("assistant", "ok"),
        ("user", "enter the room, or check the marketplace"),
    )
    result = evaluate_transitions(sess)
    assert result.signals == [Signal.ENTER_ROOM]


def test_marketplace_intent_carries_query_and_keeps_stage():
    sess = _session(("user", "Can I find an existing component for payments?"), stage="description")
    result = evaluate_transitions(sess)
    assert result.has(Signal.MARKETPLACE_INTENT)
    assert result.search_query == "Can I find an existing component for payments?"
    assert result.stage == "description"


def test_concept_transition_fires_once():
    sess = _session(
        ("user", "A tool for dog walkers"),
        ("assistant", "Great! Please describe in detail who uses it."),
    )
    first = evaluate_transitions(sess)
    assert first.has(Signal.CONCEPT_UNDERSTOOD)
    assert first.stage == "description"
    assert first.concept_understood is True

    sess.stage = first.stage
    sess.concept_understood = first.concept_understood
    sess.messages.append(ChatMessage(role="user", content="Owners book walks"))
    sess.messages.append(ChatMessage(role="assistant", content="The more detailed you are, the better."))
    second = evaluate_transitions(sess)
    assert not second.has(Signal.CONCEPT_UNDERSTOOD)
    assert second.stage == "description"


def test_understood_flag_blocks_retrigger_even_in_concept_stage():
    sess = _session(("assistant", "Please describe in detail"), understood=True)
    assert not evaluate_transitions(sess).has(Signal.CONCEPT_UNDERSTOOD)


def test_ready_for_room_when_comprehensive_and_not_yet_suggested():
    sess = _session(
        ("user", "Here are the user stories and acceptance criteria"),
        ("assistant", "Thanks, noted."),
        ("user", "Anything else?"),
        ("assistant", "Looks complete."),
    )
    assert evaluate_transitions(sess).has(Signal.READY_FOR_ROOM)

    sess.messages[-1] = ChatMessage(role="assistant", content="Shall we go to the room?")
    assert not evaluate_transitions(sess).has(Signal.READY_FOR_ROOM)
