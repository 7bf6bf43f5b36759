"""Phrase vocabularies used to read intent out of a conversation transcript."""

from __future__ import annotations

from typing import Iterable

# Assistant phrasing that means the concept is understood and a detailed
# description is being requested.
DESCRIPTION_TRIGGER_PHRASES: tuple[str, ...] = (
    "let's create the best possible description",
    "now let's create a comprehensive description",
    "i need you to be very specific about what we're building",
    "please describe in detail",
    "the more detailed you are",
    "be very specific about",
    "comprehensive description",
)

ROOM_ENTRY_PHRASES: tuple[str, ...] = (
    "yes lets enter the room",
    "yes let's enter the room",
    "enter the room",
    "lets enter the room",
    "let's enter the room",
    "lets go to the room",
    "let's go to the room",
    "go to the room",
    "yes enter the room",
    "room of requirements",
    "go to room",
    "enter room",
    "take me to the room",
    "bring me to the room",
    "i want to go to the room",
    "can we go to the room",
    "ready for the room",
    "time for the room",
)

MARKETPLACE_KEYWORDS: tuple[str, ...] = (
    "find an existing component",
    "find existing component",
    "looking for component",
    "search for component",
    "existing solution",
    "reusable component",
    "marketplace",
)

COMPONENT_DETAIL_KEYWORDS: tuple[str, ...] = (
    "ui",
    "form",
    "component",
    "builder",
    "tool",
    "widget",
    "payment",
    "chart",
    "table",
    "modal",
    "navigation",
    "auth",
)

PRD_INDICATORS: tuple[str, ...] = (
    "product requirements document",
    "prd",
    "technical requirements",
    "user stories",
    "acceptance criteria",
    "functional requirements",
    "non-functional requirements",
    "system architecture",
    "api endpoints",
    "database schema",
    "authentication",
    "user interface",
    "technical stack",
)

ROOM_SUGGESTION_PHRASES: tuple[str, ...] = (
    "room of requirements",
    "enter the room",
    "go to the room",
)

LONG_CONTENT_THRESHOLD = 1000


def contains_any(text: str, phrases: Iterable[str]) -> bool:
    haystack = (text or "").lower()
    return any(phrase in haystack for phrase in phrases)
