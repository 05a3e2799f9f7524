"""Whitelist membership checks and entry management."""

from __future__ import annotations

import re

from .errors import NotFoundError, ValidationError

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_name(value: str | None) -> str:
    """Trim, collapse inner whitespace runs and lower-case ``value``."""
    return _WHITESPACE_RE.sub(" ", (value or "").strip()).lower()


def is_authorized(store, event_id: int, submitted_name: str | None) -> bool:
    """Return True if ``submitted_name`` is on the event whitelist.

    Blank names are rejected before the store is consulted. Matching is
    exact on the normalized form; there is no fuzzy matching.
    """
    wanted = normalize_name(submitted_name)
    if not wanted:
        return False
    return any(
        normalize_name(entry.name) == wanted
        for entry in store.list_whitelist(event_id)
    )


def add_whitelist_entry(store, event_id: int, name: str | None):
    if name is not None and not isinstance(name, str):
        raise ValidationError("Name must be text.")
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Name must not be empty.")
    if store.get_event(event_id) is None:
        raise NotFoundError("Event not found.")
    wanted = normalize_name(cleaned)
    if any(normalize_name(e.name) == wanted for e in store.list_whitelist(event_id)):
        raise ValidationError(
            "Name is already registered for this event.", reason="duplicate"
        )
    return store.add_whitelist_entry(event_id, cleaned)
