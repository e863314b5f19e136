"""Decoding of loosely-typed server payloads into typed records.

All field fallbacks live here:

- the list payload must be an object, otherwise the page is empty
  (or ``ParseError`` in strict mode)
- notes are read from ``results``, then ``data``, then nothing
- an item without a string ``_id`` is dropped, never defaulted
- ``limit``/``start``/``total``/``size`` default to 20/0/0/0 independently
"""
import logging
from typing import Any, List

from pydantic import ValidationError as SchemaError

from diary_sync.core.errors import ParseError
from diary_sync.models.auth import LoginData
from diary_sync.models.note import Note, NotesPage, PageCursor, number_or

logger = logging.getLogger(__name__)

_CURSOR_DEFAULTS = {"limit": 20, "start": 0, "total": 0, "size": 0}


def decode_note_item(item: Any):
    """Return a Note, or None when the item cannot be one."""
    if not isinstance(item, dict):
        logger.warning(f"Skipping note item of unexpected type {type(item).__name__}")
        return None
    try:
        return Note.model_validate(item)
    except SchemaError:
        logger.warning(f"Skipping note item without a valid _id (keys: {sorted(item)})")
        return None


def _note_items(data: dict) -> List[Any]:
    for field in ("results", "data"):
        items = data.get(field)
        if isinstance(items, list):
            return items
    return []


def _unparseable(reason: str, strict: bool) -> NotesPage:
    if strict:
        raise ParseError(reason)
    logger.warning(f"{reason}; treating as empty page")
    return NotesPage.empty()


def _decode_page(data: dict) -> NotesPage:
    cursor = PageCursor(**{
        field: number_or(data.get(field), default)
        for field, default in _CURSOR_DEFAULTS.items()
    })

    items = _note_items(data)
    notes = [note for note in map(decode_note_item, items) if note is not None]

    if len(notes) < len(items):
        logger.warning(f"Dropped {len(items) - len(notes)} of {len(items)} note items")
    if not notes and (cursor.total > 0 or cursor.size > 0):
        logger.warning(
            f"No notes parsed but server reports total={cursor.total}, size={cursor.size}"
        )

    return NotesPage(notes=notes, cursor=cursor)


def decode_notes_page(data: Any, strict: bool = False) -> NotesPage:
    if not isinstance(data, dict):
        return _unparseable(f"Notes payload is {type(data).__name__}, expected an object", strict)
    try:
        return _decode_page(data)
    except (ValueError, TypeError, OverflowError) as e:
        return _unparseable(f"Notes payload could not be decoded ({type(e).__name__}: {e})", strict)


def decode_note(data: Any) -> Note:
    note = decode_note_item(data)
    if note is None:
        raise ParseError("Failed to parse note details")
    return note


def decode_login(data: Any) -> LoginData:
    if data is None:
        raise ParseError("Login response had no data")
    try:
        return LoginData.model_validate(data)
    except SchemaError as e:
        raise ParseError(f"Unexpected login response: {e.error_count()} invalid field(s)") from e
