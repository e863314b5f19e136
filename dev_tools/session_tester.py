"""
Session Tester for the Diary API
================================
Logs in, fetches the first page of notes and prints them grouped by date.
Optionally creates a note and refreshes to show it.

Usage:
    python -m dev_tools.session_tester --code Ab12 --pin 1234
    python -m dev_tools.session_tester --email patient@example.com --pin 1234 --create "Headache"
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from typing import Optional

from diary_sync.core.config import API_BASE_URL, LOG_LEVEL, SESSION_FILE_PATH
from diary_sync.services.api_client import ApiClient
from diary_sync.services.auth_session import AuthSession
from diary_sync.services.date_grouping import format_time
from diary_sync.services.notes_client import NotesClient
from diary_sync.services.notes_session import NotesSession
from diary_sync.services.session_store import JsonFileStorage, MemoryStorage, SessionStore


def _log(message: str):
    timestamp = datetime.now().strftime("%H:%M:%S")
    print(f"[{timestamp}] {message}")


def print_groups(session: NotesSession):
    snapshot = session.snapshot
    if not snapshot.notes:
        _log("📭 No notes yet")
        return
    for label, notes in snapshot.groups.items():
        print(f"\n== {label} ({len(notes)})")
        for note in notes:
            print(f"  {format_time(note.createdAt)}  {note.title}: {note.preview()}")
    print()
    _log(f"📚 {len(snapshot.notes)} of {snapshot.total_notes} notes loaded, more={snapshot.has_more}")


async def run_session(base_url: str, email: Optional[str], code: Optional[str], pin: str,
                      create_title: Optional[str], persist: bool, pages: int) -> int:
    storage = JsonFileStorage(SESSION_FILE_PATH) if persist else MemoryStorage()
    store = SessionStore(storage)

    async with ApiClient(base_url=base_url) as api:
        auth = AuthSession(api, store)
        if not auth.is_logged_in():
            _log(f"🔐 Logging in at {base_url}...")
            if email:
                result = await auth.login_with_email(email, pin)
            else:
                result = await auth.login_with_code(code, pin)
            if not result.ok:
                _log(f"❌ Login failed: {result.message}")
                return 1
        session = NotesSession(NotesClient(api, store), store)
        _log(f"✅ Logged in as {session.user_display_name() or store.get_profile_id()}")
        try:
            result = await session.refresh()
            if not result.ok:
                _log(f"❌ Could not load notes: {result.message}")
                return 1

            for _ in range(pages - 1):
                if await session.load_more() is None:
                    break

            if create_title:
                saved = await session.create(create_title, f"Created by session tester at {datetime.now():%H:%M}")
                if not saved.ok:
                    _log(f"❌ Could not create note: {saved.message}")
                    return 1
                _log("📝 Note saved, refreshing...")
                await session.refresh()

            print_groups(session)
        finally:
            await session.aclose()
    return 0


def main():
    parser = argparse.ArgumentParser(description="Diary Session Tester")
    who = parser.add_mutually_exclusive_group(required=True)
    who.add_argument("--email", "-e", type=str)
    who.add_argument("--code", "-c", type=str, help="4-character signup code")
    parser.add_argument("--pin", "-p", type=str, required=True)
    parser.add_argument("--url", "-u", type=str, default=API_BASE_URL)
    parser.add_argument("--create", type=str, default=None, help="Title of a note to create")
    parser.add_argument("--pages", type=int, default=1)
    parser.add_argument("--persist", action="store_true", help="Keep the session on disk")

    args = parser.parse_args()
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    sys.exit(asyncio.run(run_session(
        args.url, args.email, args.code, args.pin, args.create, args.persist, args.pages
    )))


if __name__ == "__main__":
    main()
