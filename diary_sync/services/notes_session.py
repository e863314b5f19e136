import asyncio
import logging
from datetime import datetime, tzinfo
from enum import Enum
from typing import Any, Awaitable, Callable, Coroutine, Dict, List, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict

from diary_sync.core.config import DEFAULT_PAGE_LIMIT
from diary_sync.core.errors import ApiError, Result, ValidationError
from diary_sync.models.note import Note, NotesPage, PageCursor
from diary_sync.services.date_grouping import group_notes
from diary_sync.services.notes_client import NotesClient
from diary_sync.services.session_store import SessionStore

logger = logging.getLogger(__name__)


class LoadState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


class MutationStrategy(str, Enum):
    # note is removed/changed in memory as soon as the server confirms
    APPLY_LOCALLY = "apply_locally"
    # nothing changes in memory; the caller refreshes to see the result
    CONFIRM_REMOTELY = "confirm_remotely"


class NotesSnapshot(BaseModel):
    """Immutable view of the note collection handed to observers."""
    model_config = ConfigDict(frozen=True)

    state: LoadState = LoadState.IDLE
    notes: Tuple[Note, ...] = ()
    groups: Dict[str, Tuple[Note, ...]] = {}
    cursor: PageCursor = PageCursor()
    error_message: Optional[str] = None
    save_succeeded: bool = False

    @property
    def is_loading(self) -> bool:
        return self.state == LoadState.LOADING

    @property
    def has_more(self) -> bool:
        return self.cursor.has_more

    @property
    def total_notes(self) -> int:
        return self.cursor.total


Listener = Callable[[NotesSnapshot], Any]


class NotesSession:
    """Holds the paginated, date-grouped notes of the logged-in profile.

    Create and update are confirmed remotely: on success only
    ``save_succeeded`` is raised and the caller is expected to ``refresh()``.
    Delete is applied locally: the note leaves the collection as soon as the
    server accepts the request. A failed operation keeps the last good notes
    and cursor and only sets ``error_message``.

    Operations may overlap and the last one to complete wins. The one
    exception is a ``load_more`` page requested before a ``refresh``: its
    offset no longer matches the collection, so it is discarded.
    """

    def __init__(
        self,
        client: NotesClient,
        store: SessionStore,
        page_limit: int = DEFAULT_PAGE_LIMIT,
        tz: Optional[tzinfo] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.client = client
        self.store = store
        self.page_limit = page_limit
        self.tz = tz
        self._clock = clock
        self._snapshot = NotesSnapshot(cursor=PageCursor(limit=page_limit))
        self._listeners: List[Listener] = []
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False
        # bumped by every refresh; pages fetched for an older collection are dropped
        self._generation = 0

    # -- state -------------------------------------------------------------

    @property
    def snapshot(self) -> NotesSnapshot:
        return self._snapshot

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with every new snapshot. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _regroup(self, notes: Tuple[Note, ...]) -> Dict[str, Tuple[Note, ...]]:
        now = self._clock() if self._clock is not None else None
        return {
            label: tuple(bucket)
            for label, bucket in group_notes(notes, now=now, tz=self.tz).items()
        }

    def _commit(self, **changes):
        if self._closed:
            logger.info("Dropping state update for a closed notes session")
            return
        if "notes" in changes:
            changes["groups"] = self._regroup(changes["notes"])
        self._snapshot = self._snapshot.model_copy(update=changes)
        for listener in list(self._listeners):
            try:
                listener(self._snapshot)
            except Exception as e:
                logger.error(f"Notes listener {listener!r} failed: {e}", exc_info=True)

    def _begin(self):
        self._commit(state=LoadState.LOADING, error_message=None, save_succeeded=False)

    def _fail(self, error: ApiError, prefix: str = ""):
        message = f"{prefix}{error.message}"
        logger.error(f"❌ Notes operation failed: {message}")
        self._commit(state=LoadState.FAILED, error_message=message)

    def clear_error(self):
        self._commit(error_message=None)

    def reset_save_state(self):
        self._commit(save_succeeded=False)

    # -- fetching ----------------------------------------------------------

    async def refresh(self) -> Result[NotesPage]:
        """Fetch the first page and replace the whole collection."""
        self._generation += 1
        self._begin()
        result = await self.client.list(limit=self.page_limit, start=0)
        if not result.ok:
            self._fail(result.error)
            return result

        page = result.value
        self._commit(state=LoadState.LOADED, notes=tuple(page.notes), cursor=page.cursor)
        logger.info(
            f"✅ Notes refreshed: {len(page.notes)} of {page.cursor.total}, "
            f"{len(self._snapshot.groups)} date groups"
        )
        return result

    async def load_more(self) -> Optional[Result[NotesPage]]:
        """Fetch the next page and append it. Returns None when skipped."""
        current = self._snapshot
        if current.is_loading or not current.has_more:
            return None

        generation = self._generation
        self._begin()
        result = await self.client.list(limit=self.page_limit, start=len(current.notes))
        if generation != self._generation:
            # the offset belonged to a collection a refresh has since replaced
            logger.info("Discarding next page fetched before a refresh")
            return result
        if not result.ok:
            self._fail(result.error)
            return result

        page = result.value
        notes = self._snapshot.notes
        seen = {note.id for note in notes}
        appended = tuple(note for note in page.notes if note.id not in seen)
        self._commit(state=LoadState.LOADED, notes=notes + appended, cursor=page.cursor)
        logger.info(f"Loaded {len(appended)} more notes ({len(notes) + len(appended)} in memory)")
        return result

    async def open_note(self, note_id: str) -> Result[Note]:
        """Load one note for the detail or edit view without touching the list."""
        result = await self.client.get(note_id)
        if not result.ok:
            self._commit(error_message=result.error.message)
        return result

    # -- mutations ---------------------------------------------------------

    async def _mutate(
        self,
        call: Awaitable[Result],
        strategy: MutationStrategy,
        apply_locally: Optional[Callable[[NotesSnapshot], Dict[str, Any]]] = None,
        error_prefix: str = "",
    ) -> Result:
        self._begin()
        result = await call
        if not result.ok:
            self._fail(result.error, prefix=error_prefix)
            return result

        if strategy == MutationStrategy.APPLY_LOCALLY:
            self._commit(state=LoadState.LOADED, **apply_locally(self._snapshot))
        else:
            self._commit(state=LoadState.LOADED, save_succeeded=True)
        return result

    def _validate_note(self, title: str, description: str) -> Optional[Result]:
        if not title or not title.strip():
            error = ValidationError("Title is required")
        elif not description or not description.strip():
            error = ValidationError("Description is required")
        else:
            return None
        self._commit(error_message=error.message)
        return Result.failure(error)

    async def create(self, title: str, description: str, image_id: Optional[str] = "") -> Result[Note]:
        invalid = self._validate_note(title, description)
        if invalid is not None:
            return invalid
        return await self._mutate(
            self.client.create(title, description, image_id),
            MutationStrategy.CONFIRM_REMOTELY,
        )

    async def update(
        self, note_id: str, title: str, description: str, image_id: Optional[str] = ""
    ) -> Result[Note]:
        invalid = self._validate_note(title, description)
        if invalid is not None:
            return invalid
        return await self._mutate(
            self.client.update(note_id, title, description, image_id),
            MutationStrategy.CONFIRM_REMOTELY,
        )

    async def delete(self, note_id: str) -> Result[None]:
        def remove(snapshot: NotesSnapshot) -> Dict[str, Any]:
            remaining = tuple(note for note in snapshot.notes if note.id != note_id)
            current = snapshot.cursor
            # start + size counts the notes fetched so far; keep it in step with memory
            fetched = current.start + current.size
            if len(remaining) < len(snapshot.notes):
                fetched = max(0, fetched - 1)
            start = min(current.start, fetched)
            cursor = current.model_copy(update={
                "total": max(0, current.total - 1),
                "start": start,
                "size": fetched - start,
            })
            return {"notes": remaining, "cursor": cursor}

        return await self._mutate(
            self.client.delete(note_id),
            MutationStrategy.APPLY_LOCALLY,
            apply_locally=remove,
            error_prefix="Failed to delete note: ",
        )

    # -- lifetime ----------------------------------------------------------

    def launch(self, operation: Coroutine) -> asyncio.Task:
        """Run an operation in the background, bound to this session.

        ``aclose()`` cancels whatever is still running.
        """
        if self._closed:
            operation.close()
            raise RuntimeError("Notes session is closed")
        task = asyncio.get_running_loop().create_task(operation)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def aclose(self):
        self._closed = True
        pending = list(self._tasks)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.info(f"Cancelled {len(pending)} in-flight notes operation(s)")
        self._listeners.clear()

    # -- session info ------------------------------------------------------

    def is_logged_in(self) -> bool:
        return self.store.is_logged_in()

    def user_display_name(self) -> Optional[str]:
        user = self.store.get_user()
        return user.fullName if user is not None else None
