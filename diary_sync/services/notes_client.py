import logging
from typing import Dict, Optional, Tuple

from diary_sync.core.config import DEFAULT_PAGE_LIMIT, NOTES_PATH_TEMPLATE, STRICT_PAYLOAD_PARSING
from diary_sync.core.errors import ApiError, Result, Unauthenticated
from diary_sync.models.note import Note, NotePayload, NotesPage
from diary_sync.services.api_client import ApiClient
from diary_sync.services.decoder import decode_note, decode_note_item, decode_notes_page
from diary_sync.services.session_store import SessionStore

logger = logging.getLogger(__name__)

NOTES_STATUS_MESSAGES = {
    404: "Medical profile or note not found",
    422: "Invalid note data. Please check your input",
}


class NotesClient:
    """Typed access to the notes endpoints of the current medical profile.

    Token and profile id are read from the store on every call, so a logout
    or re-login between calls takes effect immediately. Every method returns
    a :class:`Result` instead of raising.
    """

    def __init__(self, api: ApiClient, store: SessionStore, strict_parsing: bool = STRICT_PAYLOAD_PARSING):
        self.api = api
        self.store = store
        self.strict_parsing = strict_parsing

    def _authorized(self) -> Tuple[Dict[str, str], str]:
        headers = self.store.auth_headers()
        if not headers:
            raise Unauthenticated()
        profile_id = self.store.get_profile_id()
        if profile_id is None:
            raise Unauthenticated("Medical profile not found. Please login again.")
        return headers, profile_id

    @staticmethod
    def _path(profile_id: str, note_id: Optional[str] = None) -> str:
        path = NOTES_PATH_TEMPLATE.format(profile_id=profile_id)
        return f"{path}/{note_id}" if note_id is not None else path

    async def _send(self, method: str, note_id: Optional[str] = None, **kwargs):
        headers, profile_id = self._authorized()
        return await self.api.request(
            method,
            self._path(profile_id, note_id),
            headers=headers,
            status_messages=NOTES_STATUS_MESSAGES,
            **kwargs,
        )

    @staticmethod
    def _written_note(data) -> Optional[Note]:
        # servers are not consistent about echoing the written note back
        return decode_note_item(data) if data is not None else None

    async def create(self, title: str, description: str, image_id: Optional[str] = "") -> Result[Note]:
        payload = NotePayload(title=title, description=description, imageId=image_id or "")
        try:
            data = await self._send(
                "POST", json_body=payload.model_dump(), fallback_message="Failed to create note"
            )
        except ApiError as e:
            logger.error(f"Failed to create note: {e.message}")
            return Result.failure(e)
        logger.info("✅ Note created")
        return Result.success(self._written_note(data))

    async def update(
        self, note_id: str, title: str, description: str, image_id: Optional[str] = ""
    ) -> Result[Note]:
        payload = NotePayload(title=title, description=description, imageId=image_id or "")
        try:
            data = await self._send(
                "PUT", note_id, json_body=payload.model_dump(), fallback_message="Failed to update note"
            )
        except ApiError as e:
            logger.error(f"Failed to update note {note_id}: {e.message}")
            return Result.failure(e)
        logger.info(f"✅ Note {note_id} updated")
        return Result.success(self._written_note(data))

    async def get(self, note_id: str) -> Result[Note]:
        try:
            data = await self._send("GET", note_id, fallback_message="Failed to fetch note details")
            note = decode_note(data)
        except ApiError as e:
            logger.error(f"Failed to fetch note {note_id}: {e.message}")
            return Result.failure(e)
        return Result.success(note)

    async def delete(self, note_id: str) -> Result[None]:
        try:
            await self._send("DELETE", note_id, fallback_message="Failed to delete note")
        except ApiError as e:
            logger.error(f"Failed to delete note {note_id}: {e.message}")
            return Result.failure(e)
        logger.info(f"🗑️ Note {note_id} deleted")
        return Result.success(None)

    async def list(self, limit: int = DEFAULT_PAGE_LIMIT, start: int = 0) -> Result[NotesPage]:
        try:
            data = await self._send(
                "GET",
                params={"limit": limit, "start": start},
                fallback_message="Failed to fetch notes",
            )
            page = decode_notes_page(data, strict=self.strict_parsing)
        except ApiError as e:
            logger.error(f"Failed to fetch notes (limit={limit}, start={start}): {e.message}")
            return Result.failure(e)
        logger.info(
            f"Fetched {len(page.notes)} notes (start={page.cursor.start}, total={page.cursor.total})"
        )
        return Result.success(page)
