"""
Mock Diary Backend
==================
In-memory FastAPI stand-in for the diary notes API. Serves the login endpoint
and the medical-profile notes endpoints with the same envelopes as the real
service, so the client can be exercised without network access.

Usage:
    python -m dev_tools.mock_backend [--port 8000]
"""
import argparse
import logging
import secrets
import time
from typing import Callable, Dict, List, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Query, Request
from pydantic import BaseModel

from diary_sync.core.config import APP_DESCRIPTION, APP_TITLE, APP_VERSION, LOG_LEVEL

logger = logging.getLogger(__name__)


class MockAccount(BaseModel):
    pin: str
    email: Optional[str] = None
    signUpCode: Optional[str] = None
    user: dict


DEFAULT_ACCOUNTS = [
    MockAccount(
        email="patient@example.com",
        signUpCode="Ab12",
        pin="1234",
        user={
            "_id": "64f1c2a9e4b0a1b2c3d4e5f6",
            "roleId": "patient-role",
            "profileImageId": "",
            "fullName": "Pat Example",
            "email": "patient@example.com",
            "firstName": "Pat",
            "lastName": "Example",
            "roleName": "Patient",
        },
    ),
]


class LoginBody(BaseModel):
    email: Optional[str] = None
    password: str
    signUpCode: Optional[str] = None


class NoteBody(BaseModel):
    title: str
    description: str
    imageId: Optional[str] = ""


class MockBackend:
    """State shared by all requests of one app instance."""

    def __init__(self, accounts: Optional[List[MockAccount]] = None, clock: Optional[Callable[[], int]] = None):
        self.accounts = list(accounts if accounts is not None else DEFAULT_ACCOUNTS)
        self.clock = clock or (lambda: int(time.time() * 1000))
        self.tokens: Dict[str, str] = {}  # token -> user _id
        self.notes: Dict[str, Dict[str, dict]] = {}  # profile id -> note id -> note

    def find_account(self, body: LoginBody) -> Optional[MockAccount]:
        for account in self.accounts:
            if account.pin != body.password:
                continue
            if body.email is not None and account.email == body.email:
                return account
            if body.signUpCode is not None and account.signUpCode == body.signUpCode:
                return account
        return None

    def issue_token(self, account: MockAccount) -> str:
        token = secrets.token_hex(16)
        self.tokens[token] = account.user["_id"]
        return token

    def seed_note(self, profile_id: str, title: str, description: str = "",
                  created_at: Optional[int] = None, image_id: Optional[str] = None) -> dict:
        now = self.clock()
        note = {
            "_id": str(ObjectId()),
            "title": title,
            "description": description,
            "imageId": image_id,
            "medicalProfileId": profile_id,
            "createdAt": created_at if created_at is not None else now,
            "updatedAt": now,
            "imageUrl": None,
        }
        self.notes.setdefault(profile_id, {})[note["_id"]] = note
        return note


def get_backend(request: Request) -> MockBackend:
    return request.app.state.backend


def profile_notes(
    profile_id: str,
    authorization_token: Optional[str] = Header(None, alias="authorization-token"),
    backend: MockBackend = Depends(get_backend),
) -> Dict[str, dict]:
    """Resolve the caller's notes, enforcing token and profile ownership."""
    user_id = backend.tokens.get(authorization_token or "")
    if user_id is None:
        raise HTTPException(status_code=401, detail="Invalid or missing authorization token")
    if user_id != profile_id:
        raise HTTPException(status_code=403, detail="Profile does not belong to this user")
    return backend.notes.setdefault(profile_id, {})


def _find_note(notes: Dict[str, dict], note_id: str) -> dict:
    note = notes.get(note_id)
    if note is None:
        raise HTTPException(status_code=404, detail="Note not found")
    return note


router = APIRouter(prefix="/v1", tags=["diary"])


@router.post("/authenticate-by-signup-code-or-email", summary="Login by email or signup code")
async def authenticate(body: LoginBody, backend: MockBackend = Depends(get_backend)):
    account = backend.find_account(body)
    if account is None:
        raise HTTPException(status_code=401, detail="Invalid credentials")

    token = backend.issue_token(account)
    logger.info(f"🔐 Issued token for profile {account.user['_id']}")
    return {
        "success": True,
        "data": {"authorization": token, "user": account.user},
        "message": "Login successful",
    }


@router.get("/medical-profiles/{profile_id}/notes", summary="List notes, newest first")
async def list_notes(
    limit: int = Query(20, ge=1, le=200),
    start: int = Query(0, ge=0),
    notes: Dict[str, dict] = Depends(profile_notes),
):
    ordered = sorted(notes.values(), key=lambda n: n["createdAt"], reverse=True)
    page = ordered[start:start + limit]
    return {
        "success": True,
        "data": {
            "results": page,
            "limit": limit,
            "start": start,
            "total": len(ordered),
            "size": len(page),
        },
    }


@router.post("/medical-profiles/{profile_id}/notes", summary="Create a note")
async def create_note(
    profile_id: str,
    body: NoteBody,
    notes: Dict[str, dict] = Depends(profile_notes),
    backend: MockBackend = Depends(get_backend),
):
    if not body.title.strip():
        raise HTTPException(status_code=422, detail="Title cannot be empty")

    note = backend.seed_note(profile_id, body.title, body.description, image_id=body.imageId)
    return {"success": True, "data": note, "message": "Note created successfully"}


@router.get("/medical-profiles/{profile_id}/notes/{note_id}", summary="Get a note")
async def get_note(note_id: str, notes: Dict[str, dict] = Depends(profile_notes)):
    return {"success": True, "data": _find_note(notes, note_id)}


@router.put("/medical-profiles/{profile_id}/notes/{note_id}", summary="Update a note")
async def update_note(
    note_id: str,
    body: NoteBody,
    notes: Dict[str, dict] = Depends(profile_notes),
    backend: MockBackend = Depends(get_backend),
):
    note = _find_note(notes, note_id)
    if not body.title.strip():
        raise HTTPException(status_code=422, detail="Title cannot be empty")

    note.update(
        title=body.title,
        description=body.description,
        imageId=body.imageId,
        updatedAt=backend.clock(),
    )
    return {"success": True, "data": note, "message": "Note updated successfully"}


@router.delete("/medical-profiles/{profile_id}/notes/{note_id}", summary="Delete a note")
async def delete_note(note_id: str, notes: Dict[str, dict] = Depends(profile_notes)):
    _find_note(notes, note_id)
    del notes[note_id]
    return {"success": True, "data": None, "message": "Note deleted successfully"}


def create_app(accounts: Optional[List[MockAccount]] = None,
               clock: Optional[Callable[[], int]] = None) -> FastAPI:
    app = FastAPI(title=APP_TITLE, version=APP_VERSION, description=APP_DESCRIPTION)
    app.state.backend = MockBackend(accounts=accounts, clock=clock)
    app.include_router(router)

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "version": APP_VERSION}

    return app


def main():
    import uvicorn

    parser = argparse.ArgumentParser(description="Run the in-memory diary backend")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args()

    logging.basicConfig(level=LOG_LEVEL)
    uvicorn.run(create_app(), host=args.host, port=args.port)


if __name__ == "__main__":
    main()
