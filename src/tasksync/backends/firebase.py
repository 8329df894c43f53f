# src/tasksync/backends/firebase.py

"""
Firebase adapters over the public REST APIs (httpx.AsyncClient).

- FirebaseAuthProvider: email/password sign-in/sign-up (Identity Toolkit),
  ID token refresh (Secure Token), local sign-out.
- FirestoreDocumentStore: users/{uid} profile + users/{uid}/tasks collection.
- PollingSnapshotStream: live feed emulation. The REST API has no push channel,
  so the collection is listed every poll interval and a snapshot is emitted
  only when the listing changed. Our own writes wake the pollers at once.

IMPORTANT:
- No secrets required at import time.
- All httpx failures are translated into AuthError / StoreError.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from ..core.errors import AuthError, StoreError
from ..core.ports import (
    DocumentData,
    DocumentSnapshot,
    ErrorCallback,
    Identity,
    IdentityCallback,
    Snapshot,
    Unsubscribe,
)
from .firestore_values import decode_document, decode_fields, document_id, encode_fields

logger = logging.getLogger(__name__)

AUTH_BASE_URL = "https://identitytoolkit.googleapis.com/v1"
TOKEN_BASE_URL = "https://securetoken.googleapis.com/v1"
FIRESTORE_BASE_URL = "https://firestore.googleapis.com/v1"

# Refresh the ID token this long before it expires.
_TOKEN_REFRESH_MARGIN_S = 60.0

_AUTH_MESSAGES = {
    "EMAIL_EXISTS": "The email address is already in use by another account.",
    "EMAIL_NOT_FOUND": "Invalid email or password.",
    "INVALID_PASSWORD": "Invalid email or password.",
    "INVALID_LOGIN_CREDENTIALS": "Invalid email or password.",
    "INVALID_EMAIL": "The email address is badly formatted.",
    "MISSING_PASSWORD": "Password is required.",
    "MISSING_EMAIL": "Email is required.",
    "USER_DISABLED": "This account has been disabled.",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "Too many attempts. Try again later.",
    "OPERATION_NOT_ALLOWED": "Email/password sign-in is disabled for this project.",
    "TOKEN_EXPIRED": "Your session has expired. Please sign in again.",
    "INVALID_REFRESH_TOKEN": "Your session has expired. Please sign in again.",
}


def make_timeout(connect_s: float, read_s: float) -> httpx.Timeout:
    return httpx.Timeout(connect=connect_s, read=read_s, write=10.0, pool=connect_s)


def _error_payload(resp: httpx.Response) -> dict[str, Any]:
    try:
        data = resp.json()
    except ValueError:
        return {}
    err = data.get("error") if isinstance(data, dict) else None
    return err if isinstance(err, dict) else {}


def _error_message(resp: httpx.Response) -> str:
    msg = _error_payload(resp).get("message")
    return str(msg) if msg else f"HTTP {resp.status_code} {resp.reason_phrase}".strip()


def friendly_auth_error_message(code: str) -> str:
    """
    Map Identity Toolkit error codes to user-facing text.

    Codes may carry a detail suffix, e.g.
    "WEAK_PASSWORD : Password should be at least 6 characters".
    """
    head, _, detail = code.partition(" : ")
    head = head.strip()
    if head == "WEAK_PASSWORD":
        return (detail.strip() or "Password should be at least 6 characters") + "."
    return _AUTH_MESSAGES.get(head, code or "Authentication failed.")


class FirebaseAuthProvider:
    def __init__(
            self,
            http: httpx.AsyncClient,
            api_key: str | None,
            *,
            auth_base_url: str = AUTH_BASE_URL,
            token_base_url: str = TOKEN_BASE_URL,
    ) -> None:
        if not api_key or not str(api_key).strip():
            raise RuntimeError("Firebase API key is not set. Set TASKSYNC_FIREBASE_API_KEY in your .env.")
        self._http = http
        self._api_key = str(api_key).strip()
        self._auth_base = auth_base_url.rstrip("/")
        self._token_base = token_base_url.rstrip("/")

        self._current: Identity | None = None
        self._expires_at = 0.0  # monotonic
        self._listeners: list[tuple[IdentityCallback, ErrorCallback | None]] = []

    @property
    def current(self) -> Identity | None:
        return self._current

    async def _post(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            resp = await self._http.post(url, params={"key": self._api_key}, json=payload)
        except httpx.HTTPError as e:
            logger.info("Auth request failed: %s", e.__class__.__name__)
            raise AuthError("Network error while contacting the sign-in service. Try again later.") from e

        if resp.is_error:
            code = _error_message(resp)
            logger.info("Auth rejected (%s): %s", resp.status_code, code)
            raise AuthError(friendly_auth_error_message(code))

        data = resp.json()
        return data if isinstance(data, dict) else {}

    async def _password_call(self, endpoint: str, email: str, password: str) -> Identity:
        data = await self._post(
            f"{self._auth_base}/accounts:{endpoint}",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        identity = Identity(
            uid=str(data["localId"]),
            email=data.get("email") or email,
            id_token=data.get("idToken"),
            refresh_token=data.get("refreshToken"),
        )
        self._expires_at = time.monotonic() + float(data.get("expiresIn") or 3600)
        self._set_current(identity)
        return identity

    async def sign_in(self, email: str, password: str) -> Identity:
        return await self._password_call("signInWithPassword", email, password)

    async def sign_up(self, email: str, password: str) -> Identity:
        return await self._password_call("signUp", email, password)

    async def sign_out(self) -> None:
        # Stateless tokens: signing out only forgets them locally.
        self._expires_at = 0.0
        self._set_current(None)

    async def get_id_token(self) -> str | None:
        """Current ID token, refreshed shortly before it expires."""
        ident = self._current
        if ident is None:
            return None
        if time.monotonic() < self._expires_at - _TOKEN_REFRESH_MARGIN_S or not ident.refresh_token:
            return ident.id_token

        data = await self._post(
            f"{self._token_base}/token",
            {"grant_type": "refresh_token", "refresh_token": ident.refresh_token},
        )
        refreshed = Identity(
            uid=ident.uid,
            email=ident.email,
            id_token=data.get("id_token") or ident.id_token,
            refresh_token=data.get("refresh_token") or ident.refresh_token,
        )
        self._expires_at = time.monotonic() + float(data.get("expires_in") or 3600)
        # Same uid: no identity-change notification.
        self._current = refreshed
        logger.debug("ID token refreshed uid=%s", ident.uid)
        return refreshed.id_token

    def on_identity_change(
            self,
            callback: IdentityCallback,
            on_error: ErrorCallback | None = None,
    ) -> Unsubscribe:
        entry = (callback, on_error)
        self._listeners.append(entry)
        callback(self._current)

        def _remove() -> None:
            with contextlib.suppress(ValueError):
                self._listeners.remove(entry)

        return _remove

    def _set_current(self, identity: Identity | None) -> None:
        self._current = identity
        for callback, _ in list(self._listeners):
            callback(identity)


class PollingSnapshotStream:
    def __init__(
            self,
            fetch: Callable[[], Awaitable[Snapshot]],
            *,
            interval_seconds: float,
            on_close: Callable[[PollingSnapshotStream], None],
    ) -> None:
        self._fetch = fetch
        self._interval = max(0.05, float(interval_seconds))
        self._on_close = on_close
        self._wake = asyncio.Event()
        self._last: Snapshot | None = None
        self._first = True
        self.closed = False

    def wake(self) -> None:
        self._wake.set()

    def __aiter__(self) -> PollingSnapshotStream:
        return self

    async def __anext__(self) -> Snapshot:
        while True:
            if self.closed:
                raise StopAsyncIteration
            if not self._first:
                with contextlib.suppress(TimeoutError):
                    await asyncio.wait_for(self._wake.wait(), self._interval)
                self._wake.clear()
                if self.closed:
                    raise StopAsyncIteration
            self._first = False

            snapshot = await self._fetch()
            if snapshot != self._last:
                self._last = snapshot
                return snapshot

    async def aclose(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._on_close(self)
        self._wake.set()


class FirestoreDocumentStore:
    def __init__(
            self,
            http: httpx.AsyncClient,
            project_id: str | None,
            token_getter: Callable[[], Awaitable[str | None]],
            *,
            poll_interval_seconds: float = 2.0,
            page_size: int = 300,
            base_url: str = FIRESTORE_BASE_URL,
    ) -> None:
        if not project_id or not str(project_id).strip():
            raise RuntimeError("Firebase project id is not set. Set TASKSYNC_FIREBASE_PROJECT_ID in your .env.")
        self._http = http
        self._root = f"{base_url.rstrip('/')}/projects/{str(project_id).strip()}/databases/(default)/documents"
        self._token_getter = token_getter
        self._poll_interval = float(poll_interval_seconds)
        self._page_size = int(page_size)
        self._streams: dict[str, list[PollingSnapshotStream]] = {}

    # ---- low-level helpers ----

    async def _request(
            self,
            method: str,
            path: str,
            *,
            params: Any = None,
            json: Any = None,
            allow: tuple[int, ...] = (),
    ) -> httpx.Response:
        headers: dict[str, str] = {}
        try:
            token = await self._token_getter()
        except AuthError as e:
            raise StoreError(str(e), status_code=401) from e
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            resp = await self._http.request(
                method, f"{self._root}/{path}", params=params, json=json, headers=headers
            )
        except httpx.HTTPError as e:
            logger.info("Firestore %s %s failed: %s", method, path, e.__class__.__name__)
            raise StoreError(f"Network error ({e.__class__.__name__}). Try again later") from e

        if resp.status_code in allow:
            return resp
        if resp.is_error:
            raise StoreError(_error_message(resp), status_code=resp.status_code)
        return resp

    def _kick(self, user_id: str) -> None:
        for stream in list(self._streams.get(user_id, [])):
            stream.wake()

    # ---- profile ----

    async def get_profile(self, user_id: str) -> DocumentData | None:
        resp = await self._request("GET", f"users/{user_id}", allow=(404,))
        if resp.status_code == 404:
            return None
        return decode_fields(resp.json().get("fields") or {})

    async def put_profile(self, user_id: str, data: DocumentData) -> None:
        # Create-only write: an existing profile is never overwritten.
        resp = await self._request(
            "PATCH",
            f"users/{user_id}",
            params={"currentDocument.exists": "false"},
            json={"fields": encode_fields(data)},
            allow=(400, 409),
        )
        if resp.is_error:
            status = str(_error_payload(resp).get("status") or "")
            if resp.status_code == 409 or status in ("ALREADY_EXISTS", "FAILED_PRECONDITION"):
                logger.debug("Profile already exists uid=%s (create-only write skipped)", user_id)
                return
            raise StoreError(_error_message(resp), status_code=resp.status_code)

    # ---- tasks ----

    async def list_tasks(self, user_id: str) -> Snapshot:
        docs: list[DocumentSnapshot] = []
        page_token: str | None = None
        while True:
            params: dict[str, Any] = {"pageSize": self._page_size}
            if page_token:
                params["pageToken"] = page_token
            resp = await self._request("GET", f"users/{user_id}/tasks", params=params)
            body = resp.json()
            for raw in body.get("documents") or []:
                doc_id, fields = decode_document(raw)
                docs.append(DocumentSnapshot(id=doc_id, data=fields))
            page_token = body.get("nextPageToken")
            if not page_token:
                return tuple(docs)

    def subscribe(self, user_id: str) -> PollingSnapshotStream:
        def _remove(stream: PollingSnapshotStream) -> None:
            streams = self._streams.get(user_id, [])
            if stream in streams:
                streams.remove(stream)
            if not streams:
                self._streams.pop(user_id, None)

        stream = PollingSnapshotStream(
            lambda: self.list_tasks(user_id),
            interval_seconds=self._poll_interval,
            on_close=_remove,
        )
        self._streams.setdefault(user_id, []).append(stream)
        return stream

    async def create_task(self, user_id: str, fields: DocumentData) -> str:
        resp = await self._request(
            "POST", f"users/{user_id}/tasks", json={"fields": encode_fields(fields)}
        )
        task_id = document_id(str(resp.json().get("name") or ""))
        if not task_id:
            raise StoreError("Firestore did not return a document name for the new task")
        self._kick(user_id)
        return task_id

    async def update_task(self, user_id: str, task_id: str, fields: DocumentData) -> None:
        params = [("updateMask.fieldPaths", name) for name in fields]
        params.append(("currentDocument.exists", "true"))
        await self._request(
            "PATCH",
            f"users/{user_id}/tasks/{task_id}",
            params=params,
            json={"fields": encode_fields(fields)},
        )
        self._kick(user_id)

    async def delete_task(self, user_id: str, task_id: str) -> None:
        await self._request("DELETE", f"users/{user_id}/tasks/{task_id}")
        self._kick(user_id)
