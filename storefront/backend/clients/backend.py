"""HTTP client for the backend-as-a-service.

Talks to a Supabase-compatible project over plain REST:

- ``/rest/v1/<table>``      row reads and writes (row-level security applies
                            to the bearer token sent with each request)
- ``/rest/v1/rpc/<fn>``     server-side functions
- ``/storage/v1/object``    object upload / removal / public URLs
- ``/auth/v1``              password and OAuth sessions

Usage:
    backend = BackendClient(url, anon_key)
    rows = (
        backend.table("products")
        .select("id, product_name")
        .eq("is_approved", True)
        .order("created_at", desc=True)
        .execute()
    )
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable
from urllib.parse import quote, urlencode

import httpx

from storefront.backend.errors import (
    AuthenticationRequired,
    BackendError,
    BackendUnavailable,
)

logger = logging.getLogger(__name__)

_SINGLE_OBJECT = "application/vnd.pgrst.object+json"


def _handle_response(response: httpx.Response) -> Any:
    """Return the decoded body or raise :class:`BackendError`."""
    if response.is_success:
        if not response.content:
            return None
        return response.json()

    try:
        error_data = response.json()
    except ValueError:
        error_data = {}
    if not isinstance(error_data, dict):
        error_data = {}

    message = (
        error_data.get("message")
        or error_data.get("msg")
        or error_data.get("error_description")
        or error_data.get("error")
        or response.reason_phrase
        or "Unknown error"
    )
    raise BackendError(
        message=message,
        code=error_data.get("code") if isinstance(error_data.get("code"), str) else None,
        status=response.status_code,
        details=error_data.get("details"),
    )


def _format_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _quote_list_item(value: Any) -> str:
    text = _format_value(value).replace('"', '\\"')
    return f'"{text}"'


def build_public_url(base_url: str, bucket: str, path: str) -> str:
    """Public URL of ``path`` in ``bucket``; the path is percent-encoded once."""
    return f"{base_url.rstrip('/')}/storage/v1/object/public/{bucket}/{quote(path)}"


# ── Table queries ───────────────────────────────────────────────────────────


class Query:
    """Chainable request against one table.

    Filters map one-to-one onto PostgREST operators. Nothing is sent until
    :meth:`execute`, :meth:`single` or :meth:`maybe_single` is called.
    """

    def __init__(self, client: BackendClient, table: str):
        self._client = client
        self._table = table
        self._method = "GET"
        self._columns = "*"
        self._filters: list[tuple[str, str]] = []
        self._order: list[str] = []
        self._limit: int | None = None
        self._body: Any = None
        self._on_conflict: str | None = None

    # ── verbs ───────────────────────────────────────────────────────────────

    def select(self, columns: str = "*") -> Query:
        self._method = "GET"
        self._columns = " ".join(columns.split())
        return self

    def insert(self, rows: dict | list[dict]) -> Query:
        self._method = "POST"
        self._body = rows
        return self

    def upsert(self, rows: dict | list[dict], on_conflict: str = "id") -> Query:
        self._method = "POST"
        self._body = rows
        self._on_conflict = on_conflict
        return self

    def update(self, values: dict) -> Query:
        self._method = "PATCH"
        self._body = values
        return self

    def delete(self) -> Query:
        self._method = "DELETE"
        return self

    # ── filters ─────────────────────────────────────────────────────────────

    def eq(self, column: str, value: Any) -> Query:
        self._filters.append((column, f"eq.{_format_value(value)}"))
        return self

    def neq(self, column: str, value: Any) -> Query:
        self._filters.append((column, f"neq.{_format_value(value)}"))
        return self

    def gt(self, column: str, value: Any) -> Query:
        self._filters.append((column, f"gt.{_format_value(value)}"))
        return self

    def lt(self, column: str, value: Any) -> Query:
        self._filters.append((column, f"lt.{_format_value(value)}"))
        return self

    def in_(self, column: str, values: list) -> Query:
        joined = ",".join(_quote_list_item(v) for v in values)
        self._filters.append((column, f"in.({joined})"))
        return self

    def ilike(self, column: str, pattern: str) -> Query:
        self._filters.append((column, f"ilike.{pattern}"))
        return self

    def order(self, column: str, desc: bool = False) -> Query:
        self._order.append(f"{column}.{'desc' if desc else 'asc'}")
        return self

    def limit(self, count: int) -> Query:
        self._limit = count
        return self

    # ── execution ───────────────────────────────────────────────────────────

    def _params(self) -> list[tuple[str, str]]:
        params: list[tuple[str, str]] = []
        if self._method == "GET" or self._body is not None:
            params.append(("select", self._columns))
        params.extend(self._filters)
        if self._order:
            params.append(("order", ",".join(self._order)))
        if self._limit is not None:
            params.append(("limit", str(self._limit)))
        if self._on_conflict:
            params.append(("on_conflict", self._on_conflict))
        return params

    def _headers(self, accept: str | None = None) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self._method != "GET":
            prefer = ["return=representation"]
            if self._on_conflict:
                prefer.insert(0, "resolution=merge-duplicates")
            headers["Prefer"] = ",".join(prefer)
        if accept:
            headers["Accept"] = accept
        return headers

    def execute(self) -> list[dict]:
        """Run the request and return the affected/selected rows."""
        data = self._client._request(
            self._method,
            f"/rest/v1/{self._table}",
            params=self._params(),
            json=self._body,
            headers=self._headers(),
        )
        if data is None:
            return []
        return data if isinstance(data, list) else [data]

    def single(self) -> dict:
        """Return exactly one row; raise ``BackendError`` (PGRST116) otherwise."""
        data = self._client._request(
            self._method,
            f"/rest/v1/{self._table}",
            params=self._params(),
            json=self._body,
            headers=self._headers(accept=_SINGLE_OBJECT),
        )
        if not isinstance(data, dict):
            raise BackendError("JSON object requested, multiple (or no) rows returned", code="PGRST116")
        return data

    def maybe_single(self) -> dict | None:
        """Like :meth:`single` but a missing row yields ``None``."""
        try:
            return self.single()
        except BackendError as exc:
            if exc.is_no_rows:
                return None
            raise


# ── Storage ─────────────────────────────────────────────────────────────────


class StorageClient:
    """Object storage operations for public buckets."""

    def __init__(self, client: BackendClient):
        self._client = client

    def upload(
        self,
        bucket: str,
        path: str,
        content: bytes,
        content_type: str = "application/octet-stream",
        cache_control: str = "3600",
        upsert: bool = False,
    ) -> str:
        """Upload ``content`` and return the stored path."""
        self._client._request(
            "POST",
            f"/storage/v1/object/{bucket}/{quote(path)}",
            content=content,
            headers={
                "Content-Type": content_type,
                "cache-control": f"max-age={cache_control}",
                "x-upsert": "true" if upsert else "false",
            },
        )
        logger.debug("Uploaded %s/%s (%d bytes)", bucket, path, len(content))
        return path

    def remove(self, bucket: str, paths: list[str]) -> None:
        if not paths:
            return
        self._client._request(
            "DELETE",
            f"/storage/v1/object/{bucket}",
            json={"prefixes": paths},
        )
        logger.debug("Removed %d object(s) from %s", len(paths), bucket)

    def get_public_url(self, bucket: str, path: str) -> str:
        return build_public_url(self._client.url, bucket, path)


# ── Auth ────────────────────────────────────────────────────────────────────


@dataclass
class AuthUser:
    id: str
    email: str | None = None


@dataclass
class Session:
    access_token: str
    user: AuthUser
    refresh_token: str | None = None
    expires_at: int | None = None


@dataclass
class Subscription:
    """Handle returned by :meth:`AuthClient.on_auth_state_change`."""

    _listeners: list = field(repr=False)
    _callback: Callable = field(repr=False)

    def unsubscribe(self) -> None:
        if self._callback in self._listeners:
            self._listeners.remove(self._callback)


def _parse_session(data: dict) -> Session | None:
    if not data or "access_token" not in data:
        return None
    user = data.get("user") or {}
    expires_at = data.get("expires_at")
    if expires_at is None and data.get("expires_in"):
        expires_at = int(time.time()) + int(data["expires_in"])
    return Session(
        access_token=data["access_token"],
        refresh_token=data.get("refresh_token"),
        expires_at=expires_at,
        user=AuthUser(id=user.get("id", ""), email=user.get("email")),
    )


class AuthClient:
    """Password/OAuth sign-in and session retrieval.

    With ``persist_session`` the last signed-in session is kept on the client
    (CLI use). The API server shares one client between users and runs with
    it disabled; it resolves sessions per request via :meth:`get_user`.
    """

    def __init__(self, client: BackendClient, persist_session: bool = False):
        self._client = client
        self._persist = persist_session
        self._session: Session | None = None
        self._listeners: list[Callable[[str, Session | None], None]] = []

    def on_auth_state_change(self, callback: Callable[[str, Session | None], None]) -> Subscription:
        """Register ``callback(event, session)``; events are SIGNED_IN, SIGNED_OUT, TOKEN_REFRESHED."""
        self._listeners.append(callback)
        return Subscription(self._listeners, callback)

    def _emit(self, event: str, session: Session | None) -> None:
        for callback in list(self._listeners):
            try:
                callback(event, session)
            except Exception:
                logger.exception("Auth state listener failed for %s", event)

    def _auth_request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            return self._client._request(method, f"/auth/v1{path}", **kwargs)
        except BackendError as exc:
            if exc.status in (400, 401, 403, 422):
                raise AuthenticationRequired(exc.message) from exc
            raise

    def _remember(self, session: Session | None, event: str) -> Session | None:
        if session is not None:
            if self._persist:
                self._session = session
            self._emit(event, session)
        return session

    def sign_in_with_password(self, email: str, password: str) -> Session:
        data = self._auth_request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        session = _parse_session(data or {})
        if session is None:
            raise AuthenticationRequired("Login failed. Please check your credentials.")
        return self._remember(session, "SIGNED_IN")

    def sign_up(self, email: str, password: str) -> tuple[AuthUser, Session | None]:
        """Create an account; the session is ``None`` while email confirmation is pending."""
        data = self._auth_request("POST", "/signup", json={"email": email, "password": password}) or {}
        session = _parse_session(data)
        if session is not None:
            self._remember(session, "SIGNED_IN")
            return session.user, session
        return AuthUser(id=data.get("id", ""), email=data.get("email", email)), None

    def refresh_session(self, refresh_token: str) -> Session:
        data = self._auth_request(
            "POST",
            "/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
        )
        session = _parse_session(data or {})
        if session is None:
            raise AuthenticationRequired("Session expired. Please log in again.")
        return self._remember(session, "TOKEN_REFRESHED")

    def get_user(self, access_token: str) -> Session:
        """Validate ``access_token`` and return the session it belongs to."""
        data = self._auth_request(
            "GET", "/user", headers={"Authorization": f"Bearer {access_token}"}
        )
        if not data or not data.get("id"):
            raise AuthenticationRequired("Authentication required.")
        return Session(access_token=access_token, user=AuthUser(id=data["id"], email=data.get("email")))

    def set_session(self, access_token: str, refresh_token: str | None = None) -> Session:
        """Adopt tokens returned by an OAuth redirect."""
        session = self.get_user(access_token)
        session.refresh_token = refresh_token
        return self._remember(session, "SIGNED_IN")

    def get_session(self) -> Session | None:
        return self._session

    def sign_out(self, session: Session | None = None) -> None:
        session = session or self._session
        if session is not None:
            try:
                self._auth_request(
                    "POST", "/logout", headers={"Authorization": f"Bearer {session.access_token}"}
                )
            except AuthenticationRequired:
                logger.debug("Token already invalid on sign-out")
        self._session = None
        self._emit("SIGNED_OUT", session)

    def oauth_url(self, provider: str, redirect_to: str) -> str:
        query = urlencode({"provider": provider, "redirect_to": redirect_to})
        return f"{self._client.url}/auth/v1/authorize?{query}"


# ── Client ──────────────────────────────────────────────────────────────────


class BackendClient:
    """Entry point for tables, RPC, storage and auth.

    ``access_token`` scopes every request to one user so row-level security
    sees the right identity; :meth:`for_session` derives such a client.
    """

    def __init__(
        self,
        url: str,
        key: str,
        *,
        access_token: str | None = None,
        timeout: float = 10.0,
        http: httpx.Client | None = None,
        persist_session: bool = False,
    ):
        self.url = url.rstrip("/")
        self.key = key
        self.access_token = access_token
        self._http = http or httpx.Client(base_url=self.url, timeout=timeout)
        self.storage = StorageClient(self)
        self.auth = AuthClient(self, persist_session=persist_session)

    def for_session(self, session: Session) -> BackendClient:
        """A client sharing the connection pool but authorised as ``session``."""
        scoped = BackendClient(self.url, self.key, access_token=session.access_token, http=self._http)
        scoped.auth = self.auth
        return scoped

    def table(self, name: str) -> Query:
        return Query(self, name)

    def rpc(self, function: str, params: dict | None = None) -> Any:
        return self._request("POST", f"/rest/v1/rpc/{function}", json=params or {})

    def close(self) -> None:
        self._http.close()

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Any = None,
        json: Any = None,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        merged = {
            "apikey": self.key,
            "Authorization": f"Bearer {self.access_token or self.key}",
        }
        merged.update(headers or {})
        try:
            response = self._http.request(
                method,
                path,
                params=params,
                json=json if content is None else None,
                content=content,
                headers=merged,
            )
        except httpx.RequestError as exc:
            logger.error("Backend unavailable: %s", exc)
            raise BackendUnavailable(str(exc)) from exc
        return _handle_response(response)
