"""Shared pytest fixtures for the test suite.

Import any of these in a test file by simply declaring the fixture name as a
parameter; pytest discovers them automatically from this conftest.py.

Fixture overview
----------------
backend        : in-memory stand-in for the hosted backend (tables, RPC,
                 storage, auth) with a call log and failure injection
shopper        : signed-in customer session with a profile and one address
company_user   : signed-in session owning the approved company ``co-a``
add_product    : factory inserting an approved product row
gateway        : payment gateway double with a scripted confirmation
settings       : the shipped default configuration
"""

from __future__ import annotations

import copy
import re
import uuid
from collections import defaultdict
import dataclasses
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import pytest

from storefront.backend.clients import (
    AuthUser,
    PaymentHandle,
    PaymentResult,
    Session,
    Subscription,
    build_public_url,
)
from storefront.backend.clients.payments import to_minor_units
from storefront.backend.core.utils.config import load_config
from storefront.backend.errors import AuthenticationRequired, BackendError

_BASE_TIME = datetime(2026, 10, 1, tzinfo=timezone.utc)


# ── Fake backend ──────────────────────────────────────────────────────────────


class FakeQuery:
    """Evaluates the query-builder chain against in-memory rows."""

    def __init__(self, backend: FakeBackend, table: str):
        self.backend = backend
        self.table = table
        self.op = "select"
        self.payload: Any = None
        self.on_conflict: str | None = None
        self.predicates: list[Callable[[dict], bool]] = []
        self.orders: list[tuple[str, bool]] = []
        self.max_rows: int | None = None

    def select(self, columns: str = "*") -> FakeQuery:
        return self

    def insert(self, rows):
        self.op, self.payload = "insert", rows
        return self

    def upsert(self, rows, on_conflict: str = "id"):
        self.op, self.payload, self.on_conflict = "upsert", rows, on_conflict
        return self

    def update(self, values: dict):
        self.op, self.payload = "update", values
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column, value):
        self.predicates.append(lambda r: r.get(column) == value)
        return self

    def neq(self, column, value):
        self.predicates.append(lambda r: r.get(column) != value)
        return self

    def gt(self, column, value):
        self.predicates.append(lambda r: r.get(column) is not None and r[column] > value)
        return self

    def lt(self, column, value):
        self.predicates.append(lambda r: r.get(column) is not None and r[column] < value)
        return self

    def in_(self, column, values):
        allowed = list(values)
        self.predicates.append(lambda r: r.get(column) in allowed)
        return self

    def ilike(self, column, pattern):
        regex = re.compile("^" + ".*".join(re.escape(p) for p in pattern.split("%")) + "$", re.IGNORECASE)
        self.predicates.append(lambda r: regex.match(str(r.get(column) or "")) is not None)
        return self

    def order(self, column, desc=False):
        self.orders.append((column, desc))
        return self

    def limit(self, count):
        self.max_rows = count
        return self

    def _matches(self, row: dict) -> bool:
        return all(p(row) for p in self.predicates)

    def execute(self) -> list[dict]:
        self.backend.calls.append((self.table, self.op))
        failures = self.backend.failures
        failure = failures.get((self.table, self.op)) or failures.get((self.table, None))
        if failure is not None:
            raise failure
        rows = self.backend.tables[self.table]

        if self.op == "select":
            found = [copy.deepcopy(r) for r in rows if self._matches(r)]
            for column, desc in reversed(self.orders):
                found.sort(key=lambda r: (r.get(column) is None, r.get(column) or ""), reverse=desc)
            return found[: self.max_rows] if self.max_rows is not None else found

        if self.op == "insert":
            items = self.payload if isinstance(self.payload, list) else [self.payload]
            return [self.backend.insert_row(self.table, item) for item in items]

        if self.op == "upsert":
            items = self.payload if isinstance(self.payload, list) else [self.payload]
            out = []
            for item in items:
                key = self.on_conflict or "id"
                existing = next((r for r in rows if r.get(key) == item.get(key)), None)
                if existing is None:
                    out.append(self.backend.insert_row(self.table, item))
                else:
                    existing.update(copy.deepcopy(item))
                    out.append(copy.deepcopy(existing))
            return out

        if self.op == "update":
            out = []
            for row in rows:
                if self._matches(row):
                    row.update(copy.deepcopy(self.payload))
                    out.append(copy.deepcopy(row))
            return out

        if self.op == "delete":
            removed = [r for r in rows if self._matches(r)]
            self.backend.tables[self.table] = [r for r in rows if not self._matches(r)]
            return copy.deepcopy(removed)

        raise AssertionError(f"unknown op {self.op}")

    def single(self) -> dict:
        rows = self.execute()
        if len(rows) != 1:
            raise BackendError("JSON object requested, multiple (or no) rows returned", code="PGRST116", status=406)
        return rows[0]

    def maybe_single(self) -> dict | None:
        try:
            return self.single()
        except BackendError as exc:
            if exc.is_no_rows:
                return None
            raise


class FakeStorage:
    def __init__(self, backend: FakeBackend):
        self.backend = backend
        self.objects: dict[tuple[str, str], bytes] = {}
        self.removed: list[tuple[str, str]] = []

    def upload(self, bucket, path, content, content_type="application/octet-stream", cache_control="3600", upsert=False):
        self.backend.calls.append(("storage", "upload"))
        self.objects[(bucket, path)] = content
        return path

    def remove(self, bucket, paths):
        self.backend.calls.append(("storage", "remove"))
        for path in paths:
            self.objects.pop((bucket, path), None)
            self.removed.append((bucket, path))

    def get_public_url(self, bucket, path):
        return build_public_url(self.backend.url, bucket, path)


class FakeAuth:
    def __init__(self, backend: FakeBackend):
        self.backend = backend
        self.users: dict[str, tuple[str, AuthUser]] = {}
        self.sessions: dict[str, Session] = {}
        self.confirm_email = False
        self._listeners: list = []

    def add_user(self, email: str, password: str = "secret123", user_id: str | None = None) -> Session:
        user = AuthUser(id=user_id or str(uuid.uuid4()), email=email)
        self.users[email] = (password, user)
        session = Session(access_token=f"token-{user.id}", user=user, refresh_token=f"refresh-{user.id}")
        self.sessions[session.access_token] = session
        return session

    def _emit(self, event, session):
        for callback in list(self._listeners):
            callback(event, session)

    def on_auth_state_change(self, callback):
        self._listeners.append(callback)
        return Subscription(self._listeners, callback)

    def sign_in_with_password(self, email, password):
        password_ok, user = self.users.get(email, (None, None))
        if user is None or password_ok != password:
            raise AuthenticationRequired("Invalid login credentials")
        session = self.sessions[f"token-{user.id}"]
        self._emit("SIGNED_IN", session)
        return session

    def sign_up(self, email, password):
        if email in self.users:
            raise AuthenticationRequired("User already registered")
        session = self.add_user(email, password)
        if self.confirm_email:
            return session.user, None
        self._emit("SIGNED_IN", session)
        return session.user, session

    def get_user(self, access_token):
        session = self.sessions.get(access_token)
        if session is None:
            raise AuthenticationRequired("Authentication required.")
        return session

    def set_session(self, access_token, refresh_token=None):
        session = self.get_user(access_token)
        self._emit("SIGNED_IN", session)
        return session

    def get_session(self):
        return None

    def sign_out(self, session=None):
        self._emit("SIGNED_OUT", session)

    def oauth_url(self, provider, redirect_to):
        return f"{self.backend.url}/auth/v1/authorize?provider={provider}&redirect_to={redirect_to}"


class FakeBackend:
    """Drop-in for :class:`BackendClient` backed by dict-of-lists tables."""

    url = "https://project.example.co"

    def __init__(self):
        self.tables: dict[str, list[dict]] = defaultdict(list)
        self.calls: list[tuple[str, str]] = []
        self.failures: dict[tuple[str, str | None], Exception] = {}
        self.rpc_handlers: dict[str, Callable[[dict], Any]] = {}
        self.storage = FakeStorage(self)
        self.auth = FakeAuth(self)
        self._clock = 0

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rpc(self, function: str, params: dict | None = None):
        self.calls.append(("rpc", function))
        handler = self.rpc_handlers.get(function)
        if handler is None:
            raise BackendError(f"Could not find the function {function}", code="PGRST202", status=404)
        return handler(params or {})

    def for_session(self, session: Session) -> FakeBackend:
        return self

    def close(self) -> None:
        pass

    def insert_row(self, table: str, row: dict) -> dict:
        stored = copy.deepcopy(row)
        stored.setdefault("id", str(uuid.uuid4()))
        self._clock += 1
        stored.setdefault("created_at", (_BASE_TIME + timedelta(seconds=self._clock)).isoformat())
        self.tables[table].append(stored)
        return copy.deepcopy(stored)

    def seed(self, table: str, *rows: dict) -> list[dict]:
        return [self.insert_row(table, row) for row in rows]

    def fail(self, table: str, exc: Exception | None = None, op: str | None = None) -> None:
        """Make every ``op`` (or any operation) on ``table`` raise."""
        self.failures[(table, op)] = exc or BackendError("relation error", code="42P01", status=500)

    def reads(self, table: str | None = None) -> int:
        return sum(1 for t, op in self.calls if op == "select" and (table is None or t == table))


class FakeGateway:
    """Payment gateway double.

    ``result`` is what the next confirmation returns. A successful result
    without an amount reports what was captured for that payment id, the
    way Stripe reports the amount of the PaymentIntent.
    """

    currency = "inr"
    configured = True

    def __init__(self):
        self.created: list[dict] = []
        self.result = PaymentResult(success=True, payment_id="pi_123", order_id="order_ref_1")

    def create_payment(self, amount, description, prefill, order_ref, user_id=""):
        self.created.append(
            {
                "amount": amount,
                "description": description,
                "prefill": prefill,
                "order_ref": order_ref,
                "user_id": user_id,
            }
        )
        return PaymentHandle(
            payment_id="pi_123", client_secret="pi_123_secret", amount=amount, currency="inr", order_ref=order_ref
        )

    def confirm(self, payment_id):
        if not self.result.success or self.result.amount_minor is not None or not self.created:
            return self.result
        captured = self.created[-1]
        return dataclasses.replace(
            self.result,
            amount_minor=to_minor_units(captured["amount"]),
            currency=self.currency,
            user_id=captured["user_id"] or None,
        )


# ── Fixtures ──────────────────────────────────────────────────────────────────


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def shopper(backend: FakeBackend) -> Session:
    """Customer with a complete profile and one default address."""
    session = backend.auth.add_user("asha@example.com", user_id="user-1")
    backend.seed(
        "user_profiles",
        {
            "id": "user-1",
            "email": "asha@example.com",
            "name": "Asha",
            "phone": "9876543210",
            "addresses": [
                {
                    "id": "addr-1",
                    "name": "Home",
                    "addressLine1": "12 MG Road",
                    "city": "Pune",
                    "state": "MH",
                    "pincode": "411001",
                    "country": "India",
                    "primaryPhone": "9876543210",
                    "isDefault": True,
                }
            ],
        },
    )
    return session


@pytest.fixture
def company_user(backend: FakeBackend) -> Session:
    session = backend.auth.add_user("vendor@example.com", user_id="vendor-1")
    backend.seed(
        "companies",
        {"id": "co-a", "user_id": "vendor-1", "company_name": "Green Farms", "company_logo_url": "logos/co-a.png", "is_approved": True},
    )
    return session


@pytest.fixture
def add_product(backend: FakeBackend) -> Callable[..., dict]:
    def _add(**fields: Any) -> dict:
        row = {
            "company_id": "co-a",
            "product_name": "Millet Flour",
            "product_description": "Stone ground",
            "original_price": 200.0,
            "discount_price": 150.0,
            "stock_quantity": 25,
            "product_photo_urls": ["images/co-a/millet.png"],
            "categories": [{"main": "Organic Groceries & Superfoods", "sub": "Organic Staples & Grains"}],
            "nutrients": [],
            "is_approved": True,
            "is_best_seller": False,
        }
        row.update(fields)
        return backend.seed("products", row)[0]

    return _add


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def settings() -> dict:
    return load_config("configs/default_config.yaml")
