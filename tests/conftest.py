"""
Pytest configuration for Supplai backend tests.

The app runs in-process against FakeSupabase, an in-memory stand-in for the
Supabase client: table queries, RPCs, auth and realtime channels. Access
tokens are real HS256 tokens signed with the test secret.
"""

import os

os.environ.setdefault("SUPABASE_JWT_SECRET", "test-secret-test-secret-test-secret-1234")
os.environ.setdefault("SUPABASE_URL", "http://supabase.test")
os.environ.setdefault("SUPABASE_ANON_KEY", "anon-key")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "service-role-key")
os.environ.setdefault("CRON_SECRET", "cron-secret")

import asyncio  # noqa: E402
import re  # noqa: E402
import uuid  # noqa: E402
from datetime import UTC, datetime, timedelta  # noqa: E402
from types import SimpleNamespace  # noqa: E402
from typing import Any, Callable  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from jose import jwt  # noqa: E402
from starlette.requests import HTTPConnection  # noqa: E402
from supabase import PostgrestAPIError  # noqa: E402

from supplai.core.config import settings  # noqa: E402
from supplai.core.dependencies import get_admin_supabase, get_supabase  # noqa: E402
from supplai.core.security import read_claims  # noqa: E402


def iso(dt: datetime) -> str:
    return dt.isoformat()


def ago(**kwargs: float) -> str:
    return iso(datetime.now(UTC) - timedelta(**kwargs))


def _norm(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float)):
        return value
    return str(value)


def _value(row: dict[str, Any], column: str) -> Any:
    """Read `column` from a row; dotted names reach into embedded rows."""
    value: Any = row
    for part in column.split("."):
        value = value.get(part) if isinstance(value, dict) else None
    return value


def _sort_key(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return value
    return value


# ---------------------------------------------------------------------------
# Table queries
# ---------------------------------------------------------------------------

class FakeQuery:
    """Chainable query over one in-memory table, like the postgrest builder."""

    def __init__(self, db: "FakeSupabase", table: str) -> None:
        self.db = db
        self.table = table
        self.action = "select"
        self.payload: Any = None
        self.filters: list[Callable[[dict[str, Any]], bool]] = []
        self.ordering: list[tuple[str, bool]] = []
        self.row_limit: int | None = None
        self.embeds: list[str] = []

    # Actions
    def select(self, *columns: str, **kwargs: Any) -> "FakeQuery":
        # Only inner embeds such as `orders!inner(organization_id)` are understood
        self.embeds = re.findall(r"(\w+)!inner\(", ",".join(columns))
        return self

    def insert(self, rows: Any) -> "FakeQuery":
        self.action, self.payload = "insert", rows
        return self

    def update(self, changes: dict[str, Any]) -> "FakeQuery":
        self.action, self.payload = "update", changes
        return self

    def upsert(self, rows: Any, on_conflict: str = "id") -> "FakeQuery":
        self.action, self.payload = "upsert", rows
        return self

    def delete(self) -> "FakeQuery":
        self.action = "delete"
        return self

    # Filters
    def eq(self, column: str, value: Any) -> "FakeQuery":
        self.filters.append(lambda r: _norm(_value(r, column)) == _norm(value))
        return self

    def neq(self, column: str, value: Any) -> "FakeQuery":
        self.filters.append(lambda r: _norm(_value(r, column)) != _norm(value))
        return self

    def is_(self, column: str, value: str) -> "FakeQuery":
        assert value == "null"
        self.filters.append(lambda r: _value(r, column) is None)
        return self

    def in_(self, column: str, values: list[Any]) -> "FakeQuery":
        wanted = {_norm(v) for v in values}
        self.filters.append(lambda r: _norm(_value(r, column)) in wanted)
        return self

    def _compare(self, column: str, value: Any, op: Callable[[Any, Any], bool]) -> "FakeQuery":
        self.filters.append(
            lambda r: _value(r, column) is not None
            and op(_sort_key(_value(r, column)), _sort_key(value))
        )
        return self

    def gt(self, column: str, value: Any) -> "FakeQuery":
        return self._compare(column, value, lambda a, b: a > b)

    def gte(self, column: str, value: Any) -> "FakeQuery":
        return self._compare(column, value, lambda a, b: a >= b)

    def lt(self, column: str, value: Any) -> "FakeQuery":
        return self._compare(column, value, lambda a, b: a < b)

    def lte(self, column: str, value: Any) -> "FakeQuery":
        return self._compare(column, value, lambda a, b: a <= b)

    # Modifiers
    def order(self, column: str, desc: bool = False) -> "FakeQuery":
        self.ordering.append((column, desc))
        return self

    def limit(self, count: int) -> "FakeQuery":
        self.row_limit = count
        return self

    def _matches(self, row: dict[str, Any]) -> bool:
        return all(f(row) for f in self.filters)

    def _embed(self, row: dict[str, Any]) -> dict[str, Any] | None:
        for table in self.embeds:
            related = self.db.rows(table, id=row.get(f"{table.removesuffix('s')}_id"))
            if not related:
                return None
            row[table] = dict(related[0])
        return row

    async def execute(self) -> SimpleNamespace:
        self.db.raise_if_failing(self.table, self.action)
        rows = self.db.tables.setdefault(self.table, [])

        if self.action == "insert":
            payload = self.payload if isinstance(self.payload, list) else [self.payload]
            data = [self.db.insert_row(self.table, r) for r in payload]
        elif self.action == "upsert":
            payload = self.payload if isinstance(self.payload, list) else [self.payload]
            data = []
            for r in payload:
                existing = next((row for row in rows if row["id"] == r.get("id")), None)
                if existing is None:
                    data.append(self.db.insert_row(self.table, r))
                else:
                    existing.update(r)
                    data.append(dict(existing))
        elif self.action == "update":
            data = []
            for row in rows:
                if self._matches(row):
                    row.update(self.payload)
                    data.append(dict(row))
        elif self.action == "delete":
            data = [dict(row) for row in rows if self._matches(row)]
            self.db.tables[self.table] = [row for row in rows if not self._matches(row)]
        else:
            embedded = (self._embed(dict(row)) for row in rows)
            data = [row for row in embedded if row is not None and self._matches(row)]
            for column, desc in reversed(self.ordering):
                data.sort(
                    key=lambda r: (_value(r, column) is None, _sort_key(_value(r, column))),
                    reverse=desc,
                )
            if self.row_limit is not None:
                data = data[: self.row_limit]

        return SimpleNamespace(data=data, count=len(data))


class FakeRpc:
    def __init__(self, db: "FakeSupabase", name: str, params: dict[str, Any]) -> None:
        self.db = db
        self.name = name
        self.params = params

    async def execute(self) -> SimpleNamespace:
        self.db.raise_if_failing("rpc", self.name)
        handler = self.db.rpc_handlers[self.name]
        return SimpleNamespace(data=handler(self.params))


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

def make_session(access_token: str = "access-token") -> SimpleNamespace:
    return SimpleNamespace(
        access_token=access_token, refresh_token="refresh-token", expires_in=3600
    )


class FakeAuthAdmin:
    def __init__(self, auth: "FakeAuth") -> None:
        self.auth = auth

    async def update_user_by_id(self, uid: str, attributes: dict[str, Any]) -> SimpleNamespace:
        return self.auth.record("update_user_by_id", uid, attributes)


class FakeAuth:
    """Records every call; `errors[name]` makes that call raise."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.errors: dict[str, Exception] = {}
        self.session: SimpleNamespace | None = make_session()
        self.sign_up_session: SimpleNamespace | None = None
        self.admin = FakeAuthAdmin(self)

    def record(self, name: str, *args: Any) -> SimpleNamespace:
        self.calls.append((name, args))
        if name in self.errors:
            raise self.errors[name]
        return SimpleNamespace(session=self.session, user=None)

    def called(self, name: str) -> list[tuple[Any, ...]]:
        return [args for call, args in self.calls if call == name]

    async def sign_in_with_password(self, credentials: dict[str, Any]) -> SimpleNamespace:
        return self.record("sign_in_with_password", credentials)

    async def sign_up(self, credentials: dict[str, Any]) -> SimpleNamespace:
        self.record("sign_up", credentials)
        return SimpleNamespace(session=self.sign_up_session, user=None)

    async def sign_out(self) -> None:
        self.record("sign_out")

    async def reset_password_for_email(self, email: str, options: dict[str, Any]) -> None:
        self.record("reset_password_for_email", email, options)

    async def verify_otp(self, params: dict[str, Any]) -> SimpleNamespace:
        return self.record("verify_otp", params)

    async def resend(self, params: dict[str, Any]) -> None:
        self.record("resend", params)

    async def exchange_code_for_session(self, params: dict[str, Any]) -> SimpleNamespace:
        return self.record("exchange_code_for_session", params)

    async def refresh_session(self, refresh_token: str | None = None) -> SimpleNamespace:
        return self.record("refresh_session", refresh_token)


# ---------------------------------------------------------------------------
# Realtime
# ---------------------------------------------------------------------------

class FakeRealtime:
    def __init__(self) -> None:
        self.tokens: list[str] = []

    async def set_auth(self, token: str) -> None:
        self.tokens.append(token)


class FakeChannel:
    def __init__(self, db: "FakeSupabase", name: str) -> None:
        self.db = db
        self.name = name
        self.bindings: list[dict[str, Any]] = []
        self.subscribed = False

    def on_postgres_changes(self, event: str, callback: Callable, **kwargs: Any) -> "FakeChannel":
        self.bindings.append({"event": event, "callback": callback, **kwargs})
        return self

    async def subscribe(self) -> "FakeChannel":
        self.subscribed = True
        # Replay updates queued for this channel from inside the running loop
        loop = asyncio.get_running_loop()
        for record in self.db.pending_updates.pop(self.name, []):
            loop.call_soon(self.emit, record)
        return self

    def emit(self, record: dict[str, Any]) -> None:
        payload = {"data": {"type": "UPDATE", "table": "supplier_orders", "record": record}}
        for binding in self.bindings:
            binding["callback"](payload)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class FakeSupabase:
    """
    In-memory Supabase client.

    There is no row level security: `user_id` is the caller of the current
    request and only the RPCs look at it.
    """

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.failures: dict[tuple[str, str], str] = {}
        self.user_id: str | None = None
        self.auth = FakeAuth()
        self.realtime = FakeRealtime()
        self.channels: list[FakeChannel] = []
        self.removed_channels: list[FakeChannel] = []
        self.pending_updates: dict[str, list[dict[str, Any]]] = {}
        self._tick = 0
        self.rpc_handlers: dict[str, Callable[[dict[str, Any]], Any]] = {
            "get_user_organizations": self._rpc_user_organizations,
            "get_user_role": self._rpc_user_role,
            "create_organization_with_membership": self._rpc_create_organization,
            "accept_invitation": self._rpc_accept_invitation,
            "get_invitation_by_token": self._rpc_invitation_by_token,
        }

    # Client surface
    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rpc(self, name: str, params: dict[str, Any] | None = None) -> FakeRpc:
        return FakeRpc(self, name, params or {})

    def channel(self, name: str) -> FakeChannel:
        channel = FakeChannel(self, name)
        self.channels.append(channel)
        return channel

    async def remove_channel(self, channel: FakeChannel) -> None:
        channel.subscribed = False
        self.removed_channels.append(channel)

    # Failure injection
    def fail(self, table: str, action: str, message: str = "boom") -> None:
        self.failures[(table, action)] = message

    def raise_if_failing(self, table: str, action: str) -> None:
        message = self.failures.get((table, action))
        if message is not None:
            raise PostgrestAPIError({"message": message, "code": "P0001"})

    # Rows
    def insert_row(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        self._tick += 1
        stored = {
            "id": str(uuid.uuid4()),
            "created_at": iso(datetime.now(UTC) + timedelta(microseconds=self._tick)),
            **{k: _norm(v) if isinstance(v, uuid.UUID) else v for k, v in row.items()},
        }
        self.tables.setdefault(table, []).append(stored)
        return dict(stored)

    def rows(self, table: str, **match: Any) -> list[dict[str, Any]]:
        return [
            r for r in self.tables.get(table, [])
            if all(_norm(r.get(k)) == _norm(v) for k, v in match.items())
        ]

    # Seeding
    def add_user(self, email: str, full_name: str | None = "Test User") -> dict[str, Any]:
        return self.insert_row("profiles", {"email": email, "full_name": full_name})

    def add_org(self, name: str, slug: str) -> dict[str, Any]:
        return self.insert_row("organizations", {"name": name, "slug": slug})

    def add_member(self, org: dict[str, Any], user: dict[str, Any], role: str = "member") -> dict[str, Any]:
        return self.insert_row(
            "memberships",
            {
                "organization_id": org["id"],
                "user_id": user["id"],
                "role": role,
                "joined_at": iso(datetime.now(UTC) + timedelta(microseconds=self._tick)),
            },
        )

    def add_supplier(self, org: dict[str, Any], name: str, email: str | None = "orders@supplier.example.com") -> dict[str, Any]:
        return self.insert_row(
            "suppliers",
            {
                "organization_id": org["id"],
                "name": name,
                "email": email,
                "category": "other",
                "custom_keywords": [],
                "deleted_at": None,
            },
        )

    def add_order(self, org: dict[str, Any], user: dict[str, Any], status: str = "draft", **extra: Any) -> dict[str, Any]:
        return self.insert_row(
            "orders",
            {
                "organization_id": org["id"],
                "created_by": user["id"],
                "status": status,
                "sent_at": None,
                **extra,
            },
        )

    def add_item(
        self, order: dict[str, Any], supplier: dict[str, Any] | None, product: str = "Tomatoes", **extra: Any
    ) -> dict[str, Any]:
        return self.insert_row(
            "order_items",
            {
                "order_id": order["id"],
                "supplier_id": supplier["id"] if supplier else None,
                "product": product,
                "quantity": 2,
                "unit": "kg",
                "confidence_score": 0.9,
                **extra,
            },
        )

    # RPCs
    def _rpc_user_organizations(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        result = []
        for m in sorted(self.rows("memberships", user_id=self.user_id), key=lambda r: r["joined_at"]):
            org = self.rows("organizations", id=m["organization_id"])[0]
            result.append(
                {
                    "organization_id": org["id"],
                    "organization_name": org["name"],
                    "organization_slug": org["slug"],
                    "user_role": m["role"],
                }
            )
        return result

    def _rpc_user_role(self, params: dict[str, Any]) -> str | None:
        rows = self.rows("memberships", user_id=self.user_id, organization_id=params["organization_id"])
        return rows[0]["role"] if rows else None

    def _rpc_create_organization(self, params: dict[str, Any]) -> str:
        slug = params["org_slug"] or params["org_name"].lower().replace(" ", "-")
        if self.rows("organizations", slug=slug):
            raise PostgrestAPIError(
                {"message": 'duplicate key value violates unique constraint "organizations_slug_key"', "code": "23505"}
            )
        org = self.add_org(params["org_name"], slug)
        self.add_member(org, {"id": self.user_id}, "admin")
        return org["id"]

    def _rpc_accept_invitation(self, params: dict[str, Any]) -> str:
        rows = self.rows("invitations", token=params["invitation_token"])
        if not rows or rows[0].get("accepted_at"):
            raise PostgrestAPIError({"message": "Invalid invitation", "code": "P0001"})
        invitation = rows[0]
        if _sort_key(invitation["expires_at"]) < datetime.now(UTC):
            raise PostgrestAPIError({"message": "Invitation has expired", "code": "P0001"})
        if self.rows("memberships", organization_id=invitation["organization_id"], user_id=self.user_id):
            raise PostgrestAPIError({"message": "User is already a member", "code": "P0001"})
        self.add_member({"id": invitation["organization_id"]}, {"id": self.user_id}, invitation["role"])
        invitation["accepted_at"] = iso(datetime.now(UTC))
        return invitation["organization_id"]

    def _rpc_invitation_by_token(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        rows = self.rows("invitations", token=params["invitation_token"])
        if not rows:
            return []
        invitation = rows[0]
        org = self.rows("organizations", id=invitation["organization_id"])[0]
        inviter = self.rows("profiles", id=invitation.get("invited_by"))
        return [
            {
                "email": invitation["email"],
                "organization_name": org["name"],
                "invited_by_name": inviter[0]["full_name"] if inviter else None,
                "role": invitation["role"],
                "is_valid": invitation.get("accepted_at") is None
                and _sort_key(invitation["expires_at"]) > datetime.now(UTC),
            }
        ]


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------

def make_token(user: dict[str, Any], expires_in: int = 3600, **claims: Any) -> str:
    payload = {
        "sub": user["id"],
        "email": user.get("email", ""),
        "aud": settings.JWT_AUDIENCE,
        "role": "authenticated",
        "exp": int((datetime.now(UTC) + timedelta(seconds=expires_in)).timestamp()),
        **claims,
    }
    return jwt.encode(payload, settings.SUPABASE_JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def auth_headers(user: dict[str, Any]) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user)}"}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

class TaskRecorder:
    """Stands in for a Celery task: `.delay()` only records its arguments."""

    def __init__(self) -> None:
        self.calls: list[tuple[tuple[Any, ...], dict[str, Any]]] = []
        self.error: Exception | None = None

    def delay(self, *args: Any, **kwargs: Any) -> None:
        if self.error is not None:
            raise self.error
        self.calls.append((args, kwargs))


@pytest.fixture
def fake() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def tasks(monkeypatch: pytest.MonkeyPatch) -> SimpleNamespace:
    from supplai.workers import email_tasks

    recorded = SimpleNamespace(supplier_order=TaskRecorder(), invitation=TaskRecorder())
    monkeypatch.setattr(email_tasks, "send_supplier_order_email", recorded.supplier_order)
    monkeypatch.setattr(email_tasks, "send_invitation_email", recorded.invitation)
    return recorded


@pytest.fixture
def app(fake: FakeSupabase, tasks: SimpleNamespace, monkeypatch: pytest.MonkeyPatch):
    from supplai.main import app as fastapi_app

    async def server_client(*args: Any, **kwargs: Any) -> FakeSupabase:
        return fake

    monkeypatch.setattr("supplai.core.middleware.create_server_client", server_client)

    async def request_client(conn: HTTPConnection) -> FakeSupabase:
        claims = read_claims(conn)
        fake.user_id = claims["sub"] if claims else None
        return fake

    async def admin_client() -> FakeSupabase:
        return fake

    fastapi_app.dependency_overrides[get_supabase] = request_client
    fastapi_app.dependency_overrides[get_admin_supabase] = admin_client
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> httpx.AsyncClient:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def acme(fake: FakeSupabase) -> SimpleNamespace:
    """Organization `acme` with an admin, a member and two suppliers."""
    org = fake.add_org("Acme Foods", "acme")
    admin = fake.add_user("admin@acme.example.com", "Ada Admin")
    member = fake.add_user("member@acme.example.com", "Max Member")
    fake.add_member(org, admin, "admin")
    fake.add_member(org, member, "member")
    return SimpleNamespace(
        org=org,
        admin=admin,
        member=member,
        produce=fake.add_supplier(org, "Green Produce", "green@produce.example.com"),
        dairy=fake.add_supplier(org, "Daily Dairy", "hello@dairy.example.com"),
    )
