"""
Pytest configuration for Reembolso tests.

Sets up the test environment and provides an in-memory stand-in for the
asynchronous Supabase client: PostgREST-style table queries, a storage
bucket and an auth client that can push auth events.
"""
import os

# Disable config validation during tests
os.environ["VALIDATE_CONFIG"] = "false"

# Set test environment variables (before any reembolso import)
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("PROFILE_TRIGGER_DELAY_SECONDS", "0")

import copy
import uuid
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest
from postgrest.exceptions import APIError


def api_error(code: str, message: str = "backend failure") -> APIError:
    return APIError({"message": message, "code": code, "details": None, "hint": None})


class FakeQuery:
    """Minimal PostgREST request builder over a list of dict rows."""

    def __init__(self, db: "FakeSupabaseClient", table: str) -> None:
        self._db = db
        self._table = table
        self._op = "select"
        self._payload: Any = None
        self._filters: List[Tuple[str, Callable[[Dict[str, Any]], bool]]] = []
        self._order: Optional[Tuple[str, bool]] = None
        self._single = False

    # --- operations ---

    def select(self, columns: str = "*") -> "FakeQuery":
        self._op = "select"
        return self

    def insert(self, payload: Any) -> "FakeQuery":
        self._op = "insert"
        self._payload = payload
        return self

    def update(self, payload: Dict[str, Any]) -> "FakeQuery":
        self._op = "update"
        self._payload = payload
        return self

    def delete(self) -> "FakeQuery":
        self._op = "delete"
        return self

    # --- filters ---

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self._filters.append((f"eq.{column}", lambda row: row.get(column) == value))
        return self

    def gte(self, column: str, value: Any) -> "FakeQuery":
        self._filters.append(
            (f"gte.{column}", lambda row: row.get(column) is not None and row[column] >= value)
        )
        return self

    def lte(self, column: str, value: Any) -> "FakeQuery":
        self._filters.append(
            (f"lte.{column}", lambda row: row.get(column) is not None and row[column] <= value)
        )
        return self

    def is_(self, column: str, value: str) -> "FakeQuery":
        expected = None if value == "null" else value
        self._filters.append((f"is.{column}", lambda row: row.get(column) is expected))
        return self

    def or_(self, expression: str) -> "FakeQuery":
        # Only "col.ilike.%term%" alternatives are needed
        alternatives = []
        for part in expression.split(","):
            column, operator, pattern = part.split(".", 2)
            assert operator == "ilike"
            alternatives.append((column, pattern.strip("%").lower()))

        def matches(row: Dict[str, Any]) -> bool:
            return any(term in str(row.get(column) or "").lower() for column, term in alternatives)

        self._filters.append(("or", matches))
        return self

    def order(self, column: str, *, desc: bool = False) -> "FakeQuery":
        self._order = (column, desc)
        return self

    def single(self) -> "FakeQuery":
        self._single = True
        return self

    # --- execution ---

    def _matching(self) -> List[Dict[str, Any]]:
        rows = self._db.tables.setdefault(self._table, [])
        return [row for row in rows if all(check(row) for _, check in self._filters)]

    async def execute(self) -> SimpleNamespace:
        self._db.operations.append((self._table, self._op))

        failure = self._db.failures.get((self._table, self._op))
        if failure is not None:
            raise failure

        rows = self._db.tables.setdefault(self._table, [])

        if self._op == "insert":
            payload = self._payload if isinstance(self._payload, list) else [self._payload]
            inserted = []
            for item in payload:
                row = dict(item)
                row.setdefault("id", str(uuid.uuid4()))
                if any(existing["id"] == row["id"] for existing in rows):
                    raise api_error("23505", "duplicate key value violates unique constraint")
                rows.append(row)
                inserted.append(copy.deepcopy(row))
            return SimpleNamespace(data=inserted)

        matching = self._matching()

        if self._op == "update":
            for row in matching:
                row.update(self._payload)
            return SimpleNamespace(data=copy.deepcopy(matching))

        if self._op == "delete":
            self._db.tables[self._table] = [row for row in rows if row not in matching]
            return SimpleNamespace(data=copy.deepcopy(matching))

        result = copy.deepcopy(matching)
        if self._order is not None:
            column, desc = self._order
            result.sort(key=lambda row: row.get(column) or "", reverse=desc)

        if self._single:
            if len(result) != 1:
                raise api_error("PGRST116", "JSON object requested, multiple (or no) rows returned")
            return SimpleNamespace(data=result[0])

        return SimpleNamespace(data=result)


class FakeBucket:
    def __init__(self, storage: "FakeStorage", name: str) -> None:
        self._storage = storage
        self.name = name

    async def upload(self, path: str, file: bytes, file_options: Optional[Dict[str, str]] = None):
        self._storage.upload_calls.append(path)
        if self._storage.fail_upload is not None and self._storage.fail_upload(path):
            raise RuntimeError(f"upload rejected for {path}")
        self._storage.objects[(self.name, path)] = (file, dict(file_options or {}))
        return SimpleNamespace(path=path)

    async def create_signed_url(self, path: str, expires_in: int):
        self._storage.signed_calls.append((path, expires_in))
        if (self.name, path) not in self._storage.objects:
            raise RuntimeError("Object not found")
        return {
            "signedURL": f"http://localhost:54321/storage/v1/object/sign/{self.name}/{path}?token=t",
        }


class FakeStorage:
    def __init__(self) -> None:
        self.objects: Dict[Tuple[str, str], Tuple[bytes, Dict[str, str]]] = {}
        self.upload_calls: List[str] = []
        self.signed_calls: List[Tuple[str, int]] = []
        self.fail_upload: Optional[Callable[[str], bool]] = None

    def from_(self, bucket: str) -> FakeBucket:
        return FakeBucket(self, bucket)


class FakeSubscription:
    def __init__(self, auth: "FakeAuth", callback: Callable[..., None]) -> None:
        self._auth = auth
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        self.active = False
        if self in self._auth.subscriptions:
            self._auth.subscriptions.remove(self)


class FakeAuth:
    """
    Auth client stand-in following supabase-py: subscribing emits nothing,
    password sign-in emits SIGNED_IN and sign-out emits SIGNED_OUT.
    """

    def __init__(self) -> None:
        self.session: Optional[SimpleNamespace] = None
        self.subscriptions: List[FakeSubscription] = []
        # access token -> user, for get_user(jwt)
        self.tokens: Dict[str, SimpleNamespace] = {}
        # email -> user returned by sign_in_with_password
        self.accounts: Dict[str, SimpleNamespace] = {}
        self.sign_in_error: Optional[Exception] = None
        self.sign_up_error: Optional[Exception] = None
        self.sign_out_error: Optional[Exception] = None
        self.sign_up_calls: List[Dict[str, Any]] = []
        self.sign_out_calls = 0

    def on_auth_state_change(self, callback: Callable[..., None]) -> FakeSubscription:
        subscription = FakeSubscription(self, callback)
        self.subscriptions.append(subscription)
        return subscription

    def emit(self, event: str, session: Optional[SimpleNamespace]) -> None:
        for subscription in list(self.subscriptions):
            subscription.callback(event, session)

    async def get_session(self) -> Optional[SimpleNamespace]:
        return self.session

    async def get_user(self, jwt: Optional[str] = None) -> Optional[SimpleNamespace]:
        if jwt is not None:
            if jwt not in self.tokens:
                raise RuntimeError("invalid JWT: unable to parse or verify signature")
            return SimpleNamespace(user=self.tokens[jwt])
        if self.session is None:
            return None
        return SimpleNamespace(user=self.session.user)

    async def sign_in_with_password(self, credentials: Dict[str, str]) -> SimpleNamespace:
        if self.sign_in_error is not None:
            raise self.sign_in_error
        user = self.accounts.get(credentials["email"]) or make_user(email=credentials["email"])
        self.session = make_session(user)
        self.emit("SIGNED_IN", self.session)
        return SimpleNamespace(user=user, session=self.session)

    async def sign_up(self, credentials: Dict[str, Any]) -> SimpleNamespace:
        self.sign_up_calls.append(credentials)
        if self.sign_up_error is not None:
            raise self.sign_up_error
        metadata = credentials.get("options", {}).get("data", {})
        user = make_user(email=credentials["email"], name=metadata.get("name"))
        return SimpleNamespace(user=user, session=None)

    async def sign_out(self) -> None:
        self.sign_out_calls += 1
        if self.sign_out_error is not None:
            raise self.sign_out_error
        self.session = None
        self.emit("SIGNED_OUT", None)


class FakeSupabaseClient:
    """
    In-memory stand-in for supabase.AsyncClient.

    - tables: table name -> list of rows
    - operations: (table, op) log, in execution order
    - failures: (table, op) -> exception raised by execute()
    """

    def __init__(self) -> None:
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.operations: List[Tuple[str, str]] = []
        self.failures: Dict[Tuple[str, str], Exception] = {}
        self.storage = FakeStorage()
        self.auth = FakeAuth()

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def count(self, table: str, op: str) -> int:
        return sum(1 for entry in self.operations if entry == (table, op))


def make_user(user_id: Optional[str] = None, email: str = "ana@example.com", name: Optional[str] = None):
    metadata = {"name": name} if name else {}
    return SimpleNamespace(id=user_id or str(uuid.uuid4()), email=email, user_metadata=metadata)


def make_session(user: SimpleNamespace) -> SimpleNamespace:
    return SimpleNamespace(user=user, access_token=f"token-{user.id}")


@pytest.fixture
def fake_client() -> FakeSupabaseClient:
    """Empty in-memory Supabase client."""
    return FakeSupabaseClient()


@pytest.fixture
def signed_in_user(fake_client):
    """A user with an active session on fake_client (no profile row yet)."""
    user = make_user(user_id="user-1", email="ana@example.com", name="Ana")
    fake_client.auth.session = make_session(user)
    return user
