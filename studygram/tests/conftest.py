# studygram/tests/conftest.py
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from studygram.config.settings import Settings
from studygram.config.supabase import SupabaseClient
from studygram.services.blob_storage import BlobStorageClient
from studygram.services.completion_client import CompletionClient
from studygram.services.container import build_services
from studygram.services.study_data_service import StudyDataService


def make_settings(**overrides) -> Settings:
    """Settings that ignore the developer's environment and .env file."""
    values = {
        "supabase_url": "https://testproject.supabase.co",
        "supabase_service_role_key": "service-role-key",
        "supabase_anon_key": "anon-key",
        "database_url": None,
        "openai_api_key": "sk-test-key-123456",
        "openai_model": "gpt-3.5-turbo",
        "blob_read_write_token": "vercel_blob_rw_test",
        "stripe_secret_key": "sk_test_stripe",
        "stripe_webhook_secret": "whsec_test",
        "app_url": "https://studygram.test",
        "environment": "test",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


# --- Fake Supabase client ---
class FakeDB:

    def __init__(self):
        self.tables = {}
        self.fail_tables = set()
        self.calls = []
        self._ids = 0

    def next_id(self):
        self._ids += 1
        return f"row-{self._ids}"

    def seed(self, table, *rows):
        self.tables.setdefault(table, []).extend(dict(r) for r in rows)

    def rows(self, table):
        return self.tables.get(table, [])

    def calls_for(self, table, op=None):
        return [c for c in self.calls if c[0] == table and (op is None or c[1] == op)]


class FakeQuery:

    def __init__(self, db, name):
        self.db = db
        self.name = name
        self._filters = []
        self._order = None
        self._limit = None
        self._operation = ("select", None, None)

    # Query building (chainable)
    def select(self, *args, **kwargs):
        return self

    def eq(self, col, val):
        self._filters.append(lambda r: str(r.get(col)) == str(val))
        return self

    def in_(self, col, values):
        wanted = [str(v) for v in values]
        self._filters.append(lambda r: str(r.get(col)) in wanted)
        return self

    def order(self, col, desc=False):
        self._order = (col, desc)
        return self

    def limit(self, n):
        self._limit = n
        return self

    def insert(self, payload):
        self._operation = ("insert", payload, None)
        return self

    def update(self, payload):
        self._operation = ("update", payload, None)
        return self

    def upsert(self, payload, on_conflict=None):
        self._operation = ("upsert", payload, on_conflict)
        return self

    def _matches(self):
        return [r for r in self.db.rows(self.name) if all(f(r) for f in self._filters)]

    def execute(self):
        op, payload, conflict = self._operation
        self.db.calls.append((self.name, op, payload))
        if self.name in self.db.fail_tables:
            raise RuntimeError(f"connection refused while querying {self.name}")

        if op == "select":
            found = self._matches()
            if self._order:
                col, desc = self._order
                found = sorted(found, key=lambda r: str(r.get(col) or ""), reverse=desc)
            if self._limit:
                found = found[: self._limit]
            return SimpleNamespace(data=[dict(r) for r in found], status_code=200)
        if op == "insert":
            row = dict(payload)
            row.setdefault("id", self.db.next_id())
            self.db.tables.setdefault(self.name, []).append(row)
            return SimpleNamespace(data=[dict(row)], status_code=201)
        if op == "update":
            updated = []
            for r in self._matches():
                r.update(payload)
                updated.append(dict(r))
            return SimpleNamespace(data=updated, status_code=200)
        if op == "upsert":
            table = self.db.tables.setdefault(self.name, [])
            key = conflict or "id"
            for r in table:
                if key in payload and r.get(key) == payload[key]:
                    r.update(payload)
                    return SimpleNamespace(data=[dict(r)], status_code=200)
            table.append(dict(payload))
            return SimpleNamespace(data=[dict(payload)], status_code=201)
        raise AssertionError(f"unsupported operation {op}")


class FakeSupabaseClient:

    def __init__(self, db):
        self.db = db

    def table(self, name):
        return FakeQuery(self.db, name)


# --- Fake OpenAI client, same shape as the SDK's chat.completions.create ---
class FakeOpenAI:

    def __init__(self, content="Photosynthesis turns light into chemical energy.", usage=None, error=None):
        self.content = content
        self.usage = usage if usage is not None else SimpleNamespace(
            prompt_tokens=120, completion_tokens=40, total_tokens=160
        )
        self.error = error
        self.calls = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=self.content))],
            usage=self.usage,
            model=kwargs.get("model"),
        )


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def fake_db():
    return FakeDB()


@pytest.fixture
def supabase(settings, fake_db):
    return SupabaseClient(settings, client=FakeSupabaseClient(fake_db))


@pytest.fixture
def study_data(supabase):
    return StudyDataService(supabase)


@pytest.fixture
def fake_openai():
    return FakeOpenAI()


@pytest.fixture
def completion(settings, fake_openai):
    return CompletionClient(settings, client=fake_openai)


@pytest.fixture
def fake_stripe():
    return MagicMock(name="stripe")


@pytest.fixture
def services(settings, supabase, completion, fake_stripe):
    return build_services(
        settings,
        supabase=supabase,
        completion=completion,
        blob=BlobStorageClient(settings),
        stripe_api=fake_stripe,
    )


@pytest.fixture
def client(settings, services):
    from main import create_app

    return TestClient(create_app(settings, services))
