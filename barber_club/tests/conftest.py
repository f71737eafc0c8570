import threading
import time
import uuid

import pytest

try:
    from barber_club import create_app
    from barber_club.data_service import DataService
    from barber_club.exceptions import DataServiceError, QueryCancelled
except ModuleNotFoundError:  # pragma: no cover - fallback for direct barber_club/ cwd test runs
    from __init__ import create_app
    from data_service import DataService
    from exceptions import DataServiceError, QueryCancelled


class MemoryDataService(DataService):
    """In-memory stand-in for the hosted tables with latency and failure hooks."""

    name = 'memory'

    def __init__(self, tables=None, delays=None, failures=None, failing_inserts=()):
        self.tables = {table: [dict(row) for row in rows] for table, rows in (tables or {}).items()}
        self.delays = dict(delays or {})
        self.failures = dict(failures or {})
        self.failing_inserts = set(failing_inserts)
        self.blobs = {}
        self.cancelled = []
        self._lock = threading.Lock()
        self._next_id = 1

    def _assign_id(self, row):
        row = dict(row)
        if 'id' not in row and 'key' not in row:
            row['id'] = self._next_id
            self._next_id += 1
        return row

    def select(self, table, *, order_by=None, descending=False, limit=None, cancel=None):
        delay = self.delays.get(table)
        if delay:
            if cancel is not None:
                if cancel.wait(delay):
                    self.cancelled.append(table)
                    raise QueryCancelled(table)
            else:
                time.sleep(delay)
        if table in self.failures:
            raise DataServiceError(self.failures[table], table=table)
        with self._lock:
            rows = [dict(row) for row in self.tables.get(table, [])]
        if order_by:
            rows.sort(key=lambda row: row.get(order_by) or '', reverse=descending)
        if limit:
            rows = rows[:limit]
        return rows

    def insert(self, table, rows):
        if table in self.failing_inserts:
            self.failing_inserts.discard(table)
            raise DataServiceError(f'insert into {table} rejected', table=table)
        with self._lock:
            created = [self._assign_id(row) for row in rows]
            self.tables.setdefault(table, []).extend(created)
        return created

    def upsert(self, table, row, on_conflict):
        with self._lock:
            rows = self.tables.setdefault(table, [])
            for existing in rows:
                if existing.get(on_conflict) == row[on_conflict]:
                    existing.update(row)
                    return [dict(existing)]
            rows.append(dict(row))
        return [dict(row)]

    def update(self, table, row_id, values):
        with self._lock:
            for existing in self.tables.get(table, []):
                if existing.get('id') == row_id:
                    existing.update(values)
        return []

    def delete(self, table, row_id):
        with self._lock:
            self.tables[table] = [row for row in self.tables.get(table, []) if row.get('id') != row_id]
        return []

    def delete_all(self, table):
        with self._lock:
            self.tables[table] = []
        return []

    def upload_blob(self, path, data, content_type):
        self.blobs[path] = (data, content_type)
        return f'https://cdn.example.test/barber-assets/{path}'

    def ping(self):
        if 'ping' in self.failures:
            raise DataServiceError(self.failures['ping'])


def build_test_app(tmp_path, monkeypatch, overrides=None, data_service=None, chat_factory=None):
    db_path = tmp_path / f"barber_test_{uuid.uuid4().hex[:8]}.db"
    upload_path = tmp_path / f"uploads_{uuid.uuid4().hex[:8]}"

    monkeypatch.delenv("SENTRY_DSN", raising=False)

    config = {
        "TESTING": True,
        "APP_ENV": "test",
        "DATA_BACKEND": "sql",
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
        "UPLOAD_FOLDER": str(upload_path),
        "SUPABASE_URL": "",
        "SUPABASE_ANON_KEY": "",
        "GEMINI_API_KEY": "",
        "SENTRY_DSN": "",
    }
    if overrides:
        config.update(overrides)

    return create_app(config, data_service=data_service, chat_factory=chat_factory)


@pytest.fixture()
def app(tmp_path, monkeypatch):
    return build_test_app(tmp_path, monkeypatch)


@pytest.fixture()
def client(app):
    return app.test_client()
