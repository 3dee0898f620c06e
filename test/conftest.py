import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import uuid
from datetime import datetime, timezone

import pytest
from faker import Faker
from firebase_admin import firestore
from google.api_core.exceptions import FailedPrecondition, NotFound, ServiceUnavailable

from imtahan_push.config import Settings

fake = Faker()

FIXED_NOW = datetime(2026, 10, 18, 12, 0, 0, tzinfo=timezone.utc)


class FixedClock:
    """Clock returning a settable instant."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeSnapshot:
    def __init__(self, reference, data, update_time):
        self.reference = reference
        self.id = reference.id
        self._data = data
        self.update_time = update_time

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return dict(self._data) if self._data is not None else None


class FakeDocumentReference:
    def __init__(self, db, path):
        self._db = db
        self.path = path
        self.id = path.rsplit('/', 1)[-1]

    def get(self):
        return FakeSnapshot(self, self._db.docs.get(self.path), self._db.versions.get(self.path))

    def set(self, data):
        self._db.write(self.path, dict(data))

    def update(self, fields, option=None):
        if self.path not in self._db.docs:
            raise NotFound(f"No document to update: {self.path}")
        if option is not None and option['last_update_time'] != self._db.versions.get(self.path):
            raise FailedPrecondition(f"Document {self.path} changed since it was read")
        data = dict(self._db.docs[self.path])
        data.update(fields)
        self._db.write(self.path, data)

    def delete(self):
        self._db.remove(self.path)

    def collection(self, name):
        return FakeCollection(self._db, f"{self.path}/{name}")


class FakeQuery:
    OPS = {
        '==': lambda a, b: a == b,
        '<': lambda a, b: a < b,
        '<=': lambda a, b: a <= b,
        '>': lambda a, b: a > b,
        '>=': lambda a, b: a >= b,
    }

    def __init__(self, db, path, filters=(), limit_count=None):
        self._db = db
        self.path = path
        self._filters = list(filters)
        self._limit = limit_count

    def where(self, filter):
        return FakeQuery(self._db, self.path, self._filters + [filter], self._limit)

    def limit(self, count):
        return FakeQuery(self._db, self.path, self._filters, count)

    def _matches(self, data):
        for f in self._filters:
            if f.field_path not in data:
                return False
            if not self.OPS[f.op_string](data[f.field_path], f.value):
                return False
        return True

    def get(self):
        if self.path in self._db.failing_reads:
            raise ServiceUnavailable(f"Read of {self.path} failed")
        depth = self.path.count('/') + 1
        results = []
        for path, data in self._db.docs.items():
            if not path.startswith(self.path + '/') or path.count('/') != depth:
                continue
            if self._matches(data):
                results.append(FakeDocumentReference(self._db, path).get())
            if self._limit is not None and len(results) >= self._limit:
                break
        return results

    def stream(self):
        return iter(self.get())


class FakeCollection(FakeQuery):
    def document(self, document_id=None):
        return FakeDocumentReference(self._db, f"{self.path}/{document_id or uuid.uuid4().hex}")

    def add(self, data):
        ref = self.document()
        ref.set(data)
        return self._db.now(), ref


class FakeBatch:
    def __init__(self, db):
        self._db = db
        self._ops = []

    def delete(self, ref):
        self._ops.append(ref)

    def commit(self):
        if len(self._ops) > 500:
            raise ValueError("Firestore batches are limited to 500 writes")
        if self._db.failing_commits:
            self._db.failing_commits -= 1
            raise ServiceUnavailable("Batch commit failed")
        self._db.commits.append(len(self._ops))
        for ref in self._ops:
            self._db.remove(ref.path)


class FakeFirestore:
    """In-memory stand-in for the parts of the Firestore client the service uses."""

    def __init__(self, clock):
        self.now = clock
        self.docs = {}
        self.versions = {}
        self.commits = []
        self.writes = 0
        self.failing_reads = set()
        self.failing_commits = 0
        self._version = 0

    def collection(self, name):
        return FakeCollection(self, name)

    def batch(self):
        return FakeBatch(self)

    def write_option(self, last_update_time):
        return {'last_update_time': last_update_time}

    def write(self, path, data):
        for key, value in list(data.items()):
            if value is firestore.SERVER_TIMESTAMP:
                data[key] = self.now()
            elif value is firestore.DELETE_FIELD:
                del data[key]
        self._version += 1
        self.docs[path] = data
        self.versions[path] = self._version
        self.writes += 1

    def remove(self, path):
        self.docs.pop(path, None)
        self.versions.pop(path, None)
        self.writes += 1

    def seed(self, path, data):
        """Insert a document without counting it as a write."""
        self.write(path, dict(data))
        self.writes -= 1
        return FakeDocumentReference(self, path)


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def fake_db(clock):
    return FakeFirestore(clock)


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def user_id():
    return fake.uuid4()


@pytest.fixture
def device_token():
    return fake.sha256()
