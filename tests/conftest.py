import copy
import itertools

import pytest
import stripe

from hoho import create_app
from hoho.config import AppConfig
from hoho.context import AppContext

TEST_WEBHOOK_SECRET = "whsec_test_secret"
TEST_GRANT_SECRET = "grant-secret"
MAX_TRANSACTION_ATTEMPTS = 5


class FakeIncrement:
    def __init__(self, value):
        self.value = value


def _apply_updates(current, updates):
    merged = dict(current)
    for key, value in updates.items():
        if isinstance(value, FakeIncrement):
            merged[key] = (merged.get(key) or 0) + value.value
        else:
            merged[key] = value
    return merged


class FakeSnapshot:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None


class FakeDocRef:
    def __init__(self, db, collection_name, doc_id):
        self._db = db
        self.collection_name = collection_name
        self.id = doc_id

    @property
    def _docs(self):
        return self._db.collections.setdefault(self.collection_name, {})

    @property
    def _key(self):
        return (self.collection_name, self.id)

    def get(self, transaction=None):
        self._db.reads += 1
        if self._db.fail_reads:
            raise RuntimeError("firestore unavailable")
        if transaction is not None:
            transaction.reads.setdefault(self._key, self._db.versions.get(self._key, 0))
        return FakeSnapshot(self.id, copy.deepcopy(self._docs.get(self.id)))

    def set(self, data, merge=False):
        current = self._docs.get(self.id) if merge else None
        self._docs[self.id] = _apply_updates(current or {}, data)
        self._db.bump(self._key)

    def update(self, updates):
        if self.id not in self._docs:
            raise KeyError(f"No document to update: {self.collection_name}/{self.id}")
        self._docs[self.id] = _apply_updates(self._docs[self.id], updates)
        self._db.bump(self._key)


class FakeQuery:
    def __init__(self, db, collection_name, filters=None, order=None, limit_count=None):
        self._db = db
        self._collection_name = collection_name
        self._filters = list(filters or [])
        self._order = order
        self._limit = limit_count

    def _copy(self, **changes):
        state = {
            "filters": self._filters,
            "order": self._order,
            "limit_count": self._limit,
        }
        state.update(changes)
        return FakeQuery(self._db, self._collection_name, **state)

    def where(self, field_path, op_string, value):
        assert op_string == "=="
        return self._copy(filters=self._filters + [(field_path, value)])

    def order_by(self, field_path, direction=None):
        return self._copy(order=(field_path, direction == FakeQueryConstants.DESCENDING))

    def limit(self, count):
        return self._copy(limit_count=count)

    def stream(self):
        docs = self._db.collections.get(self._collection_name, {})
        rows = [
            (doc_id, data) for doc_id, data in docs.items()
            if all(data.get(field) == value for field, value in self._filters)
        ]
        if self._order:
            field_path, descending = self._order
            rows.sort(key=lambda row: row[1].get(field_path, 0), reverse=descending)
        if self._limit is not None:
            rows = rows[:self._limit]
        return [FakeSnapshot(doc_id, copy.deepcopy(data)) for doc_id, data in rows]


class FakeCollection(FakeQuery):
    _auto_ids = itertools.count(1)

    def document(self, doc_id):
        return FakeDocRef(self._db, self._collection_name, doc_id)

    def add(self, data):
        ref = self.document(f"auto-{next(self._auto_ids)}")
        ref.set(data)
        return None, ref


class FakeTransaction:
    """Buffers writes until commit and refuses to commit over documents that
    changed after they were read, like a contended Firestore transaction."""

    def __init__(self, db):
        self.db = db
        self.reads = {}
        self.writes = []

    def set(self, ref, data, merge=False):
        self.writes.append(("set", ref, data, merge))

    def update(self, ref, updates):
        self.writes.append(("update", ref, updates, False))

    def commit(self):
        interleaved = self.db.before_commit
        if interleaved is not None:
            self.db.before_commit = None
            interleaved()
        if any(self.db.versions.get(key, 0) != version for key, version in self.reads.items()):
            self.writes = []
            return False
        for kind, ref, data, merge in self.writes:
            if kind == "set":
                ref.set(data, merge=merge)
            else:
                ref.update(data)
        self.writes = []
        return True


class FakeDB:
    def __init__(self):
        self.collections = {}
        self.reads = 0
        self.fail_reads = False
        self.versions = {}
        self.before_commit = None
        self.commit_conflicts = 0

    def collection(self, name):
        return FakeCollection(self, name)

    def transaction(self):
        return FakeTransaction(self)

    def bump(self, key):
        self.versions[key] = self.versions.get(key, 0) + 1

    def doc(self, collection_name, doc_id):
        return copy.deepcopy(self.collections.get(collection_name, {}).get(doc_id))

    def put(self, collection_name, doc_id, data):
        self.collections.setdefault(collection_name, {})[doc_id] = copy.deepcopy(data)
        self.bump((collection_name, doc_id))


class FakeQueryConstants:
    DESCENDING = "DESCENDING"
    ASCENDING = "ASCENDING"


class FakeFirestoreModule:
    Increment = FakeIncrement
    Query = FakeQueryConstants

    @staticmethod
    def transactional(fn):
        def _run(transaction):
            for _attempt in range(MAX_TRANSACTION_ATTEMPTS):
                result = fn(transaction)
                if transaction.commit():
                    return result
                transaction.db.commit_conflicts += 1
                transaction = transaction.db.transaction()
            raise RuntimeError("transaction contention")
        return _run


class FakeAuth:
    def __init__(self):
        self.tokens = {}

    def add_user(self, token, uid, provider="anonymous"):
        self.tokens[token] = {"uid": uid, "firebase": {"sign_in_provider": provider}}

    def verify_id_token(self, token):
        if token not in self.tokens:
            raise ValueError("invalid token")
        return dict(self.tokens[token])


class FakeBlob:
    def __init__(self, bucket, name):
        self.bucket = bucket
        self.name = name
        self.metadata = None

    def upload_from_string(self, data, content_type=None):
        if self.bucket.fail_uploads:
            raise RuntimeError("upload refused")
        self.bucket.uploads[self.name] = {
            "data": data,
            "content_type": content_type,
            "metadata": dict(self.metadata or {}),
        }


class FakeBucket:
    def __init__(self, name="hoho-test.appspot.com"):
        self.name = name
        self.uploads = {}
        self.fail_uploads = False

    def blob(self, name):
        return FakeBlob(self, name)


class FakeLipsync:
    def __init__(self, configured=True):
        self.configured = configured
        self.calls = []
        self.result = ("https://cdn.example.com/video.mp4", "req-123")
        self.error = None

    @property
    def is_configured(self):
        return self.configured

    def generate(self, audio_url, image_url, cancel_event=None):
        self.calls.append((audio_url, image_url, cancel_event))
        if self.error is not None:
            raise self.error
        return self.result


def make_config(**overrides):
    values = {
        "environment": "test",
        "stripe_webhook_secret": TEST_WEBHOOK_SECRET,
        "manual_grant_secret": TEST_GRANT_SECRET,
        "rate_limit_firestore_enabled": False,
    }
    values.update(overrides)
    return AppConfig(**values)


@pytest.fixture()
def fake_db():
    return FakeDB()


@pytest.fixture()
def fake_firestore():
    return FakeFirestoreModule


@pytest.fixture()
def fake_auth():
    auth = FakeAuth()
    auth.add_user("anon-token", "anon-uid", "anonymous")
    auth.add_user("google-token", "google-uid", "google.com")
    auth.add_user("other-token", "other-uid", "anonymous")
    return auth


@pytest.fixture()
def app_ctx(fake_db, fake_auth):
    ctx = AppContext(
        make_config(),
        db=fake_db,
        bucket=FakeBucket(),
        auth=fake_auth,
        firestore=FakeFirestoreModule,
        stripe=stripe,
        lipsync=FakeLipsync(),
    )
    ctx.synthesize_speech = lambda text: b"RIFF-fake-wav"
    return ctx


@pytest.fixture()
def app(app_ctx):
    flask_app = create_app(config=app_ctx.config, app_ctx=app_ctx)
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture()
def client(app):
    with app.test_client() as test_client:
        yield test_client


def bearer(token):
    return {"Authorization": f"Bearer {token}"}
