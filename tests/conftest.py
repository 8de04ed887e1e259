import asyncio

import mongomock
import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from buzzsmile.core import security
from buzzsmile.core.config import settings
from buzzsmile.core.database import mongodb
from buzzsmile.core.database_sync import mongodb_sync
from buzzsmile.core.security import create_access_token, hash_password
from buzzsmile.database.schemas.user import UserDocument
from buzzsmile.utils.cache import user_cache, video_list_cache

PASSWORD = "secret123"


def run(coro):
    """Drive a mongomock-motor coroutine from synchronous test code."""
    return asyncio.run(coro)


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    monkeypatch.setattr(security, "BCRYPT_ROUNDS", 4)
    monkeypatch.setattr(settings, "UPLOAD_DIR", tmp_path / "uploads")
    monkeypatch.setattr(settings, "BACKUP_DIR", tmp_path / "backups")
    monkeypatch.setattr(settings, "JWT_SECRET", "test-secret")
    monkeypatch.setattr(settings, "ENVIRONMENT", "test")
    monkeypatch.setattr(settings, "AWS_S3_BUCKET", None)
    monkeypatch.setattr(settings, "DISCORD_WEBHOOK_URL", None)
    monkeypatch.setattr(settings, "RESEND_API_KEY", None)
    monkeypatch.setattr(settings, "EMAIL_USER", None)
    monkeypatch.setattr(settings, "EMAIL_PASS", None)
    monkeypatch.setattr(settings, "CLIENT_URLS", ["http://localhost:3000"])
    user_cache.clear()
    video_list_cache.clear()
    yield
    user_cache.clear()
    video_list_cache.clear()


@pytest.fixture
def db():
    client = AsyncMongoMockClient()
    mongodb.client = client
    mongodb.db = client["buzz_smile_test"]
    yield mongodb.db
    mongodb.client = None
    mongodb.db = None


@pytest.fixture
def sync_db():
    client = mongomock.MongoClient()
    mongodb_sync.client = client
    mongodb_sync.db = client["buzz_smile_test"]
    yield mongodb_sync.db
    mongodb_sync.client = None
    mongodb_sync.db = None


@pytest.fixture
def client(db):
    from main import app

    return TestClient(app)


@pytest.fixture
def make_user(db):
    counter = iter(range(1, 1000))

    def _make_user(**overrides):
        n = next(counter)
        doc = UserDocument(
            email=overrides.pop("email", f"user{n}@example.com"),
            name=overrides.pop("name", f"User {n}"),
            password=hash_password(overrides.pop("password", PASSWORD)),
        ).to_mongo()
        doc.update(overrides)
        doc["_id"] = run(db["users"].insert_one(doc)).inserted_id
        return doc

    return _make_user


@pytest.fixture
def user(make_user):
    return make_user(email="owner@example.com", name="Owner")


@pytest.fixture
def admin(make_user):
    return make_user(email="admin@example.com", name="Admin", role="admin")


def auth_headers(user: dict) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user['_id'])}"}
