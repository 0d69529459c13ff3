import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Provide sane defaults for required settings so tests can import the app without a .env
os.environ.setdefault("SESSION_SECRET", "test-session-secret-with-enough-length")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./zyra-test.db")
os.environ.setdefault("LIMITER_STORAGE_URI", "memory://")
os.environ.setdefault("REDIS_URL", "redis://127.0.0.1:6379/0")
os.environ.setdefault("GEMINI_API_KEY", "")


class StubAIService:
    """Stands in for the Gemini-backed AIService; records every request."""

    def __init__(self):
        self.reply = "stub reply"
        self.error: Exception | None = None
        self.calls = []

    async def generate_reply(self, messages, context=""):
        self.calls.append(([(m.role, m.content) for m in messages], context))
        if self.error is not None:
            raise self.error
        return self.reply


class CloudStub:
    """Replaces the Cloudinary uploader calls made by StorageService."""

    def __init__(self):
        self.uploads: list[dict] = []
        self.destroyed: list[str] = []
        self.fail_destroy = False

    def upload(self, file, **options):
        self.uploads.append(options)
        public_id = f"{options['folder']}/{options['public_id']}"
        return {
            "secure_url": f"https://res.cloudinary.com/demo/raw/upload/{public_id}.pdf",
            "public_id": public_id,
        }

    def destroy(self, public_id, **options):
        if self.fail_destroy:
            raise RuntimeError("cloud unavailable")
        self.destroyed.append(public_id)
        return {"result": "ok"}


@pytest.fixture
def ai_stub():
    return StubAIService()


@pytest.fixture
def cloud(monkeypatch):
    import cloudinary.uploader

    stub = CloudStub()
    monkeypatch.setattr(cloudinary.uploader, "upload", stub.upload)
    monkeypatch.setattr(cloudinary.uploader, "destroy", stub.destroy)
    return stub


@pytest.fixture
def client(tmp_path, cloud, ai_stub):
    """TestClient bound to a fresh SQLite file, with the AI and object store stubbed out."""
    from fastapi.testclient import TestClient

    from zyra.api import router as api_router
    from zyra.core.limiter import limiter
    from zyra.db.database import Database
    from zyra.main import app
    from zyra.services.storage_service import StorageService

    Database.configure(f"sqlite+aiosqlite:///{tmp_path / 'zyra.db'}")
    limiter.reset()
    app.dependency_overrides[api_router.get_storage_service] = lambda: StorageService("demo", "key", "secret")
    app.dependency_overrides[api_router.get_ai_service] = lambda: ai_stub

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def sign_in(client, email="ada@example.com", password="analytical-engine", name="Ada"):
    """Registers a user (if needed) and leaves the client holding that user's session cookie."""
    client.cookies.clear()
    client.post("/auth/register", json={"name": name, "email": email, "password": password})
    response = client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()
