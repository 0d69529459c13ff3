from fastapi import FastAPI
from fastapi.testclient import TestClient

from zyra.api import idempotency as idempotency_module
from zyra.api.idempotency import IdempotentAPIRoute
from zyra.core.config import settings
from zyra.core.security import create_session_token


class StubRedis:
    def __init__(self, fail: bool = False):
        self.store: dict[str, str] = {}
        self.fail = fail

    async def get(self, key: str):
        if self.fail:
            raise ConnectionError("redis down")
        return self.store.get(key)

    async def set(self, key: str, value: str, ex: int | None = None, nx: bool = False):
        if nx and key in self.store:
            return False
        self.store[key] = value
        return True

    async def delete(self, key: str):
        self.store.pop(key, None)


def build_app():
    app = FastAPI()
    app.router.route_class = IdempotentAPIRoute
    calls = []

    @app.post("/canvases/{canvas_id}/messages")
    async def create_message(canvas_id: str, payload: dict):
        calls.append(payload)
        return {"id": f"m{len(calls)}", **payload}

    return app, calls


HEADERS = {"Idempotency-Key": "key-1"}


def with_session(client, user_id):
    client.cookies.clear()
    client.cookies.set(settings.SESSION_COOKIE_NAME, create_session_token(user_id, f"{user_id}@example.com"))


def test_idempotent_route_replays_response(monkeypatch):
    redis_client = StubRedis()
    monkeypatch.setattr(idempotency_module, "get_redis_client", lambda: redis_client)

    app, calls = build_app()
    client = TestClient(app)
    with_session(client, "user-1")

    first = client.post("/canvases/c/messages", json={"content": "first"}, headers=HEADERS)
    assert first.status_code == 200
    assert first.json() == {"id": "m1", "content": "first"}

    second = client.post("/canvases/c/messages", json={"content": "second"}, headers=HEADERS)
    assert second.status_code == 200
    assert second.json() == {"id": "m1", "content": "first"}
    assert second.headers["Idempotent-Replayed"] == "true"
    assert len(calls) == 1


def test_idempotency_is_scoped_per_user(monkeypatch):
    redis_client = StubRedis()
    monkeypatch.setattr(idempotency_module, "get_redis_client", lambda: redis_client)

    app, calls = build_app()
    client = TestClient(app)

    with_session(client, "user-1")
    client.post("/canvases/c/messages", json={"content": "mine"}, headers=HEADERS)
    with_session(client, "user-2")
    other = client.post("/canvases/c/messages", json={"content": "theirs"}, headers=HEADERS)

    assert other.json()["content"] == "theirs"
    assert len(calls) == 2


def test_requests_without_key_skip_redis(monkeypatch):
    def explode():
        raise AssertionError("redis should not be touched")

    monkeypatch.setattr(idempotency_module, "get_redis_client", explode)
    app, calls = build_app()
    client = TestClient(app)

    client.post("/canvases/c/messages", json={"content": "a"})
    client.post("/canvases/c/messages", json={"content": "a"})
    assert len(calls) == 2


def test_unavailable_redis_processes_request(monkeypatch):
    redis_client = StubRedis(fail=True)
    monkeypatch.setattr(idempotency_module, "get_redis_client", lambda: redis_client)
    app, calls = build_app()
    client = TestClient(app)

    response = client.post("/canvases/c/messages", json={"content": "a"}, headers=HEADERS)
    assert response.status_code == 200
    assert len(calls) == 1
