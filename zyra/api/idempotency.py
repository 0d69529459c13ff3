# zyra/api/idempotency.py
import json
import logging
from typing import Callable

from fastapi import Request, Response
from fastapi.routing import APIRoute

from zyra.core.config import settings
from zyra.core.redis_client import get_redis_client
from zyra.core.security import read_session_user_id

logger = logging.getLogger(__name__)

IDEMPOTENCY_HEADER = "idempotency-key"
IDEMPOTENT_METHODS = {"POST", "PATCH", "DELETE"}
CACHE_TTL_SECONDS = 60 * 60 * 24


def _cache_key(request: Request, idempotency_key: str) -> str:
    identity = read_session_user_id(request.cookies.get(settings.SESSION_COOKIE_NAME)) or "anonymous"
    return f"idempotency:{identity}:{request.method}:{request.url.path}:{idempotency_key}"


class IdempotentAPIRoute(APIRoute):
    """
    Replays the stored response when a mutating request is retried with the same
    Idempotency-Key header. Requests without the header never touch Redis.
    """

    def get_route_handler(self) -> Callable:
        original_handler = super().get_route_handler()

        async def idempotent_handler(request: Request) -> Response:
            idempotency_key = request.headers.get(IDEMPOTENCY_HEADER)
            if request.method not in IDEMPOTENT_METHODS or not idempotency_key:
                return await original_handler(request)

            cache_key = _cache_key(request, idempotency_key)
            redis_client = get_redis_client()
            try:
                cached = await redis_client.get(cache_key)
            except Exception as exc:
                logger.warning("Idempotency cache unavailable, processing request normally: %s", exc)
                return await original_handler(request)

            if cached:
                stored = json.loads(cached)
                return Response(
                    content=stored["body"],
                    status_code=stored["status_code"],
                    media_type=stored.get("media_type"),
                    headers={"Idempotent-Replayed": "true"},
                )

            response = await original_handler(request)
            if 200 <= response.status_code < 300 and hasattr(response, "body"):
                payload = json.dumps({
                    "body": response.body.decode("utf-8"),
                    "status_code": response.status_code,
                    "media_type": response.media_type,
                })
                try:
                    await redis_client.set(cache_key, payload, ex=CACHE_TTL_SECONDS, nx=True)
                except Exception as exc:
                    logger.warning("Failed to store idempotent response: %s", exc)
            return response

        return idempotent_handler
