# zyra/client/api_client.py
import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Raised for any non-2xx answer from the Zyra API."""
    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"{status_code}: {message}")


class ZyraAPIClient:
    """Async client for the canvas, notes, messages, PDF and chat endpoints."""

    def __init__(self, base_url: str = "http://localhost:8000", client: httpx.AsyncClient | None = None):
        self._client = client or httpx.AsyncClient(base_url=base_url)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        response = await self._client.request(method, url, **kwargs)
        if not response.is_success:
            try:
                message = response.json().get("message") or response.text
            except ValueError:
                message = response.text
            logger.debug("%s %s failed with %s: %s", method, url, response.status_code, message)
            raise APIError(response.status_code, message)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # --- Auth ---

    async def login(self, email: str, password: str) -> dict:
        return await self._request("POST", "/auth/login", json={"email": email, "password": password})

    # --- Canvases ---

    async def list_canvases(self) -> list[dict]:
        return await self._request("GET", "/canvases")

    async def create_canvas(self, title: str) -> dict:
        return await self._request("POST", "/canvases", json={"title": title})

    async def get_canvas(self, canvas_id: str) -> dict:
        return await self._request("GET", f"/canvases/{canvas_id}")

    async def update_canvas(
        self,
        canvas_id: str,
        nodes: list[dict] | None = None,
        edges: list[dict] | None = None,
        title: str | None = None,
    ) -> dict:
        body = {key: value for key, value in (("title", title), ("nodes", nodes), ("edges", edges)) if value is not None}
        return await self._request("PATCH", f"/canvases/{canvas_id}", json=body)

    async def delete_canvas(self, canvas_id: str) -> dict:
        return await self._request("DELETE", f"/canvases/{canvas_id}")

    # --- Notes ---

    async def create_note(self, canvas_id: str, node_id: str, content: str) -> dict:
        return await self._request(
            "POST", "/notes", json={"canvasId": canvas_id, "noteId": node_id, "content": content}
        )

    async def update_note(self, canvas_id: str, node_id: str, content: str) -> dict:
        return await self._request(
            "PATCH", "/notes", json={"canvasId": canvas_id, "noteId": node_id, "content": content}
        )

    async def delete_note(self, canvas_id: str, node_id: str) -> dict:
        return await self._request("DELETE", "/notes", json={"canvasId": canvas_id, "noteId": node_id})

    # --- Messages ---

    async def list_messages(self, canvas_id: str, block_id: str) -> list[dict]:
        return await self._request("GET", f"/canvases/{canvas_id}/messages", params={"blockId": block_id})

    async def create_message(self, canvas_id: str, node_id: str, content: str, role: str) -> dict:
        return await self._request(
            "POST",
            f"/canvases/{canvas_id}/messages",
            json={"blockId": node_id, "content": content, "role": role},
        )

    async def delete_block_messages(self, canvas_id: str, node_id: str) -> dict:
        return await self._request("DELETE", f"/canvases/{canvas_id}/messages", json={"blockId": node_id})

    # --- PDFs ---

    async def upload_pdf(
        self, canvas_id: str, block_id: str, file_name: str, data: bytes, content_type: str = "application/pdf"
    ) -> dict:
        return await self._request(
            "POST",
            "/pdfs",
            data={"canvasId": canvas_id, "blockId": block_id},
            files={"file": (file_name, data, content_type)},
        )

    async def delete_pdf(self, canvas_id: str, block_id: str) -> dict:
        return await self._request("DELETE", "/pdfs", json={"canvasId": canvas_id, "blockId": block_id})

    # --- Chat ---

    async def chat(self, messages: list[dict[str, str]], context: str) -> str:
        payload = await self._request("POST", "/chat", json={"messages": messages, "context": context})
        return payload.get("response", "") if payload else ""
