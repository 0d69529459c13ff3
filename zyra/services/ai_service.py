# zyra/services/ai_service.py
import asyncio
import logging
from typing import Any

import google.genai as genai
from google.genai import errors, types

from zyra.core.config import settings
from zyra.core.exceptions import UpstreamServiceException
from zyra.core.prompts import CHAT_PROMPT
from zyra.models.chat import ChatMessage

logger = logging.getLogger(__name__)


def build_chat_prompt(messages: list[ChatMessage], context: str) -> str:
    transcript = "\n".join(f"{message.role}: {message.content}" for message in messages)
    return CHAT_PROMPT.format(context=context, transcript=transcript)


class AIService:
    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        max_output_tokens: int = 500,
    ):
        self.api_key = api_key
        self._client: genai.Client | None = None
        self.model = model
        self.max_output_tokens = max_output_tokens

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    @classmethod
    def from_settings(cls) -> "AIService":
        return cls(
            api_key=settings.GEMINI_API_KEY,
            model=settings.GEMINI_MODEL,
            max_output_tokens=settings.CHAT_MAX_OUTPUT_TOKENS,
        )

    async def generate_reply(self, messages: list[ChatMessage], context: str = "") -> str:
        """
        Sends the whole conversation plus the assembled context in a single,
        non-streamed request. Attempted exactly once.
        """
        prompt = build_chat_prompt(messages, context)
        logger.debug("Prompt sent to AI: %s", prompt)

        generation_config = types.GenerateContentConfig(
            max_output_tokens=self.max_output_tokens
        )

        try:
            response = await asyncio.to_thread(
                self.client.models.generate_content,
                model=self.model,
                contents=prompt,
                config=generation_config
            )
        except errors.APIError as e:
            logger.error("Gemini API returned an error (%s): %s", e.code, e)
            raise UpstreamServiceException("AI provider request failed.", status_code=e.code) from e
        except Exception as e:
            logger.error("An unexpected error occurred with the Gemini API: %s", e)
            raise UpstreamServiceException("AI provider request failed.") from e

        return self._extract_text(response)

    @staticmethod
    def _extract_text(response: Any) -> str:
        """
        Collect the text parts of the first candidate, skipping thought parts.
        Falls back to response.text when the candidate structure is unavailable.
        """
        if response is None:
            return ""

        try:
            candidates = getattr(response, "candidates", None) or []
            for candidate in candidates:
                content = getattr(candidate, "content", None)
                parts = getattr(content, "parts", None) or []
                texts = []
                for part in parts:
                    if getattr(part, "thought", False):
                        logger.debug("Skipping thought part in candidate.")
                        continue
                    text_part = getattr(part, "text", None)
                    if text_part:
                        texts.append(text_part)
                if texts:
                    return "".join(texts)
        except Exception as exc:
            logger.debug("Falling back to response.text due to extraction error: %s", exc)

        return getattr(response, "text", "") or ""
