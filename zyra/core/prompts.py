# zyra/core/prompts.py
# This file is the single source of truth for all AI prompt engineering.

CHAT_PROMPT = """
Answer to users messages based on the context provided. If no context is provided, answer based on the messages.
Context: {context}
Messages: {transcript}
""".strip()

CHAT_ERROR_MESSAGES = {
    "unauthorized": "API authentication failed. Please check your API key configuration.",
    "rate_limited": "Rate limit exceeded. Please try again later.",
    "server_error": "Server error. Please try again later.",
    "default": "Sorry, I encountered an error. Please try again.",
}

EMPTY_REPLY_FALLBACK = "No response received"


def describe_chat_failure(status_code: int | None) -> str:
    """Human-readable text recorded in the conversation when a reply could not be produced."""
    if status_code == 401:
        return CHAT_ERROR_MESSAGES["unauthorized"]
    if status_code == 429:
        return CHAT_ERROR_MESSAGES["rate_limited"]
    if status_code is not None and status_code >= 500:
        return CHAT_ERROR_MESSAGES["server_error"]
    return CHAT_ERROR_MESSAGES["default"]
