"""Short conversation titles for the caller's chat list."""

import logging
import re

from quest.agent.channel import (
    ChannelFactory,
    load_channel,
)
from quest.agent.interpreter import extract_final_text
from quest.agent.retry import send_with_retry
from quest.core.schema import TextMessage

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 50

TITLE_SYSTEM_PROMPT = """\
You are a helpful assistant that generates concise, descriptive titles for conversations.

Rules:
- Generate a title that captures the main topic or intent of the conversation
- Keep it between 3-8 words
- Don't use quotes around the title
- Make it sound natural and professional
"""


def _shorten(text: str) -> str:
    if len(text) <= MAX_TITLE_LENGTH:
        return text
    return text[: MAX_TITLE_LENGTH - 3] + "..."


def fallback_title(user_message: str) -> str:
    """Title derived from the message alone, cut at a word boundary when possible."""
    cleaned = " ".join(user_message.split())
    if len(cleaned) <= MAX_TITLE_LENGTH:
        return cleaned
    truncated = cleaned[: MAX_TITLE_LENGTH - 3]
    last_space = truncated.rfind(" ")
    if last_space > 20:
        return truncated[:last_space] + "..."
    return truncated + "..."


async def generate_conversation_title(
    user_message: str,
    ai_response: str,
    channel_factory: ChannelFactory = load_channel,
) -> str:
    """Ask a tool-less channel for a title; fall back to the user's own words."""
    prompt = (
        "Based on this conversation, generate a concise title:\n\n"
        f"User: {user_message}\nAI: {ai_response[:200]}...\n\nTitle:"
    )
    try:
        channel = channel_factory(system_prompt=TITLE_SYSTEM_PROMPT, history=[], tools=[])
        response = await send_with_retry(channel, TextMessage(text=prompt))
        title = re.sub(r"^[\"']|[\"']$", "", extract_final_text(response).strip()).strip()
    except Exception as exc:  # pylint: disable=broad-except
        logger.warning("Title generation failed: %s", exc)
        return fallback_title(user_message)
    return _shorten(title) if title else fallback_title(user_message)
