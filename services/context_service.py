import logging
import re
from typing import Dict, Iterable, List, Any

from models import BotTurn, UserTurn
from services.generation_service import Contents, TextGenerator

logger = logging.getLogger("scripture_chat.context")

NO_REPLY_MESSAGE = "Sorry, I couldn't process that."

VERSE_NUMBER_RE = re.compile(r"<strong>.*?</strong>", re.IGNORECASE | re.DOTALL)
TAG_RE = re.compile(r"<[^>]*>")


def strip_html(content: str) -> str:
    """Plain text of rendered verse markup, without the verse-number markers"""
    return TAG_RE.sub("", VERSE_NUMBER_RE.sub("", content))


def bot_turn_context_text(turn: BotTurn) -> str:
    """Text a bot turn contributes to the conversation context.

    Only the first scripture result is folded in, even when a turn stored more.
    Error-only turns yield an empty string.
    """
    text = ""
    if turn.results:
        first = turn.results[0]
        text += f"{first.reference}\n{strip_html(first.content)}\n"
    if turn.commentary:
        text += f"Commentary: {turn.commentary}\n"
    if turn.text:
        text += turn.text
    return text.strip()


def _entry(role: str, text: str) -> Dict[str, Any]:
    return {"role": role, "parts": [{"text": text}]}


def build_conversation_contents(history: Iterable[Any], new_message: str) -> Contents:
    """Role-tagged context: prior turns in order, then the new user message.

    ``history`` holds UserTurn/BotTurn values (or StoredMessage wrappers).
    Entries with no text are dropped.
    """
    contents: List[Dict[str, Any]] = []
    for item in history:
        turn = getattr(item, "message", item)
        if isinstance(turn, UserTurn):
            entry = _entry("user", turn.text)
        elif isinstance(turn, BotTurn):
            entry = _entry("model", bot_turn_context_text(turn))
        else:
            continue
        if entry["parts"][0]["text"]:
            contents.append(entry)
    contents.append(_entry("user", new_message))
    return contents


class ConversationalResponder:
    """Open-ended replies for messages that are not scripture references"""

    def __init__(self, generator: TextGenerator):
        self.generator = generator

    async def reply(self, message: str, history: Iterable[Any]) -> str:
        contents = build_conversation_contents(history, message)
        try:
            text = await self.generator.generate(contents)
        except Exception as e:
            logger.error("Error in conversational AI: %s", e)
            return f"There was an error connecting to the AI service: {e}"
        return text or NO_REPLY_MESSAGE
