import logging

from models import CommentatorResolution
from services.generation_service import TextGenerator, user_contents

logger = logging.getLogger("scripture_chat.commentary")

NO_COMMENTARY_MESSAGE = "No AI-generated commentary received or unexpected format."


def build_commentary_prompt(verse_text: str, resolution: CommentatorResolution) -> str:
    prompt = f'Provide a theological commentary on the following Bible verse: "{verse_text}"'
    if resolution.is_matched:
        prompt += f"\n\nFocus on the perspective or style of theologian/pastor: {resolution.name}."
    return prompt


class CommentaryGenerator:
    """Theological commentary on looked-up verse text.

    Each call is a single-turn request; earlier turns of the conversation are
    not sent. Always returns a string: the commentary, or a message describing
    why none could be produced.
    """

    def __init__(self, generator: TextGenerator):
        self.generator = generator

    async def generate(self, verse_text: str, resolution: CommentatorResolution) -> str:
        prompt = build_commentary_prompt(verse_text, resolution)
        try:
            text = await self.generator.generate(user_contents(prompt))
        except Exception as e:
            logger.error("Error generating AI commentary: %s", e)
            return f"Failed to generate commentary: {e}"
        return text or NO_COMMENTARY_MESSAGE
