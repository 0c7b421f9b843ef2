import logging
import uuid
from typing import Callable, Iterable, List, Optional

from config import get_settings
from models import BotTurn, HistoryEntry, StoredMessage, TurnResponse, UserTurn
from services.bible_service import BibleService
from services.commentary_service import CommentaryGenerator
from services.commentator_service import CommentatorResolver
from services.context_service import ConversationalResponder
from services.generation_service import TextGenerator, get_text_generator
from services.redis_service import (
    SessionRegistry, TranscriptStore, TranscriptStoreError, create_transcript_store,
)
from services.reference_parser import ReferenceParser, get_reference_parser
from services.transcript_view import TranscriptView

logger = logging.getLogger("scripture_chat.chat")

StatusCallback = Callable[[str], None]

UNEXPECTED_ERROR_PREFIX = "An unexpected error occurred: "
THINKING_STATUS = "Thinking..."


class ScriptureChatService:
    """Runs one chat turn from user message to persisted bot response.

    A message is first tried as a scripture reference ("John 3:16 by C.S. Lewis").
    If the lookup finds verses, the reply is the passage plus generated
    commentary; otherwise the message is answered conversationally with the
    session transcript as context. Every turn persists the user message right
    away and exactly one bot message at the end, unless the user has moved to
    a new session in the meantime.
    """

    def __init__(
        self,
        store: Optional[TranscriptStore] = None,
        bible_service: Optional[BibleService] = None,
        generator: Optional[TextGenerator] = None,
        allow_list: Optional[Iterable[str]] = None,
        parser: Optional[ReferenceParser] = None,
    ):
        settings = get_settings()
        allow_list = tuple(allow_list) if allow_list is not None else settings.ALLOWED_THEOLOGIANS
        generator = generator or get_text_generator(settings)

        self.store = store or create_transcript_store(settings)
        self.sessions = SessionRegistry(self.store)
        self.bible_service = bible_service or BibleService()
        self.resolver = CommentatorResolver(allow_list)
        self.parser = parser or get_reference_parser(settings.COMMENTATOR_SPLIT_STRATEGY, allow_list)
        self.commentary = CommentaryGenerator(generator)
        self.responder = ConversationalResponder(generator)

    def start_new_session(self, user_id: str) -> str:
        return self.sessions.new_session(user_id)

    def get_transcript(self, session_id: str) -> List[StoredMessage]:
        return self.store.list_messages(session_id)

    def get_history(self, user_id: str, search: Optional[str] = None) -> List[HistoryEntry]:
        return self.store.user_history(user_id, search)

    def delete_history_entry(self, user_id: str, entry_id: str) -> bool:
        return self.store.delete_history(user_id, entry_id)

    async def handle_turn(
        self,
        user_id: str,
        message: str,
        session_id: Optional[str] = None,
        on_status: Optional[StatusCallback] = None,
        view: Optional[TranscriptView] = None,
    ) -> TurnResponse:
        """Process one user message.

        ``session_id`` resumes a specific session (it becomes the user's current
        one); otherwise the user's current session is used. When a ``view`` is
        given, its contents are the conversation history and the user turn is
        added to it as pending until the stored copy shows up.
        """
        if session_id:
            self.store.set_user_session(user_id, session_id)
        else:
            session_id = self.sessions.current_session(user_id)
        if view is not None and view.session_id != session_id:
            view = None

        statuses: List[str] = []

        def set_status(text: str):
            statuses.append(text)
            if on_status:
                on_status(text)

        if view is not None:
            history = list(view.messages)
        else:
            history = [m.message for m in self.store.list_messages(session_id)]

        user_turn = UserTurn(text=message)
        user_message_id = uuid.uuid4().hex
        if view is not None:
            view.add_pending(user_message_id, user_turn)
        user_stored = self.store.append(session_id, user_turn, message_id=user_message_id)
        self.store.add_history(message, user_id)

        bot_stored = None
        try:
            try:
                bot_turn = await self._respond(message, history, set_status)
            except Exception as e:
                logger.exception("Error in turn for session %s", session_id)
                bot_turn = BotTurn(results=[], error=f"{UNEXPECTED_ERROR_PREFIX}{e}")

            if self._still_current(user_id, session_id):
                bot_stored = self.store.append(session_id, bot_turn)
            else:
                logger.info("Discarding response for abandoned session %s", session_id)
        finally:
            set_status("")

        return TurnResponse(
            session_id=session_id,
            user_message=user_stored,
            bot_message=bot_stored,
            statuses=statuses,
            discarded=bot_stored is None,
        )

    async def _respond(self, message: str, history: List, set_status: StatusCallback) -> BotTurn:
        passage, theologian = self.parser.split(message)
        scripture = await self.bible_service.lookup(passage)

        if scripture is not None:
            resolution = self.resolver.resolve(theologian)
            set_status(resolution.status_message)
            commentary = await self.commentary.generate(scripture.verse_text, resolution)
            logger.info("Scripture turn for %s (%s)", scripture.reference, resolution.outcome)
            return BotTurn(results=[scripture.to_result()], error=None, commentary=commentary)

        set_status(THINKING_STATUS)
        text = await self.responder.reply(message, history)
        return BotTurn(results=[], text=text, error=None)

    def _still_current(self, user_id: str, session_id: str) -> bool:
        """Only a session switch we can actually see discards the response"""
        try:
            return self.sessions.is_current(user_id, session_id)
        except TranscriptStoreError as e:
            logger.warning("Could not check current session for %s, keeping response: %s", user_id, e)
            return True
