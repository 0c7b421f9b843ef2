from typing import Dict, List, Union

from models import BotTurn, StoredMessage, UserTurn


class TranscriptView:
    """Client-side transcript: stored snapshot plus provisional local turns.

    The stored snapshot is authoritative once observed. A pending turn is
    shown after the stored ones until a snapshot containing its id arrives.
    """

    def __init__(self, session_id: str):
        self.session_id = session_id
        self._stored: List[StoredMessage] = []
        self._pending: Dict[str, Union[UserTurn, BotTurn]] = {}

    def add_pending(self, message_id: str, message: Union[UserTurn, BotTurn]):
        self._pending[message_id] = message

    def apply_snapshot(self, snapshot: List[StoredMessage]):
        self._stored = [m for m in snapshot if m.session_id == self.session_id]
        for stored in self._stored:
            self._pending.pop(stored.id, None)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def messages(self) -> List[Union[UserTurn, BotTurn]]:
        return [m.message for m in self._stored] + list(self._pending.values())
