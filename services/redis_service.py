import asyncio
import logging
import random
import string
import time
import uuid
from collections import defaultdict
from typing import Any, Dict, List, Optional, Set, Tuple

import redis

from config import Settings, get_settings
from models import ChatMessage, HistoryEntry, StoredMessage

logger = logging.getLogger("scripture_chat.store")

HISTORY_KEY = "searchHistory"


class TranscriptStoreError(Exception):
    """Raised when a transcript write cannot be completed."""


class TranscriptSubscription:
    """Live, ordered view of one session's transcript.

    Yields the current snapshot first, then a fresh snapshot after each append
    to the session. Appends that land while the consumer is busy are coalesced
    into one snapshot.
    """

    def __init__(self, store: "TranscriptStore", session_id: str):
        self.store = store
        self.session_id = session_id
        # one pending wake-up at most; snapshots are read fresh on wake
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        self._started = False
        self._closed = False

    def notify(self):
        if not self._queue.full():
            self._queue.put_nowait(True)

    def close(self):
        if not self._closed:
            self._closed = True
            self.store._unsubscribe(self)
            if self._queue.full():
                self._queue.get_nowait()
            self._queue.put_nowait(False)

    def __aiter__(self):
        return self

    async def __anext__(self) -> List[StoredMessage]:
        if self._closed:
            raise StopAsyncIteration
        if not self._started:
            self._started = True
            return self.store.list_messages(self.session_id)

        if not await self._queue.get():
            raise StopAsyncIteration
        return self.store.list_messages(self.session_id)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.close()


class TranscriptStore:
    """Redis-backed chat transcripts, search history and current sessions.

    Falls back to in-process storage when no Redis client is given. Transcripts
    are append-only and never expire; abandoned sessions are left in place.
    """

    def __init__(self, redis_client: Optional[redis.Redis] = None):
        self.redis_client = redis_client
        self._fallback_storage: Dict[str, Any] = {}
        self._subscribers: Dict[str, Set[TranscriptSubscription]] = defaultdict(set)
        self._last_timestamp = 0.0

    @classmethod
    def from_url(cls, redis_url: str, testing_mode: bool = False) -> "TranscriptStore":
        client = redis.from_url(redis_url, decode_responses=True)
        try:
            client.ping()
        except redis.RedisError:
            if not testing_mode:
                logger.warning("Redis connection failed, falling back to in-memory storage")
            client = None
        return cls(client)

    @property
    def backend(self) -> str:
        return "redis" if self.redis_client else "memory"

    def _key_messages(self, session_id: str) -> str:
        return f"chat:{session_id}:messages"

    def _key_user_session(self, user_id: str) -> str:
        return f"u:{user_id}:session"

    def _next_timestamp(self) -> float:
        """Server time, strictly increasing across writes from this store"""
        now = time.time()
        if self.redis_client:
            seconds, micros = self.redis_client.time()
            now = seconds + micros / 1_000_000
        now = max(now, self._last_timestamp + 1e-6)
        self._last_timestamp = now
        return now

    # Transcript

    def append(self, session_id: str, message: ChatMessage, message_id: Optional[str] = None) -> StoredMessage:
        """Persist a turn; the store assigns its timestamp"""
        key = self._key_messages(session_id)
        try:
            stored = StoredMessage(
                id=message_id or uuid.uuid4().hex,
                session_id=session_id,
                timestamp=self._next_timestamp(),
                message=message,
            )
            if self.redis_client:
                self.redis_client.rpush(key, stored.model_dump_json())
            else:
                self._fallback_storage.setdefault(key, []).append(stored)
        except redis.RedisError as e:
            raise TranscriptStoreError(f"Could not save message to {session_id}: {e}") from e

        for subscription in list(self._subscribers.get(session_id, ())):
            subscription.notify()
        return stored

    def list_messages(self, session_id: str) -> List[StoredMessage]:
        """Transcript ordered by timestamp, oldest first"""
        key = self._key_messages(session_id)
        if self.redis_client:
            try:
                raw = self.redis_client.lrange(key, 0, -1)
            except redis.RedisError as e:
                raise TranscriptStoreError(f"Could not read transcript {session_id}: {e}") from e
            messages = [StoredMessage.model_validate_json(item) for item in raw]
        else:
            messages = list(self._fallback_storage.get(key, []))
        return sorted(messages, key=lambda m: m.timestamp)

    def subscribe(self, session_id: str) -> TranscriptSubscription:
        subscription = TranscriptSubscription(self, session_id)
        self._subscribers[session_id].add(subscription)
        return subscription

    def _unsubscribe(self, subscription: TranscriptSubscription):
        subscribers = self._subscribers.get(subscription.session_id)
        if subscribers is not None:
            subscribers.discard(subscription)
            if not subscribers:
                del self._subscribers[subscription.session_id]

    # Search history

    def add_history(self, text: str, user_id: str) -> HistoryEntry:
        entry_id = uuid.uuid4().hex
        if self.redis_client:
            try:
                entry = HistoryEntry(id=entry_id, text=text, user_id=user_id, timestamp=self._next_timestamp())
                self.redis_client.rpush(HISTORY_KEY, entry.model_dump_json())
            except redis.RedisError as e:
                logger.warning("Could not record search history: %s", e)
                entry = HistoryEntry(id=entry_id, text=text, user_id=user_id, timestamp=time.time())
        else:
            entry = HistoryEntry(id=entry_id, text=text, user_id=user_id, timestamp=self._next_timestamp())
            self._fallback_storage.setdefault(HISTORY_KEY, []).append(entry)
        return entry

    def _history_items(self) -> List[Tuple[Any, HistoryEntry]]:
        """(raw stored item, entry) pairs for the whole log"""
        if self.redis_client:
            try:
                raw = self.redis_client.lrange(HISTORY_KEY, 0, -1)
            except redis.RedisError as e:
                raise TranscriptStoreError(f"Could not read search history: {e}") from e
            return [(item, HistoryEntry.model_validate_json(item)) for item in raw]
        return [(entry, entry) for entry in self._fallback_storage.get(HISTORY_KEY, [])]

    def user_history(self, user_id: str, search: Optional[str] = None) -> List[HistoryEntry]:
        """One user's queries, newest first, optionally filtered by a substring"""
        entries = [entry for _, entry in self._history_items() if entry.user_id == user_id]
        if search:
            needle = search.lower()
            entries = [entry for entry in entries if needle in entry.text.lower()]
        return sorted(entries, key=lambda e: e.timestamp, reverse=True)

    def delete_history(self, user_id: str, entry_id: str) -> bool:
        """Remove one of the user's entries; False when there is no such entry"""
        for item, entry in self._history_items():
            if entry.id != entry_id or entry.user_id != user_id:
                continue
            if self.redis_client:
                try:
                    self.redis_client.lrem(HISTORY_KEY, 1, item)
                except redis.RedisError as e:
                    raise TranscriptStoreError(f"Could not delete history entry {entry_id}: {e}") from e
            else:
                self._fallback_storage[HISTORY_KEY].remove(item)
            return True
        return False

    # Current session per user

    def get_user_session(self, user_id: str) -> Optional[str]:
        key = self._key_user_session(user_id)
        if self.redis_client:
            try:
                return self.redis_client.get(key)
            except redis.RedisError as e:
                raise TranscriptStoreError(f"Could not read current session for {user_id}: {e}") from e
        return self._fallback_storage.get(key)

    def set_user_session(self, user_id: str, session_id: str):
        key = self._key_user_session(user_id)
        if self.redis_client:
            try:
                self.redis_client.set(key, session_id)
            except redis.RedisError as e:
                logger.warning("Could not save current session for %s: %s", user_id, e)
        else:
            self._fallback_storage[key] = session_id


def new_session_id() -> str:
    """session_<epoch ms>_<7 random base36 chars>"""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=7))
    return f"session_{int(time.time() * 1000)}_{suffix}"


class SessionRegistry:
    """Tracks which session each user is currently writing to"""

    def __init__(self, store: TranscriptStore):
        self.store = store

    def current_session(self, user_id: str) -> str:
        session_id = self.store.get_user_session(user_id)
        if not session_id:
            session_id = self.new_session(user_id)
        return session_id

    def new_session(self, user_id: str) -> str:
        """Start a fresh, empty transcript; the previous one is kept, not deleted"""
        session_id = new_session_id()
        self.store.set_user_session(user_id, session_id)
        logger.info("Started session %s for user %s", session_id, user_id)
        return session_id

    def is_current(self, user_id: str, session_id: str) -> bool:
        return self.store.get_user_session(user_id) == session_id


def create_transcript_store(settings: Optional[Settings] = None) -> TranscriptStore:
    settings = settings or get_settings()
    if settings.TESTING_MODE:
        return TranscriptStore()
    return TranscriptStore.from_url(settings.REDIS_URL)
