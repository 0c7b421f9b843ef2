import os

os.environ.setdefault("TESTING_MODE", "true")
os.environ.setdefault("GEMINI_API_KEY", "test-key")

import json
import time
from collections import defaultdict
from typing import Dict, List, Optional, Tuple
from urllib.parse import unquote

import httpx
import redis
import pytest

from services.bible_service import BibleService
from services.chat_service import ScriptureChatService
from services.generation_service import TextGenerator
from services.redis_service import TranscriptStore

THEOLOGIANS = ("Charles Spurgeon", "Martin Luther King Jr.", "C.S. Lewis", "Sam Shamoun")

JOHN_3_16 = {
    "reference": "John 3:16",
    "verses": [
        {
            "book_id": "JHN",
            "book_name": "John",
            "chapter": 3,
            "verse": 16,
            "text": "For God so loved the world, that he gave his only begotten Son.\n",
        }
    ],
    "text": "For God so loved the world, that he gave his only begotten Son.\n",
    "translation_id": "kjv",
}

ROMANS_8_28 = {
    "reference": "Romans 8:28",
    "verses": [
        {
            "book_id": "ROM",
            "book_name": "Romans",
            "chapter": 8,
            "verse": 28,
            "text": "And we know that all things work together for good to them that love God.",
        }
    ],
    "translation_id": "kjv",
}

PSALM_23_1_2 = {
    "reference": "Psalm 23:1-2",
    "verses": [
        {"verse": 1, "text": " The LORD is my shepherd; I shall not want. "},
        {"verse": 2, "text": "He maketh me to lie down in green pastures."},
    ],
    "translation_id": "kjv",
}


class FakeGenerator(TextGenerator):
    """Records requests and answers with a canned reply"""

    name = "fake"

    def __init__(self, reply: Optional[str] = "Generated reply.", error: Optional[Exception] = None):
        self.reply = reply
        self.error = error
        self.calls: List[list] = []

    async def generate(self, contents):
        self.calls.append(contents)
        if self.error is not None:
            raise self.error
        return self.reply


class BibleApi:
    """Stub bible-api.com: known passages answer, everything else is a 404"""

    def __init__(self, passages: Optional[Dict[str, dict]] = None):
        self.passages = passages if passages is not None else {
            "John 3:16": JOHN_3_16,
            "Romans 8:28": ROMANS_8_28,
            "Psalm 23:1-2": PSALM_23_1_2,
        }
        self.requests: List[Tuple[str, dict]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        raw_path = request.url.raw_path.decode().split("?", 1)[0]
        passage = unquote(raw_path.lstrip("/"))
        self.requests.append((passage, dict(request.url.params)))
        data = self.passages.get(passage)
        if data is None:
            return httpx.Response(404, json={"error": "not found"})
        return httpx.Response(200, content=json.dumps(data), headers={"content-type": "application/json"})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def bible_api():
    return BibleApi()


@pytest.fixture
def bible_service(bible_api):
    return BibleService(
        base_url="https://bible-api.test",
        translation="kjv",
        timeout=5,
        transport=bible_api.transport(),
    )


@pytest.fixture
def store():
    return TranscriptStore()


class FakeRedis:
    """The slice of the redis client the transcript store uses.

    GET calls whose 1-based position is in ``failing_gets`` raise a connection
    error, like a dropped link would.
    """

    def __init__(self, failing_gets=()):
        self.lists: Dict[str, List[str]] = defaultdict(list)
        self.values: Dict[str, str] = {}
        self.failing_gets = set(failing_gets)
        self.get_calls = 0

    def time(self):
        now = time.time()
        return int(now), int((now % 1) * 1_000_000)

    def rpush(self, key, value):
        self.lists[key].append(value)

    def lrange(self, key, start, end):
        return list(self.lists[key])

    def lrem(self, key, count, value):
        self.lists[key].remove(value)
        return 1

    def get(self, key):
        self.get_calls += 1
        if self.get_calls in self.failing_gets:
            raise redis.ConnectionError("Connection reset by peer")
        return self.values.get(key)

    def set(self, key, value):
        self.values[key] = value


@pytest.fixture
def fake_redis():
    return FakeRedis


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def chat_service(store, bible_service, generator):
    return ScriptureChatService(
        store=store,
        bible_service=bible_service,
        generator=generator,
        allow_list=THEOLOGIANS,
    )


@pytest.fixture
def theologians():
    return THEOLOGIANS


@pytest.fixture
def make_generator():
    return FakeGenerator
