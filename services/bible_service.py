import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from config import get_settings
from models import Passage, Verse

logger = logging.getLogger("scripture_chat.bible")


class BibleService:
    """Passage lookup against bible-api.com.

    A single GET per passage, scoped to one translation. Anything other than a
    successful response with at least one verse means "not a scripture
    reference" and is returned as None; the caller then treats the message as a
    conversational question. No retries.
    """

    FRIENDLY_NAMES: Dict[str, str] = {
        "kjv": "King James Version",
        "web": "World English Bible",
        "webbe": "World English Bible, British Edition",
        "bbe": "Bible in Basic English",
        "oeb-us": "Open English Bible, US Edition",
        "oeb-cw": "Open English Bible, Commonwealth Edition",
        "clementine": "Clementine Latin Vulgate",
        "almeida": "João Ferreira de Almeida",
        "rccv": "Romanian Corrected Cornilescu Version",
        "cherokee": "Cherokee New Testament",
    }

    def __init__(
        self,
        base_url: Optional[str] = None,
        translation: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.BIBLE_API_BASE).rstrip("/")
        self.translation = (translation or settings.BIBLE_TRANSLATION).lower()
        self.timeout = timeout if timeout is not None else settings.REQUEST_TIMEOUT
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    def passage_url(self, passage: str) -> str:
        return f"{self.base_url}/{quote(passage, safe='')}"

    async def lookup(self, passage: str) -> Optional[Passage]:
        """Fetch a passage like "John 3:16" or "Romans 8:28-30"; None when not found."""
        passage = (passage or "").strip()
        if not passage:
            return None

        async with self._client() as client:
            try:
                resp = await client.get(
                    self.passage_url(passage), params={"translation": self.translation}
                )
            except httpx.HTTPError as e:
                logger.warning("Bible API request failed for %r: %s", passage, e)
                return None

        if not resp.is_success:
            logger.info("Bible API returned %s for %r", resp.status_code, passage)
            return None

        try:
            data = resp.json()
        except ValueError:
            logger.warning("Bible API returned a non-JSON body for %r", passage)
            return None

        return self._parse_passage(data, passage)

    def _parse_passage(self, data: Any, passage: str) -> Optional[Passage]:
        if not isinstance(data, dict):
            return None
        items = data.get("verses") or []
        if not isinstance(items, list):
            return None

        verses: List[Verse] = []
        for item in items:
            try:
                verses.append(Verse(number=int(item.get("verse")), text=(item.get("text") or "").strip()))
            except (AttributeError, TypeError, ValueError):
                logger.debug("Skipping malformed verse entry %r", item)
        if not verses:
            return None

        return Passage(
            reference=data.get("reference") or passage,
            translation=(data.get("translation_id") or self.translation).lower(),
            verses=verses,
        )

    def get_supported_translations(self) -> List[Dict[str, Any]]:
        """Return translation codes accepted by the lookup service"""
        return [
            {"code": code, "name": name, "default": code == self.translation}
            for code, name in sorted(self.FRIENDLY_NAMES.items())
        ]
