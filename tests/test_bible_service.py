import httpx

from services.bible_service import BibleService


def _service(handler) -> BibleService:
    return BibleService(
        base_url="https://bible-api.test/",
        translation="KJV",
        timeout=5,
        transport=httpx.MockTransport(handler),
    )


async def test_lookup_found(bible_service, bible_api):
    passage = await bible_service.lookup("John 3:16")

    assert passage is not None
    assert passage.reference == "John 3:16"
    assert passage.translation == "kjv"
    assert [v.number for v in passage.verses] == [16]
    assert passage.verse_text == "For God so loved the world, that he gave his only begotten Son."
    assert bible_api.requests == [("John 3:16", {"translation": "kjv"})]


async def test_multiple_verses_are_joined_and_formatted(bible_service):
    passage = await bible_service.lookup("Psalm 23:1-2")

    assert passage.verse_text == (
        "The LORD is my shepherd; I shall not want. He maketh me to lie down in green pastures."
    )
    result = passage.to_result()
    assert result.id == result.reference == "Psalm 23:1-2"
    assert result.content == (
        "<p><strong>1</strong> The LORD is my shepherd; I shall not want.</p>"
        "<p><strong>2</strong> He maketh me to lie down in green pastures.</p>"
    )


async def test_passage_is_url_encoded():
    seen = []

    def handler(request):
        seen.append(request.url.raw_path.decode())
        return httpx.Response(404)

    await _service(handler).lookup("1 John 4:8")
    assert seen == ["/1%20John%204%3A8?translation=kjv"]


async def test_not_found_status(bible_service):
    assert await bible_service.lookup("What does faith mean?") is None


async def test_empty_passage_makes_no_request(bible_service, bible_api):
    assert await bible_service.lookup("   ") is None
    assert bible_api.requests == []


async def test_empty_verse_list_is_not_found():
    service = _service(lambda request: httpx.Response(200, json={"reference": "", "verses": []}))
    assert await service.lookup("hello") is None


async def test_non_json_body_is_not_found():
    service = _service(lambda request: httpx.Response(200, content=b"<html>oops</html>"))
    assert await service.lookup("John 3:16") is None


async def test_network_error_is_not_found():
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    assert await _service(handler).lookup("John 3:16") is None
    # no retries
    assert len(calls) == 1


async def test_timeout_is_not_found():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    assert await _service(handler).lookup("John 3:16") is None


async def test_malformed_verse_entries_are_skipped():
    body = {"reference": "John 3:16", "verses": [{"verse": "x", "text": "bad"}, {"verse": "16", "text": " ok "}]}
    passage = await _service(lambda request: httpx.Response(200, json=body)).lookup("John 3:16")
    assert [(v.number, v.text) for v in passage.verses] == [(16, "ok")]


def test_supported_translations_mark_default(bible_service):
    translations = bible_service.get_supported_translations()
    defaults = [t["code"] for t in translations if t["default"]]
    assert defaults == ["kjv"]
