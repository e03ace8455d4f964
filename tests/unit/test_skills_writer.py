"""Unit tests for SkillsWriter card construction and saving."""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from skill_service.errors import SkillsErrorCode
from skill_service.files_reader import FilesReader
from skill_service.skills_writer import (
    PROCESSING_MESSAGE,
    SkillsWriter,
    process_data_list,
    resolve_status,
    resolve_usage,
    title_code,
)
from skill_service.types import CardType, InvocationStatus

API = "https://api.box.test/2.0"


class _Recorder:
    """MockTransport handler that records skill invocation PUTs."""

    def __init__(self, status_code: int = 200, content: bytes = b"") -> None:
        self.requests: list[httpx.Request] = []
        self.status_code = status_code
        self.content = content

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, content=self.content)

    @property
    def body(self) -> dict[str, Any]:
        return json.loads(self.requests[-1].content)


@pytest.fixture
def file_context(skill_event):
    return FilesReader(skill_event).get_file_context()


@pytest.fixture
def recorder():
    return _Recorder()


@pytest.fixture
def writer(file_context, recorder):
    return SkillsWriter(file_context, api_endpoint=API, transport=httpx.MockTransport(recorder))


class TestProcessDataList:
    def test_blank_entries_dropped_and_text_trimmed(self):
        result = process_data_list([{"text": " a "}, {"text": ""}, {"text": "  "}])
        assert result == [{"text": "a", "type": "text"}]

    def test_non_string_text_dropped(self):
        assert process_data_list([{"text": 3}, {"label": "x"}]) == []

    def test_image_entries_tagged(self):
        result = process_data_list([{"text": "Ann", "image_url": "https://img/1.jpg"}])
        assert result[0]["type"] == "image"

    def test_input_not_mutated(self):
        original = {"text": " keep ", "appears": [{"start": 0, "end": 1}]}
        result = process_data_list([original])
        result[0]["appears"].append({"start": 2, "end": 3})
        assert original == {"text": " keep ", "appears": [{"start": 0, "end": 1}]}

    def test_missing_appears_with_duration_logs_warning(self, caplog):
        with caplog.at_level("WARNING"):
            result = process_data_list([{"text": "t"}], duration=12.0)
        assert len(result) == 1
        assert "appears" in caplog.text


class TestHelpers:
    def test_title_code(self):
        assert title_code("Topics") == "skills_topics"
        assert title_code("Key Phrase List") == "skills_key_phrase_list"

    def test_resolve_status(self):
        assert resolve_status("processing") is InvocationStatus.PROCESSING
        assert resolve_status("weird") is InvocationStatus.SUCCESS
        assert resolve_status(None) is InvocationStatus.SUCCESS

    def test_resolve_usage(self):
        assert resolve_usage({"unit": "seconds", "value": 30}).model_dump(mode="json") == {
            "unit": "seconds",
            "value": 30,
        }
        assert resolve_usage(None).model_dump(mode="json") == {"unit": "files", "value": 1}
        assert resolve_usage({"unit": "lightyears", "value": 1}).value == 1
        assert resolve_usage({"unit": "pages", "value": "12"}).unit.value == "files"


class TestCards:
    def test_metadata_card_shape(self, writer):
        card = writer.create_metadata_card(CardType.TOPIC, "Topics", entries=[{"text": "x"}], duration="42")
        assert card["type"] == "skill_card"
        assert card["skill_card_type"] == "keyword"
        assert card["skill_card_title"] == {"code": "skills_topics", "message": "Topics"}
        assert card["skill"] == {"type": "service", "id": "7001"}
        assert card["invocation"] == {"type": "skill_invocation", "id": "req-123"}
        assert card["status"] == {}
        assert card["duration"] == 42.0
        assert card["created_at"]

    def test_card_without_entries_or_duration(self, writer):
        card = writer.create_metadata_card(CardType.STATUS, "Status", {"code": "c"})
        assert "entries" not in card
        assert "duration" not in card
        assert card["status"] == {"code": "c"}

    def test_topics_and_transcripts(self, writer):
        topics = writer.create_topics_card([{"text": " travel "}, {"text": ""}])
        transcript = writer.create_transcripts_card([{"text": "hi"}], duration=10, title="Words")
        assert topics["skill_card_type"] == "keyword"
        assert topics["entries"] == [{"text": "travel", "type": "text"}]
        assert transcript["skill_card_type"] == "transcript"
        assert transcript["skill_card_title"]["code"] == "skills_words"
        assert transcript["duration"] == 10.0

    async def test_faces_card_inlines_thumbnails(self, writer):
        faces = [
            {"text": "Ann", "image_url": "https://img.test/ann.jpg"},
            {"text": "Bob", "image_url": "https://img.test/bob.jpg"},
            {"text": "caption only"},
        ]
        fetch = AsyncMock(side_effect=["data:image/png;base64,AAA", httpx.ConnectError("down")])
        with patch("skill_service.skills_writer.fetch_thumbnail_data_uri", fetch):
            card = await writer.create_faces_card(faces)

        assert card["skill_card_type"] == "timeline"
        assert card["skill_card_title"]["message"] == "Faces"
        entries = card["entries"]
        assert entries[0]["image_url"] == "data:image/png;base64,AAA"
        assert entries[1]["image_url"] == "https://img.test/bob.jpg"
        assert entries[2]["type"] == "text"
        assert fetch.await_count == 2

    async def test_faces_card_with_real_resize(self, file_context, sample_png_bytes):
        image_transport = httpx.MockTransport(
            lambda r: httpx.Response(200, content=sample_png_bytes)
        )
        writer = SkillsWriter(file_context, api_endpoint=API, image_transport=image_transport)
        async with writer:
            card = await writer.create_faces_card([{"text": "A", "image_url": "https://img.test/a.png"}])
        assert card["entries"][0]["image_url"].startswith("data:image/png;base64,")


class TestSaving:
    async def test_save_data_cards_success_defaults(self, writer, recorder):
        card = writer.create_topics_card([{"text": "x"}])
        await writer.save_data_cards([card], status="nonsense")

        request = recorder.requests[-1]
        assert request.method == "PUT"
        assert request.url == f"{API}/skill_invocations/7001"
        assert request.headers["cache-control"] == "no-cache"
        assert request.headers["authorization"] == "Bearer write-token"
        body = recorder.body
        assert body["status"] == "success"
        assert body["file"] == {"type": "file", "id": "file-42"}
        assert body["metadata"]["cards"] == [card]
        assert body["usage"] == {"unit": "files", "value": 1}

    async def test_save_data_cards_custom_usage(self, writer, recorder):
        await writer.save_data_cards([], usage={"unit": "seconds", "value": 95})
        assert recorder.body["usage"] == {"unit": "seconds", "value": 95}

    async def test_usage_omitted_unless_success(self, writer, recorder):
        await writer.save_data_cards([], status=InvocationStatus.PROCESSING, usage={"unit": "files", "value": 3})
        assert recorder.body["usage"] is None

    async def test_save_returns_response_json(self, file_context):
        rec = _Recorder(content=b'{"type": "skill_invocation"}')
        writer = SkillsWriter(file_context, api_endpoint=API, transport=httpx.MockTransport(rec))
        assert await writer.save_data_cards([]) == {"type": "skill_invocation"}

    async def test_save_error_propagates(self, file_context):
        rec = _Recorder(status_code=403)
        writer = SkillsWriter(file_context, api_endpoint=API, transport=httpx.MockTransport(rec))
        with pytest.raises(httpx.HTTPStatusError):
            await writer.save_data_cards([])

    async def test_processing_card(self, writer, recorder):
        await writer.save_processing_card()
        body = recorder.body
        assert body["status"] == "processing"
        card = body["metadata"]["cards"][0]
        assert card["skill_card_type"] == "status"
        assert card["skill_card_title"] == {"code": "skills_status", "message": "Status"}
        assert card["status"] == {"code": "skills_pending_status", "message": PROCESSING_MESSAGE}

    async def test_error_card_known_code(self, writer, recorder):
        await writer.save_error_card(SkillsErrorCode.INVALID_FILE_FORMAT)
        body = recorder.body
        assert body["status"] == "permanent_failure"
        card = body["metadata"]["cards"][0]
        assert card["skill_card_title"]["message"] == "Error"
        assert card["status"] == {"code": "skills_invalid_file_format_error"}

    async def test_error_card_unknown_code(self, writer, recorder):
        await writer.save_error_card("not_a_real_code")
        assert recorder.body["metadata"]["cards"][0]["status"] == {"code": "skills_unknown_error"}

    async def test_error_card_unprefixed_code(self, writer, recorder):
        await writer.save_error_card("billing_error")
        assert recorder.body["metadata"]["cards"][0]["status"] == {"code": "skills_billing_error"}

    async def test_error_card_custom_message(self, writer, recorder):
        await writer.save_error_card(SkillsErrorCode.UNKNOWN, "Try again later")
        status = recorder.body["metadata"]["cards"][0]["status"]
        assert status == {"code": "custom_error", "message": "Try again later"}

    async def test_error_card_transient_failure(self, writer, recorder):
        await writer.save_error_card(SkillsErrorCode.UNKNOWN, failure_type="transient_failure")
        assert recorder.body["status"] == "transient_failure"

    async def test_error_card_other_failure_type_is_permanent(self, writer, recorder):
        await writer.save_error_card(SkillsErrorCode.UNKNOWN, failure_type="success")
        assert recorder.body["status"] == "permanent_failure"
        assert recorder.body["usage"] is None
