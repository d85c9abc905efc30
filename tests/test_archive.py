"""Tests for idempotent message archival and the webhook payload schema."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy import func, select

from tradeintel.models.group import WhatsappGroup
from tradeintel.models.raw_message import RawMessage
from tradeintel.schemas.webhook import WhapiMessage, WhapiWebhookPayload
from tradeintel.services.archive_service import ArchiveService


@pytest.fixture
def whapi():
    client = MagicMock()
    client.get_group_name = AsyncMock(return_value="Watch Traders")
    return client


@pytest.fixture
def archive(whapi):
    return ArchiveService(whapi)


def _message(**overrides) -> WhapiMessage:
    data = {
        "id": "wamid-001",
        "from": "15550001111",
        "chat_id": "120363000000000001@g.us",
        "from_name": "Alice",
        "text": {"body": "WTS Rolex Submariner 116610LN $12,500"},
        "timestamp": 1706745600,
    }
    data.update(overrides)
    return WhapiMessage.model_validate(data)


async def _count(db, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


class TestWebhookSchema:
    def test_text_message(self):
        msg = _message()
        assert msg.from_ == "15550001111"
        assert msg.message_body.startswith("WTS Rolex")
        assert msg.message_type == "text"
        assert msg.media_url is None

    def test_image_caption_used_as_body(self):
        msg = _message(text=None, image={"link": "https://cdn/x.jpg", "caption": "FS Omega", "mime_type": "image/jpeg"})
        assert msg.message_body == "FS Omega"
        assert msg.message_type == "image"
        assert msg.media_url == "https://cdn/x.jpg"
        assert msg.media_mime_type == "image/jpeg"

    def test_quoted_message_is_reply(self):
        msg = _message(quoted_msg={"id": "wamid-000"})
        assert msg.reply_to_msg_id == "wamid-000"

    def test_unknown_fields_ignored(self):
        payload = WhapiWebhookPayload.model_validate({"messages": [{"id": "x", "unexpected": 1}], "event": {}})
        assert payload.messages[0].id == "x"


class TestArchive:
    @pytest.mark.asyncio
    async def test_archives_new_message(self, db, archive):
        raw = await archive.archive(db, _message())

        assert raw is not None
        assert raw.whapi_msg_id == "wamid-001"
        assert raw.sender_phone == "15550001111"
        assert raw.sender_name == "Alice"
        assert raw.processed is False
        assert raw.timestamp_wa.year == 2024

        group = await db.get(WhatsappGroup, raw.group_id)
        assert group.whapi_group_id == "120363000000000001@g.us"
        assert group.group_name == "Watch Traders"

    @pytest.mark.asyncio
    async def test_duplicate_is_ignored(self, db, archive):
        first = await archive.archive(db, _message())
        second = await archive.archive(db, _message())

        assert first is not None
        assert second is None
        assert await _count(db, RawMessage) == 1

    @pytest.mark.asyncio
    async def test_group_reused_across_messages(self, db, archive, whapi):
        await archive.archive(db, _message(id="wamid-001"))
        await archive.archive(db, _message(id="wamid-002"))

        assert await _count(db, WhatsappGroup) == 1
        whapi.get_group_name.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_group_name_falls_back_to_chat_id(self, db, whapi):
        whapi.get_group_name.return_value = None
        raw = await ArchiveService(whapi).archive(db, _message())

        group = await db.get(WhatsappGroup, raw.group_id)
        assert group.group_name == "120363000000000001@g.us"

    @pytest.mark.asyncio
    async def test_missing_ids_skipped(self, db, archive):
        assert await archive.archive(db, _message(id=None)) is None
        assert await archive.archive(db, _message(chat_id=None)) is None
        assert await _count(db, RawMessage) == 0

    @pytest.mark.asyncio
    async def test_lost_insert_race_returns_none(self, db, archive):
        """A writer that passes the existence check but loses on the unique key gets None."""
        await archive.archive(db, _message())

        with patch.object(ArchiveService, "_exists", AsyncMock(return_value=False)):
            result = await archive.archive(db, _message())

        assert result is None
        assert await _count(db, RawMessage) == 1
