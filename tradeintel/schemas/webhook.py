"""Inbound webhook payload schemas (Whapi message format)."""

from pydantic import BaseModel, Field

_MEDIA_KINDS = ("image", "document", "video", "audio")


class MessageText(BaseModel):
    body: str | None = None


class MediaContent(BaseModel):
    link: str | None = None
    caption: str | None = None
    mime_type: str | None = None


class QuotedMessage(BaseModel):
    id: str | None = None


class WhapiMessage(BaseModel):
    model_config = {"populate_by_name": True, "extra": "ignore"}

    id: str | None = None
    from_: str | None = Field(None, alias="from")
    chat_id: str | None = None
    from_name: str | None = None
    text: MessageText | None = None
    image: MediaContent | None = None
    document: MediaContent | None = None
    video: MediaContent | None = None
    audio: MediaContent | None = None
    timestamp: int | None = None
    from_me: bool = False
    forwarded: bool = False
    quoted_msg: QuotedMessage | None = None

    def _media(self) -> tuple[str, MediaContent] | None:
        for kind in _MEDIA_KINDS:
            media = getattr(self, kind)
            if media is not None:
                return kind, media
        return None

    @property
    def message_body(self) -> str | None:
        """Text body, falling back to the image caption."""
        if self.text and self.text.body:
            return self.text.body
        if self.image and self.image.caption:
            return self.image.caption
        return None

    @property
    def message_type(self) -> str:
        media = self._media()
        return media[0] if media else "text"

    @property
    def media_url(self) -> str | None:
        media = self._media()
        return media[1].link if media else None

    @property
    def media_mime_type(self) -> str | None:
        media = self._media()
        return media[1].mime_type if media else None

    @property
    def reply_to_msg_id(self) -> str | None:
        return self.quoted_msg.id if self.quoted_msg else None


class WhapiWebhookPayload(BaseModel):
    model_config = {"extra": "ignore"}

    messages: list[WhapiMessage] | None = None
