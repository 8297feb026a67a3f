from __future__ import annotations

import asyncio

from adapters.matrix_sender import MatrixRoomSender
from adapters.media import MediaReader
from core.models import Attachment, MessageKind


class DummyResponse:
    def __init__(self, data: bytes) -> None:
        self._data = data

    async def __aenter__(self) -> "DummyResponse":
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None

    def raise_for_status(self) -> None:
        return None

    async def read(self) -> bytes:
        return self._data


class DummySession:
    def __init__(self) -> None:
        self.fetched: list[str] = []

    def get(self, url: str) -> DummyResponse:
        self.fetched.append(url)
        return DummyResponse(b"remote-bytes")


class DummyApi:
    def __init__(self) -> None:
        self.session = DummySession()


class DummyMatrixClient:
    def __init__(self) -> None:
        self.api = DummyApi()
        self.sent: list[tuple[str, dict]] = []
        self.uploads: list[dict] = []
        self.downloads: list[str] = []

    async def send_message_event(self, room_id, event_type, content: dict) -> str:
        self.sent.append((str(room_id), content))
        return f"$E{len(self.sent)}"

    async def upload_media(self, data: bytes, **kwargs) -> str:
        self.uploads.append({"data": data, **kwargs})
        return "mxc://hs/uploaded"

    async def download_media(self, url: str) -> bytes:
        self.downloads.append(url)
        return b"mxc-bytes"


def _sender() -> tuple[MatrixRoomSender, DummyMatrixClient]:
    client = DummyMatrixClient()
    return MatrixRoomSender(client, MediaReader(client)), client


def test_send_text_posts_formatted_message() -> None:
    sender, client = _sender()

    event_id = asyncio.run(sender.send_text("!R:hs", "bob", "*hi*"))

    assert event_id == "$E1"
    room_id, content = client.sent[0]
    assert room_id == "!R:hs"
    assert content["body"] == "bob: *hi*"
    assert content["formatted_body"] == "<b>bob</b>: <em>hi</em>"


def test_send_attachment_uploads_then_posts() -> None:
    sender, client = _sender()
    attachment = Attachment("cat.png", "https://cdn/cat.png", "image/png", 12)

    asyncio.run(sender.send_attachment("!R:hs", "bob", attachment, MessageKind.IMAGE))

    assert client.api.session.fetched == ["https://cdn/cat.png"]
    assert client.uploads == [
        {"data": b"remote-bytes", "mime_type": "image/png", "filename": "cat.png", "size": 12}
    ]
    content = client.sent[0][1]
    assert content["msgtype"] == "m.image"
    assert content["url"] == "mxc://hs/uploaded"


def test_edit_text_relates_to_original() -> None:
    sender, client = _sender()

    asyncio.run(sender.edit_text("!R:hs", "$E0", "bob", "fixed"))

    content = client.sent[0][1]
    assert content["m.relates_to"] == {"rel_type": "m.replace", "event_id": "$E0"}


def test_summary_is_one_message() -> None:
    sender, client = _sender()
    attachments = [Attachment(f"f{i}", f"https://cdn/f{i}", "text/plain", i) for i in range(3)]

    asyncio.run(sender.send_attachment_summary("!R:hs", "bob", attachments))

    assert len(client.sent) == 1
    assert client.uploads == []


def test_media_reader_downloads_mxc_urls() -> None:
    client = DummyMatrixClient()

    data = asyncio.run(MediaReader(client).read("mxc://hs/abc"))

    assert data == b"mxc-bytes"
    assert client.downloads == ["mxc://hs/abc"]
    assert client.api.session.fetched == []
