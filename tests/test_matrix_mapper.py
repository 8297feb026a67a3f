from __future__ import annotations

from adapters.matrix_mapper import build_event, parse_content
from core.models import (
    EditContent,
    FileContent,
    MalformedContent,
    MediaContent,
    MessageKind,
    TextContent,
    UnknownContent,
)


class DummyContent:
    def __init__(self, raw: dict) -> None:
        self._raw = raw

    def serialize(self) -> dict:
        return dict(self._raw)


class DummyEvent:
    def __init__(self, raw: dict, *, sender: str = "@alice:hs", timestamp: int = 1_000) -> None:
        self.event_id = "$O1"
        self.room_id = "!R:hs"
        self.sender = sender
        self.timestamp = timestamp
        self.content = DummyContent(raw)


def test_text_kinds() -> None:
    assert parse_content({"msgtype": "m.text", "body": "hi"}) == TextContent(MessageKind.TEXT, "hi")
    assert parse_content({"msgtype": "m.emote", "body": "waves"}) == TextContent(MessageKind.EMOTE, "waves")
    assert parse_content({"msgtype": "m.notice", "body": "bot"}).kind == MessageKind.NOTICE


def test_media_keeps_url_and_mimetype() -> None:
    content = parse_content(
        {
            "msgtype": "m.image",
            "body": "cat.png",
            "url": "mxc://hs/abc",
            "info": {"mimetype": "image/png"},
        }
    )
    assert content == MediaContent(MessageKind.IMAGE, "cat.png", "mxc://hs/abc", "image/png")


def test_file_name_falls_back_to_body() -> None:
    content = parse_content({"msgtype": "m.file", "body": "report.pdf", "url": "mxc://hs/f"})
    assert isinstance(content, FileContent)
    assert content.filename == "report.pdf"
    assert content.mimetype is None


def test_media_without_url_is_malformed() -> None:
    content = parse_content({"msgtype": "m.video", "body": "clip"})
    assert isinstance(content, MalformedContent)
    assert content.msgtype == "m.video"


def test_missing_body_is_malformed() -> None:
    assert isinstance(parse_content({"msgtype": "m.text"}), MalformedContent)


def test_blank_text_is_malformed() -> None:
    assert parse_content({"msgtype": "m.text", "body": ""}) == MalformedContent("m.text", "text message with empty body")
    assert isinstance(parse_content({"msgtype": "m.emote", "body": "  \n"}), MalformedContent)


def test_blank_replacement_is_malformed_edit() -> None:
    content = parse_content(
        {
            "msgtype": "m.text",
            "body": "* ",
            "m.new_content": {"msgtype": "m.text", "body": ""},
            "m.relates_to": {"rel_type": "m.replace", "event_id": "$O1"},
        }
    )
    assert isinstance(content, EditContent)
    assert isinstance(content.new_content, MalformedContent)


def test_unknown_msgtype() -> None:
    assert parse_content({"msgtype": "m.location", "body": "here"}) == UnknownContent("m.location")


def test_replacement_becomes_edit() -> None:
    content = parse_content(
        {
            "msgtype": "m.text",
            "body": "* hello!",
            "m.new_content": {"msgtype": "m.text", "body": "hello!"},
            "m.relates_to": {"rel_type": "m.replace", "event_id": "$O1"},
        }
    )
    assert content == EditContent("$O1", TextContent(MessageKind.TEXT, "hello!"))


def test_replacement_without_new_content() -> None:
    content = parse_content(
        {
            "msgtype": "m.text",
            "body": "* hello!",
            "m.relates_to": {"rel_type": "m.replace", "event_id": "$O1"},
        }
    )
    assert isinstance(content, EditContent)
    assert isinstance(content.new_content, MalformedContent)


def test_other_relations_are_plain_messages() -> None:
    content = parse_content(
        {
            "msgtype": "m.text",
            "body": "reply",
            "m.relates_to": {"m.in_reply_to": {"event_id": "$O1"}},
        }
    )
    assert content == TextContent(MessageKind.TEXT, "reply")


def test_build_event_normalizes_fields() -> None:
    event = build_event(DummyEvent({"msgtype": "m.text", "body": "hello"}))

    assert event.message_id == "$O1"
    assert event.room_id == "!R:hs"
    assert event.sender_id == "@alice:hs"
    assert event.sender_name == "alice"
    assert event.timestamp == 1_000
    assert event.content == TextContent(MessageKind.TEXT, "hello")
    assert event.replaces is None
