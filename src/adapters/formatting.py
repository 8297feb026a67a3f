"""Shared message formatting helpers.

Keeping formatting here prevents drift between the Matrix and Discord
adapters and keeps relayed messages consistent in both directions.
"""

from __future__ import annotations

import html
import mimetypes
import re
from typing import Any, Sequence

from core.attachments import format_file_size
from core.identity_keys import strip_matrix_name
from core.models import Attachment, FileContent, MediaContent, MessageContent, MessageKind, TextContent

# Discord rejects webhook messages longer than this.
DISCORD_MAX_CONTENT = 2000

HTML_FORMAT = "org.matrix.custom.html"


def matrix_to_discord_text(sender_id: str, content: MessageContent) -> str:
    """Render Matrix content as Discord message text."""

    if isinstance(content, TextContent) and content.kind == MessageKind.EMOTE:
        text = f"* **{strip_matrix_name(sender_id)}** {content.body}"
    elif isinstance(content, (TextContent, MediaContent, FileContent)):
        text = content.body
    else:
        text = ""
    return text[:DISCORD_MAX_CONTENT]


def media_filename(content: MediaContent) -> str:
    """Return ``image.png``-style names for Matrix media without a filename."""

    extension = ""
    if content.mimetype:
        extension = mimetypes.guess_extension(content.mimetype) or ""
    return content.kind.value[2:] + extension


def markdown_to_html(text: str) -> str:
    """Render the Discord markdown subset as Matrix HTML."""

    text = html.escape(text, quote=False)
    # Code is stashed first so its contents are not formatted further.
    blocks: list[str] = []

    def _stash(rendered: str) -> str:
        blocks.append(rendered)
        return f"\x00{len(blocks) - 1}\x00"

    text = re.sub(
        r"```(\w*)\n?(.*?)```",
        lambda m: _stash(f"<pre><code>{m.group(2)}</code></pre>"),
        text,
        flags=re.DOTALL,
    )
    text = re.sub(r"`([^`]+)`", lambda m: _stash(f"<code>{m.group(1)}</code>"), text)
    text = re.sub(r"\*\*(.+?)\*\*", r"<strong>\1</strong>", text)
    text = re.sub(r"__(.+?)__", r"<u>\1</u>", text)
    text = re.sub(r"~~(.+?)~~", r"<del>\1</del>", text)
    text = re.sub(r"\|\|(.+?)\|\|", r"<span data-mx-spoiler>\1</span>", text)
    text = re.sub(r"(?<![\w*])\*(?!\s)(.+?)(?<!\s)\*(?![\w*])", r"<em>\1</em>", text)
    text = re.sub(r"(?<!\w)_(?!\s)(.+?)(?<!\s)_(?!\w)", r"<em>\1</em>", text)
    text = text.replace("\n", "<br>")
    return re.sub(r"\x00(\d+)\x00", lambda m: blocks[int(m.group(1))], text)


def discord_to_matrix_plain(author: str, text: str) -> str:
    return f"{author}: {text}"


def discord_to_matrix_html(author: str, text: str) -> str:
    return f"<b>{html.escape(author)}</b>: {markdown_to_html(text)}"


def text_event_content(author: str, text: str) -> dict[str, Any]:
    """Matrix ``m.room.message`` content for a relayed Discord message."""

    return {
        "msgtype": MessageKind.TEXT.value,
        "body": discord_to_matrix_plain(author, text),
        "format": HTML_FORMAT,
        "formatted_body": discord_to_matrix_html(author, text),
    }


def edit_event_content(author: str, text: str, event_id: str) -> dict[str, Any]:
    """Matrix ``m.replace`` content that edits a previously relayed message."""

    return {
        "msgtype": MessageKind.TEXT.value,
        "body": "* " + discord_to_matrix_plain(author, text),
        "m.new_content": text_event_content(author, text),
        "m.relates_to": {"rel_type": "m.replace", "event_id": event_id},
    }


def attachment_event_content(
    author: str,
    attachment: Attachment,
    msgtype: MessageKind,
    content_uri: str,
) -> dict[str, Any]:
    return {
        "msgtype": msgtype.value,
        "body": f"{author} uploaded {attachment.filename}",
        "filename": attachment.filename,
        "url": content_uri,
        "info": {"mimetype": attachment.content_type, "size": attachment.size},
    }


def format_attachment_summary(author: str, attachments: Sequence[Attachment]) -> tuple[str, str]:
    """Return (plain, html) bodies listing links, MIME types and sizes."""

    plain_lines = [f"{author} uploaded files"]
    rows = []
    for attachment in attachments:
        size = format_file_size(attachment.size)
        plain_lines.append(f"{attachment.filename} ({size}): {attachment.url}")
        rows.append(
            "<tr>"
            f"<td><a href=\"{html.escape(attachment.url)}\">{html.escape(attachment.filename)}</a></td>"
            f"<td>{html.escape(attachment.content_type)}</td>"
            f"<td>{size}</td>"
            "</tr>"
        )

    html_body = (
        f"<b>{html.escape(author)}</b> uploaded files"
        "<table><tr><th>Link</th><th>MIME Type</th><th>Size</th></tr>"
        + "".join(rows)
        + "</table>"
    )
    return "\n".join(plain_lines), html_body
