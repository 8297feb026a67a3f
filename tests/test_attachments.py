from __future__ import annotations

import pytest

from core.attachments import AttachmentSummary, SingleAttachment, format_file_size, plan_attachments
from core.models import Attachment, MessageKind

LIMIT = 64 * 1024


def _attachment(size: int, content_type: str = "image/png") -> Attachment:
    return Attachment("f", "https://cdn/f", content_type, size)


def test_no_attachments_no_plan() -> None:
    assert plan_attachments((), LIMIT) is None


def test_small_image_is_uploaded_as_image() -> None:
    attachment = _attachment(LIMIT)
    assert plan_attachments((attachment,), LIMIT) == SingleAttachment(attachment, MessageKind.IMAGE)


def test_small_other_type_is_uploaded_as_file() -> None:
    attachment = _attachment(10, "application/pdf")
    assert plan_attachments((attachment,), LIMIT) == SingleAttachment(attachment, MessageKind.FILE)


def test_oversized_single_attachment_is_summarized() -> None:
    attachment = _attachment(LIMIT + 1)
    assert plan_attachments((attachment,), LIMIT) == AttachmentSummary((attachment,))


def test_several_attachments_are_summarized() -> None:
    attachments = (_attachment(1), _attachment(2))
    assert plan_attachments(attachments, LIMIT) == AttachmentSummary(attachments)


@pytest.mark.parametrize(
    ("size", "expected"),
    [(0, "0 B"), (1023, "1023 B"), (1536, "1.5 kB"), (5 * 1024 * 1024, "5.0 MB")],
)
def test_format_file_size(size: int, expected: str) -> None:
    assert format_file_size(size) == expected
