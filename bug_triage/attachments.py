"""Acceptance rules for screenshots attached to a report.

Checked synchronously, before a report reaches the duplicate classifier.
"""

from collections.abc import Sequence

from bug_triage.models import Attachment

MAX_ATTACHMENTS = 5
MAX_ATTACHMENT_BYTES = 5 * 1024 * 1024

ALLOWED_MEDIA_TYPES = frozenset({
    "image/png",
    "image/jpeg",
    "image/gif",
    "image/webp",
})


class AttachmentError(ValueError):
    """Raised when the attachments of a report break the upload limits."""


def validate_attachments(images: Sequence[Attachment]) -> None:
    """Raise AttachmentError on the first limit *images* violates."""
    if len(images) > MAX_ATTACHMENTS:
        raise AttachmentError(
            f"Too many images: {len(images)} (at most {MAX_ATTACHMENTS} allowed)"
        )
    for image in images:
        if image.media_type not in ALLOWED_MEDIA_TYPES:
            raise AttachmentError(
                f"'{image.original_name}' has unsupported type '{image.media_type}'"
            )
        if image.size > MAX_ATTACHMENT_BYTES:
            raise AttachmentError(
                f"'{image.original_name}' is {image.size} bytes "
                f"(limit {MAX_ATTACHMENT_BYTES})"
            )
