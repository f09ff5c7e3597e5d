"""
Attachment service - PDF/image uploads for content-aware questions.
"""

from .uploads import ACCEPTED_MIME_TYPES, Attachment, AttachmentTray, guess_mime_type

__all__ = [
    "ACCEPTED_MIME_TYPES",
    "Attachment",
    "AttachmentTray",
    "guess_mime_type",
]
