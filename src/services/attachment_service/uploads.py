"""
Attachment tray - PDFs and images the student attaches for Q&A.

Files are read from disk, checked against the accepted MIME types and
the size limit, and kept until the student removes them or resets the
chat.  On every turn the tray renders its files as OpenAI-style content
parts that go in front of the student's text:

  image/*         → ``image_url`` part with a base64 data URL
  application/pdf → ``file`` part with a base64 data URL
"""

import base64
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from loguru import logger

from services.notices import Notice

ACCEPTED_MIME_TYPES = (
    "application/pdf",
    "image/jpeg",
    "image/png",
    "image/webp",
    "image/gif",
)

DEFAULT_MAX_BYTES = 20 * 1024 * 1024

# Older interpreters ship without a .webp mapping
mimetypes.add_type("image/webp", ".webp")


@dataclass(frozen=True)
class Attachment:
    """One uploaded file, keyed by ``uri``."""

    name: str
    uri: str
    mime_type: str
    size: int
    data: bytes

    @property
    def data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"

    def content_part(self) -> Dict[str, Any]:
        if self.mime_type.startswith("image/"):
            return {"type": "image_url", "image_url": {"url": self.data_url}}
        return {
            "type": "file",
            "file": {"filename": self.name, "file_data": self.data_url},
        }


def guess_mime_type(path: Union[str, Path]) -> Optional[str]:
    mime_type, _ = mimetypes.guess_type(str(path))
    return mime_type


class AttachmentTray:
    """Ordered, de-duplicated set of attachments for the current chat."""

    def __init__(self, max_bytes: int = DEFAULT_MAX_BYTES) -> None:
        self.max_bytes = max_bytes
        self._items: Dict[str, Attachment] = {}

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(self._items.values())

    @property
    def items(self) -> List[Attachment]:
        return list(self._items.values())

    def add_files(self, paths: Iterable[Union[str, Path]]) -> Notice:
        """
        Upload ``paths`` into the tray.

        Unsupported or oversized files are skipped.  A file added twice
        replaces the earlier copy.
        """
        picked = []
        for raw in paths:
            path = Path(raw).expanduser()
            mime_type = guess_mime_type(path)
            if mime_type not in ACCEPTED_MIME_TYPES:
                logger.warning("Skipping unsupported attachment: {} ({})", path.name, mime_type)
                continue
            picked.append((path, mime_type))

        if not picked:
            return Notice.error("Unsupported file type.")

        added: List[Attachment] = []
        try:
            for path, mime_type in picked:
                size = path.stat().st_size
                if size > self.max_bytes:
                    logger.warning(
                        "Skipping {}: {} bytes exceeds the {} byte limit",
                        path.name, size, self.max_bytes,
                    )
                    continue
                added.append(
                    Attachment(
                        name=path.name,
                        uri=path.resolve().as_uri(),
                        mime_type=mime_type,
                        size=size,
                        data=path.read_bytes(),
                    )
                )
        except OSError as exc:
            logger.error("Attachment upload failed: {}", exc)
            return Notice.error("Could not upload files.")

        if not added:
            return Notice.error("Could not upload files.")

        for attachment in added:
            self._items[attachment.uri] = attachment
        logger.info("Attached {} file(s): {}", len(added), ", ".join(a.name for a in added))
        return Notice.success("Files added.")

    def remove(self, uri: str) -> bool:
        return self._items.pop(uri, None) is not None

    def find(self, name: str) -> Optional[Attachment]:
        """First attachment whose file name or URI equals ``name``."""
        for attachment in self._items.values():
            if name in (attachment.name, attachment.uri):
                return attachment
        return None

    def clear(self) -> None:
        self._items.clear()

    def content_parts(self) -> List[Dict[str, Any]]:
        return [a.content_part() for a in self._items.values()]
