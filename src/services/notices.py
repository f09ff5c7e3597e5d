"""
User-facing notices.

The short success/error messages the chat front-end shows after an
action (file upload, clipboard copy, ticket submission).
"""

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True)
class Notice:
    message: str
    level: Literal["success", "error"] = "success"

    @property
    def ok(self) -> bool:
        return self.level == "success"

    @classmethod
    def success(cls, message: str) -> "Notice":
        return cls(message, "success")

    @classmethod
    def error(cls, message: str) -> "Notice":
        return cls(message, "error")
