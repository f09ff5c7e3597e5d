"""
Handoff Tool - put the student in touch with a human.

Offered when routing has no confidence, when the model returns nothing
or fails, and on demand.  Three channels, each optional:

  1. email     - copy the helpdesk address to the clipboard
  2. whatsapp  - open a wa.me link prefilled with the query + transcript
  3. ticket    - POST a JSON ticket to the helpdesk webhook

Every action returns a ``Notice`` instead of raising, so the chat keeps
running when a channel is missing or down.
"""

from loguru import logger
import webbrowser
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx
import pyperclip

from infrastructure.config import ContactConfig
from services.notices import Notice

TICKET_SOURCE = "CampusHelp"


def whatsapp_message(last_message: str, transcript: str) -> str:
    """Prefilled WhatsApp text: the last message and a transcript preview."""
    return f"Student query:\n{last_message}\n\nTranscript:\n{transcript}"


def build_ticket_payload(
    last_message: str,
    transcript: str,
    selected: str,
    detected: str,
    confidence: int,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """JSON body for the helpdesk ticket webhook."""
    now = now or datetime.now(timezone.utc)
    return {
        "source": TICKET_SOURCE,
        "lastMessage": last_message,
        "transcript": transcript,
        "intent": {
            "selected": selected,
            "detected": detected,
            "confidence": confidence,
        },
        "timestamp": now.isoformat(),
    }


class HandoffTool:
    """Contact actions for the human-handoff offer."""

    def __init__(
        self,
        contact: ContactConfig,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self.contact = contact
        self.http_client = http_client

    @property
    def channels(self) -> Dict[str, bool]:
        """Which channels are configured (the CLI only lists these)."""
        return {
            "email": bool(self.contact.email),
            "whatsapp": bool(self.contact.whatsapp),
            "ticket": bool(self.contact.webhook),
        }

    @property
    def available(self) -> bool:
        return any(self.channels.values())

    # 1. email

    def copy_email(self) -> Notice:
        email = self.contact.email
        if not email:
            return Notice.error("Helpdesk email is not configured.")
        try:
            pyperclip.copy(email)
        except pyperclip.PyperclipException as exc:
            logger.warning("Clipboard copy failed: {}", exc)
            return Notice.error("Could not copy email to clipboard.")
        return Notice.success("Helpdesk email copied to clipboard.")

    # 2. whatsapp

    def whatsapp_link(self, text: str) -> Optional[str]:
        number = self.contact.whatsapp
        if not number:
            return None
        return f"https://wa.me/{number}?text={quote(text, safe='')}"

    def open_whatsapp(self, text: str) -> Notice:
        url = self.whatsapp_link(text)
        if url is None:
            return Notice.error("WhatsApp number is not configured.")
        if not webbrowser.open(url, new=2):
            logger.info("No browser available; WhatsApp link: {}", url)
            return Notice.success(f"Open this link to message the helpdesk: {url}")
        return Notice.success("Opened WhatsApp.")

    # 3. ticket

    def create_ticket(self, payload: Dict[str, Any]) -> Notice:
        url = self.contact.webhook
        if not url:
            return Notice.error("Helpdesk ticket endpoint is not configured.")
        try:
            if self.http_client is not None:
                response = self.http_client.post(url, json=payload)
            else:
                with httpx.Client(timeout=self.contact.webhook_timeout) as client:
                    response = client.post(url, json=payload)
        except httpx.HTTPError as exc:
            logger.error("Ticket webhook failed: {}", exc)
            return Notice.error("Could not submit ticket.")

        if response.is_success:
            logger.info("Ticket submitted (status={})", response.status_code)
            return Notice.success("Ticket submitted.")
        logger.error("Ticket webhook rejected the ticket (status={})", response.status_code)
        return Notice.error("Could not submit ticket.")
