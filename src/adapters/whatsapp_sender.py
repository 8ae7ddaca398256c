"""Reply delivery adapters.

``WhatsAppCloudSender`` posts the chosen quick reply through the WhatsApp
Cloud API; ``LoggingSender`` only logs it, for dry runs and replays.
"""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request

from core.models import Candidate, MatchContext

LOGGER = logging.getLogger(__name__)

GRAPH_API_BASE = "https://graph.facebook.com"
DEFAULT_API_VERSION = "v19.0"


def build_text_payload(recipient: str, body: str) -> dict:
    return {
        "messaging_product": "whatsapp",
        "recipient_type": "individual",
        "to": recipient,
        "type": "text",
        "text": {"preview_url": False, "body": body},
    }


class WhatsAppCloudSender:
    """Sender adapter that delivers replies via the WhatsApp Cloud API."""

    def __init__(
        self,
        access_token: str,
        phone_number_id: str,
        api_version: str = DEFAULT_API_VERSION,
        timeout: float = 10,
    ) -> None:
        self._access_token = access_token
        self._phone_number_id = phone_number_id
        self._api_version = api_version
        self._timeout = timeout

    def _endpoint(self) -> str:
        return f"{GRAPH_API_BASE}/{self._api_version}/{self._phone_number_id}/messages"

    async def send(self, context: MatchContext, candidate: Candidate) -> None:
        """Send the quick reply content to the contact."""

        if not candidate.content:
            raise ValueError(f"Quick reply {candidate.id} has no content to send")

        payload = build_text_payload(context.contact_id, candidate.content)
        data = json.dumps(payload).encode("utf-8")
        request = urllib.request.Request(self._endpoint(), data=data, method="POST")
        request.add_header("Content-Type", "application/json")
        request.add_header("Authorization", f"Bearer {self._access_token}")
        # Blocking call; replies are short and infrequent per contact, and the
        # adapter boundary makes it easy to swap for an async client later.
        try:
            with urllib.request.urlopen(request, timeout=self._timeout):
                pass
        except urllib.error.HTTPError as e:
            body = e.read().decode("utf-8", errors="replace")
            raise RuntimeError(f"WhatsApp API error {e.code}: {body}") from e


class LoggingSender:
    """Sender adapter that logs replies instead of delivering them."""

    def __init__(self, snippet_chars: int = 80) -> None:
        self._snippet_chars = snippet_chars
        self.sent: list[tuple[MatchContext, Candidate]] = []

    async def send(self, context: MatchContext, candidate: Candidate) -> None:
        self.sent.append((context, candidate))
        LOGGER.info(
            "[dry-run] reply %s to %s: %s",
            candidate.id,
            context.contact_id,
            candidate.content[: self._snippet_chars].strip(),
        )
