"""WhatsApp-to-core message mapping adapter.

This keeps Cloud API webhook details out of the core pipeline.
"""

from __future__ import annotations

import logging
from typing import Any, List

from core.models import MatchContext

LOGGER = logging.getLogger(__name__)


def _message_text(message: dict[str, Any]) -> str:
    message_type = message.get("type")
    if message_type == "text":
        return (message.get("text") or {}).get("body") or ""
    if message_type == "button":
        return (message.get("button") or {}).get("text") or ""
    if message_type == "interactive":
        interactive = message.get("interactive") or {}
        reply = interactive.get("button_reply") or interactive.get("list_reply") or {}
        return reply.get("title") or ""
    # Media captions are matched like text; everything else has no text.
    media = message.get(message_type) if isinstance(message_type, str) else None
    if isinstance(media, dict):
        return media.get("caption") or ""
    return ""


def contexts_from_webhook(payload: dict[str, Any], tenant_id: str) -> List[MatchContext]:
    """Build MatchContext objects for every inbound message in a webhook payload.

    The conversation id is the business phone number id plus the sender, so
    one customer talking to two numbers of the same tenant is two conversations.
    """

    contexts: List[MatchContext] = []
    for entry in payload.get("entry", []) or []:
        for change in entry.get("changes", []) or []:
            value = change.get("value") or {}
            phone_number_id = (value.get("metadata") or {}).get("phone_number_id", "")
            for message in value.get("messages", []) or []:
                sender = message.get("from")
                if not sender:
                    continue
                try:
                    timestamp = int(message["timestamp"]) * 1000
                except (KeyError, TypeError, ValueError):
                    LOGGER.warning("Ignoring message %s with missing or bad timestamp", message.get("id"))
                    continue
                contexts.append(
                    MatchContext(
                        tenant_id=tenant_id,
                        contact_id=sender,
                        conversation_id=f"{phone_number_id}:{sender}",
                        text=_message_text(message),
                        timestamp=timestamp,
                        message_id=message.get("id"),
                    )
                )
    return contexts
