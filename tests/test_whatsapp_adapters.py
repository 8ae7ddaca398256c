from __future__ import annotations

import asyncio
import json
import logging

import pytest

from adapters import whatsapp_sender
from adapters.whatsapp_mapper import contexts_from_webhook
from adapters.whatsapp_sender import LoggingSender, WhatsAppCloudSender, build_text_payload
from core.models import Candidate, MatchContext


def _webhook(*messages: dict) -> dict:
    return {
        "object": "whatsapp_business_account",
        "entry": [
            {
                "id": "WABA_ID",
                "changes": [
                    {
                        "field": "messages",
                        "value": {
                            "messaging_product": "whatsapp",
                            "metadata": {"display_phone_number": "15550001111", "phone_number_id": "PNID"},
                            "messages": list(messages),
                        },
                    }
                ],
            }
        ],
    }


def test_text_message_maps_to_context() -> None:
    payload = _webhook(
        {
            "from": "923001234567",
            "id": "wamid.1",
            "timestamp": "1700000000",
            "type": "text",
            "text": {"body": "payment ho gaya?"},
        }
    )

    contexts = contexts_from_webhook(payload, tenant_id="shop")

    assert contexts == [
        MatchContext(
            tenant_id="shop",
            contact_id="923001234567",
            conversation_id="PNID:923001234567",
            text="payment ho gaya?",
            timestamp=1_700_000_000_000,
            message_id="wamid.1",
        )
    ]


def test_caption_and_button_replies_carry_text() -> None:
    payload = _webhook(
        {"from": "1", "id": "a", "timestamp": "1", "type": "image", "image": {"caption": "pricing?"}},
        {
            "from": "2",
            "id": "b",
            "timestamp": "2",
            "type": "interactive",
            "interactive": {"type": "button_reply", "button_reply": {"id": "x", "title": "Payment"}},
        },
        {"from": "3", "id": "c", "timestamp": "3", "type": "sticker", "sticker": {"id": "s"}},
    )

    texts = [context.text for context in contexts_from_webhook(payload, tenant_id="shop")]

    assert texts == ["pricing?", "Payment", ""]


def test_status_only_payload_has_no_contexts() -> None:
    payload = {"entry": [{"changes": [{"value": {"statuses": [{"id": "wamid.1", "status": "read"}]}}]}]}
    assert contexts_from_webhook(payload, tenant_id="shop") == []


def test_bad_timestamp_is_skipped() -> None:
    payload = _webhook({"from": "1", "id": "a", "timestamp": "soon", "type": "text", "text": {"body": "hi"}})
    assert contexts_from_webhook(payload, tenant_id="shop") == []


def test_missing_timestamp_is_skipped_and_logged(caplog) -> None:
    payload = _webhook(
        {"from": "1", "id": "wamid.no-ts", "type": "text", "text": {"body": "payment"}},
        {"from": "1", "id": "wamid.ok", "timestamp": "1700000000", "type": "text", "text": {"body": "pricing"}},
    )

    with caplog.at_level(logging.WARNING, logger="adapters.whatsapp_mapper"):
        contexts = contexts_from_webhook(payload, tenant_id="shop")

    assert [context.message_id for context in contexts] == ["wamid.ok"]
    assert contexts[0].timestamp == 1_700_000_000_000
    assert "wamid.no-ts" in caplog.text


def _context() -> MatchContext:
    return MatchContext(
        tenant_id="shop",
        contact_id="923001234567",
        conversation_id="conv-1",
        text="payment",
        timestamp=0,
    )


class _FakeResponse:
    def __enter__(self) -> "_FakeResponse":
        return self

    def __exit__(self, *exc) -> None:
        return None


def test_cloud_sender_posts_text_message(monkeypatch) -> None:
    captured = {}

    def fake_urlopen(request, timeout):
        captured["request"] = request
        captured["timeout"] = timeout
        return _FakeResponse()

    monkeypatch.setattr(whatsapp_sender.urllib.request, "urlopen", fake_urlopen)
    sender = WhatsAppCloudSender(access_token="token", phone_number_id="PNID")

    asyncio.run(sender.send(_context(), Candidate(id="1", shortcut="payment", content="We accept COD.")))

    request = captured["request"]
    assert request.full_url == "https://graph.facebook.com/v19.0/PNID/messages"
    assert request.get_header("Authorization") == "Bearer token"
    assert json.loads(request.data) == build_text_payload("923001234567", "We accept COD.")


def test_cloud_sender_refuses_empty_content() -> None:
    sender = WhatsAppCloudSender(access_token="token", phone_number_id="PNID")
    with pytest.raises(ValueError):
        asyncio.run(sender.send(_context(), Candidate(id="1", shortcut="payment")))


def test_logging_sender_records_replies() -> None:
    sender = LoggingSender()
    candidate = Candidate(id="1", shortcut="payment", content="We accept COD.")

    asyncio.run(sender.send(_context(), candidate))

    assert sender.sent == [(_context(), candidate)]
