"""Application entry point for the quickreply auto-responder."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Any, Callable, Iterable, Optional

from art import tprint
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

import settings
from adapters.memory_store import InMemorySuppressionStore
from adapters.sqlite_storage import SQLiteStorage, SQLiteSuppressionStore
from adapters.whatsapp_mapper import contexts_from_webhook
from adapters.whatsapp_sender import LoggingSender, WhatsAppCloudSender
from core.config import AutoReplyConfig
from core.matcher import CONFIDENCE_FLOOR, score_candidates
from core.models import Candidate, MatchContext
from core.orchestrator import AutoReplyOrchestrator
from core.processor import InboundMessageProcessor
from core.stopwords import default_stopwords, load_stopwords
from core.suppression import HighWaterClock, SuppressionLedger, wall_clock_ms

NAME = "QUICKREPLY"
FONT = "tarty-1"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", False):
        return []
    values = []
    for name in redact_cfg.get("patterns", []):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", False):
        return

    load_dotenv()
    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/quickreply.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)


def _candidates_from_config(entries: Iterable[dict], tenant_id: str) -> list[Candidate]:
    candidates: list[Candidate] = []
    for entry in entries:
        reply_id = entry.get("id")
        if not reply_id:
            raise ValueError(f"Quick reply without id in config: {entry!r}")
        candidates.append(
            Candidate(
                id=str(reply_id),
                shortcut=entry.get("shortcut"),
                active=bool(entry.get("enabled", True)),
                content=entry.get("content", ""),
                tenant_id=entry.get("tenant_id", tenant_id),
            )
        )
    return candidates


def _open_storage() -> SQLiteStorage:
    storage = SQLiteStorage(settings.DB_PATH)
    storage.init_db()
    return storage


def _stopwords() -> frozenset[str]:
    if settings.STOPWORDS_PATH:
        return load_stopwords(settings.STOPWORDS_PATH)
    return default_stopwords()


def _build_orchestrator(clock: Callable[[], int] = wall_clock_ms) -> AutoReplyOrchestrator:
    if settings.SUPPRESSION_STORE == "sqlite":
        store = SQLiteSuppressionStore(settings.DB_PATH)
        store.init_db()
    else:
        store = InMemorySuppressionStore()
    ledger = SuppressionLedger(
        store,
        AutoReplyConfig(
            rate_limit_ms=settings.RATE_LIMIT_MS,
            duplicate_window_ms=settings.DUPLICATE_WINDOW_MS,
        ),
        clock=clock,
    )
    return AutoReplyOrchestrator(ledger, stopwords=_stopwords())


def _build_sender():
    # The sender is selected by configuration so the processor stays
    # independent from delivery details.
    if settings.SENDER_METHOD == "whatsapp":
        access_token = os.getenv("WHATSAPP_ACCESS_TOKEN")
        phone_number_id = os.getenv("WHATSAPP_PHONE_NUMBER_ID")
        if not access_token or not phone_number_id:
            raise RuntimeError(
                "WHATSAPP_ACCESS_TOKEN and WHATSAPP_PHONE_NUMBER_ID are required when sender.method=whatsapp"
            )
        return WhatsAppCloudSender(
            access_token=access_token,
            phone_number_id=phone_number_id,
            api_version=settings.WHATSAPP_API_VERSION,
        )
    if settings.SENDER_METHOD == "log":
        return LoggingSender()
    raise RuntimeError("sender.method must be 'log' or 'whatsapp'")


def _init() -> None:
    _print_banner()
    _configure_logging()
    logger = logging.getLogger(__name__)

    storage = _open_storage()
    candidates = _candidates_from_config(settings.QUICK_REPLIES_CONFIG, settings.TENANT_ID)
    for candidate in candidates:
        storage.upsert_quick_reply(candidate)
    logger.info("%s quick replies are loaded into %s", len(candidates), settings.DB_PATH)


def _format_usage(usage: Optional[tuple[int, int]]) -> str:
    if usage is None:
        return "-"
    total, today = usage
    return f"{total} ({today})"


def _try(text: str) -> None:
    _configure_logging()
    storage = _open_storage()
    candidates = storage.list_quick_replies(settings.TENANT_ID)
    results = score_candidates(text, candidates, _stopwords())

    table = Table(title=f"Quick reply scores for {text!r}")
    table.add_column("id")
    table.add_column("shortcut")
    table.add_column("strategy")
    table.add_column("score", justify="right")
    table.add_column("used (today)", justify="right")
    for index, result in enumerate(results):
        wins = index == 0 and result.score >= CONFIDENCE_FLOOR
        table.add_row(
            result.candidate.id,
            result.candidate.shortcut or "",
            result.match_type,
            f"{result.score:.3f}",
            _format_usage(storage.get_usage(result.candidate.id)),
            style="bold green" if wins else None,
        )

    console = Console()
    console.print(table)
    if not results or results[0].score < CONFIDENCE_FLOOR:
        console.print(f"No auto-reply (confidence floor {CONFIDENCE_FLOOR}).")


def _context_from_record(record: dict[str, Any]) -> MatchContext:
    contact_id = str(record["contact_id"])
    return MatchContext(
        tenant_id=str(record.get("tenant_id", settings.TENANT_ID)),
        contact_id=contact_id,
        conversation_id=str(record.get("conversation_id", contact_id)),
        text=record.get("text", ""),
        timestamp=int(record["timestamp"]),
        message_id=record.get("message_id"),
    )


def _read_contexts(path: str) -> list[MatchContext]:
    """Read JSON lines holding webhook payloads or flat message records."""

    contexts: list[MatchContext] = []
    with open(path, "r", encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError as e:
                raise ValueError(f"{path}:{line_number}: invalid JSON") from e
            if "entry" in record:
                contexts.extend(contexts_from_webhook(record, settings.TENANT_ID))
            else:
                contexts.append(_context_from_record(record))
    return contexts


def _replay(path: str) -> None:
    _print_banner()
    _configure_logging()
    logger = logging.getLogger(__name__)

    # Recorded timestamps drive the sweep, so messages are replayed in time order.
    clock = HighWaterClock()
    storage = _open_storage()
    processor = InboundMessageProcessor(
        orchestrator=_build_orchestrator(clock),
        repository=storage,
        sender=_build_sender(),
    )
    contexts = sorted(_read_contexts(path), key=lambda context: context.timestamp)

    async def _run_replay() -> int:
        replies = 0
        for context in contexts:
            clock.advance(context.timestamp)
            try:
                if await processor.handle(context):
                    replies += 1
            except Exception:
                logger.exception("Error while processing message %s", context.message_id)
        return replies

    replies = asyncio.run(_run_replay())
    logger.info("Replay complete: messages=%s, auto_replies=%s", len(contexts), replies)
    for candidate in storage.list_quick_replies(settings.TENANT_ID):
        usage = storage.get_usage(candidate.id)
        logger.info("Quick reply %s used %s", candidate.id, _format_usage(usage))


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="quickreply")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init", help="Create the database and load quick replies from config.json")
    try_parser = subparsers.add_parser("try", help="Show how a message scores against the quick replies")
    try_parser.add_argument("text")
    replay_parser = subparsers.add_parser(
        "replay",
        help="Feed a JSON-lines file of inbound messages through the auto-responder",
    )
    replay_parser.add_argument("path")

    args = parser.parse_args(argv)
    if args.command == "init":
        _init()
        return
    if args.command == "try":
        _try(args.text)
        return
    _replay(args.path)


if __name__ == "__main__":
    main()
