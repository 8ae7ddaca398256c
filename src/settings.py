"""Static configuration for quickreply.

All user-editable settings (tenant, quick replies, suppression windows,
sender, logging) live in a single JSON file for quick edits without touching
Python. Secrets stay in the environment (.env).
"""

import json
import os

from dotenv import load_dotenv

load_dotenv()

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# QUICKREPLY_CONFIG lets several tenants run from one checkout.
CONFIG_PATH = os.getenv("QUICKREPLY_CONFIG", os.path.join(PROJECT_ROOT, "config.json"))


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _resolve_path(path: str) -> str:
    if os.path.isabs(path):
        return path
    return os.path.join(PROJECT_ROOT, path)


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# Tenant whose quick replies this process answers with.
TENANT_ID = str(_CONFIG.get("tenant_id", "default"))

# Where to store the SQLite database (quick replies, usage, shared state).
_database = _CONFIG.get("database", {})
DB_PATH = _resolve_path(_database.get("path", "quickreply.db"))

# Suppression windows keep a customer from receiving bursts of canned replies.
# - RATE_LIMIT_MS: minimum gap between any two auto-replies to one contact
# - DUPLICATE_WINDOW_MS: the same quick reply is not repeated within this window
# - SUPPRESSION_STORE: "memory" (single process) or "sqlite" (shared by workers)
_auto_reply = _CONFIG.get("auto_reply", {})
RATE_LIMIT_MS = int(_auto_reply.get("rate_limit_ms", 5000))
DUPLICATE_WINDOW_MS = int(_auto_reply.get("duplicate_window_ms", 60000))
SUPPRESSION_STORE = _auto_reply.get("suppression_store", "memory")
if SUPPRESSION_STORE not in {"memory", "sqlite"}:
    raise ValueError("auto_reply.suppression_store must be 'memory' or 'sqlite'")

# Optional custom stoplist; the bundled English/Urdu list is used otherwise.
_matching = _CONFIG.get("matching", {})
STOPWORDS_PATH = _matching.get("stopwords_path")
if STOPWORDS_PATH:
    STOPWORDS_PATH = _resolve_path(STOPWORDS_PATH)

# Sender method switches adapters without changing core logic.
_sender = _CONFIG.get("sender", {})
SENDER_METHOD = _sender.get("method", "log")
WHATSAPP_API_VERSION = _sender.get("api_version", "v19.0")

# Quick replies are seeded from config.json into the database by `init`.
QUICK_REPLIES_CONFIG = _CONFIG.get("quick_replies", [])

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
