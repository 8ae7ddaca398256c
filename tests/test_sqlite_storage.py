from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone

import pytest

from adapters.sqlite_storage import SQLiteStorage, SQLiteSuppressionStore
from core.models import Candidate, MatchContext, SuppressionEntry
from core.suppression import HighWaterClock, SuppressionLedger


def _storage(tmp_path) -> SQLiteStorage:
    storage = SQLiteStorage(str(tmp_path / "quickreply.db"))
    storage.init_db()
    return storage


def _suppression_store(tmp_path) -> SQLiteSuppressionStore:
    store = SQLiteSuppressionStore(str(tmp_path / "quickreply.db"))
    store.init_db()
    return store


def test_list_quick_replies_in_creation_order(tmp_path) -> None:
    storage = _storage(tmp_path)
    storage.upsert_quick_reply(Candidate(id="b", shortcut="pricing", content="p", tenant_id="shop"))
    storage.upsert_quick_reply(Candidate(id="a", shortcut="payment", content="q", tenant_id="shop"))
    storage.upsert_quick_reply(Candidate(id="c", shortcut="away", active=False, tenant_id="shop"))
    storage.upsert_quick_reply(Candidate(id="d", shortcut="hello", tenant_id="other"))

    assert [c.id for c in storage.list_quick_replies("shop")] == ["b", "a"]
    assert [c.id for c in storage.list_quick_replies("shop", include_inactive=True)] == ["b", "a", "c"]
    assert storage.list_quick_replies("shop")[0] == Candidate(
        id="b", shortcut="pricing", active=True, content="p", tenant_id="shop"
    )


def test_upsert_keeps_usage_counters(tmp_path) -> None:
    storage = _storage(tmp_path)
    storage.upsert_quick_reply(Candidate(id="1", shortcut="payment", content="old", tenant_id="shop"))
    storage.record_usage("1", datetime(2024, 5, 1, 10, tzinfo=timezone.utc))

    storage.upsert_quick_reply(Candidate(id="1", shortcut="payment", content="new", tenant_id="shop"))

    assert storage.list_quick_replies("shop")[0].content == "new"
    assert storage.get_usage("1") == (1, 1)


def test_upsert_requires_tenant(tmp_path) -> None:
    storage = _storage(tmp_path)
    with pytest.raises(ValueError):
        storage.upsert_quick_reply(Candidate(id="1", shortcut="payment"))


def test_daily_usage_restarts_on_new_day(tmp_path) -> None:
    storage = _storage(tmp_path)
    storage.upsert_quick_reply(Candidate(id="1", shortcut="payment", tenant_id="shop"))

    storage.record_usage("1", datetime(2024, 5, 1, 9, tzinfo=timezone.utc))
    storage.record_usage("1", datetime(2024, 5, 1, 18, tzinfo=timezone.utc))
    assert storage.get_usage("1") == (2, 2)

    storage.record_usage("1", datetime(2024, 5, 2, 8, tzinfo=timezone.utc))
    assert storage.get_usage("1") == (3, 1)
    assert storage.get_usage("missing") is None


def test_suppression_store_get_set_sweep(tmp_path) -> None:
    store = _suppression_store(tmp_path)
    assert store.get(("shop", "1")) is None

    store.set(("shop", "1"), SuppressionEntry(timestamp=1000, candidate_id="a"))
    store.set(("shop", "1"), SuppressionEntry(timestamp=9000, candidate_id="b"))
    store.set(("shop", "2"), SuppressionEntry(timestamp=500, candidate_id="a"))

    assert store.get(("shop", "1")) == SuppressionEntry(timestamp=9000, candidate_id="b")
    assert store.sweep(older_than=1000) == 1
    assert store.get(("shop", "2")) is None


def test_suppression_keys_with_separators_stay_distinct(tmp_path) -> None:
    store = _suppression_store(tmp_path)
    store.set(("a:b", "c"), SuppressionEntry(timestamp=1000, candidate_id="x"))
    store.set(("a", "b:c"), SuppressionEntry(timestamp=2000, candidate_id="y"))

    assert store.get(("a:b", "c")) == SuppressionEntry(timestamp=1000, candidate_id="x")
    assert store.get(("a", "b:c")) == SuppressionEntry(timestamp=2000, candidate_id="y")


def test_locked_rolls_back_on_error(tmp_path) -> None:
    store = _suppression_store(tmp_path)

    with pytest.raises(RuntimeError):
        with store.locked(("shop", "1")):
            store.set(("shop", "1"), SuppressionEntry(timestamp=1000, candidate_id="a"))
            raise RuntimeError("boom")

    assert store.get(("shop", "1")) is None


def test_ledger_state_is_shared_through_database(tmp_path) -> None:
    context = MatchContext(
        tenant_id="shop",
        contact_id="923001234567",
        conversation_id="conv-1",
        text="payment",
        timestamp=0,
    )
    first_worker = SuppressionLedger(_suppression_store(tmp_path), clock=HighWaterClock())
    second_worker = SuppressionLedger(_suppression_store(tmp_path), clock=HighWaterClock())

    assert first_worker.try_acquire(context, "1")
    later = replace(context, timestamp=2000)
    assert not second_worker.try_acquire(later, "2")
