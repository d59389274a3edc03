"""Tests for the entity store and its storage backends."""

import json
from datetime import date, datetime
from decimal import Decimal

import pytest

from smartspend.models import DEFAULT_CATEGORIES, Budget, TransactionType
from smartspend.models.audit import AuditEventType
from smartspend.recurring import ProjectionResult
from smartspend.services.storage import (
    InMemoryStorage,
    JsonFileStorage,
    StorageError,
)
from smartspend.store import Collection, EntityStore, default_transactions

from conftest import FIXED_NOW, KEY_PREFIX, make_goal, make_rule, make_transaction


class FailingStorage(InMemoryStorage):
    """Reads work, every write fails."""

    def save(self, key, value):
        raise StorageError("disk full")


def fresh_store(storage, audit_logger=None):
    store = EntityStore(storage, audit_logger=audit_logger, key_prefix=KEY_PREFIX)
    store.load(FIXED_NOW)
    return store


class TestLoad:
    """Tests for restoring state at startup."""

    def test_first_launch_seeds_defaults(self, storage):
        """Test an empty backend yields sample transactions and default categories."""
        store = fresh_store(storage)

        assert [t.id for t in store.transactions] == ["1", "2", "3"]
        assert store.categories == DEFAULT_CATEGORIES
        assert store.budgets == ()
        assert store.goals == ()
        assert store.recurring_rules == ()

    def test_defaults_are_written_back(self, storage):
        """Test seeded slots are persisted so the next launch reads them."""
        fresh_store(storage)

        assert set(storage.keys()) == {
            "test_transactions", "test_categories", "test_budgets",
            "test_goals", "test_recurring",
        }

    def test_sample_transactions(self):
        """Test the sample data amounts, types and dates."""
        salary, grocery, netflix = default_transactions(FIXED_NOW)

        assert salary.type == TransactionType.INCOME
        assert salary.amount == Decimal("2500")
        assert grocery.amount == Decimal("45.50")
        assert grocery.category == "Food & Dining"
        assert netflix.amount == Decimal("12.00")
        assert netflix.date.date() == date(2024, 3, 13)

    def test_round_trip(self, storage):
        """Test a second store reads back what the first wrote."""
        first = fresh_store(storage)
        first.commit(
            goals=[make_goal(current="25")],
            recurring_rules=[make_rule(date(2024, 4, 1))],
            budgets=[Budget(category="Shopping", limit=Decimal("200"))],
        )

        second = fresh_store(storage)

        assert second.snapshot() == first.snapshot()

    def test_corrupt_slot_falls_back_alone(self, audit_logger):
        """Test an unreadable slot gets its default while the others load."""
        goals_json = json.dumps([{
            "id": "g1",
            "name": "Car",
            "targetAmount": 5000,
            "currentAmount": 100,
            "deadline": "2025-01-01",
            "color": "rose",
        }])
        storage = InMemoryStorage({
            "test_transactions": "{not json",
            "test_goals": goals_json,
        })

        store = fresh_store(storage, audit_logger)

        assert [t.id for t in store.transactions] == ["1", "2", "3"]
        assert store.goals[0].name == "Car"
        assert store.goals[0].current_amount == Decimal("100")
        fallbacks = [
            e for e in audit_logger.recent_events()
            if e.event_type == AuditEventType.STATE_LOAD_FALLBACK
        ]
        assert len(fallbacks) == 1

    def test_corrupt_slot_is_backed_up(self):
        """Test the unreadable text is kept before the default replaces it."""
        storage = InMemoryStorage({"test_budgets": '[{"category": "Food"}]'})

        store = fresh_store(storage)

        assert store.budgets == ()
        assert storage.load("test_budgets.corrupt") == '[{"category": "Food"}]'
        assert storage.load("test_budgets") == "[]"

    def test_reads_original_web_app_format(self):
        """Test snapshots with ISO-Z timestamps and camelCase keys load."""
        storage = InMemoryStorage({
            "test_transactions": json.dumps([{
                "id": "42",
                "amount": 12.5,
                "description": "Lunch",
                "category": "Food & Dining",
                "date": "2024-03-14T12:00:00.000Z",
                "type": "EXPENSE",
                "isRecurring": True,
                "recurringRuleId": "r1",
            }]),
            "test_recurring": json.dumps([{
                "id": "r1",
                "amount": 12.5,
                "description": "Lunch",
                "category": "Food & Dining",
                "type": "EXPENSE",
                "frequency": "WEEKLY",
                "nextDueDate": "2024-03-21T00:00:00.000Z",
            }]),
        })

        store = fresh_store(storage)

        txn = store.transactions[0]
        assert txn.amount == Decimal("12.5")
        assert txn.date.tzinfo is None
        assert txn.recurring_rule_id == "r1"
        assert store.recurring_rules[0].next_due_date == date(2024, 3, 21)

    def test_one_invalid_record_falls_back_whole_slot(self, audit_logger):
        """Test a single bad row replaces the slot with its default and keeps the text."""
        raw = json.dumps([
            {"id": "a", "amount": 20, "description": "Books", "category": "Shopping",
             "date": "2024-03-01T09:00:00.000Z", "type": "EXPENSE"},
            {"id": "b", "amount": 0, "description": "Nothing", "category": "Other",
             "date": "2024-03-02T09:00:00.000Z", "type": "EXPENSE"},
        ])
        storage = InMemoryStorage({"test_transactions": raw})

        store = fresh_store(storage, audit_logger)

        assert [t.id for t in store.transactions] == ["1", "2", "3"]
        assert storage.load("test_transactions.corrupt") == raw
        assert [t["id"] for t in json.loads(storage.load("test_transactions"))] == ["1", "2", "3"]
        assert any(
            e.event_type == AuditEventType.STATE_LOAD_FALLBACK
            for e in audit_logger.recent_events()
        )

    def test_unknown_frequency_rule_is_kept(self):
        """Test a rule the engine cannot step still loads with its neighbours."""
        raw = json.dumps([
            {"id": "good", "amount": 12, "description": "Streaming", "category": "Entertainment",
             "type": "EXPENSE", "frequency": "MONTHLY", "nextDueDate": "2024-01-01"},
            {"id": "bad", "amount": 5, "description": "Broken", "category": "Other",
             "type": "EXPENSE", "frequency": "HOURLY", "nextDueDate": "2024-01-01"},
        ])
        storage = InMemoryStorage({"test_recurring": raw})

        store = fresh_store(storage)

        assert [r.id for r in store.recurring_rules] == ["good", "bad"]
        assert store.recurring_rules[1].frequency == "HOURLY"
        assert storage.load("test_recurring") == raw
        assert storage.load("test_recurring.corrupt") is None


class TestCommit:
    """Tests for committing changes."""

    def test_commit_saves_changed_collections_only(self, store, storage):
        """Test only the touched slots are written."""
        before = len(storage.writes)

        store.commit(goals=[make_goal()])

        assert [key for key, _ in storage.writes[before:]] == ["test_goals"]

    def test_persisted_keys_are_camel_case(self, store, storage):
        """Test the JSON on disk uses camelCase field names."""
        store.commit(goals=[make_goal(current="10")], recurring_rules=[make_rule(date(2024, 4, 1))])

        goal = json.loads(storage.load("test_goals"))[0]
        rule = json.loads(storage.load("test_recurring"))[0]
        assert "targetAmount" in goal and "currentAmount" in goal
        assert rule["nextDueDate"] == "2024-04-01"

    def test_unset_optional_fields_are_omitted(self, store, storage):
        """Test manual transactions are written without recurring fields."""
        store.commit(transactions=[make_transaction()])

        txn = json.loads(storage.load("test_transactions"))[0]
        assert "isRecurring" not in txn
        assert "recurringRuleId" not in txn

    def test_unknown_collection_rejected(self, store):
        """Test a typo in a collection name fails loudly."""
        with pytest.raises(ValueError):
            store.commit(transaction=[])

    def test_empty_commit_is_noop(self, store, storage):
        """Test commit() with nothing writes nothing."""
        before = len(storage.writes)
        assert store.commit() is store.snapshot()
        assert len(storage.writes) == before

    def test_snapshot_is_immutable(self, store):
        """Test the old snapshot survives a commit unchanged."""
        old = store.snapshot()
        store.commit(categories=old.categories + ("Pets",))

        assert "Pets" not in old.categories
        assert store.categories[-1] == "Pets"

    def test_save_failure_keeps_memory_state(self, audit_logger):
        """Test persistence is best effort and state stays authoritative."""
        store = EntityStore(FailingStorage(), audit_logger=audit_logger, key_prefix=KEY_PREFIX)
        store.load(FIXED_NOW)

        store.commit(goals=[make_goal()])

        assert store.goals[0].id == "goal-1"
        assert any(
            e.event_type == AuditEventType.SAVE_FAILED
            for e in audit_logger.recent_events()
        )

    def test_find_by_id(self, store):
        """Test lookups by id return the stored record or None."""
        store.commit(transactions=[make_transaction(id="a")], goals=[make_goal()])

        assert store.find_transaction("a").id == "a"
        assert store.find_transaction("b") is None
        assert store.find_goal("goal-1").name == "Vacation"
        assert store.find_goal("nope") is None

    def test_apply_projection_without_transactions_is_noop(self, store, storage):
        """Test an empty projection result does not write."""
        before = len(storage.writes)

        store.apply_projection(ProjectionResult(today=date(2024, 3, 15)))

        assert len(storage.writes) == before


class TestListeners:
    """Tests for change notification."""

    def test_listener_gets_changed_collections(self, store):
        """Test listeners hear which collections changed."""
        seen = []
        store.subscribe(seen.append)

        store.commit(goals=[make_goal()], transactions=[make_transaction()])

        assert seen == [frozenset({Collection.GOALS, Collection.TRANSACTIONS})]

    def test_unsubscribe(self, store):
        """Test an unsubscribed listener hears nothing."""
        seen = []
        unsubscribe = store.subscribe(seen.append)
        unsubscribe()

        store.commit(goals=[make_goal()])

        assert seen == []

    def test_broken_listener_does_not_undo_commit(self, store):
        """Test a failing listener leaves the commit in place."""
        def broken(changed):
            raise RuntimeError("view crashed")

        store.subscribe(broken)
        store.commit(goals=[make_goal()])

        assert len(store.goals) == 1


class TestJsonFileStorage:
    """Tests for the local JSON file backend."""

    def test_save_and_load(self, tmp_path):
        """Test a saved slot reads back."""
        backend = JsonFileStorage(tmp_path)
        backend.save("smartspend_goals", "[]")

        assert backend.load("smartspend_goals") == "[]"
        assert (tmp_path / "smartspend_goals.json").read_text() == "[]"

    def test_missing_slot(self, tmp_path):
        """Test a slot that was never written loads as None."""
        assert JsonFileStorage(tmp_path).load("nothing") is None

    def test_overwrite_and_keys(self, tmp_path):
        """Test saves replace the whole slot and keys lists slots."""
        backend = JsonFileStorage(tmp_path)
        backend.save("a", "1")
        backend.save("a", "2")
        backend.save("b", "3")

        assert backend.load("a") == "2"
        assert backend.keys() == ["a", "b"]

    def test_no_temp_files_left(self, tmp_path):
        """Test atomic writes clean up after themselves."""
        backend = JsonFileStorage(tmp_path)
        backend.save("a", "1")

        assert [p.name for p in tmp_path.iterdir()] == ["a.json"]

    def test_delete(self, tmp_path):
        """Test delete reports whether a slot existed."""
        backend = JsonFileStorage(tmp_path)
        backend.save("a", "1")

        assert backend.delete("a") is True
        assert backend.delete("a") is False

    def test_rejects_path_like_keys(self, tmp_path):
        """Test keys cannot escape the data directory."""
        backend = JsonFileStorage(tmp_path)
        with pytest.raises(StorageError):
            backend.save("../escape", "x")

    def test_store_on_files(self, tmp_path):
        """Test the store persists through the file backend."""
        store = EntityStore(JsonFileStorage(tmp_path), key_prefix="smartspend_")
        store.load(FIXED_NOW)
        store.commit(transactions=[make_transaction(amount="9.99")])

        reloaded = EntityStore(JsonFileStorage(tmp_path), key_prefix="smartspend_")
        reloaded.load(datetime(2030, 1, 1))

        assert reloaded.transactions[0].amount == Decimal("9.99")
