"""
Entity Store

The single owned state container. It holds the five collections,
restores them from snapshot storage at startup and writes every
changed collection back after each commit.

DESIGN DECISION: State is an immutable StoreSnapshot that is swapped
wholesale on commit. A commit that touches two collections (a goal
allocation, a projection run) becomes visible in one assignment, so
callers never observe half of it.

Load is per slot: a corrupt slot falls back to its default, is logged,
and never stops the other slots from loading.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Callable, Iterable, Optional

import structlog
from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError

from smartspend.audit import AuditLogger
from smartspend.config import get_settings
from smartspend.models.audit import AuditEventBuilder
from smartspend.models.finance import (
    DEFAULT_CATEGORIES,
    Budget,
    Goal,
    RecurringRule,
    Transaction,
    TransactionType,
)
from smartspend.services.storage import KeyValueStorageInterface, StorageError

if TYPE_CHECKING:
    from smartspend.recurring.projection import ProjectionResult


logger = structlog.get_logger(__name__)


class Collection(str, Enum):
    """Persistence slots. Values are the slot names used in storage keys."""
    TRANSACTIONS = "transactions"
    CATEGORIES = "categories"
    BUDGETS = "budgets"
    GOALS = "goals"
    RECURRING_RULES = "recurring"

    @property
    def attribute(self) -> str:
        """Matching StoreSnapshot field name."""
        return _ATTRIBUTES[self]


_ATTRIBUTES = {
    Collection.TRANSACTIONS: "transactions",
    Collection.CATEGORIES: "categories",
    Collection.BUDGETS: "budgets",
    Collection.GOALS: "goals",
    Collection.RECURRING_RULES: "recurring_rules",
}

_BY_ATTRIBUTE = {attr: collection for collection, attr in _ATTRIBUTES.items()}

_ADAPTERS: dict[Collection, TypeAdapter] = {
    Collection.TRANSACTIONS: TypeAdapter(list[Transaction]),
    Collection.CATEGORIES: TypeAdapter(list[str]),
    Collection.BUDGETS: TypeAdapter(list[Budget]),
    Collection.GOALS: TypeAdapter(list[Goal]),
    Collection.RECURRING_RULES: TypeAdapter(list[RecurringRule]),
}


class StoreSnapshot(BaseModel):
    """Immutable view of every collection at one point in time."""

    model_config = ConfigDict(frozen=True)

    transactions: tuple[Transaction, ...] = ()
    categories: tuple[str, ...] = DEFAULT_CATEGORIES
    budgets: tuple[Budget, ...] = ()
    goals: tuple[Goal, ...] = ()
    recurring_rules: tuple[RecurringRule, ...] = ()


def default_transactions(now: Optional[datetime] = None) -> tuple[Transaction, ...]:
    """Sample data shown on first launch."""
    now = now or datetime.now()
    return (
        Transaction(
            id="1",
            amount=Decimal("2500"),
            description="Monthly Salary",
            category="Income",
            date=now,
            type=TransactionType.INCOME,
        ),
        Transaction(
            id="2",
            amount=Decimal("45.50"),
            description="Grocery Store",
            category="Food & Dining",
            date=now - timedelta(days=1),
            type=TransactionType.EXPENSE,
        ),
        Transaction(
            id="3",
            amount=Decimal("12.00"),
            description="Netflix Subscription",
            category="Entertainment",
            date=now - timedelta(days=2),
            type=TransactionType.EXPENSE,
        ),
    )


def default_for(collection: Collection, now: Optional[datetime] = None) -> tuple:
    """Fallback value for a slot that is missing or unreadable."""
    if collection is Collection.TRANSACTIONS:
        return default_transactions(now)
    if collection is Collection.CATEGORIES:
        return DEFAULT_CATEGORIES
    return ()


StoreListener = Callable[[frozenset[Collection]], None]


class EntityStore:
    """
    Owner of all application state.

    Mutation handlers and the projection engine are the only writers
    and they go through commit(). Everything else reads.
    """

    def __init__(
        self,
        storage: KeyValueStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        key_prefix: Optional[str] = None,
    ):
        """
        Initialize the store.

        Args:
            storage: Snapshot storage backend
            audit_logger: Audit trail. A local-only logger is used if None.
            key_prefix: Prefix for storage keys. Defaults to settings.
        """
        self._storage = storage
        self._audit = audit_logger or AuditLogger()
        self._key_prefix = (
            key_prefix if key_prefix is not None
            else get_settings().storage.key_prefix
        )
        self._state = StoreSnapshot()
        self._listeners: list[StoreListener] = []

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def transactions(self) -> tuple[Transaction, ...]:
        return self._state.transactions

    @property
    def categories(self) -> tuple[str, ...]:
        return self._state.categories

    @property
    def budgets(self) -> tuple[Budget, ...]:
        return self._state.budgets

    @property
    def goals(self) -> tuple[Goal, ...]:
        return self._state.goals

    @property
    def recurring_rules(self) -> tuple[RecurringRule, ...]:
        return self._state.recurring_rules

    def snapshot(self) -> StoreSnapshot:
        return self._state

    def find_goal(self, goal_id: str) -> Optional[Goal]:
        return next((g for g in self._state.goals if g.id == goal_id), None)

    def find_transaction(self, transaction_id: str) -> Optional[Transaction]:
        return next(
            (t for t in self._state.transactions if t.id == transaction_id),
            None,
        )

    def key_for(self, collection: Collection) -> str:
        return f"{self._key_prefix}{collection.value}"

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    def load(self, now: Optional[datetime] = None) -> StoreSnapshot:
        """
        Restore every collection from storage.

        Missing slots get their default. Unreadable slots get their
        default too, and the failure is logged. Defaults are written
        back so the next launch reads a valid snapshot.
        """
        now = now or datetime.now()
        values = {}
        fell_back: list[Collection] = []

        for collection in Collection:
            items, from_default = self._load_slot(collection, now)
            values[collection.attribute] = items
            if from_default:
                fell_back.append(collection)

        self._state = StoreSnapshot(**values)

        for collection in fell_back:
            self.save(collection)

        return self._state

    def _load_slot(self, collection: Collection, now: datetime) -> tuple[tuple, bool]:
        key = self.key_for(collection)

        try:
            raw = self._storage.load(key)
        except StorageError as e:
            self._record_load_failure(collection, str(e))
            return default_for(collection, now), True

        if raw is None:
            items = default_for(collection, now)
            self._audit.log(AuditEventBuilder.state_loaded(
                collection.value, len(items), from_default=True,
            ))
            return items, True

        try:
            items = tuple(_ADAPTERS[collection].validate_json(raw))
        except ValidationError as e:
            self._record_load_failure(collection, str(e))
            self._preserve_corrupt(key, raw)
            return default_for(collection, now), True

        self._audit.log(AuditEventBuilder.state_loaded(
            collection.value, len(items), from_default=False,
        ))
        return items, False

    def _record_load_failure(self, collection: Collection, error: str) -> None:
        logger.error(
            "collection_load_failed",
            collection=collection.value,
            error=error,
        )
        self._audit.log(AuditEventBuilder.state_load_fallback(collection.value, error))

    def _preserve_corrupt(self, key: str, raw: str) -> None:
        """Keep the unreadable text next to the slot before it is overwritten."""
        try:
            self._storage.save(f"{key}.corrupt", raw)
        except StorageError as e:
            logger.warning("corrupt_backup_failed", key=key, error=str(e))

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------

    def serialize(self, collection: Collection) -> str:
        items = list(getattr(self._state, collection.attribute))
        return _ADAPTERS[collection].dump_json(
            items,
            by_alias=True,
            exclude_none=True,
        ).decode("utf-8")

    def save(self, collection: Collection) -> bool:
        """
        Write one collection through to storage.

        Best effort: a storage failure is logged and reported as False,
        the in-memory state stays authoritative.
        """
        try:
            self._storage.save(self.key_for(collection), self.serialize(collection))
        except StorageError as e:
            logger.error("collection_save_failed", collection=collection.value, error=str(e))
            self._audit.log(AuditEventBuilder.save_failed(collection.value, str(e)))
            return False
        return True

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    def commit(self, **changes: Iterable) -> StoreSnapshot:
        """
        Replace one or more collections in a single step.

        Keyword names are StoreSnapshot fields (transactions, categories,
        budgets, goals, recurring_rules). Every changed collection is
        saved, then listeners are told which ones changed.
        """
        unknown = set(changes) - set(_BY_ATTRIBUTE)
        if unknown:
            raise ValueError(f"Unknown collections: {sorted(unknown)}")
        if not changes:
            return self._state

        update = {name: tuple(items) for name, items in changes.items()}
        self._state = self._state.model_copy(update=update)

        changed = frozenset(_BY_ATTRIBUTE[name] for name in update)
        for collection in Collection:
            if collection in changed:
                self.save(collection)

        self._notify(changed)
        return self._state

    def apply_projection(self, result: "ProjectionResult") -> StoreSnapshot:
        """
        Merge a projection run: prepend new transactions, replace rules.

        Both collections change together or not at all.
        """
        if not result.new_transactions:
            return self._state
        return self.commit(
            transactions=tuple(result.new_transactions) + self._state.transactions,
            recurring_rules=result.updated_rules,
        )

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """
        Register a callback run after every commit.

        Returns a function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, changed: frozenset[Collection]) -> None:
        for listener in list(self._listeners):
            try:
                listener(changed)
            except Exception:
                # A broken view must not undo a committed mutation
                logger.exception("store_listener_failed")
