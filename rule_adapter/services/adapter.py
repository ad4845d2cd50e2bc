"""Persistence of policy rules through SQLAlchemy sessions.

The adapter is called by the authorization engine: once to load every rule
(or a filtered subset) into its in-memory model, then after each in-memory
change to persist that single change (auto-save). Each mutating call ends in
one commit per store it touched.

Duplicate rows are handled asymmetrically: removing a rule deletes every row
matching it, while updating a rule rewrites only the first match (lowest id).
"""
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.engine import Connection

from rule_adapter.core.errors import ConfigurationError, FieldRangeError
from rule_adapter.core.logging_config import logger
from rule_adapter.models.models import CasbinRule, FIELD_COUNT
from rule_adapter.services.codec import RuleCodec, section_of
from rule_adapter.services.filters import FieldFilter
from rule_adapter.services.router import SingleStoreRouter


class AdapterState(str, Enum):
    """Outcome of the adapter's last operation."""
    IDLE = "idle"
    COMMITTED = "committed"
    FAILED = "failed"


def _identity(rows):
    return rows


def _chain(first: Callable, second: Callable) -> Callable:
    if first is _identity:
        return second
    if second is _identity:
        return first
    return lambda rows: second(first(rows))


@dataclass
class AdapterHooks:
    """Named extension points, each taking and returning a list of rule rows.

    on_load: rows fetched by a (filtered) load, before they reach the model
    on_save: records about to be inserted by save_policy, per store
    on_add_policy: records about to be inserted by add_policy/add_policies
    on_remove_filtered: rows matched by a remove, before they are deleted
    """
    on_load: Callable = field(default=_identity)
    on_save: Callable = field(default=_identity)
    on_add_policy: Callable = field(default=_identity)
    on_remove_filtered: Callable = field(default=_identity)

    def compose(self, other: "AdapterHooks") -> "AdapterHooks":
        """Run ``self``'s hooks, then ``other``'s, at every extension point."""
        return AdapterHooks(
            on_load=_chain(self.on_load, other.on_load),
            on_save=_chain(self.on_save, other.on_save),
            on_add_policy=_chain(self.on_add_policy, other.on_add_policy),
            on_remove_filtered=_chain(self.on_remove_filtered, other.on_remove_filtered),
        )


class BaseRuleAdapter:
    """State and conversions shared by the sync and async adapters.

    Pass either ``store`` (one session for every rule type) or ``router``
    (a SingleStoreRouter/MultiStoreRouter). ``model_resolver(store, ptype)``
    may map a store/type pair to another rule table; ``ptype`` is None when
    a whole store is loaded.
    """

    # Store bind type that can carry one transaction across several sessions
    connection_type = Connection

    def __init__(
        self,
        store=None,
        router=None,
        hooks: Optional[AdapterHooks] = None,
        codec: Optional[RuleCodec] = None,
        rule_model=CasbinRule,
        model_resolver: Optional[Callable] = None,
    ):
        if router is None:
            if store is None:
                raise ConfigurationError("A store or a router is required")
            router = SingleStoreRouter(store)
        elif store is not None:
            raise ConfigurationError("Pass either a store or a router, not both")
        if model_resolver is not None and not callable(model_resolver):
            raise ConfigurationError("model_resolver must be callable")
        self.router = router
        self.hooks = hooks or AdapterHooks()
        self.codec = codec or RuleCodec()
        self.rule_model = rule_model
        self._model_resolver = model_resolver
        self._query_handles: Dict[tuple, object] = {}
        self.is_filtered = False
        self.state = AdapterState.IDLE

    # Helpers

    def _model_for(self, store, ptype: Optional[str]):
        """Mapped rule class addressable for ``ptype`` in ``store``, cached per pair."""
        key = (store, ptype)
        model = self._query_handles.get(key)
        if model is None:
            if self._model_resolver is None:
                model = self.rule_model
            else:
                model = self._model_resolver(store, ptype) or self.rule_model
            self._query_handles[key] = model
        return model

    def _field_filter(self, ptype: str, field_index: int, values: Sequence[str]) -> FieldFilter:
        return FieldFilter(ptype, field_index, values, legacy=self.codec.is_legacy)

    @staticmethod
    def _load_statement(model, policy_filter=None):
        stmt = select(model)
        if policy_filter is not None:
            stmt = policy_filter.apply(stmt, model)
        # Loads re-read the store even for rows already held by the session
        return stmt.order_by(model.id).execution_options(populate_existing=True)

    @staticmethod
    def _check_length(ptype: str, values: Sequence[str]):
        if len(values) > FIELD_COUNT:
            raise FieldRangeError(
                f"A rule holds at most {FIELD_COUNT} values, got {len(values)} for '{ptype}'"
            )

    def _load_rows(self, policy_model, rows) -> int:
        loaded = 0
        for row in rows:
            if not row.ptype:
                logger.warning(f"Skipping rule row {row.id} without a rule type")
                continue
            policy_model.add_policy(section_of(row.ptype), row.ptype, self.codec.to_values(row))
            loaded += 1
        return loaded

    def _shared_transaction_connection(self, groups):
        """The connection every store in ``groups`` writes through, if there is one."""
        if len(groups) < 2:
            return None
        connection = self.router.shared_connection()
        if not isinstance(connection, self.connection_type):
            return None
        logger.debug("save_policy runs under one transaction on the shared connection")
        return connection

    def _records_by_store(self, policy_model) -> List[tuple]:
        groups: Dict[object, list] = {}
        for sec, ptype in policy_model.policy_types():
            store = self.router.store_for(ptype)
            model = self._model_for(store, ptype)
            records = self.codec.to_records(ptype, policy_model.get_policy(sec, ptype), model)
            groups.setdefault(store, []).extend(records)
        return list(groups.items())


class RuleAdapter(BaseRuleAdapter):
    """Synchronous adapter over ``sqlalchemy.orm.Session`` stores."""

    @contextmanager
    def _unit_of_work(self, store, operation: str):
        try:
            yield
            store.commit()
        except Exception as e:
            # Flushed changes of a failed operation must not ride along with the next commit
            logger.error(f"{operation} failed, rolling back: {e}")
            store.rollback()
            self.state = AdapterState.FAILED
            raise
        self.state = AdapterState.COMMITTED

    def _fetch(self, store, stmt):
        return list(store.scalars(stmt).all())

    def _delete_matching(self, store, model, field_filter: FieldFilter) -> int:
        rows = self._fetch(store, field_filter.apply(select(model), model))
        rows = list(self.hooks.on_remove_filtered(rows))
        for row in rows:
            store.delete(row)
        store.flush()
        return len(rows)

    def _update_first(self, store, model, field_filter: FieldFilter, new_values: Sequence[str]) -> bool:
        stmt = field_filter.apply(select(model), model).order_by(model.id).limit(1)
        row = store.scalars(stmt).first()
        if row is None:
            return False
        self.codec.set_values(row, new_values)
        store.flush()
        return True

    # Loading

    def load_policy(self, policy_model):
        """Load every rule from every store into ``policy_model``."""
        rows = []
        for store in self.router.stores():
            model = self._model_for(store, None)
            rows.extend(self._fetch(store, self._load_statement(model)))
        loaded = self._load_rows(policy_model, self.hooks.on_load(rows))
        self.is_filtered = False
        self.state = AdapterState.IDLE
        logger.info(f"Loaded {loaded} rules")

    def load_filtered_policy(self, policy_model, policy_filter):
        """Load the rules selected by ``policy_filter`` (a Filter or FieldFilter)."""
        if policy_filter is None:
            self.load_policy(policy_model)
            return
        rows = []
        for store in self.router.stores():
            model = self._model_for(store, None)
            stmt = self._load_statement(model, policy_filter)
            rows.extend(self._fetch(store, stmt))
        loaded = self._load_rows(policy_model, self.hooks.on_load(rows))
        self.is_filtered = True
        self.state = AdapterState.IDLE
        logger.info(f"Loaded {loaded} rules with filter {policy_filter!r}")

    # Saving

    def save_policy(self, policy_model):
        """Insert every rule of ``policy_model``; the stores are not cleared first.

        Stores writing through one shared ``Connection`` are saved under a
        single transaction on it. Otherwise each store commits on its own.
        """
        groups = self._records_by_store(policy_model)
        if not groups:
            logger.debug("save_policy called with an empty model, nothing to do")
            return
        connection = self._shared_transaction_connection(groups)
        transaction = None
        if connection is not None and not connection.in_transaction():
            transaction = connection.begin()
        try:
            # Flush every store before committing any, so a failing store is
            # detected while the others can still be rolled back
            for store, records in groups:
                store.add_all(self.hooks.on_save(records))
                store.flush()
            for store, _ in groups:
                store.commit()
            if transaction is not None:
                transaction.commit()
        except Exception as e:
            logger.error(f"save_policy failed, rolling back: {e}")
            for store, _ in groups:
                store.rollback()
            if transaction is not None and transaction.is_active:
                transaction.rollback()
            self.state = AdapterState.FAILED
            raise
        self.state = AdapterState.COMMITTED
        logger.info(f"Saved {sum(len(records) for _, records in groups)} rules to {len(groups)} store(s)")

    # Adding

    def add_policy(self, sec: str, ptype: str, rule: Sequence[str]):
        if not rule:
            return
        store = self.router.store_for(ptype)
        record = self.codec.to_record(ptype, rule, self._model_for(store, ptype))
        with self._unit_of_work(store, f"add_policy({ptype})"):
            store.add_all(self.hooks.on_add_policy([record]))
        logger.info(f"Added rule {ptype}: {', '.join(rule)}")

    def add_policies(self, sec: str, ptype: str, rules: Sequence[Sequence[str]]):
        if not rules:
            return
        store = self.router.store_for(ptype)
        records = self.codec.to_records(ptype, rules, self._model_for(store, ptype))
        with self._unit_of_work(store, f"add_policies({ptype})"):
            store.add_all(self.hooks.on_add_policy(records))
        logger.info(f"Added {len(records)} rules of type {ptype}")

    # Removing

    def remove_policy(self, sec: str, ptype: str, rule: Sequence[str]):
        """Delete every row equal to ``rule``."""
        self.remove_filtered_policy(sec, ptype, 0, *rule)

    def remove_filtered_policy(self, sec: str, ptype: str, field_index: int, *field_values: str):
        if not field_values:
            return
        field_filter = self._field_filter(ptype, field_index, field_values)
        store = self.router.store_for(ptype)
        model = self._model_for(store, ptype)
        with self._unit_of_work(store, f"remove_filtered_policy({ptype})"):
            removed = self._delete_matching(store, model, field_filter)
        logger.info(f"Removed {removed} rules matching {field_filter!r}")

    def remove_policies(self, sec: str, ptype: str, rules: Sequence[Sequence[str]]):
        if not rules:
            return
        filters = [self._field_filter(ptype, 0, rule) for rule in rules if rule]
        store = self.router.store_for(ptype)
        model = self._model_for(store, ptype)
        with self._unit_of_work(store, f"remove_policies({ptype})"):
            removed = sum(self._delete_matching(store, model, f) for f in filters)
        logger.info(f"Removed {removed} rules of type {ptype}")

    # Updating

    def update_policy(self, sec: str, ptype: str, old_rule: Sequence[str], new_rule: Sequence[str]):
        """Rewrite the first row equal to ``old_rule``; no match leaves the store unchanged."""
        if not old_rule or not new_rule:
            return
        self.codec.check_update_supported()
        self._check_length(ptype, new_rule)
        field_filter = self._field_filter(ptype, 0, old_rule)
        store = self.router.store_for(ptype)
        model = self._model_for(store, ptype)
        with self._unit_of_work(store, f"update_policy({ptype})"):
            updated = self._update_first(store, model, field_filter, new_rule)
        if not updated:
            logger.info(f"No rule matched {field_filter!r}, nothing updated")

    def update_policies(self, sec: str, ptype: str, old_rules: Sequence[Sequence[str]],
                        new_rules: Sequence[Sequence[str]]):
        """Pairwise update_policy under one commit; mismatched lengths update nothing."""
        if len(old_rules) != len(new_rules):
            logger.warning(
                f"update_policies({ptype}) got {len(old_rules)} old and {len(new_rules)} new rules, skipping"
            )
            return
        if not new_rules:
            return
        self.codec.check_update_supported()
        pairs = []
        for old_rule, new_rule in zip(old_rules, new_rules):
            if old_rule and new_rule:
                self._check_length(ptype, new_rule)
                pairs.append((self._field_filter(ptype, 0, old_rule), new_rule))
        store = self.router.store_for(ptype)
        model = self._model_for(store, ptype)
        with self._unit_of_work(store, f"update_policies({ptype})"):
            updated = sum(self._update_first(store, model, f, new_rule) for f, new_rule in pairs)
        logger.info(f"Updated {updated} of {len(pairs)} rules of type {ptype}")
