"""Asynchronous counterpart of RuleAdapter over ``AsyncSession`` stores.

Statements, filters, routing and hooks are shared with the sync adapter; the
only difference is that store round trips (execute, flush, commit) are awaited.
"""
from contextlib import asynccontextmanager
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncConnection

from rule_adapter.core.logging_config import logger
from rule_adapter.services.adapter import AdapterState, BaseRuleAdapter
from rule_adapter.services.filters import FieldFilter


class AsyncRuleAdapter(BaseRuleAdapter):
    """Same operations as RuleAdapter, as coroutines."""

    connection_type = AsyncConnection

    @asynccontextmanager
    async def _unit_of_work(self, store, operation: str):
        try:
            yield
            await store.commit()
        except Exception as e:
            logger.error(f"{operation} failed, rolling back: {e}")
            await store.rollback()
            self.state = AdapterState.FAILED
            raise
        self.state = AdapterState.COMMITTED

    async def _fetch(self, store, stmt):
        result = await store.scalars(stmt)
        return list(result.all())

    async def _delete_matching(self, store, model, field_filter: FieldFilter) -> int:
        rows = await self._fetch(store, field_filter.apply(select(model), model))
        rows = list(self.hooks.on_remove_filtered(rows))
        for row in rows:
            await store.delete(row)
        await store.flush()
        return len(rows)

    async def _update_first(self, store, model, field_filter: FieldFilter, new_values: Sequence[str]) -> bool:
        stmt = field_filter.apply(select(model), model).order_by(model.id).limit(1)
        row = (await store.scalars(stmt)).first()
        if row is None:
            return False
        self.codec.set_values(row, new_values)
        await store.flush()
        return True

    async def load_policy(self, policy_model):
        rows = []
        for store in self.router.stores():
            model = self._model_for(store, None)
            rows.extend(await self._fetch(store, self._load_statement(model)))
        loaded = self._load_rows(policy_model, self.hooks.on_load(rows))
        self.is_filtered = False
        self.state = AdapterState.IDLE
        logger.info(f"Loaded {loaded} rules")

    async def load_filtered_policy(self, policy_model, policy_filter):
        if policy_filter is None:
            await self.load_policy(policy_model)
            return
        rows = []
        for store in self.router.stores():
            model = self._model_for(store, None)
            stmt = self._load_statement(model, policy_filter)
            rows.extend(await self._fetch(store, stmt))
        loaded = self._load_rows(policy_model, self.hooks.on_load(rows))
        self.is_filtered = True
        self.state = AdapterState.IDLE
        logger.info(f"Loaded {loaded} rules with filter {policy_filter!r}")

    async def save_policy(self, policy_model):
        groups = self._records_by_store(policy_model)
        if not groups:
            logger.debug("save_policy called with an empty model, nothing to do")
            return
        connection = self._shared_transaction_connection(groups)
        transaction = None
        if connection is not None and not connection.in_transaction():
            transaction = await connection.begin()
        try:
            for store, records in groups:
                store.add_all(self.hooks.on_save(records))
                await store.flush()
            for store, _ in groups:
                await store.commit()
            if transaction is not None:
                await transaction.commit()
        except Exception as e:
            logger.error(f"save_policy failed, rolling back: {e}")
            for store, _ in groups:
                await store.rollback()
            if transaction is not None and transaction.is_active:
                await transaction.rollback()
            self.state = AdapterState.FAILED
            raise
        self.state = AdapterState.COMMITTED
        logger.info(f"Saved {sum(len(records) for _, records in groups)} rules to {len(groups)} store(s)")

    async def add_policy(self, sec: str, ptype: str, rule: Sequence[str]):
        if not rule:
            return
        store = self.router.store_for(ptype)
        record = self.codec.to_record(ptype, rule, self._model_for(store, ptype))
        async with self._unit_of_work(store, f"add_policy({ptype})"):
            store.add_all(self.hooks.on_add_policy([record]))
        logger.info(f"Added rule {ptype}: {', '.join(rule)}")

    async def add_policies(self, sec: str, ptype: str, rules: Sequence[Sequence[str]]):
        if not rules:
            return
        store = self.router.store_for(ptype)
        records = self.codec.to_records(ptype, rules, self._model_for(store, ptype))
        async with self._unit_of_work(store, f"add_policies({ptype})"):
            store.add_all(self.hooks.on_add_policy(records))
        logger.info(f"Added {len(records)} rules of type {ptype}")

    async def remove_policy(self, sec: str, ptype: str, rule: Sequence[str]):
        await self.remove_filtered_policy(sec, ptype, 0, *rule)

    async def remove_filtered_policy(self, sec: str, ptype: str, field_index: int, *field_values: str):
        if not field_values:
            return
        field_filter = self._field_filter(ptype, field_index, field_values)
        store = self.router.store_for(ptype)
        model = self._model_for(store, ptype)
        async with self._unit_of_work(store, f"remove_filtered_policy({ptype})"):
            removed = await self._delete_matching(store, model, field_filter)
        logger.info(f"Removed {removed} rules matching {field_filter!r}")

    async def remove_policies(self, sec: str, ptype: str, rules: Sequence[Sequence[str]]):
        if not rules:
            return
        filters = [self._field_filter(ptype, 0, rule) for rule in rules if rule]
        store = self.router.store_for(ptype)
        model = self._model_for(store, ptype)
        removed = 0
        async with self._unit_of_work(store, f"remove_policies({ptype})"):
            for field_filter in filters:
                removed += await self._delete_matching(store, model, field_filter)
        logger.info(f"Removed {removed} rules of type {ptype}")

    async def update_policy(self, sec: str, ptype: str, old_rule: Sequence[str], new_rule: Sequence[str]):
        if not old_rule or not new_rule:
            return
        self.codec.check_update_supported()
        self._check_length(ptype, new_rule)
        field_filter = self._field_filter(ptype, 0, old_rule)
        store = self.router.store_for(ptype)
        model = self._model_for(store, ptype)
        async with self._unit_of_work(store, f"update_policy({ptype})"):
            updated = await self._update_first(store, model, field_filter, new_rule)
        if not updated:
            logger.info(f"No rule matched {field_filter!r}, nothing updated")

    async def update_policies(self, sec: str, ptype: str, old_rules: Sequence[Sequence[str]],
                              new_rules: Sequence[Sequence[str]]):
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
        updated = 0
        async with self._unit_of_work(store, f"update_policies({ptype})"):
            for field_filter, new_rule in pairs:
                if await self._update_first(store, model, field_filter, new_rule):
                    updated += 1
        logger.info(f"Updated {updated} of {len(pairs)} rules of type {ptype}")
