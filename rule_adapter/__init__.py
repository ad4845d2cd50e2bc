"""Relational storage for authorization policy rules."""
from rule_adapter.core.errors import (
    RuleAdapterError,
    ConfigurationError,
    FieldRangeError,
    UnsupportedOperationError,
)
from rule_adapter.models.models import CasbinRule, make_rule_model
from rule_adapter.services.adapter import AdapterHooks, AdapterState, RuleAdapter
from rule_adapter.services.async_adapter import AsyncRuleAdapter
from rule_adapter.services.codec import RuleCodec
from rule_adapter.services.filters import FieldFilter, Filter
from rule_adapter.services.policy_model import PolicyModel
from rule_adapter.services.router import MultiStoreRouter, SingleStoreRouter

__all__ = [
    "RuleAdapterError", "ConfigurationError", "FieldRangeError", "UnsupportedOperationError",
    "CasbinRule", "make_rule_model",
    "AdapterHooks", "AdapterState", "RuleAdapter", "AsyncRuleAdapter",
    "RuleCodec", "FieldFilter", "Filter", "PolicyModel",
    "MultiStoreRouter", "SingleStoreRouter",
]
