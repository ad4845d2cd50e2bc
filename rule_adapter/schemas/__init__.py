"""Pydantic schemas."""
from rule_adapter.schemas.schemas import (
    RuleBase, RuleCreate, RuleBatch, RuleFilter, RuleUpdate, RuleBatchUpdate, RuleResponse,
    PolicyFilter, PolicyListResponse
)

__all__ = [
    "RuleBase", "RuleCreate", "RuleBatch", "RuleFilter", "RuleUpdate", "RuleBatchUpdate",
    "RuleResponse", "PolicyFilter", "PolicyListResponse"
]
