"""Pydantic schemas for request/response validation."""
from pydantic import BaseModel, Field
from typing import List, Optional

from rule_adapter.services.filters import Filter


# --- Rule Schemas ---
class RuleBase(BaseModel):
    ptype: str = Field(default="p", min_length=1)


class RuleCreate(RuleBase):
    values: List[str] = Field(default_factory=list, max_length=6)


class RuleBatch(RuleBase):
    rules: List[List[str]] = Field(default_factory=list)


class RuleFilter(RuleBase):
    field_index: int = Field(default=0, ge=0)
    field_values: List[str] = Field(default_factory=list)


class RuleUpdate(RuleBase):
    old_values: List[str]
    new_values: List[str] = Field(max_length=6)


class RuleBatchUpdate(RuleBase):
    old_rules: List[List[str]]
    new_rules: List[List[str]]


class RuleResponse(BaseModel):
    ptype: str
    values: List[str]


# --- Load Schemas ---
class PolicyFilter(Filter):
    """Sectioned filter accepted by the filtered load endpoint."""


class PolicyListResponse(BaseModel):
    is_filtered: bool
    rules: List[RuleResponse]
    lines: Optional[List[str]] = None
