"""Predicates selecting rule rows by type and field values.

A ``FieldFilter`` is the ``(ptype, field_index, values)`` triple used by
remove/update and filtered loads. ``Filter`` is the sectioned filter the
engine hands to ``load_filtered_policy``. Both only build SQLAlchemy
expressions, so the same statement runs on a ``Session`` or an
``AsyncSession``.
"""
from typing import List, Optional, Sequence

from pydantic import BaseModel
from sqlalchemy import and_, or_, true

from rule_adapter.core.errors import FieldRangeError
from rule_adapter.models.models import CasbinRule, FIELD_COUNT, FIELD_NAMES

DEFAULT_POLICY_TYPE = "p"
DEFAULT_GROUPING_TYPE = "g"


def is_wildcard(value: Optional[str]) -> bool:
    """Blank filter values match any field content."""
    return value is None or not value.strip()


class FieldFilter:
    """Match rows of ``ptype`` whose fields from ``field_index`` on equal ``values``."""

    def __init__(self, ptype: str, field_index: int, values: Sequence[str], legacy: bool = False):
        values = list(values)
        last_index = field_index + len(values) - 1
        if field_index < 0 or field_index >= FIELD_COUNT:
            raise FieldRangeError(f"Field index {field_index} is outside 0..{FIELD_COUNT - 1}")
        if last_index >= FIELD_COUNT:
            raise FieldRangeError(
                f"Filter on '{ptype}' reaches field {last_index}, last field is {FIELD_COUNT - 1}"
            )
        self.ptype = ptype
        self.field_index = field_index
        self.values = values
        self.legacy = legacy

    def clauses(self, model=CasbinRule) -> list:
        # The first adapter generation returned the collection untouched for
        # an empty value list, without even a type clause.
        if self.legacy and not self.values:
            return []
        clauses = [model.ptype == self.ptype]
        for offset, value in enumerate(self.values):
            if is_wildcard(value):
                continue
            column = getattr(model, FIELD_NAMES[self.field_index + offset])
            clauses.append(column == value)
        return clauses

    def clause(self, model=CasbinRule):
        clauses = self.clauses(model)
        if not clauses:
            return true()
        return and_(*clauses)

    def apply(self, stmt, model=CasbinRule):
        """AND this filter onto ``stmt``; applying several filters intersects them."""
        return stmt.where(*self.clauses(model))

    def __repr__(self):
        return f"FieldFilter({self.ptype!r}, {self.field_index}, {self.values!r})"


class Filter(BaseModel):
    """Sectioned filter for filtered loads.

    ``p`` lists values for permission rules (type "p"), ``g`` for grouping
    rules (type "g"), both starting at field 0 with blank values as
    wildcards. A section left out is not loaded when the other one is given;
    leaving both out loads everything.
    """
    p: Optional[List[str]] = None
    g: Optional[List[str]] = None

    def clause(self, model=CasbinRule):
        if self.p is None and self.g is None:
            return None
        parts = []
        if self.p is not None:
            parts.append(FieldFilter(DEFAULT_POLICY_TYPE, 0, self.p).clause(model))
        if self.g is not None:
            parts.append(FieldFilter(DEFAULT_GROUPING_TYPE, 0, self.g).clause(model))
        # OR of the two predicates: a row is selected once, whichever section matches it
        return parts[0] if len(parts) == 1 else or_(*parts)

    def apply(self, stmt, model=CasbinRule):
        clause = self.clause(model)
        return stmt if clause is None else stmt.where(clause)
