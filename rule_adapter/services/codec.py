"""Conversion between rule records and the engine's ordered value lists.

Two codec versions exist. Version 2 is the current contract: values are read
from ``v0`` onwards and reading stops at the first empty slot, so a rule can
never carry a gap. Version 1 keeps the behaviour of the first adapter
generation, which skipped empty slots instead of stopping, treated an empty
filter as "match everything" and had no working update.
"""
import csv
from typing import Iterable, List, Sequence, Tuple

from rule_adapter.core.errors import FieldRangeError, UnsupportedOperationError
from rule_adapter.models.models import CasbinRule, FIELD_COUNT, FIELD_NAMES

CURRENT_VERSION = 2
LEGACY_VERSION = 1


def section_of(ptype: str) -> str:
    """Logical section of a rule type: its leading token ("p2" -> "p")."""
    return ptype[:1]


def to_record(ptype: str, values: Sequence[str], model=CasbinRule):
    """Build an unsaved rule record, filling v0..v(n-1) and leaving the rest empty."""
    if len(values) > FIELD_COUNT:
        raise FieldRangeError(
            f"A rule holds at most {FIELD_COUNT} values, got {len(values)} for '{ptype}'"
        )
    record = model(ptype=ptype)
    for name in FIELD_NAMES:
        setattr(record, name, "")
    for name, value in zip(FIELD_NAMES, values):
        setattr(record, name, value if value is not None else "")
    return record


def set_values(record, values: Sequence[str]):
    """Overwrite every value slot of an existing record in place."""
    if len(values) > FIELD_COUNT:
        raise FieldRangeError(
            f"A rule holds at most {FIELD_COUNT} values, got {len(values)} for '{record.ptype}'"
        )
    padded = list(values) + [""] * (FIELD_COUNT - len(values))
    for name, value in zip(FIELD_NAMES, padded):
        setattr(record, name, value if value is not None else "")
    return record


def to_values(record) -> List[str]:
    """Ordered values of a record, stopping at the first empty slot."""
    values = []
    for name in FIELD_NAMES:
        value = getattr(record, name)
        if not value:
            break
        values.append(value)
    return values


def to_line(record) -> str:
    """Serialize a record as a policy line, e.g. ``p, alice, data1, read``."""
    return ", ".join([record.ptype] + to_values(record))


def parse_line(line: str) -> Tuple[str, List[str]]:
    """Parse a policy line into ``(ptype, values)``.

    Values may be double-quoted when they contain commas. Blank lines and
    ``#`` comments yield ``("", [])``.
    """
    line = line.strip()
    if not line or line.startswith("#"):
        return "", []
    tokens = next(csv.reader([line], skipinitialspace=True))
    tokens = [token.strip() for token in tokens]
    return tokens[0], tokens[1:]


class RuleCodec:
    """Version-selected record/value conversion used by the adapters."""

    def __init__(self, version: int = CURRENT_VERSION):
        if version not in (LEGACY_VERSION, CURRENT_VERSION):
            raise ValueError(f"Unknown codec version: {version}")
        self.version = version

    @property
    def is_legacy(self) -> bool:
        return self.version == LEGACY_VERSION

    def to_record(self, ptype: str, values: Sequence[str], model=CasbinRule):
        return to_record(ptype, values, model)

    def to_records(self, ptype: str, values_list: Iterable[Sequence[str]], model=CasbinRule):
        return [to_record(ptype, values, model) for values in values_list]

    def set_values(self, record, values: Sequence[str]):
        return set_values(record, values)

    def to_values(self, record) -> List[str]:
        if self.is_legacy:
            return [value for value in record.fields if value]
        return to_values(record)

    def check_update_supported(self):
        if self.is_legacy:
            raise UnsupportedOperationError(
                "Updating rules is not supported by codec version 1"
            )

    def __repr__(self):
        return f"RuleCodec(version={self.version})"
