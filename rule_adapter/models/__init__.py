"""SQLAlchemy models."""
from rule_adapter.models.models import (
    CasbinRule, RuleColumnsMixin, make_rule_model, FIELD_COUNT, FIELD_NAMES
)
from rule_adapter.core.database import Base

__all__ = ["CasbinRule", "RuleColumnsMixin", "make_rule_model", "FIELD_COUNT", "FIELD_NAMES", "Base"]
