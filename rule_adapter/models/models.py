"""SQLAlchemy rule record models."""
from sqlalchemy import Column, Integer, String
from rule_adapter.core.config import RULE_TABLE_NAME
from rule_adapter.core.database import Base

# Number of value slots a rule row can hold (v0..v5)
FIELD_COUNT = 6
FIELD_NAMES = tuple(f"v{i}" for i in range(FIELD_COUNT))


# Column layout shared by every rule table.
# Fields:
# 1. id: store-assigned primary key
# 2. ptype: rule type tag ("p", "p2", "g", ...), indexed
# 3. v0..v5: ordered value slots, empty string when unset (never NULL);
#    unset slots always form a trailing run
class RuleColumnsMixin:
    id = Column(Integer, primary_key=True, index=True)
    ptype = Column(String(255), nullable=False, default="", server_default="", index=True)
    v0 = Column(String(255), nullable=False, default="", server_default="", index=True)
    v1 = Column(String(255), nullable=False, default="", server_default="", index=True)
    v2 = Column(String(255), nullable=False, default="", server_default="", index=True)
    v3 = Column(String(255), nullable=False, default="", server_default="", index=True)
    v4 = Column(String(255), nullable=False, default="", server_default="", index=True)
    v5 = Column(String(255), nullable=False, default="", server_default="", index=True)

    @property
    def fields(self):
        return [getattr(self, name) or "" for name in FIELD_NAMES]

    def __repr__(self):
        values = ", ".join(value for value in self.fields if value)
        return f"<{type(self).__name__} id={self.id} {self.ptype}: {values}>"


# Default rule table
class CasbinRule(RuleColumnsMixin, Base):
    __tablename__ = RULE_TABLE_NAME


_models_by_table = {RULE_TABLE_NAME: CasbinRule}


def make_rule_model(table_name: str, base=Base):
    """Map (or return the already mapped) rule class for ``table_name``.

    Used when rule types are partitioned across tables.
    """
    key = table_name if base is Base else (base, table_name)
    model = _models_by_table.get(key)
    if model is None:
        class_name = "".join(part.capitalize() for part in table_name.split("_")) + "Rule"
        model = type(class_name, (RuleColumnsMixin, base), {"__tablename__": table_name})
        _models_by_table[key] = model
    return model
