"""API dependencies."""
from fastapi import Depends
from sqlalchemy.orm import Session
from rule_adapter.core.config import PRIMARY_TYPE_MARKER
from rule_adapter.core.database import get_db, get_grouping_db
from rule_adapter.services.adapter import RuleAdapter
from rule_adapter.services.router import MultiStoreRouter, SingleStoreRouter


def get_adapter(
    db: Session = Depends(get_db),
    grouping_db: Session = Depends(get_grouping_db)
) -> RuleAdapter:
    """One adapter per request over the request's session(s)."""
    if grouping_db is None:
        return RuleAdapter(router=SingleStoreRouter(db))
    return RuleAdapter(router=MultiStoreRouter.by_prefix(db, grouping_db, marker=PRIMARY_TYPE_MARKER))


__all__ = ["get_db", "get_grouping_db", "get_adapter"]
