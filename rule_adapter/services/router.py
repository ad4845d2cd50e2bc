"""Routing of rule types to the store (session) that holds them."""
from typing import Callable, Dict, Hashable, List, Mapping

from rule_adapter.core.errors import ConfigurationError
from rule_adapter.core.logging_config import logger


def _bind_of(store):
    # Session and AsyncSession both expose the engine/connection they were created with
    return getattr(store, "bind", None)


class SingleStoreRouter:
    """Every rule type lives in one store."""

    def __init__(self, store):
        if store is None:
            raise ConfigurationError("A store handle is required")
        self._store = store

    def store_for(self, ptype: str):
        return self._store

    def stores(self) -> List:
        return [self._store]

    def shared_connection(self):
        return _bind_of(self._store)


class MultiStoreRouter:
    """Partition rule types across stores with a caller-supplied classifier.

    ``classify(ptype)`` returns a key of ``routes``. The answer is remembered
    per type, so a type keeps its store for the router's lifetime.
    """

    def __init__(self, routes: Mapping[Hashable, object], classify: Callable[[str], Hashable]):
        if not routes:
            raise ConfigurationError("At least one store route is required")
        if not callable(classify):
            raise ConfigurationError("Rule type classifier must be callable")
        for key, store in routes.items():
            if store is None:
                raise ConfigurationError(f"Store for route '{key}' is missing")
        self._routes = dict(routes)
        self._classify = classify
        self._resolved: Dict[str, object] = {}

    @classmethod
    def by_prefix(cls, primary, secondary, marker: str = "p"):
        """Types starting with ``marker`` go to ``primary``, all others to ``secondary``."""
        if not marker:
            raise ConfigurationError("Primary type marker must not be empty")
        return cls(
            {"primary": primary, "secondary": secondary},
            lambda ptype: "primary" if not ptype or ptype.startswith(marker) else "secondary",
        )

    def store_for(self, ptype: str):
        store = self._resolved.get(ptype)
        if store is not None:
            return store
        key = self._classify(ptype)
        if key not in self._routes:
            raise ConfigurationError(f"Rule type '{ptype}' classified to unknown route '{key}'")
        store = self._routes[key]
        self._resolved[ptype] = store
        logger.debug(f"Rule type '{ptype}' routed to '{key}'")
        return store

    def stores(self) -> List:
        distinct = []
        for store in self._routes.values():
            if not any(store is seen for seen in distinct):
                distinct.append(store)
        return distinct

    def shared_connection(self):
        """The bind shared by every store, or None when the stores are independent."""
        binds = [_bind_of(store) for store in self.stores()]
        first = binds[0]
        if first is None or any(bind is not first for bind in binds[1:]):
            return None
        return first
