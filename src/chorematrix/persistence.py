"""Key-value persistence for chore definitions, instances and kanban orders."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Tuple, TypeVar

from sqlalchemy.pool import StaticPool
from sqlmodel import Field, Session, SQLModel, create_engine

from .config import DEFINITIONS_KEY, INSTANCES_KEY, KANBAN_ORDERS_KEY, Settings
from .exceptions import PersistenceError
from .kanban import KanbanOrderStore
from .models import ChoreDefinition, ChoreInstance
from .ops import StructuredLogger

T = TypeVar("T")


class KeyValueStore(Protocol):
    """Opaque durable storage: one serialised blob per key."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...


class MemoryKeyValueStore:
    """Dictionary backed store, used in tests and for ephemeral sessions."""

    def __init__(self, initial: Optional[Mapping[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def set_many(self, items: Mapping[str, str]) -> None:
        self._data.update(items)

    def keys(self) -> Tuple[str, ...]:
        return tuple(self._data)


# ---------------------------------------------------------------------------
# SQL backend
# ---------------------------------------------------------------------------
class MetaKV(SQLModel, table=True):
    __tablename__ = "chorematrix_kv"

    k: str = Field(primary_key=True)
    v: str


def make_engine(url: str):
    if url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            url,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if url.startswith("sqlite"):
        return create_engine(url, echo=False, connect_args={"check_same_thread": False})
    return create_engine(url, echo=False)


class SqlKeyValueStore:
    """Store blobs in a two column table through SQLModel."""

    def __init__(self, url: Optional[str] = None, *, engine=None) -> None:
        self.engine = engine if engine is not None else make_engine(url or Settings.from_env().database_url)
        SQLModel.metadata.create_all(self.engine, tables=[MetaKV.__table__])

    def get(self, key: str) -> Optional[str]:
        with Session(self.engine) as session:
            row = session.get(MetaKV, key)
            return row.v if row is not None else None

    def set(self, key: str, value: str) -> None:
        self.set_many({key: value})

    def set_many(self, items: Mapping[str, str]) -> None:
        with Session(self.engine) as session:
            for key, value in items.items():
                row = session.get(MetaKV, key)
                if row is None:
                    session.add(MetaKV(k=key, v=value))
                else:
                    row.v = value
                    session.add(row)
            session.commit()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class ChoreState:
    """Everything the engine persists, as one unit."""

    definitions: Tuple[ChoreDefinition, ...] = ()
    instances: Tuple[ChoreInstance, ...] = ()
    kanban_orders: Dict[str, List[str]] = field(default_factory=dict)

    def to_payloads(self) -> Dict[str, Any]:
        return {
            DEFINITIONS_KEY: [definition.to_dict() for definition in self.definitions],
            INSTANCES_KEY: [instance.to_dict() for instance in self.instances],
            KANBAN_ORDERS_KEY: {key: list(ids) for key, ids in self.kanban_orders.items()},
        }


def _decode_list(raw: Any, decoder: Callable[[Mapping[str, Any]], T]) -> Tuple[T, ...]:
    if not isinstance(raw, list):
        raise ValueError(f"Expected a list, got {type(raw).__name__}.")
    return tuple(decoder(item) for item in raw)


def _decode_orders(raw: Any) -> Dict[str, List[str]]:
    if not isinstance(raw, dict):
        raise ValueError(f"Expected an object, got {type(raw).__name__}.")
    return KanbanOrderStore(raw).to_dict()


class ChoreRepository:
    """Load and save :class:`ChoreState` through a :class:`KeyValueStore`.

    Loading never raises: a missing key is an empty collection, and a key that
    cannot be decoded is logged and treated as empty. Saving encodes every key
    before writing anything and raises :class:`PersistenceError` on failure.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        settings: Optional[Settings] = None,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self.store = store
        self.settings = settings or Settings()
        self._logger = logger or StructuredLogger()

    def load(self) -> ChoreState:
        definitions = self._load_key(DEFINITIONS_KEY, lambda raw: _decode_list(raw, ChoreDefinition.from_dict), ())
        instances = self._load_key(INSTANCES_KEY, lambda raw: _decode_list(raw, ChoreInstance.from_dict), ())
        orders = self._load_key(KANBAN_ORDERS_KEY, _decode_orders, {})
        return ChoreState(definitions, instances, orders)

    def save(self, state: ChoreState) -> None:
        try:
            encoded = {
                self.settings.storage_key(name): json.dumps(payload, sort_keys=True)
                for name, payload in state.to_payloads().items()
            }
        except (TypeError, ValueError) as exc:
            self._logger.error("persistence_save_failed", stage="encode", error=repr(exc))
            raise PersistenceError(f"Could not serialise chore state: {exc}") from exc
        try:
            set_many = getattr(self.store, "set_many", None)
            if set_many is not None:
                set_many(encoded)
            else:
                for key, value in encoded.items():
                    self.store.set(key, value)
        except Exception as exc:
            self._logger.error("persistence_save_failed", stage="write", error=repr(exc))
            raise PersistenceError(f"Could not write chore state: {exc}") from exc

    def _load_key(self, name: str, decode: Callable[[Any], T], empty: T) -> T:
        key = self.settings.storage_key(name)
        try:
            raw = self.store.get(key)
        except Exception as exc:
            self._logger.error("persistence_load_failed", key=key, stage="read", error=repr(exc))
            return empty
        if raw is None:
            return empty
        try:
            return decode(json.loads(raw))
        except (ValueError, TypeError, KeyError, AttributeError) as exc:
            self._logger.error("persistence_load_failed", key=key, stage="decode", error=repr(exc))
            return empty


__all__ = [
    "ChoreRepository",
    "ChoreState",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "MetaKV",
    "SqlKeyValueStore",
    "make_engine",
]
