"""User-defined ordering of instances inside (kid, column) buckets."""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .models import ChoreInstance


def order_key(kid_id: str, column_key: str) -> str:
    """Storage key of a board column; the column part never contains ``-``."""

    if not column_key or "-" in column_key:
        raise ValueError(f"Column key {column_key!r} must be non-empty and free of '-'.")
    return f"{kid_id}-{column_key}"


class KanbanOrderStore:
    """Ordered instance ids per kid and column.

    Ids are stored as given; whether they still refer to live instances is
    left to the reader (see :meth:`apply_order`).
    """

    def __init__(self, orders: Optional[Mapping[str, Sequence[str]]] = None) -> None:
        self._orders: Dict[str, Tuple[str, ...]] = {}
        for key, ids in (orders or {}).items():
            if ids:
                self._orders[str(key)] = tuple(str(item) for item in ids)

    def set_order(self, kid_id: str, column_key: str, ordered_ids: Iterable[str]) -> None:
        key = order_key(kid_id, column_key)
        ids = tuple(ordered_ids)
        if ids:
            self._orders[key] = ids
        else:
            self._orders.pop(key, None)

    def get_order(self, kid_id: str, column_key: str) -> Tuple[str, ...]:
        return self._orders.get(order_key(kid_id, column_key), ())

    def apply_order(self, kid_id: str, column_key: str, instances: Iterable[ChoreInstance]) -> List[ChoreInstance]:
        """Custom-ordered instances first, the rest by date; unknown ids are skipped."""

        remaining = {instance.id: instance for instance in instances}
        ordered: List[ChoreInstance] = []
        for item_id in self.get_order(kid_id, column_key):
            instance = remaining.pop(item_id, None)
            if instance is not None:
                ordered.append(instance)
        ordered.extend(sorted(remaining.values(), key=lambda instance: (instance.instance_date, instance.id)))
        return ordered

    def copy(self) -> "KanbanOrderStore":
        return KanbanOrderStore(self._orders)

    def to_dict(self) -> Dict[str, List[str]]:
        return {key: list(ids) for key, ids in self._orders.items()}

    def __len__(self) -> int:
        return len(self._orders)


__all__ = ["KanbanOrderStore", "order_key"]
