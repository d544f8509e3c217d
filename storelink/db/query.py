"""
Filter and ordering helpers shared by EntityHandle.find_many and the
cross-store join.

Filters are plain dicts of ``field -> value`` and only have AND semantics:

* a list/tuple/set value becomes ``field IN (...)``
* ``None`` becomes ``field IS NULL``
* anything else becomes ``field = value``

Several filter dicts are shallow-merged, so a later dict overwrites an
earlier one on the same key. There is no OR.
"""
from typing import Any, Iterable, NamedTuple, Optional, Sequence, Union

from storelink.errors import InvalidDescriptorError

DIRECTIONS = ('ASC', 'DESC')


class OrderBy(NamedTuple):
    field: str
    direction: str = 'ASC'


OrderLike = Union[OrderBy, str, Sequence[str]]


def normalize_order(order: Optional[Iterable[OrderLike]]) -> list[OrderBy]:
    """Accept ``OrderBy``, ``("field", "desc")`` pairs or bare field names."""
    if not order:
        return []
    result = []
    for item in order:
        if isinstance(item, str):
            field, direction = item, 'ASC'
        elif len(item) == 1:
            field, direction = item[0], 'ASC'
        elif len(item) == 2:
            field, direction = item
        else:
            raise InvalidDescriptorError("Order clause must be (field, direction)", details=repr(item))
        direction = (direction or 'ASC').upper()
        if not field or direction not in DIRECTIONS:
            raise InvalidDescriptorError("Invalid order clause", details=repr(item))
        result.append(OrderBy(field, direction))
    return result


def merge_filters(*filters: Optional[dict]) -> dict:
    merged: dict = {}
    for f in filters:
        if f:
            merged.update(f)
    return merged


def build_where(entity, where: Optional[dict]) -> list:
    clauses = []
    for field, value in (where or {}).items():
        column = entity.column(field)
        if value is None:
            clauses.append(column.is_(None))
        elif isinstance(value, (list, tuple, set, frozenset)):
            clauses.append(column.in_(list(value)))
        else:
            clauses.append(column == value)
    return clauses


def build_order(entity, order: Optional[Iterable[OrderLike]]) -> list:
    clauses = []
    for field, direction in normalize_order(order):
        column = entity.column(field)
        clauses.append(column.desc() if direction == 'DESC' else column.asc())
    return clauses


def _sort_key(value: Any):
    # NULLS LAST for ASC; reversed for DESC gives NULLS FIRST like Postgres
    return (value is None, value if value is not None else 0)


def sort_objects(objects: list, order: Optional[Iterable[OrderLike]]) -> list:
    """Order already-loaded ORM objects in Python (used for eager-loaded collections)."""
    result = list(objects)
    for field, direction in reversed(normalize_order(order)):
        result.sort(key=lambda obj: _sort_key(getattr(obj, field, None)), reverse=direction == 'DESC')
    return result
