"""
Batched cross-store join.

Stitches rows fetched from one store with rows from another store that has
no foreign key back to it. For every JoinSpec, in order:

1. collect the distinct non-null ``local_field`` values of the primary rows
2. query ``target`` for ``remote_field IN (values)`` in batches of
   ``batch_size``, together with the AND-merged ``where`` filters
3. map the fetched rows by ``remote_field`` (a list per key for ``many``,
   the last row seen for ``one``)
4. attach ``row[alias]`` to every primary row, ``[]``/``None`` when nothing
   matched

A join with N distinct keys costs ceil(N / batch_size) queries, whatever the
number of primary rows. Primary rows are mutated in place.
"""
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from storelink.config import Config
from storelink.db.query import OrderBy, merge_filters, normalize_order
from storelink.errors import InvalidDescriptorError
from storelink.logger_setup import get_logger

logger = get_logger(__name__, log_file=Config.LOG_FILE, level=Config.LOG_LEVEL)

BATCH_SIZE = 500
CREATED_AT = 'created_at'


class Cardinality(str, Enum):
    ONE = 'one'
    MANY = 'many'


@dataclass
class JoinSpec:
    """
    target:        entity handle of the foreign store (needs find_many / has_column / primary_key)
    local_field:   field of the primary rows holding the join key
    remote_field:  column of target matched against it
    alias:         field the result is attached under
    attributes:    projected columns of target (remote_field is always added)
    cardinality:   ONE -> row or None, MANY -> list of rows
    where:         extra equality filters, shallow-merged (AND only, last key wins)
    limit, offset: applied to every batch query; None or 0 means no limit
    order_by:      defaults to created_at DESC when target has it, else primary key
    """

    target: object
    local_field: str
    remote_field: str
    alias: str
    attributes: Sequence[str] = ()
    cardinality: Cardinality = Cardinality.ONE
    where: Sequence[dict] = ()
    limit: Optional[int] = None
    offset: int = 0
    order_by: Sequence = ()

    @property
    def multi(self) -> bool:
        return Cardinality(self.cardinality) is Cardinality.MANY

    def empty_value(self):
        return [] if self.multi else None


def validate_join(join: JoinSpec) -> None:
    if join.target is None or not hasattr(join.target, 'find_many'):
        raise InvalidDescriptorError("Join target must be an entity handle", details=repr(join.target))
    for name in ('local_field', 'remote_field', 'alias'):
        if not getattr(join, name):
            raise InvalidDescriptorError(f"Join '{name}' is required")
    try:
        Cardinality(join.cardinality)
    except ValueError:
        raise InvalidDescriptorError(f"Unsupported cardinality: {join.cardinality!r}") from None
    if any(not isinstance(w, dict) for w in join.where):
        raise InvalidDescriptorError("Join 'where' must be a list of dicts", details=repr(join.where))
    if (join.limit is not None and join.limit < 0) or (join.offset or 0) < 0:
        raise InvalidDescriptorError("Join limit/offset must not be negative")

    fields = [join.remote_field, *join.attributes]
    fields += [key for w in join.where for key in w]
    fields += [order.field for order in normalize_order(join.order_by)]
    for name in dict.fromkeys(fields):
        if not join.target.has_column(name):
            raise InvalidDescriptorError(
                f"{join.target.name} has no column {name!r}", details=f"join {join.alias!r}"
            )


def default_order(target) -> list[OrderBy]:
    """Latest first when the entity has created_at, otherwise primary key order."""
    if target.has_column(CREATED_AT):
        return [OrderBy(CREATED_AT, 'DESC')]
    return [OrderBy(pk, 'ASC') for pk in target.primary_key]


def projection(join: JoinSpec) -> list[str]:
    attributes = list(join.attributes) or [join.remote_field]
    if join.remote_field not in attributes:
        attributes.append(join.remote_field)
    return attributes


def build_result_map(rows: list[dict], remote_field: str, multi: bool) -> dict:
    result_map: dict = {}
    for row in rows:
        key = row.get(remote_field)
        if multi:
            result_map.setdefault(key, []).append(row)
        else:
            result_map[key] = row
    return result_map


def _fetch_batches(join: JoinSpec, keys: list, batch_size: int, max_workers: Optional[int]) -> list[dict]:
    base_where = merge_filters({join.remote_field: keys}, *join.where)
    order = normalize_order(join.order_by) or default_order(join.target)
    attributes = projection(join)
    batches = [keys[i:i + batch_size] for i in range(0, len(keys), batch_size)]

    def fetch(batch: list) -> list[dict]:
        return join.target.find_many(
            where={**base_where, join.remote_field: batch},
            attributes=attributes,
            order=order,
            limit=join.limit,
            offset=join.offset,
        )

    logger.debug(f"🔗 [CrossJoin] {join.alias}: {len(keys)} keys -> {len(batches)} batch(es)")
    if max_workers and len(batches) > 1:
        # map() 會保留 batch 的順序
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            results = list(executor.map(fetch, batches))
    else:
        results = [fetch(batch) for batch in batches]
    return [row for batch_rows in results for row in batch_rows]


def cross_join_models(
    primary_rows: list[dict],
    joins: Sequence[JoinSpec],
    batch_size: int = BATCH_SIZE,
    max_workers: Optional[int] = None,
) -> list[dict]:
    if not primary_rows:
        return []
    if batch_size <= 0:
        raise InvalidDescriptorError(f"batch_size must be positive, got {batch_size}")
    for join in joins:
        validate_join(join)

    enriched = list(primary_rows)
    # join key 一律取原始 primary row 的值，不受前面 join 接上的 alias 影響
    local_fields = {join.local_field for join in joins}
    snapshots = [{name: row.get(name) for name in local_fields} for row in enriched]

    for join in joins:
        keys = list(dict.fromkeys(
            snapshot[join.local_field] for snapshot in snapshots if snapshot[join.local_field] is not None
        ))
        if not keys:
            for row in enriched:
                row[join.alias] = join.empty_value()
            continue

        foreign_rows = _fetch_batches(join, keys, batch_size, max_workers)
        result_map = build_result_map(foreign_rows, join.remote_field, join.multi)

        for row, snapshot in zip(enriched, snapshots):
            matched = result_map.get(snapshot[join.local_field])
            if matched is None:
                row[join.alias] = join.empty_value()
            else:
                row[join.alias] = list(matched) if join.multi else matched
        logger.debug(f"🔗 [CrossJoin] {join.alias}: {len(foreign_rows)} foreign rows for {len(enriched)} rows")

    return enriched
