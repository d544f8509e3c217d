"""
On-demand relationship wiring between entities of one store.

The stores declare no foreign keys, so relationships are attached to the
mapped classes the first time a query needs them. ``ensure_relationship`` is
the only place that attaches one: it validates the descriptor, takes the
schema lock and either records the relationship as already wired or
attaches a view-only ``relationship()`` and records it.

``build_include`` wraps that into an IncludeSpec that ``EntityHandle.find_many``
turns into an eager-loading option.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from sqlalchemy.orm import foreign, relationship

from storelink.config import Config
from storelink.db.query import normalize_order
from storelink.errors import InvalidDescriptorError
from storelink.logger_setup import get_logger

logger = get_logger(__name__, log_file=Config.LOG_FILE, level=Config.LOG_LEVEL)


class RelationKind(str, Enum):
    ONE = 'one'                    # belongs-to
    MANY = 'many'                  # has-many
    MANY_TO_MANY = 'many_to_many'  # belongs-to-many, needs a through entity


@dataclass(frozen=True)
class RelationshipDescriptor:
    """
    How ``from_entity`` relates to ``to_entity`` under ``alias``.

    Key fields depend on the kind:

    * ``one``: ``foreign_key`` is a column of from_entity; ``local_key`` is the
      column of to_entity it points at (default: its primary key).
    * ``many``: ``foreign_key`` is a column of to_entity; ``local_key`` is the
      column of from_entity it points at (default: its primary key).
    * ``many_to_many``: ``through`` is the link entity, ``foreign_key`` its
      column pointing at from_entity and ``other_key`` its column pointing at
      to_entity.
    """

    from_entity: object
    to_entity: object
    alias: str
    kind: RelationKind
    foreign_key: Optional[str] = None
    local_key: Optional[str] = None
    through: Optional[object] = None
    other_key: Optional[str] = None

    @property
    def key(self) -> str:
        kind = self.kind.value if isinstance(self.kind, RelationKind) else self.kind
        return f"{self.from_entity.name}::{kind}::{self.alias}::{self.to_entity.name}"


@dataclass(frozen=True)
class IncludeSpec:
    """Fetch shape for one eager-loaded relationship."""

    source: object
    target: object
    alias: str
    required: bool = False
    separate: bool = False
    attributes: tuple = ()
    order: tuple = ()
    include: tuple = ()


def _coerce_kind(kind) -> RelationKind:
    if not kind:
        raise InvalidDescriptorError("Relationship 'kind' is required")
    try:
        return RelationKind(kind)
    except ValueError:
        raise InvalidDescriptorError(f"Unsupported relationship kind: {kind!r}") from None


def _single_primary_key(entity) -> str:
    pk = entity.primary_key
    if len(pk) != 1:
        raise InvalidDescriptorError(f"{entity.name} needs an explicit key; primary key is {pk}")
    return pk[0]


def _check_entity(schema, entity, role: str) -> None:
    if entity is None:
        raise InvalidDescriptorError(f"Relationship '{role}' entity is required")
    if getattr(entity, 'schema', None) is not schema:
        raise InvalidDescriptorError(
            f"{role} entity {getattr(entity, 'name', entity)!r} does not belong to store {schema.store_name!r}"
        )


def _validate(schema, descriptor: RelationshipDescriptor) -> RelationKind:
    _check_entity(schema, descriptor.from_entity, 'from')
    _check_entity(schema, descriptor.to_entity, 'to')
    if not descriptor.alias:
        raise InvalidDescriptorError("Relationship 'alias' is required")
    kind = _coerce_kind(descriptor.kind)
    if not descriptor.foreign_key:
        raise InvalidDescriptorError(f"Relationship {descriptor.alias!r} needs a foreign_key")
    if kind is RelationKind.MANY_TO_MANY:
        if descriptor.through is None:
            raise InvalidDescriptorError(f"many_to_many relationship {descriptor.alias!r} requires 'through'")
        _check_entity(schema, descriptor.through, 'through')
        if not descriptor.other_key:
            raise InvalidDescriptorError(f"many_to_many relationship {descriptor.alias!r} needs other_key")
    return kind


def _build_relationship(descriptor: RelationshipDescriptor, kind: RelationKind):
    src, dst = descriptor.from_entity, descriptor.to_entity

    if kind is RelationKind.ONE:
        target_key = descriptor.local_key or _single_primary_key(dst)
        return relationship(
            dst.model,
            primaryjoin=foreign(src.column(descriptor.foreign_key)) == dst.column(target_key),
            uselist=False,
            viewonly=True,
        )

    source_key = descriptor.local_key or _single_primary_key(src)
    if kind is RelationKind.MANY:
        return relationship(
            dst.model,
            primaryjoin=src.column(source_key) == foreign(dst.column(descriptor.foreign_key)),
            uselist=True,
            viewonly=True,
        )

    through = descriptor.through
    return relationship(
        dst.model,
        secondary=through.model.__table__,
        primaryjoin=src.column(source_key) == foreign(through.column(descriptor.foreign_key)),
        secondaryjoin=dst.column(_single_primary_key(dst)) == foreign(through.column(descriptor.other_key)),
        uselist=True,
        viewonly=True,
    )


def ensure_relationship(schema, descriptor: RelationshipDescriptor) -> None:
    """
    確保 relationship 只被接一次（idempotent）。

    key 已記錄、或 model 上已經有同名 attribute 時直接視為完成；
    兩個 thread 同時第一次呼叫時，只有一個會真的 attach。
    """
    kind = _validate(schema, descriptor)
    key = descriptor.key

    with schema.lock:
        if key in schema.wired:
            return
        model = descriptor.from_entity.model
        if hasattr(model, descriptor.alias):
            logger.debug(f"🔗 [Associations] {key} already present on {model.__name__}; marking wired")
            schema.wired.add(key)
            return
        prop = _build_relationship(descriptor, kind)
        setattr(model, descriptor.alias, prop)
        schema.wired.add(key)
        logger.debug(f"🔗 [Associations] Wired {key} on store {schema.store_name!r}")


def build_include(
    schema,
    descriptor: RelationshipDescriptor,
    required: bool = False,
    separate: bool = False,
    attributes: Optional[Iterable[str]] = None,
    order: Optional[Iterable] = None,
    include: Iterable[IncludeSpec] = (),
) -> IncludeSpec:
    ensure_relationship(schema, descriptor)
    include = tuple(include or ())
    for child in include:
        if not isinstance(child, IncludeSpec) or child.source is not descriptor.to_entity:
            raise InvalidDescriptorError(
                f"Nested include under {descriptor.alias!r} must start at {descriptor.to_entity.name}"
            )
    order = tuple(normalize_order(order))
    return IncludeSpec(
        source=descriptor.from_entity,
        target=descriptor.to_entity,
        alias=descriptor.alias,
        required=required,
        separate=separate,
        attributes=tuple(attributes or ()),
        order=order,
        include=include,
    )
