"""
Schema Handle Cache.

``get_handles(store_name)`` returns the SchemaHandle of one logical store:
its engine, a session factory and an EntityHandle per mapped entity. The
first call connects and defines the models; every later call returns the
same object. Entries live for the lifetime of the cache and each one owns
the set of relationship keys wired on it.
"""
import threading
from contextlib import contextmanager
from typing import Callable, Generator, Iterable, Optional

from sqlalchemy import inspect as sa_inspect, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload, sessionmaker

from storelink.config import Config
from storelink.db.engine import StoreConnectionProvider
from storelink.db.query import build_order, build_where, sort_objects
from storelink.errors import (
    ConfigurationError, InvalidDescriptorError, StoreConnectionError, StoreQueryError
)
from storelink.logger_setup import get_logger
from storelink.model import define_models

logger = get_logger(__name__, log_file=Config.LOG_FILE, level=Config.LOG_LEVEL)


class EntityHandle:
    """One mapped entity of a store, with the query capability the join engine needs."""

    def __init__(self, name: str, model: type, schema: "SchemaHandle"):
        self.name = name
        self.model = model
        self.schema = schema

    def __repr__(self):
        return f"<EntityHandle {self.schema.store_name}.{self.name}>"

    @property
    def columns(self) -> list[str]:
        return [attr.key for attr in sa_inspect(self.model).column_attrs]

    @property
    def primary_key(self) -> list[str]:
        return [column.name for column in self.model.__table__.primary_key.columns]

    def has_column(self, name: str) -> bool:
        return name in self.model.__table__.c

    def column(self, name: str):
        column = self.model.__table__.c.get(name)
        if column is None:
            raise InvalidDescriptorError(f"{self.name} has no column {name!r}")
        return column

    def find_many(
        self,
        where: Optional[dict] = None,
        attributes: Optional[Iterable[str]] = None,
        order=None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        include: Iterable = (),
    ) -> list[dict]:
        """
        查詢並回傳 plain dict rows。

        沒有 include 時直接 select 欄位（raw rows）；有 include 時 select entity，
        用 loader options 一次載入同一個 store 內的關聯，再轉成巢狀 dict。
        """
        include = list(include or ())
        attributes = list(attributes) if attributes else None

        if include:
            stmt = select(self.model).options(*[_loader_option(spec, self) for spec in include])
        else:
            stmt = select(*[self.column(name) for name in (attributes or self.columns)])
        stmt = stmt.where(*build_where(self, where)).order_by(*build_order(self, order))
        if limit:
            stmt = stmt.limit(limit)
        if offset:
            stmt = stmt.offset(offset)

        try:
            with self.schema.get_session() as session:
                if include:
                    objects = session.execute(stmt).unique().scalars().all()
                    return [to_row(obj, attributes, include) for obj in objects]
                return [dict(row) for row in session.execute(stmt).mappings().all()]
        except SQLAlchemyError as e:
            logger.error(f"Query on {self.schema.store_name}.{self.name} failed: {e}", exc_info=True)
            raise StoreQueryError(
                f"Query on {self.schema.store_name}.{self.name} failed", details=str(e), entity=self.name
            ) from e

    def find_one(
        self,
        where: Optional[dict] = None,
        attributes: Optional[Iterable[str]] = None,
        include: Iterable = (),
    ) -> Optional[dict]:
        rows = self.find_many(where, attributes=attributes, include=include, limit=1)
        return rows[0] if rows else None


def _loader_option(spec, parent: EntityHandle):
    if spec.source.model is not parent.model:
        raise InvalidDescriptorError(
            f"Include {spec.alias!r} starts at {spec.source.name}, not {parent.name}"
        )
    attr = getattr(parent.model, spec.alias)
    if spec.required:
        option = joinedload(attr, innerjoin=True)
    elif spec.separate:
        option = selectinload(attr)
    else:
        option = joinedload(attr)
    children = [_loader_option(child, spec.target) for child in spec.include]
    if children:
        option = option.options(*children)
    return option


def to_row(obj, attributes: Optional[list] = None, include: Iterable = ()) -> dict:
    """ORM object -> plain dict, following the include tree."""
    keys = attributes or [attr.key for attr in sa_inspect(type(obj)).column_attrs]
    row = {key: getattr(obj, key) for key in keys}
    for spec in include:
        child_attributes = list(spec.attributes) if spec.attributes else None
        value = getattr(obj, spec.alias)
        if value is None:
            row[spec.alias] = None
        elif isinstance(value, list):
            row[spec.alias] = [
                to_row(child, child_attributes, spec.include) for child in sort_objects(value, spec.order)
            ]
        else:
            row[spec.alias] = to_row(value, child_attributes, spec.include)
    return row


class SchemaHandle:
    """
    In-memory registry of the entities of one store.

    Relationship metadata is only attached through
    ``associations.ensure_relationship``, which records its keys in ``wired``
    under ``lock``.
    """

    def __init__(self, store_name: str, engine: Engine, models: dict[str, type]):
        if not models:
            raise ConfigurationError(f"No entities defined for store {store_name!r}")
        self.store_name = store_name
        self.engine = engine
        self.session_factory = sessionmaker(bind=engine, autoflush=True, expire_on_commit=False)
        self.entities = {name: EntityHandle(name, model, self) for name, model in models.items()}
        self.wired: set[str] = set()
        self.lock = threading.RLock()

    def __repr__(self):
        return f"<SchemaHandle {self.store_name} entities={len(self.entities)}>"

    def __getitem__(self, name: str) -> EntityHandle:
        return self.entity(name)

    def __contains__(self, name: str) -> bool:
        return name in self.entities

    def entity(self, name: str) -> EntityHandle:
        try:
            return self.entities[name]
        except KeyError:
            raise ConfigurationError(f"Entity {name!r} is not defined for store {self.store_name!r}") from None

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        db = self.session_factory()
        try:
            yield db
        finally:
            db.close()

    def create_all(self) -> None:
        """初始化資料表（建立 tables），只需執行一次。"""
        metadata = next(iter(self.entities.values())).model.metadata
        try:
            metadata.create_all(bind=self.engine)
            logger.info(f"✅ Tables initialized for store {self.store_name!r}.")
        except SQLAlchemyError as e:
            logger.exception(f"❌ Failed to initialize store {self.store_name!r}: {e}")
            raise


class SchemaCache:
    def __init__(
        self,
        provider: Optional[StoreConnectionProvider] = None,
        definition_source: Callable[[Engine], dict[str, type]] = define_models,
    ):
        self._provider = provider or StoreConnectionProvider()
        self._define = definition_source
        self._schemas: dict[str, SchemaHandle] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def __contains__(self, store_name: str) -> bool:
        return store_name in self._schemas

    def get_handles(self, store_name: str) -> SchemaHandle:
        if not store_name:
            raise ConfigurationError("store_name is required")

        schema = self._schemas.get(store_name)
        if schema is not None:
            logger.debug(f"🟡 [Cache] Using cached schema: {store_name}")
            return schema

        with self._guard:
            lock = self._locks.setdefault(store_name, threading.Lock())
        with lock:
            schema = self._schemas.get(store_name)
            if schema is None:
                schema = self._build(store_name)
                self._schemas[store_name] = schema
        return schema

    def _build(self, store_name: str) -> SchemaHandle:
        logger.info(f"🟢 [Cache] Initializing schema for store: {store_name}")
        try:
            engine = self._provider.connect(store_name)
        except (StoreConnectionError, SQLAlchemyError) as e:
            raise ConfigurationError(f"Cannot connect to store {store_name!r}", details=str(e)) from e
        return SchemaHandle(store_name, engine, self._define(engine))


_default_cache: Optional[SchemaCache] = None
_default_lock = threading.Lock()


def default_cache() -> SchemaCache:
    global _default_cache
    with _default_lock:
        if _default_cache is None:
            _default_cache = SchemaCache()
        return _default_cache


def get_handles(store_name: str) -> SchemaHandle:
    return default_cache().get_handles(store_name)
