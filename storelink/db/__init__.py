# __init__.py
"""
初始化 schema cache、relationship wiring 與 cross-store join 的出口。
你可以直接 from storelink.db import get_handles, cross_join_models 使用。
"""

from .associations import (
    IncludeSpec, RelationKind, RelationshipDescriptor, build_include, ensure_relationship
)
from .cross_join import BATCH_SIZE, Cardinality, JoinSpec, cross_join_models
from .engine import StoreConnectionProvider
from .product_repo import ProductDetailRepository, pick_default
from .query import OrderBy
from .repository_factory import get_product_repo
from .schema_cache import EntityHandle, SchemaCache, SchemaHandle, get_handles

__all__ = [
    "BATCH_SIZE",
    "Cardinality",
    "EntityHandle",
    "IncludeSpec",
    "JoinSpec",
    "OrderBy",
    "ProductDetailRepository",
    "RelationKind",
    "RelationshipDescriptor",
    "SchemaCache",
    "SchemaHandle",
    "StoreConnectionProvider",
    "build_include",
    "cross_join_models",
    "ensure_relationship",
    "get_handles",
    "get_product_repo",
    "pick_default",
]
