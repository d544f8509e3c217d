"""
Pytest configuration and shared fixtures.
"""
import os

# console-only logging during tests; must be set before storelink.config is imported
os.environ.setdefault("LOG_FILE", "")

import uuid
from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace
from typing import Any, Dict, List

import pytest
from sqlalchemy.pool import StaticPool

from storelink.db.engine import StoreConnectionProvider
from storelink.db.schema_cache import SchemaCache

PRODUCT_STORE = "product_service"
SELLER_STORE = "seller_service"


def _matches(value, condition) -> bool:
    if isinstance(condition, (list, tuple, set, frozenset)):
        return value in condition
    return value == condition


class FakeEntity:
    """In-memory stand-in for an EntityHandle that records every find_many call."""

    def __init__(self, name: str, rows: List[Dict[str, Any]], primary_key=("id",), columns=None, fail=None):
        self.name = name
        self.rows = [dict(r) for r in rows]
        self.primary_key = list(primary_key)
        self._columns = set(columns or ()) | {k for r in rows for k in r} | set(primary_key)
        self.fail = fail
        self.calls: List[Dict[str, Any]] = []

    def has_column(self, name: str) -> bool:
        return name in self._columns

    def find_many(self, where=None, attributes=None, order=None, limit=None, offset=None, include=()):
        self.calls.append({
            "where": dict(where or {}),
            "attributes": list(attributes or []),
            "order": list(order or []),
            "limit": limit,
            "offset": offset,
        })
        if self.fail is not None:
            raise self.fail

        matched = [
            r for r in self.rows
            if all(_matches(r.get(k), v) for k, v in (where or {}).items())
        ]
        for field, direction in reversed(list(order or [])):
            matched.sort(key=lambda r: r.get(field), reverse=direction == "DESC")
        matched = matched[offset or 0:]
        if limit:
            matched = matched[:limit]
        if attributes:
            matched = [{k: r.get(k) for k in attributes} for r in matched]
        return [dict(r) for r in matched]


@pytest.fixture
def make_entity():
    """Factory for FakeEntity instances."""
    return FakeEntity


@pytest.fixture
def warehouse_rows() -> List[Dict[str, Any]]:
    """Warehouses of seller S1 (two active, one inactive) and S2."""
    return [
        {"warehouse_id": "W1", "seller_id": "S1", "city": "Pune", "is_active": True,
         "created_at": datetime(2024, 1, 1)},
        {"warehouse_id": "W2", "seller_id": "S1", "city": "Delhi", "is_active": True,
         "created_at": datetime(2024, 6, 1)},
        {"warehouse_id": "W3", "seller_id": "S1", "city": "Goa", "is_active": False,
         "created_at": datetime(2024, 9, 1)},
        {"warehouse_id": "W4", "seller_id": "S2", "city": "Agra", "is_active": True,
         "created_at": datetime(2024, 3, 1)},
    ]


@pytest.fixture
def sqlite_provider():
    """One private in-memory SQLite database per store name."""
    provider = StoreConnectionProvider(
        url_factory=lambda store_name: "sqlite://",
        engine_options={"poolclass": StaticPool, "connect_args": {"check_same_thread": False}},
        validate=False,
    )
    yield provider
    provider.dispose_all()


@pytest.fixture
def schema_cache(sqlite_provider) -> SchemaCache:
    return SchemaCache(provider=sqlite_provider)


@pytest.fixture
def stores(schema_cache):
    """(product schema, seller schema) with tables created."""
    product = schema_cache.get_handles(PRODUCT_STORE)
    seller = schema_cache.get_handles(SELLER_STORE)
    product.create_all()
    seller.create_all()
    return product, seller


@pytest.fixture
def seeded(stores):
    """A product with two variants in the product store and its seller in the seller store."""
    product_schema, seller_schema = stores
    ids = SimpleNamespace(
        product_id=uuid.uuid4(),
        bare_product_id=uuid.uuid4(),
        seller_id=uuid.uuid4(),
        parent_category_id=uuid.uuid4(),
        sub_category_id=uuid.uuid4(),
        variant_ids=[uuid.uuid4(), uuid.uuid4()],
        warehouse_ids=[uuid.uuid4(), uuid.uuid4(), uuid.uuid4()],
    )

    P = {name: product_schema[name].model for name in product_schema.entities}
    with product_schema.get_session() as session:
        session.add_all([
            P["ProductCategory"](category_id=ids.parent_category_id, category_name="Home"),
            P["ProductCategory"](category_id=ids.sub_category_id, category_name="Kitchen"),
            P["Product"](
                product_id=ids.product_id, parent_category_id=ids.parent_category_id,
                sub_category_id=ids.sub_category_id, seller_id=ids.seller_id,
                product_name="Steel Kettle", status="active", gst=Decimal("18.00"),
            ),
            P["Product"](
                product_id=ids.bare_product_id, parent_category_id=ids.parent_category_id,
                sub_category_id=ids.sub_category_id, seller_id=ids.seller_id,
                product_name="Loose Lid",
            ),
            P["ProductVariant"](variant_id=ids.variant_ids[0], product_id=ids.product_id,
                                variant_name="size", variant_value="1L", stock_quantity=5),
            P["ProductVariant"](variant_id=ids.variant_ids[1], product_id=ids.product_id,
                                variant_name="size", variant_value="2L", stock_quantity=3),
            P["ProductImage"](variant_id=ids.variant_ids[0], image_url="old.png",
                              uploaded_at=datetime(2024, 1, 1)),
            P["ProductImage"](variant_id=ids.variant_ids[0], image_url="new.png", is_primary=True,
                              uploaded_at=datetime(2024, 5, 1)),
            P["ProductAttribute"](variant_id=ids.variant_ids[0], attribute_name="material",
                                  attribute_value="steel"),
            P["ProductBullet"](product_id=ids.product_id, bullet_text="second", position=2),
            P["ProductBullet"](product_id=ids.product_id, bullet_text="first", position=1),
        ])
        session.commit()

    S = {name: seller_schema[name].model for name in seller_schema.entities}
    with seller_schema.get_session() as session:
        session.add_all([
            S["SellerInfo"](seller_id=ids.seller_id, store_name="Acme", slug="acme", status="active"),
            S["SellerWarehouse"](warehouse_id=ids.warehouse_ids[0], seller_id=ids.seller_id,
                                 city="Pune", is_active=True, created_at=datetime(2024, 1, 1)),
            S["SellerWarehouse"](warehouse_id=ids.warehouse_ids[1], seller_id=ids.seller_id,
                                 city="Delhi", is_active=True, created_at=datetime(2024, 6, 1)),
            S["SellerWarehouse"](warehouse_id=ids.warehouse_ids[2], seller_id=ids.seller_id,
                                 city="Goa", is_active=False, created_at=datetime(2024, 9, 1)),
        ])
        session.commit()

    return ids
