# repository_factory.py

from storelink.db.product_repo import ProductDetailRepository
from storelink.db.schema_cache import default_cache


def get_product_repo() -> ProductDetailRepository:
    return ProductDetailRepository(schema_cache=default_cache())
