import argparse
import json
import logging
import sys
import uuid
from typing import List, Optional

from storelink.config import Config
from storelink.db.repository_factory import get_product_repo
from storelink.db.schema_cache import default_cache
from storelink.errors import NotFound, StoreLinkError
from storelink.logger_setup import get_logger

logger = get_logger(__name__, log_file=Config.LOG_FILE, level=logging.DEBUG)

DEFAULT_PRODUCT_ID = '00000000-0000-0000-0000-000000000000'


def to_json(data) -> str:
    # UUID / Decimal / datetime 都用 str 輸出
    return json.dumps(data, ensure_ascii=False, indent=2, default=str)


def init_db() -> None:
    """在 product / seller 兩個 store 建立資料表，只需執行一次。"""
    cache = default_cache()
    for store_name in (Config.PRODUCT_DB_NAME, Config.SELLER_DB_NAME):
        cache.get_handles(store_name).create_all()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Fetch product detail across the product and seller stores")
    parser.add_argument("product_id", nargs="?", help="Product UUID to fetch")
    parser.add_argument("--init-db", action="store_true", help="Create tables in both stores first")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    主程式：python -m storelink.main <product_id>
    印出 product detail 的 JSON；--init-db 先建立資料表。
    """
    args = build_parser().parse_args(argv)
    try:
        if args.init_db:
            init_db()
            logger.info("Database initialized successfully.")
            if args.product_id is None:
                return 0

        raw_id = args.product_id or DEFAULT_PRODUCT_ID
        try:
            product_id = uuid.UUID(raw_id)
        except ValueError as e:
            logger.error(f"❌ Invalid product id {raw_id!r}: {e}")
            return 1

        result = get_product_repo().get_product_detail(product_id)
        if isinstance(result, NotFound):
            print(to_json(result.to_dict()))
        else:
            print(to_json(result))
        return 0
    except StoreLinkError as e:
        logger.error(f"❌ {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
