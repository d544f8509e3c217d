# engine.py
import threading
from typing import Callable, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from storelink.config import Config
from storelink.errors import StoreConnectionError
from storelink.logger_setup import get_logger

logger = get_logger(__name__, log_file=Config.LOG_FILE, level=Config.LOG_LEVEL)


class StoreConnectionProvider:
    """
    Store name -> SQLAlchemy Engine。

    同一個 store name 只會建立一次 engine（連線池共用），
    retry / timeout 交給 engine 與 driver 本身處理。
    """

    def __init__(
        self,
        url_factory: Callable[[str], str] = Config.database_uri,
        engine_options: Optional[dict] = None,
        validate: bool = Config.DB_VALIDATE_ON_CONNECT,
    ):
        self._url_factory = url_factory
        self._engine_options = Config.engine_options() if engine_options is None else engine_options
        self._validate = validate
        self._engines: dict[str, Engine] = {}
        self._lock = threading.Lock()

    def connect(self, store_name: str) -> Engine:
        with self._lock:
            engine = self._engines.get(store_name)
            if engine is None:
                engine = self._make_engine(store_name)
                self._engines[store_name] = engine
            return engine

    def _make_engine(self, store_name: str) -> Engine:
        try:
            engine = create_engine(self._url_factory(store_name), **self._engine_options)
        except (SQLAlchemyError, ImportError) as e:
            raise StoreConnectionError(
                f"Cannot create engine for store {store_name!r}", details=str(e), store_name=store_name
            ) from e

        # 不要 log 密碼
        logger.info(
            f"🔐 Engine created for {store_name!r} "
            f"(host={engine.url.host}, port={engine.url.port}, driver={engine.url.drivername})"
        )

        if self._validate:
            try:
                with engine.connect() as conn:
                    conn.execute(text("SELECT 1"))
                logger.info(f"✅ Connected to {store_name}")
            except SQLAlchemyError as e:
                engine.dispose()
                logger.error(f"❌ Auth failed for {store_name}: {e}")
                raise StoreConnectionError(
                    f"Store {store_name!r} is unreachable", details=str(e), store_name=store_name
                ) from e
        return engine

    def dispose_all(self) -> None:
        with self._lock:
            for engine in self._engines.values():
                engine.dispose()
            self._engines.clear()
