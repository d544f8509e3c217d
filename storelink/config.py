# config.py
import logging
import os

from dotenv import load_dotenv

from storelink.errors import ConfigurationError

# 1. 載入 .env 檔（如果有的話）
env_path = '.env'
load_dotenv(dotenv_path=env_path)


def as_bool(value, default: bool = False) -> bool:
    """把 "true"/"false"/"1"/"0" 之類的環境變數轉成 bool。"""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    value = str(value).strip().lower()
    if value in ('true', '1', 'yes'):
        return True
    if value in ('false', '0', 'no'):
        return False
    return default


class Config:
    """
    Postgres store configuration.
    使用 environment variables，若沒設定，就 fallback 到預設值。
    每個 logical store（product / seller）各自是一個 database，共用同一組連線參數。
    """
    ENVIRONMENT = os.getenv('ENVIRONMENT', 'local')

    DB_USER = os.getenv('DB_USER', 'myuser')
    DB_PASSWORD = os.getenv('DB_PASSWORD', 'your_password')
    DB_PORT = os.getenv('DB_PORT', '5432')
    DB_DRIVER = os.getenv('DB_DRIVER', 'postgresql+psycopg')
    DB_SSL = as_bool(os.getenv('DB_SSL'), ENVIRONMENT != 'local')
    DB_DEBUG_SQL = as_bool(os.getenv('DB_DEBUG_SQL'), False)
    DB_VALIDATE_ON_CONNECT = as_bool(os.getenv('DB_VALIDATE_ON_CONNECT'), False)
    APP_NAME = os.getenv('APP_NAME', 'storelink')

    # Pool 設定：保持小一點，避免 connection storm
    DB_POOL_MAX = int(os.getenv('DB_POOL_MAX', '4' if ENVIRONMENT == 'prod' else '5'))
    DB_POOL_ACQUIRE_MS = int(os.getenv('DB_POOL_ACQUIRE_MS', '30000'))
    DB_POOL_IDLE_MS = int(os.getenv('DB_POOL_IDLE_MS', '10000'))
    DB_STATEMENT_TIMEOUT_MS = int(os.getenv('DB_STATEMENT_TIMEOUT_MS', '20000'))

    # Logical store names
    PRODUCT_DB_NAME = os.getenv('PRODUCT_DB_NAME', 'product_service')
    SELLER_DB_NAME = os.getenv('SELLER_DB_NAME', 'seller_service')

    # Cross-store join
    JOIN_BATCH_SIZE = int(os.getenv('JOIN_BATCH_SIZE', '500'))
    JOIN_MAX_WORKERS = int(os.getenv('JOIN_MAX_WORKERS', '0')) or None

    LOG_FILE = os.getenv('LOG_FILE', 'logs/storelink.log')
    LOG_LEVEL = getattr(logging, os.getenv('LOG_LEVEL', 'INFO').upper(), logging.INFO)

    @classmethod
    def get_host(cls) -> str:
        """依 ENVIRONMENT 決定 DB host。"""
        if cls.ENVIRONMENT == 'prod':
            host = os.getenv('PROD_RDS_PROXY_ENDPOINT') or os.getenv('RDS_DB_HOST')
        elif cls.ENVIRONMENT == 'test':
            host = os.getenv('RDS_DB_HOST')
        elif cls.ENVIRONMENT == 'local':
            host = os.getenv('RDS_DB_HOST') or '127.0.0.1'
        else:
            raise ConfigurationError(f"Invalid ENVIRONMENT value: {cls.ENVIRONMENT}")
        if not host:
            raise ConfigurationError(
                "No database host configured", details=f"ENVIRONMENT={cls.ENVIRONMENT}"
            )
        return host

    @classmethod
    def database_uri(cls, db_name: str) -> str:
        # SQLAlchemy 的連線字串
        return (
            f"{cls.DB_DRIVER}://{cls.DB_USER}:{cls.DB_PASSWORD}"
            f"@{cls.get_host()}:{cls.DB_PORT}/{db_name}"
        )

    @classmethod
    def engine_options(cls) -> dict:
        """create_engine() 的 keyword arguments。"""
        options = {
            'echo': cls.DB_DEBUG_SQL,
            'pool_size': cls.DB_POOL_MAX,
            'pool_timeout': cls.DB_POOL_ACQUIRE_MS / 1000,
            'pool_recycle': max(cls.DB_POOL_IDLE_MS // 1000, 1),
            'pool_pre_ping': True,
        }
        if cls.DB_DRIVER.startswith('postgresql'):
            connect_args = {
                'application_name': cls.APP_NAME,
                'options': f"-c statement_timeout={cls.DB_STATEMENT_TIMEOUT_MS}",
            }
            if cls.DB_SSL:
                connect_args['sslmode'] = 'require'
            options['connect_args'] = connect_args
        return options
