import uuid

from sqlalchemy import (
    Boolean, Column, DateTime, Integer, MetaData, Numeric, String, Text, Uuid, func
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase

from storelink.config import Config
from storelink.logger_setup import get_logger

logger = get_logger(__name__, log_file=Config.LOG_FILE, level=Config.LOG_LEVEL)

# 沒有跨 DB 的 foreign key；關聯只在使用時由 associations.ensure_relationship 接上


def define_product(base):
    class Product(base):
        __tablename__ = 'products'

        product_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
        parent_category_id = Column(Uuid, nullable=False, comment="父分類")
        sub_category_id = Column(Uuid, nullable=False, comment="子分類")
        seller_id = Column(Uuid, nullable=False, comment="賣家ID（seller store）")
        product_name = Column(Text, nullable=False, comment="產品名稱")
        description = Column(Text, nullable=True)
        primary_image = Column(Text, nullable=True)
        is_featured = Column(Boolean, default=False)
        is_returnable = Column(Boolean, default=False)
        approval_status = Column(String(50), default='pending')
        status = Column(String(50), default='inactive')
        gst = Column(Numeric(10, 2), nullable=True, comment="稅率")
        created_at = Column(DateTime, server_default=func.now(), nullable=False)
        updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

        def __repr__(self):
            return f"<Product(product_id={self.product_id}, product_name={self.product_name!r})>"

    return Product


def define_product_variant(base):
    class ProductVariant(base):
        __tablename__ = 'product_variants'

        variant_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
        product_id = Column(Uuid, nullable=False)
        variant_name = Column(Text)
        variant_value = Column(Text)
        original_price = Column(Numeric(10, 2), comment="原價")
        discounted_price = Column(Numeric(10, 2), comment="折扣價")
        stock_quantity = Column(Integer)
        length = Column(Numeric(10, 2))
        width = Column(Numeric(10, 2))
        height = Column(Numeric(10, 2))
        dimension_unit = Column(String(10))
        net_weight = Column(Numeric(10, 2))
        weight_unit = Column(String(10))
        created_at = Column(DateTime, server_default=func.now(), nullable=False)

    return ProductVariant


def define_product_image(base):
    class ProductImage(base):
        __tablename__ = 'product_images'

        image_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
        variant_id = Column(Uuid, nullable=False)
        image_url = Column(Text, nullable=False)
        is_primary = Column(Boolean, default=False)
        uploaded_at = Column(DateTime, server_default=func.now())

    return ProductImage


def define_product_attribute(base):
    class ProductAttribute(base):
        __tablename__ = 'product_attributes'

        id = Column(Uuid, primary_key=True, default=uuid.uuid4)
        variant_id = Column(Uuid, nullable=False)
        attribute_name = Column(Text, nullable=False)
        attribute_value = Column(Text, nullable=False)

    return ProductAttribute


def define_product_bullet(base):
    class ProductBullet(base):
        __tablename__ = 'product_bullet_points'

        bullet_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
        product_id = Column(Uuid, nullable=False)
        bullet_text = Column(Text, nullable=False)
        position = Column(Integer, default=0, comment="顯示順序")

    return ProductBullet


def define_product_category(base):
    class ProductCategory(base):
        __tablename__ = 'product_categories'

        category_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
        category_name = Column(Text, nullable=False)

    return ProductCategory


def define_seller_info(base):
    class SellerInfo(base):
        __tablename__ = 'seller_info'

        seller_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
        store_name = Column(Text)
        slug = Column(Text)
        store_logo = Column(Text)
        status = Column(String(20), default='active')

    return SellerInfo


def define_seller_warehouse(base):
    class SellerWarehouse(base):
        __tablename__ = 'seller_warehouses'

        warehouse_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
        seller_id = Column(Uuid, nullable=False)
        registered_name = Column(Text)
        address = Column(Text)
        city = Column(Text)
        state = Column(Text)
        pin_code = Column(Text)
        country = Column(Text)
        is_active = Column(Boolean, default=True)
        created_at = Column(DateTime, server_default=func.now(), nullable=False)

    return SellerWarehouse


def define_orders(base):
    class Orders(base):
        __tablename__ = 'orders'

        order_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
        user_id = Column(Uuid)
        order_date = Column(DateTime, server_default=func.now())
        order_status = Column(String(30), default='placed')

    return Orders


def define_order_seller_item(base):
    class OrderSellerItem(base):
        __tablename__ = 'order_seller_items'

        item_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
        order_id = Column(Uuid, nullable=False)
        seller_id = Column(Uuid, nullable=False)
        status = Column(String(30), default='placed')
        created_at = Column(DateTime, server_default=func.now(), nullable=False)
        updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    return OrderSellerItem


MODEL_DEFINITIONS = {
    'Product': define_product,
    'ProductVariant': define_product_variant,
    'ProductImage': define_product_image,
    'ProductAttribute': define_product_attribute,
    'ProductBullet': define_product_bullet,
    'ProductCategory': define_product_category,
    'SellerInfo': define_seller_info,
    'SellerWarehouse': define_seller_warehouse,
    'Orders': define_orders,
    'OrderSellerItem': define_order_seller_item,
}


def define_models(engine: Engine) -> dict[str, type]:
    """
    為一個 store 建立一組全新的 mapped classes。

    每次呼叫都用獨立的 DeclarativeBase（獨立 registry / metadata），
    所以在某個 store 上接的 relationship 不會影響其他 store。
    """
    class StoreBase(DeclarativeBase):
        metadata = MetaData(info={'store': engine.url.database})

    models = {name: define(StoreBase) for name, define in MODEL_DEFINITIONS.items()}
    logger.debug(f"🟢 [Schema] Defined {len(models)} models for store {engine.url.database!r}")
    return models
