from typing import Optional, Union

from storelink.config import Config
from storelink.db.associations import RelationKind, RelationshipDescriptor, build_include
from storelink.db.cross_join import Cardinality, JoinSpec, cross_join_models
from storelink.db.schema_cache import SchemaCache, SchemaHandle
from storelink.errors import NotFound
from storelink.logger_setup import get_logger

logger = get_logger(__name__, log_file=Config.LOG_FILE, level=Config.LOG_LEVEL)

PRODUCT_ATTRS = [
    'product_id', 'seller_id', 'product_name', 'description',
    'parent_category_id', 'sub_category_id', 'is_featured', 'is_returnable',
    'status', 'approval_status', 'primary_image', 'gst',
]
VARIANT_ATTRS = [
    'variant_id', 'variant_name', 'variant_value', 'original_price',
    'discounted_price', 'stock_quantity', 'length', 'width', 'height',
    'dimension_unit', 'net_weight', 'weight_unit',
]
IMAGE_ATTRS = ['image_id', 'image_url', 'is_primary', 'uploaded_at']
ATTRIBUTE_ATTRS = ['id', 'attribute_name', 'attribute_value']
CATEGORY_ATTRS = ['category_id', 'category_name']
BULLET_ATTRS = ['bullet_id', 'bullet_text', 'position']
SELLER_ATTRS = ['seller_id', 'store_name', 'slug', 'store_logo', 'status']
WAREHOUSE_ATTRS = [
    'warehouse_id', 'seller_id', 'registered_name', 'address', 'city',
    'state', 'pin_code', 'country', 'is_active', 'created_at',
]


def pick_default(rows: Optional[list]) -> Optional[dict]:
    """預設選第一筆；順序由 join 的 order_by 決定（warehouse: created_at DESC）。"""
    return rows[0] if rows else None


class ProductDetailRepository:
    """
    組合 product detail：product store 內的關聯一次 eager load，
    seller store 的資料用 cross_join_models 批次補上。
    """

    def __init__(
        self,
        schema_cache: SchemaCache,
        product_store: str = Config.PRODUCT_DB_NAME,
        seller_store: str = Config.SELLER_DB_NAME,
        batch_size: int = Config.JOIN_BATCH_SIZE,
        max_workers: Optional[int] = Config.JOIN_MAX_WORKERS,
    ):
        self._schema_cache = schema_cache
        self._product_store = product_store
        self._seller_store = seller_store
        self._batch_size = batch_size
        self._max_workers = max_workers

    def _product_includes(self, schema: SchemaHandle) -> list:
        product = schema['Product']
        variant = schema['ProductVariant']
        category = schema['ProductCategory']

        include_variant_images = build_include(
            schema,
            RelationshipDescriptor(
                from_entity=variant, to_entity=schema['ProductImage'], alias='ProductImages_Variant',
                kind=RelationKind.MANY, foreign_key='variant_id', local_key='variant_id',
            ),
            separate=True,
            attributes=IMAGE_ATTRS,
            order=[('uploaded_at', 'DESC')],
        )
        include_variant_attributes = build_include(
            schema,
            RelationshipDescriptor(
                from_entity=variant, to_entity=schema['ProductAttribute'], alias='ProductAttributes_Variant',
                kind=RelationKind.MANY, foreign_key='variant_id', local_key='variant_id',
            ),
            separate=True,
            attributes=ATTRIBUTE_ATTRS,
        )
        include_variants = build_include(
            schema,
            RelationshipDescriptor(
                from_entity=product, to_entity=variant, alias='ProductVariants',
                kind=RelationKind.MANY, foreign_key='product_id', local_key='product_id',
            ),
            attributes=VARIANT_ATTRS,
            include=[include_variant_images, include_variant_attributes],
        )
        include_parent_category = build_include(
            schema,
            RelationshipDescriptor(
                from_entity=product, to_entity=category, alias='ParentCategory',
                kind=RelationKind.ONE, foreign_key='parent_category_id', local_key='category_id',
            ),
            attributes=CATEGORY_ATTRS,
        )
        include_sub_category = build_include(
            schema,
            RelationshipDescriptor(
                from_entity=product, to_entity=category, alias='SubCategory',
                kind=RelationKind.ONE, foreign_key='sub_category_id', local_key='category_id',
            ),
            attributes=CATEGORY_ATTRS,
        )
        include_bullet_points = build_include(
            schema,
            RelationshipDescriptor(
                from_entity=product, to_entity=schema['ProductBullet'], alias='ProductBulletPoints',
                kind=RelationKind.MANY, foreign_key='product_id', local_key='product_id',
            ),
            attributes=BULLET_ATTRS,
            order=[('position', 'ASC')],
        )
        return [include_variants, include_parent_category, include_sub_category, include_bullet_points]

    def _seller_joins(self, schema: SchemaHandle) -> list[JoinSpec]:
        return [
            JoinSpec(
                target=schema['SellerInfo'],
                local_field='seller_id',
                remote_field='seller_id',
                alias='seller',
                attributes=SELLER_ATTRS,
                where=[{'status': 'active'}],
            ),
            JoinSpec(
                target=schema['SellerWarehouse'],
                local_field='seller_id',
                remote_field='seller_id',
                alias='warehouses',
                attributes=WAREHOUSE_ATTRS,
                cardinality=Cardinality.MANY,
                where=[{'is_active': True}],
                order_by=[('created_at', 'DESC')],
            ),
        ]

    def get_product_detail(self, product_id) -> Union[dict, NotFound]:
        """
        取得單一 product 的完整資料（variants / images / attributes / categories /
        bullet points + seller + warehouses）。找不到時回傳 NotFound，不丟 exception。
        """
        product_schema = self._schema_cache.get_handles(self._product_store)
        seller_schema = self._schema_cache.get_handles(self._seller_store)

        product = product_schema['Product'].find_one(
            where={'product_id': product_id},
            attributes=PRODUCT_ATTRS,
            include=self._product_includes(product_schema),
        )
        if product is None:
            logger.info(f"Product {product_id} not found in {self._product_store}")
            return NotFound(entity='Product', identifier=product_id, message='PRODUCT_NOT_FOUND')

        [enriched] = cross_join_models(
            [product],
            self._seller_joins(seller_schema),
            batch_size=self._batch_size,
            max_workers=self._max_workers,
        )
        enriched['default_warehouse'] = pick_default(enriched.get('warehouses'))
        logger.debug(
            f"📦 Product {product_id}: {len(enriched.get('ProductVariants') or [])} variants, "
            f"{len(enriched['warehouses'])} warehouses"
        )
        return enriched
