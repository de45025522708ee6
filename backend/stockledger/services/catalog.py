"""
Cached list and detail reads for the catalog entities.

Each list is cached per tenant and per argument set under the tags of every
entity it shows, so the mutation tag map is enough to keep it fresh.
"""
from typing import Callable, List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.orm import selectinload

from stockledger.core.errors import NotFound
from stockledger.data.filters import (
    BatchFilter,
    CustomerFilter,
    LocationFilter,
    MovementFilter,
    ProductFilter,
    PurchaseOrderFilter,
    SaleFilter,
    SupplierFilter,
)
from stockledger.data.gateway import Gateway, Page
from stockledger.models.batch import Batch, StockMovement
from stockledger.models.customer import Customer
from stockledger.models.location import Location
from stockledger.models.product import Category, Product
from stockledger.models.purchase_order import PurchaseOrder
from stockledger.models.sale import Sale
from stockledger.models.supplier import Supplier
from stockledger.models.tag import Tag
from stockledger.schemas import responses as out
from stockledger.services.cache import CacheTag, ResultCache, TagLike, default_ttl, make_cache_key

PRODUCT_PAGE_SIZE = 20
SALE_PAGE_SIZE = 20
PAGE_SIZE = 10


def product_out(p: Product) -> out.Product:
    dto = out.Product.model_validate(p)
    dto.category_name = p.category.name if p.category is not None else None
    dto.supplier_name = p.supplier.name if p.supplier is not None else None
    dto.tag_names = [t.name for t in p.tags]
    return dto


def _page_out(page: Page, item_type, convert: Optional[Callable] = None) -> out.PageOut:
    convert = convert or item_type.model_validate
    return out.PageOut[item_type](
        items=[convert(item) for item in page.items],
        page=page.page,
        total_pages=page.total_pages,
        total=page.total,
    )


def _cached(
    cache: ResultCache,
    key: str,
    tags: Sequence[TagLike],
    compute: Callable,
):
    return cache.get_or_compute(key, tags, default_ttl(tags[0]), compute)


# ---------- products ----------

PRODUCT_LOADS = (
    selectinload(Product.category),
    selectinload(Product.supplier),
    selectinload(Product.tags),
)


def list_products(
    gateway: Gateway,
    cache: ResultCache,
    tenant_id: int,
    page: int = 1,
    filters: Optional[ProductFilter] = None,
) -> out.PageOut:
    filters = filters or ProductFilter()

    def compute():
        result = gateway.paginate(
            tenant_id,
            Product,
            page=page,
            per_page=PRODUCT_PAGE_SIZE,
            filters=filters,
            order_by=(Product.name.asc(), Product.id.asc()),
            options=PRODUCT_LOADS,
        )
        return _page_out(result, out.Product, product_out)

    key = make_cache_key(
        "products",
        tenant_id,
        page,
        filters.search,
        filters.category_id,
        filters.supplier_id,
        filters.status,
    )
    tags = [CacheTag.PRODUCTS, CacheTag.CATEGORIES, CacheTag.SUPPLIERS, CacheTag.TAGS]
    return _cached(cache, key, tags, compute)


def get_product(gateway: Gateway, tenant_id: int, product_id: int) -> out.Product:
    p = gateway.find_one(tenant_id, Product, product_id, options=PRODUCT_LOADS)
    if p is None:
        raise NotFound("Product")
    return product_out(p)


# ---------- categories ----------

def list_categories(gateway: Gateway, cache: ResultCache, tenant_id: int) -> List[out.Category]:
    def compute():
        counts = {
            row.key: int(row.value or 0)
            for row in gateway.group_by(tenant_id, Product, Product.category_id, func.count(Product.id))
        }
        categories = gateway.find_many(tenant_id, Category, order_by=(Category.name.asc(),))
        return [
            out.Category(id=c.id, name=c.name, product_count=counts.get(c.id, 0))
            for c in categories
        ]

    return _cached(
        cache,
        make_cache_key("categories", tenant_id),
        [CacheTag.CATEGORIES, CacheTag.PRODUCTS],
        compute,
    )


# ---------- tags ----------

def list_tags(gateway: Gateway, cache: ResultCache, tenant_id: int) -> List[out.Tag]:
    def compute():
        tags = gateway.find_many(
            tenant_id,
            Tag,
            order_by=(Tag.name.asc(),),
            options=(selectinload(Tag.products),),
        )
        return [
            out.Tag(
                id=t.id,
                name=t.name,
                color=t.color,
                product_count=sum(1 for p in t.products if p.is_active),
            )
            for t in tags
        ]

    return _cached(
        cache,
        make_cache_key("tags", tenant_id),
        [CacheTag.TAGS, CacheTag.PRODUCTS],
        compute,
    )


# ---------- suppliers / customers / locations ----------

def list_suppliers(
    gateway: Gateway,
    cache: ResultCache,
    tenant_id: int,
    page: int = 1,
    search: Optional[str] = None,
) -> out.PageOut:
    def compute():
        result = gateway.paginate(
            tenant_id,
            Supplier,
            page=page,
            per_page=PAGE_SIZE,
            filters=SupplierFilter(search=search),
            order_by=(Supplier.name.asc(),),
        )
        return _page_out(result, out.Supplier)

    return _cached(
        cache,
        make_cache_key("suppliers", tenant_id, page, search),
        [CacheTag.SUPPLIERS],
        compute,
    )


def list_customers(
    gateway: Gateway,
    cache: ResultCache,
    tenant_id: int,
    page: int = 1,
    search: Optional[str] = None,
) -> out.PageOut:
    def compute():
        result = gateway.paginate(
            tenant_id,
            Customer,
            page=page,
            per_page=PAGE_SIZE,
            filters=CustomerFilter(search=search),
            order_by=(Customer.name.asc(),),
        )
        return _page_out(result, out.Customer)

    return _cached(
        cache,
        make_cache_key("customers", tenant_id, page, search),
        [CacheTag.CUSTOMERS],
        compute,
    )


def list_locations(
    gateway: Gateway,
    cache: ResultCache,
    tenant_id: int,
    page: int = 1,
    search: Optional[str] = None,
) -> out.PageOut:
    def compute():
        result = gateway.paginate(
            tenant_id,
            Location,
            page=page,
            per_page=PAGE_SIZE,
            filters=LocationFilter(search=search),
            # default location first
            order_by=(Location.is_default.desc(), Location.name.asc()),
        )
        return _page_out(result, out.Location)

    return _cached(
        cache,
        make_cache_key("locations", tenant_id, page, search),
        [CacheTag.LOCATIONS],
        compute,
    )


# ---------- batches / movements ----------

def list_batches(
    gateway: Gateway,
    cache: ResultCache,
    tenant_id: int,
    page: int = 1,
    filters: Optional[BatchFilter] = None,
) -> out.PageOut:
    filters = filters or BatchFilter()

    def compute():
        result = gateway.paginate(
            tenant_id,
            Batch,
            page=page,
            per_page=PAGE_SIZE,
            filters=filters,
            # soonest expiry first, undated batches last
            order_by=(Batch.expiry_date.is_(None), Batch.expiry_date.asc(), Batch.id.asc()),
        )
        return _page_out(result, out.Batch)

    key = make_cache_key(
        "batches",
        tenant_id,
        page,
        filters.product_id,
        filters.location_id,
        filters.include_expired,
        filters.expiring_before,
        filters.today,
    )
    return _cached(cache, key, [CacheTag.BATCHES, CacheTag.PRODUCTS, CacheTag.LOCATIONS], compute)


def list_movements(
    gateway: Gateway,
    cache: ResultCache,
    tenant_id: int,
    page: int = 1,
    filters: Optional[MovementFilter] = None,
) -> out.PageOut:
    filters = filters or MovementFilter()

    def compute():
        result = gateway.paginate(
            tenant_id,
            StockMovement,
            page=page,
            per_page=PAGE_SIZE,
            filters=filters,
            order_by=(StockMovement.created_at.desc(), StockMovement.id.desc()),
        )
        return _page_out(result, out.StockMovement)

    key = make_cache_key(
        "stock_movements",
        tenant_id,
        page,
        filters.product_id,
        filters.location_id,
        filters.type,
        filters.reference,
        filters.start_date,
        filters.end_date,
    )
    # every write that moves stock also invalidates products
    return _cached(cache, key, [CacheTag.PRODUCTS, CacheTag.BATCHES], compute)


# ---------- sales ----------

def list_sales(
    gateway: Gateway,
    cache: ResultCache,
    tenant_id: int,
    page: int = 1,
    filters: Optional[SaleFilter] = None,
) -> out.PageOut:
    filters = filters or SaleFilter()

    def compute():
        result = gateway.paginate(
            tenant_id,
            Sale,
            page=page,
            per_page=SALE_PAGE_SIZE,
            filters=filters,
            order_by=(Sale.created_at.desc(), Sale.id.desc()),
            options=(selectinload(Sale.items),),
        )
        return _page_out(result, out.Sale)

    key = make_cache_key(
        "sales",
        tenant_id,
        page,
        filters.start_date,
        filters.end_date,
        filters.status,
        filters.customer_id,
    )
    return _cached(cache, key, [CacheTag.SALES, CacheTag.CUSTOMERS], compute)


def get_movement_summary(
    gateway: Gateway,
    cache: ResultCache,
    tenant_id: int,
    filters: Optional[MovementFilter] = None,
) -> out.MovementSummary:
    """Units in, out and adjusted, with counts; purchase receipts count as stock in."""
    filters = filters or MovementFilter()

    def compute():
        sums = {
            row.key: int(row.value or 0)
            for row in gateway.group_by(
                tenant_id, StockMovement, StockMovement.type, func.sum(StockMovement.quantity), filters
            )
        }
        counts = {
            row.key: int(row.value or 0)
            for row in gateway.group_by(
                tenant_id, StockMovement, StockMovement.type, func.count(StockMovement.id), filters
            )
        }
        return out.MovementSummary(
            total_in=sums.get("in", 0) + sums.get("receive", 0),
            total_in_count=counts.get("in", 0) + counts.get("receive", 0),
            total_out=abs(sums.get("out", 0)),
            total_out_count=counts.get("out", 0),
            adjustments=sums.get("adjustment", 0),
            adjustment_count=counts.get("adjustment", 0),
            transfer_count=counts.get("transfer", 0),
        )

    key = make_cache_key(
        "stock_movement_summary",
        tenant_id,
        filters.product_id,
        filters.location_id,
        filters.start_date,
        filters.end_date,
    )
    return _cached(cache, key, [CacheTag.PRODUCTS, CacheTag.BATCHES], compute)


# ---------- purchase orders ----------

def _purchase_order_out(po: PurchaseOrder, detail: bool = False) -> out.PurchaseOrder:
    dto_type = out.PurchaseOrderDetail if detail else out.PurchaseOrder
    dto = dto_type.model_validate(po)
    dto.supplier_name = po.supplier.name if po.supplier is not None else None
    dto.item_count = len(po.items)
    return dto


PURCHASE_ORDER_LOADS = (selectinload(PurchaseOrder.supplier), selectinload(PurchaseOrder.items))


def list_purchase_orders(
    gateway: Gateway,
    cache: ResultCache,
    tenant_id: int,
    page: int = 1,
    filters: Optional[PurchaseOrderFilter] = None,
) -> out.PageOut:
    filters = filters or PurchaseOrderFilter()

    def compute():
        result = gateway.paginate(
            tenant_id,
            PurchaseOrder,
            page=page,
            per_page=PAGE_SIZE,
            filters=filters,
            order_by=(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc()),
            options=PURCHASE_ORDER_LOADS,
        )
        return _page_out(result, out.PurchaseOrder, _purchase_order_out)

    key = make_cache_key(
        "purchase_orders",
        tenant_id,
        page,
        filters.status,
        filters.supplier_id,
        filters.search,
    )
    return _cached(cache, key, [CacheTag.PURCHASE_ORDERS, CacheTag.SUPPLIERS], compute)


def get_purchase_order(gateway: Gateway, tenant_id: int, po_id: int) -> out.PurchaseOrderDetail:
    po = gateway.find_one(tenant_id, PurchaseOrder, po_id, options=PURCHASE_ORDER_LOADS)
    if po is None:
        raise NotFound("Purchase order")
    return _purchase_order_out(po, detail=True)
