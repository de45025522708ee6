from datetime import date, datetime
from typing import Dict, Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict

T = TypeVar("T")

AlertType = Literal["out_of_stock", "low_stock", "restock_needed"]
Severity = Literal["critical", "warning", "info"]


class PageOut(BaseModel, Generic[T]):
    items: List[T]
    page: int
    total_pages: int
    total: int


# ---------- catalog ----------

class Product(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    sku: Optional[str] = None
    manufacturer: str
    quantity: int
    price: float
    low_stock_threshold: Optional[int] = None

    category_id: Optional[int] = None
    category_name: Optional[str] = None
    supplier_id: Optional[int] = None
    supplier_name: Optional[str] = None
    tag_names: List[str] = []

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Category(BaseModel):
    id: int
    name: str
    product_count: int = 0


class Tag(BaseModel):
    id: int
    name: str
    color: Optional[str] = None
    product_count: int = 0


class Supplier(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    contact_person: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


class Customer(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


class Location(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    address: Optional[str] = None
    is_default: bool
    notes: Optional[str] = None


class Batch(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    location_id: Optional[int] = None
    batch_number: str
    quantity: int
    cost_price: Optional[float] = None
    expiry_date: Optional[date] = None
    manufacturing_date: Optional[date] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


class StockMovement(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    batch_id: Optional[int] = None
    location_id: Optional[int] = None
    type: str
    quantity: int
    reference: Optional[str] = None
    reference_type: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


class SaleItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: Optional[int] = None
    product_name: str
    quantity: int
    unit_price: float
    cost_price: Optional[float] = None
    total_price: float


class Sale(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    customer_id: Optional[int] = None
    status: str
    subtotal: float
    tax: float
    discount: float
    total_amount: float
    created_at: Optional[datetime] = None
    items: List[SaleItem] = []


class MovementSummary(BaseModel):
    total_in: int = 0
    total_in_count: int = 0
    total_out: int = 0
    total_out_count: int = 0
    adjustments: int = 0
    adjustment_count: int = 0
    transfer_count: int = 0


class PurchaseOrderItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: Optional[int] = None
    product_name: str
    sku: Optional[str] = None
    ordered_quantity: int
    received_quantity: int
    unit_cost: float
    total_cost: float


class PurchaseOrder(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_number: str
    supplier_id: int
    supplier_name: Optional[str] = None
    status: str
    order_date: Optional[datetime] = None
    expected_date: Optional[date] = None
    received_date: Optional[datetime] = None
    notes: Optional[str] = None
    subtotal: float
    tax: float
    shipping_cost: float
    total_amount: float
    item_count: int = 0
    created_at: Optional[datetime] = None


class PurchaseOrderDetail(PurchaseOrder):
    items: List[PurchaseOrderItem] = []


class ActivityEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    action: str
    entity_type: str
    entity_id: Optional[int] = None
    changes: Optional[dict] = None
    note: Optional[str] = None
    actor: str
    ip: Optional[str] = None
    created_at: Optional[datetime] = None


# ---------- analytics ----------

class InventorySnapshot(BaseModel):
    total_products: int = 0
    total_value: float = 0.0
    low_stock_count: int = 0
    out_of_stock_count: int = 0
    value_by_category: Dict[str, float] = {}


class SalesAnalytics(BaseModel):
    sales_count: int = 0
    total_revenue: float = 0.0
    recent_sales: List[Sale] = []


class ProfitLoss(BaseModel):
    start_date: date
    end_date: date
    revenue: float = 0.0
    cogs: float = 0.0
    gross_profit: float = 0.0
    gross_margin: float = 0.0
    net_profit: float = 0.0
    total_discount: float = 0.0
    total_tax: float = 0.0
    transaction_count: int = 0


class DailySales(BaseModel):
    date: date
    revenue: float = 0.0
    profit: float = 0.0
    count: int = 0


# ---------- alerts ----------

class StockAlert(BaseModel):
    product_id: int
    product_name: str
    sku: Optional[str] = None
    current_stock: int
    low_stock_threshold: Optional[int] = None
    alert_type: AlertType
    severity: Severity
    message: str
    created_at: Optional[datetime] = None


class AlertSummary(BaseModel):
    total_alerts: int = 0
    critical_alerts: int = 0
    warning_alerts: int = 0
    out_of_stock: int = 0
    low_stock: int = 0


class ReorderRecommendation(BaseModel):
    product_id: int
    product_name: str
    current_stock: int
    low_stock_threshold: Optional[int] = None
    target_stock: int
    recommended_order_quantity: int
    estimated_days_remaining: int


# ---------- back-office ----------

class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    username: str
    name: str
    role: str


class TenantOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    industry: Optional[str] = None
    created_at: Optional[datetime] = None


class CacheStats(BaseModel):
    total_entries: int
    active_entries: int
    hits: int
    misses: int
