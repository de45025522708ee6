"""
Filter builders.

Each filter holds optional fields; every field that is set contributes one
clause and the gateway ANDs them together with the tenant predicate.
"""
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, List, Optional

from sqlalchemy import and_, or_

from stockledger.models.activity_log import ActivityLog
from stockledger.models.batch import Batch, StockMovement
from stockledger.models.customer import Customer
from stockledger.models.location import Location
from stockledger.models.product import Product
from stockledger.models.purchase_order import PurchaseOrder
from stockledger.models.sale import Sale
from stockledger.models.supplier import Supplier
from stockledger.models.tenant import Tenant
from stockledger.models.user import User

PRODUCT_STATUSES = ("in_stock", "low_stock", "out_of_stock")


def day_start(d: date) -> datetime:
    return datetime.combine(d, time.min)


def day_after(d: date) -> datetime:
    # exclusive upper bound, so an inclusive end date covers the whole day
    return datetime.combine(d + timedelta(days=1), time.min)


def _ilike_any(term: str, *columns) -> Any:
    pattern = f"%{term.strip()}%"
    return or_(*[c.ilike(pattern) for c in columns])


def is_alerting():
    """quantity == 0 OR (threshold set AND quantity <= threshold)"""
    return or_(
        Product.quantity == 0,
        and_(
            Product.low_stock_threshold.isnot(None),
            Product.quantity <= Product.low_stock_threshold,
        ),
    )


class Where:
    """Raw clauses, for one-off existence checks in actions."""

    def __init__(self, *clauses):
        self._clauses = list(clauses)

    def clauses(self) -> List[Any]:
        return self._clauses


@dataclass
class ProductFilter:
    search: Optional[str] = None
    category_id: Optional[int] = None
    supplier_id: Optional[int] = None
    status: Optional[str] = None
    alerting: bool = False

    def clauses(self) -> List[Any]:
        out = []
        if self.search and self.search.strip():
            out.append(_ilike_any(self.search, Product.name, Product.sku, Product.manufacturer))
        if self.category_id is not None:
            out.append(Product.category_id == self.category_id)
        if self.supplier_id is not None:
            out.append(Product.supplier_id == self.supplier_id)
        if self.status == "out_of_stock":
            out.append(Product.quantity == 0)
        elif self.status == "low_stock":
            out.append(
                and_(
                    Product.low_stock_threshold.isnot(None),
                    Product.quantity > 0,
                    Product.quantity <= Product.low_stock_threshold,
                )
            )
        elif self.status == "in_stock":
            out.append(
                and_(
                    Product.quantity > 0,
                    or_(
                        Product.low_stock_threshold.is_(None),
                        Product.quantity > Product.low_stock_threshold,
                    ),
                )
            )
        if self.alerting:
            out.append(is_alerting())
        return out


@dataclass
class SaleFilter:
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: Optional[str] = None
    customer_id: Optional[int] = None

    def clauses(self) -> List[Any]:
        out = []
        if self.start_date is not None:
            out.append(Sale.created_at >= day_start(self.start_date))
        if self.end_date is not None:
            out.append(Sale.created_at < day_after(self.end_date))
        if self.status:
            out.append(Sale.status == self.status)
        if self.customer_id is not None:
            out.append(Sale.customer_id == self.customer_id)
        return out


@dataclass
class BatchFilter:
    product_id: Optional[int] = None
    location_id: Optional[int] = None
    include_expired: bool = True
    expiring_before: Optional[date] = None
    today: Optional[date] = None

    def clauses(self) -> List[Any]:
        out = []
        today = self.today or date.today()
        if self.product_id is not None:
            out.append(Batch.product_id == self.product_id)
        if self.location_id is not None:
            out.append(Batch.location_id == self.location_id)
        if not self.include_expired:
            out.append(or_(Batch.expiry_date.is_(None), Batch.expiry_date >= today))
        if self.expiring_before is not None:
            out.append(
                and_(
                    Batch.expiry_date.isnot(None),
                    Batch.expiry_date >= today,
                    Batch.expiry_date <= self.expiring_before,
                    Batch.quantity > 0,
                )
            )
        return out


@dataclass
class MovementFilter:
    product_id: Optional[int] = None
    location_id: Optional[int] = None
    type: Optional[str] = None
    reference: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    def clauses(self) -> List[Any]:
        out = []
        if self.product_id is not None:
            out.append(StockMovement.product_id == self.product_id)
        if self.location_id is not None:
            out.append(StockMovement.location_id == self.location_id)
        if self.type:
            out.append(StockMovement.type == self.type)
        if self.reference and self.reference.strip():
            out.append(_ilike_any(self.reference, StockMovement.reference))
        if self.start_date is not None:
            out.append(StockMovement.created_at >= day_start(self.start_date))
        if self.end_date is not None:
            out.append(StockMovement.created_at < day_after(self.end_date))
        return out


@dataclass
class PurchaseOrderFilter:
    status: Optional[str] = None
    supplier_id: Optional[int] = None
    search: Optional[str] = None

    def clauses(self) -> List[Any]:
        out = []
        if self.status:
            out.append(PurchaseOrder.status == self.status)
        if self.supplier_id is not None:
            out.append(PurchaseOrder.supplier_id == self.supplier_id)
        if self.search and self.search.strip():
            out.append(_ilike_any(self.search, PurchaseOrder.order_number))
        return out


@dataclass
class ActivityFilter:
    action: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[int] = None

    def clauses(self) -> List[Any]:
        out = []
        if self.action:
            out.append(ActivityLog.action == self.action)
        if self.entity_type:
            out.append(ActivityLog.entity_type == self.entity_type)
        if self.entity_id is not None:
            out.append(ActivityLog.entity_id == self.entity_id)
        return out


@dataclass
class SupplierFilter:
    search: Optional[str] = None

    def clauses(self) -> List[Any]:
        if self.search and self.search.strip():
            return [_ilike_any(self.search, Supplier.name, Supplier.email, Supplier.contact_person)]
        return []


@dataclass
class CustomerFilter:
    search: Optional[str] = None

    def clauses(self) -> List[Any]:
        if self.search and self.search.strip():
            return [_ilike_any(self.search, Customer.name, Customer.email, Customer.phone)]
        return []


@dataclass
class LocationFilter:
    search: Optional[str] = None

    def clauses(self) -> List[Any]:
        if self.search and self.search.strip():
            return [_ilike_any(self.search, Location.name, Location.address)]
        return []


# ---------- platform (admin) filters ----------

@dataclass
class UserFilter:
    search: Optional[str] = None
    role: Optional[str] = None

    def clauses(self) -> List[Any]:
        out = []
        if self.search and self.search.strip():
            out.append(_ilike_any(self.search, User.username, User.name))
        if self.role:
            out.append(User.role == self.role)
        return out


@dataclass
class TenantFilter:
    search: Optional[str] = None
    industry: Optional[str] = None

    def clauses(self) -> List[Any]:
        out = []
        if self.search and self.search.strip():
            out.append(_ilike_any(self.search, Tenant.name))
        if self.industry:
            out.append(Tenant.industry == self.industry)
        return out
