"""
Input schemas for mutation actions.

Actions receive raw dicts (JSON or form fields) and validate them here, so
failures come back as per-field messages instead of a bare 422.
"""
import re
from datetime import date
from decimal import Decimal
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
COLOR_RE = re.compile(r"^#[0-9a-fA-F]{6}$")

PurchaseOrderStatus = Literal["draft", "ordered", "partial", "received", "cancelled"]


class FormModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    @field_validator("*", mode="before")
    @classmethod
    def _strip_and_blank(cls, v, info):
        if isinstance(v, str):
            v = v.strip()
            field = cls.model_fields.get(info.field_name)
            # "" on an optional field means "not provided"
            if v == "" and field is not None and not field.is_required():
                return None
        return v


def _check_email(v: Optional[str]) -> Optional[str]:
    if v is not None and not EMAIL_RE.match(v):
        raise ValueError("Invalid email address")
    return v


def format_validation_errors(exc: ValidationError, schema=None) -> Dict[str, List[str]]:
    """Flatten pydantic errors into ``{"field": ["message", ...]}``."""
    errors: Dict[str, List[str]] = {}
    for err in exc.errors():
        loc = err.get("loc") or ()
        path = ".".join(str(p) for p in loc) or "form"

        title = None
        # titles only cover top-level fields; nested lines fall back to the key
        if schema is not None and len(loc) == 1 and loc[0] in schema.model_fields:
            title = schema.model_fields[loc[0]].title
        label = title or str(loc[-1] if loc else "value").replace("_", " ").capitalize()

        kind = err.get("type")
        ctx = err.get("ctx") or {}
        if kind == "missing" or (kind == "string_too_short" and ctx.get("min_length") == 1):
            msg = f"{label} is required"
        elif kind == "string_too_long":
            msg = f"{label} must be {ctx.get('max_length')} characters or fewer"
        elif kind in ("greater_than_equal",) and ctx.get("ge") == 0:
            msg = f"{label} must be 0 or greater"
        elif kind == "value_error":
            msg = str(err.get("msg", "")).removeprefix("Value error, ")
        else:
            msg = err.get("msg", "Invalid value")

        errors.setdefault(path, []).append(msg)
    return errors


# ---------- products ----------

class ProductForm(FormModel):
    name: str = Field(min_length=1, max_length=200, title="Product name")
    sku: Optional[str] = Field(default=None, max_length=100, title="SKU")
    manufacturer: str = Field(min_length=1, max_length=100, title="Manufacturer")
    category_id: Optional[int] = None
    supplier_id: Optional[int] = None
    price: Decimal = Field(ge=0, max_digits=12, decimal_places=2, title="Price")
    quantity: int = Field(default=0, ge=0, title="Quantity")
    low_stock_threshold: Optional[int] = Field(default=None, ge=0, title="Low stock threshold")


class StockAdjustmentForm(FormModel):
    adjustment: int = Field(title="Adjustment")
    reason: Optional[str] = Field(default=None, max_length=500, title="Reason")

    @field_validator("adjustment")
    @classmethod
    def _non_zero(cls, v):
        if v == 0:
            raise ValueError("Adjustment must not be zero")
        return v


class ThresholdForm(FormModel):
    low_stock_threshold: Optional[int] = Field(default=None, ge=0, title="Low stock threshold")


class CategoryForm(FormModel):
    name: str = Field(min_length=1, max_length=100, title="Category name")


class TagForm(FormModel):
    name: str = Field(min_length=1, max_length=50, title="Tag name")
    color: Optional[str] = Field(default=None, title="Color")

    @field_validator("color")
    @classmethod
    def _hex_color(cls, v):
        if v is not None and not COLOR_RE.match(v):
            raise ValueError("Color must be a hex value like #3b82f6")
        return v


class ProductTagsForm(FormModel):
    tag_ids: List[int] = Field(default_factory=list, title="Tags")

    @field_validator("tag_ids")
    @classmethod
    def _dedupe(cls, v):
        return list(dict.fromkeys(v))


# ---------- batches ----------

class BatchUpdateForm(FormModel):
    batch_number: str = Field(min_length=1, max_length=50, title="Batch number")
    location_id: Optional[int] = None
    cost_price: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2, title="Cost price")
    expiry_date: Optional[date] = None
    manufacturing_date: Optional[date] = None
    notes: Optional[str] = Field(default=None, max_length=2000, title="Notes")

    @field_validator("manufacturing_date")
    @classmethod
    def _made_before_expiry(cls, v, info):
        expiry = info.data.get("expiry_date")
        if v and expiry and v > expiry:
            raise ValueError("Manufacturing date must be before expiry date")
        return v


class BatchForm(BatchUpdateForm):
    product_id: int = Field(title="Product")
    quantity: int = Field(default=0, ge=0, title="Quantity")


class BatchAdjustmentForm(StockAdjustmentForm):
    pass


# ---------- parties ----------

class SupplierForm(FormModel):
    name: str = Field(min_length=1, max_length=200, title="Supplier name")
    email: Optional[str] = Field(default=None, max_length=255, title="Email")
    phone: Optional[str] = Field(default=None, max_length=50, title="Phone")
    address: Optional[str] = Field(default=None, max_length=500, title="Address")
    contact_person: Optional[str] = Field(default=None, max_length=200, title="Contact person")
    notes: Optional[str] = Field(default=None, max_length=2000, title="Notes")

    @field_validator("email")
    @classmethod
    def _valid_email(cls, v):
        return _check_email(v)


class CustomerForm(FormModel):
    name: str = Field(min_length=1, max_length=200, title="Customer name")
    email: Optional[str] = Field(default=None, max_length=255, title="Email")
    phone: Optional[str] = Field(default=None, max_length=50, title="Phone")
    address: Optional[str] = Field(default=None, max_length=500, title="Address")
    notes: Optional[str] = Field(default=None, max_length=2000, title="Notes")

    @field_validator("email")
    @classmethod
    def _valid_email(cls, v):
        return _check_email(v)


class LocationForm(FormModel):
    name: str = Field(min_length=1, max_length=100, title="Location name")
    address: Optional[str] = Field(default=None, max_length=500, title="Address")
    is_default: bool = False
    notes: Optional[str] = Field(default=None, max_length=2000, title="Notes")


# ---------- sales ----------

class SaleLineForm(FormModel):
    product_id: int = Field(title="Product")
    quantity: int = Field(ge=1, title="Quantity")
    # defaults to the product's current price
    unit_price: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2, title="Unit price")


class SaleForm(FormModel):
    customer_id: Optional[int] = None
    items: List[SaleLineForm] = Field(min_length=1, title="Items")
    tax: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2, title="Tax")
    discount: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2, title="Discount")

    @field_validator("items")
    @classmethod
    def _unique_products(cls, items):
        seen = set()
        for line in items:
            if line.product_id in seen:
                raise ValueError(f"Duplicate product {line.product_id} in sale")
            seen.add(line.product_id)
        return items


def _positive_quantity(v: int) -> int:
    if v <= 0:
        raise ValueError("Quantity must be greater than 0")
    return v


# ---------- stock transfers ----------

class TransferForm(FormModel):
    product_id: int = Field(title="Product")
    from_location_id: int = Field(title="Source location")
    to_location_id: int = Field(title="Destination location")
    quantity: int = Field(title="Quantity")
    notes: Optional[str] = Field(default=None, max_length=500, title="Notes")

    @field_validator("quantity")
    @classmethod
    def _positive(cls, v):
        return _positive_quantity(v)

    @field_validator("to_location_id")
    @classmethod
    def _different_locations(cls, v, info):
        if v == info.data.get("from_location_id"):
            raise ValueError("Source and destination locations must be different")
        return v


# ---------- purchase orders ----------

class PurchaseOrderLineForm(FormModel):
    product_id: Optional[int] = None
    # defaults to the product's name
    product_name: Optional[str] = Field(default=None, max_length=200, title="Product name")
    sku: Optional[str] = Field(default=None, max_length=100, title="SKU")
    ordered_quantity: int = Field(title="Quantity")
    unit_cost: Decimal = Field(ge=0, max_digits=12, decimal_places=2, title="Unit cost")

    @field_validator("ordered_quantity")
    @classmethod
    def _positive(cls, v):
        return _positive_quantity(v)


class PurchaseOrderForm(FormModel):
    supplier_id: int = Field(title="Supplier")
    expected_date: Optional[date] = None
    notes: Optional[str] = Field(default=None, max_length=2000, title="Notes")
    items: List[PurchaseOrderLineForm] = Field(title="Items")
    tax: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2, title="Tax")
    shipping_cost: Decimal = Field(
        default=Decimal("0"), ge=0, max_digits=12, decimal_places=2, title="Shipping cost"
    )

    @field_validator("items")
    @classmethod
    def _at_least_one(cls, items):
        if not items:
            raise ValueError("At least one item is required")
        return items


class PurchaseOrderStatusForm(FormModel):
    status: PurchaseOrderStatus = Field(title="Status")


class ReceiveLineForm(FormModel):
    item_id: int = Field(title="Item")
    received_quantity: int = Field(ge=0, title="Received quantity")
    # optional lot to receive into
    batch_number: Optional[str] = Field(default=None, max_length=50, title="Batch number")
    location_id: Optional[int] = None
    expiry_date: Optional[date] = None


class ReceiveForm(FormModel):
    items: List[ReceiveLineForm] = Field(title="Items")
    notes: Optional[str] = Field(default=None, max_length=500, title="Notes")

    @field_validator("items")
    @classmethod
    def _unique_lines(cls, items):
        if not items:
            raise ValueError("At least one item is required")
        seen = set()
        for line in items:
            if line.item_id in seen:
                raise ValueError(f"Duplicate item {line.item_id} in receipt")
            seen.add(line.item_id)
        return items
