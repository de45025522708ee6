"""
Persistence gateway.

Thin wrapper over a SQLAlchemy session. Every read takes the tenant id as its
first argument and adds ``model.tenant_id == tenant_id`` itself, so a caller
cannot forget the tenant predicate. Store failures come out as
``DataAccessError`` with the session already rolled back.
"""
import logging
import math
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Generic, Iterable, List, Optional, Sequence, TypeVar

from sqlalchemy import and_, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from stockledger.core.errors import DataAccessError, TenantScopeError
from stockledger.models.product import Product

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    items: List[T] = field(default_factory=list)
    page: int = 1
    total_pages: int = 1
    total: int = 0


def page_count(total: int, per_page: int) -> int:
    return max(1, math.ceil(total / per_page)) if per_page > 0 else 1


def _constraint_detail(exc: SQLAlchemyError) -> Optional[str]:
    if not isinstance(exc, IntegrityError):
        return None
    orig = getattr(exc, "orig", None)
    # psycopg exposes the constraint name, sqlite only has the message
    diag = getattr(orig, "diag", None)
    name = getattr(diag, "constraint_name", None)
    return name or (str(orig) if orig is not None else None)


class Gateway:
    def __init__(self, db: Session):
        self.db = db

    # ---------- plumbing ----------

    @contextmanager
    def _guard(self, what: str):
        try:
            yield
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Data access failed: %s", what)
            raise DataAccessError(f"{what} failed", constraint=_constraint_detail(e)) from e

    @staticmethod
    def _require_tenant(tenant_id: Optional[int], model) -> None:
        if tenant_id is None:
            raise TenantScopeError(f"{model.__name__} query issued without a tenant id")

    def _where(self, tenant_id: int, model, filters=None, include_inactive: bool = False) -> List[Any]:
        self._require_tenant(tenant_id, model)
        clauses = [model.tenant_id == tenant_id]
        if not include_inactive and hasattr(model, "is_active"):
            clauses.append(model.is_active.is_(True))
        if filters is not None:
            clauses.extend(filters.clauses())
        return clauses

    # ---------- reads ----------

    def find_many(
        self,
        tenant_id: int,
        model,
        filters=None,
        order_by: Sequence[Any] = (),
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        options: Iterable[Any] = (),
        include_inactive: bool = False,
    ) -> list:
        stmt = select(model).where(*self._where(tenant_id, model, filters, include_inactive))
        if options:
            stmt = stmt.options(*options)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        if offset:
            stmt = stmt.offset(offset)

        with self._guard(f"find {model.__tablename__}"):
            return list(self.db.execute(stmt).scalars().unique().all())

    def find_one(
        self,
        tenant_id: int,
        model,
        entity_id: Optional[int],
        options: Iterable[Any] = (),
        include_inactive: bool = False,
    ):
        if entity_id is None:
            return None
        stmt = select(model).where(
            model.id == entity_id,
            *self._where(tenant_id, model, include_inactive=include_inactive),
        )
        if options:
            stmt = stmt.options(*options)

        with self._guard(f"get {model.__tablename__}"):
            return self.db.execute(stmt).scalars().first()

    def count(self, tenant_id: int, model, filters=None) -> int:
        stmt = select(func.count()).select_from(model).where(*self._where(tenant_id, model, filters))
        with self._guard(f"count {model.__tablename__}"):
            return int(self.db.execute(stmt).scalar_one() or 0)

    def aggregate(self, tenant_id: int, model, expression, filters=None):
        """Single scalar, e.g. ``func.sum(Sale.total_amount)``. May be None."""
        stmt = select(expression).select_from(model).where(*self._where(tenant_id, model, filters))
        with self._guard(f"aggregate {model.__tablename__}"):
            return self.db.execute(stmt).scalar_one()

    def aggregate_row(self, tenant_id: int, model, *expressions, filters=None):
        """Several aggregates computed in one round trip; returns one Row."""
        stmt = select(*expressions).select_from(model).where(*self._where(tenant_id, model, filters))
        with self._guard(f"aggregate {model.__tablename__}"):
            return self.db.execute(stmt).one()

    def group_by(self, tenant_id: int, model, key, expression, filters=None) -> list:
        stmt = (
            select(key.label("key"), expression.label("value"))
            .select_from(model)
            .where(*self._where(tenant_id, model, filters))
            .group_by(key)
        )
        with self._guard(f"group {model.__tablename__}"):
            return list(self.db.execute(stmt).all())

    def count_at_or_below_threshold(
        self,
        tenant_id: int,
        ratio: float = 1.0,
        in_stock_only: bool = False,
    ) -> int:
        """Products with a threshold set and ``quantity <= threshold * ratio``."""
        limit = Product.low_stock_threshold if ratio == 1.0 else Product.low_stock_threshold * ratio
        clauses = self._where(tenant_id, Product) + [
            Product.low_stock_threshold.isnot(None),
            Product.quantity <= limit,
        ]
        if in_stock_only:
            clauses.append(Product.quantity > 0)

        stmt = select(func.count()).select_from(Product).where(and_(*clauses))
        with self._guard("count products at threshold"):
            return int(self.db.execute(stmt).scalar_one() or 0)

    def paginate(
        self,
        tenant_id: int,
        model,
        page: int = 1,
        per_page: int = 10,
        filters=None,
        order_by: Sequence[Any] = (),
        options: Iterable[Any] = (),
    ) -> Page:
        page = max(1, int(page or 1))
        total = self.count(tenant_id, model, filters)
        items = self.find_many(
            tenant_id,
            model,
            filters=filters,
            order_by=order_by,
            limit=per_page,
            offset=(page - 1) * per_page,
            options=options,
        )
        return Page(items=items, page=page, total_pages=page_count(total, per_page), total=total)

    # ---------- writes ----------

    def add(self, tenant_id: int, obj):
        self._require_tenant(tenant_id, type(obj))
        obj.tenant_id = tenant_id
        self.db.add(obj)
        return obj

    def delete(self, obj) -> None:
        self.db.delete(obj)

    def increment(self, tenant_id: int, model, entity_id: int, column: str, delta: int) -> None:
        """Server-side ``column = column + delta`` so concurrent writers don't lose updates."""
        col = getattr(model, column)
        stmt = (
            update(model)
            .where(model.id == entity_id, *self._where(tenant_id, model))
            .values({col: col + delta})
            .execution_options(synchronize_session="fetch")
        )
        with self._guard(f"update {model.__tablename__}.{column}"):
            self.db.execute(stmt)

    def flush(self) -> None:
        with self._guard("flush"):
            self.db.flush()

    def commit(self) -> None:
        with self._guard("commit"):
            self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    def refresh(self, obj) -> None:
        with self._guard("refresh"):
            self.db.refresh(obj)


class PlatformGateway:
    """Cross-tenant reads for the admin back-office. Admin routes only."""

    def __init__(self, db: Session):
        self.db = db

    def paginate(self, model, page: int = 1, per_page: int = 10, filters=None, order_by: Sequence[Any] = ()) -> Page:
        page = max(1, int(page or 1))
        clauses = filters.clauses() if filters is not None else []

        try:
            total = int(
                self.db.execute(select(func.count()).select_from(model).where(*clauses)).scalar_one() or 0
            )
            stmt = select(model).where(*clauses)
            if order_by:
                stmt = stmt.order_by(*order_by)
            stmt = stmt.limit(per_page).offset((page - 1) * per_page)
            items = list(self.db.execute(stmt).scalars().all())
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Data access failed: admin list %s", model.__tablename__)
            raise DataAccessError(f"list {model.__tablename__} failed") from e

        return Page(items=items, page=page, total_pages=page_count(total, per_page), total=total)
