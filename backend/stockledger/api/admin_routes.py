# backend/stockledger/api/admin_routes.py
#
# Platform back-office. These are the only cross-tenant reads in the app and
# go through PlatformGateway explicitly.

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from stockledger.api.deps import CurrentUser, get_cache, get_platform_gateway, require_admin
from stockledger.data.filters import TenantFilter, UserFilter
from stockledger.data.gateway import PlatformGateway
from stockledger.models.tenant import Tenant
from stockledger.models.user import User
from stockledger.schemas.responses import CacheStats, PageOut, TenantOut, UserOut
from stockledger.services.cache import ResultCache

logger = logging.getLogger(__name__)

router = APIRouter()

ADMIN_PAGE_SIZE = 10


@router.get("/users", response_model=PageOut[UserOut])
def list_users(
    page: int = Query(1, ge=1),
    search: Optional[str] = None,
    role: Optional[str] = None,
    platform: PlatformGateway = Depends(get_platform_gateway),
    _admin: CurrentUser = Depends(require_admin),
):
    result = platform.paginate(
        User,
        page=page,
        per_page=ADMIN_PAGE_SIZE,
        filters=UserFilter(search=search, role=role),
        order_by=(User.created_at.desc(), User.id.desc()),
    )
    return PageOut[UserOut](
        items=[UserOut.model_validate(u) for u in result.items],
        page=result.page,
        total_pages=result.total_pages,
        total=result.total,
    )


@router.get("/tenants", response_model=PageOut[TenantOut])
def list_tenants(
    page: int = Query(1, ge=1),
    search: Optional[str] = None,
    industry: Optional[str] = None,
    platform: PlatformGateway = Depends(get_platform_gateway),
    _admin: CurrentUser = Depends(require_admin),
):
    result = platform.paginate(
        Tenant,
        page=page,
        per_page=ADMIN_PAGE_SIZE,
        filters=TenantFilter(search=search, industry=industry),
        order_by=(Tenant.created_at.desc(), Tenant.id.desc()),
    )
    return PageOut[TenantOut](
        items=[TenantOut.model_validate(t) for t in result.items],
        page=result.page,
        total_pages=result.total_pages,
        total=result.total,
    )


@router.get("/cache", response_model=CacheStats)
def cache_stats(
    cache: ResultCache = Depends(get_cache),
    _admin: CurrentUser = Depends(require_admin),
):
    return CacheStats(**cache.stats())


@router.post("/cache/clear", response_model=CacheStats)
def clear_cache(
    cache: ResultCache = Depends(get_cache),
    admin: CurrentUser = Depends(require_admin),
):
    cache.clear()
    logger.info(f"Cache cleared by {admin.username}")
    return CacheStats(**cache.stats())
