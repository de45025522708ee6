from typing import Any, Dict, Optional

from stockledger.data.filters import ActivityFilter
from stockledger.data.gateway import Gateway
from stockledger.models.activity_log import ActivityLog
from stockledger.schemas.responses import ActivityEntry, PageOut
from stockledger.services.cache import CacheTag, ResultCache, default_ttl, make_cache_key

ACTIVITY_PAGE_SIZE = 10


def log_activity(
    gateway: Gateway,
    tenant_id: int,
    *,
    actor: str,
    action: str,
    entity_type: str,
    entity_id: Optional[int] = None,
    changes: Optional[Dict[str, Any]] = None,
    note: Optional[str] = None,
    ip: Optional[str] = None,
) -> ActivityLog:
    """Stage an activity row in the caller's transaction (committed with the write)."""
    entry = ActivityLog(
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        changes=changes,
        note=note,
        actor=actor or "system",
        ip=ip,
    )
    return gateway.add(tenant_id, entry)


def get_activity_feed(
    gateway: Gateway,
    cache: ResultCache,
    tenant_id: int,
    page: int = 1,
    filters: Optional[ActivityFilter] = None,
) -> PageOut[ActivityEntry]:
    filters = filters or ActivityFilter()

    def compute():
        result = gateway.paginate(
            tenant_id,
            ActivityLog,
            page=page,
            per_page=ACTIVITY_PAGE_SIZE,
            filters=filters,
            order_by=(ActivityLog.created_at.desc(), ActivityLog.id.desc()),
        )
        return PageOut[ActivityEntry](
            items=[ActivityEntry.model_validate(e) for e in result.items],
            page=result.page,
            total_pages=result.total_pages,
            total=result.total,
        )

    key = make_cache_key(
        "activity_feed",
        tenant_id,
        page,
        filters.action,
        filters.entity_type,
        filters.entity_id,
    )
    return cache.get_or_compute(
        key, [CacheTag.ACTIVITY_LOG], default_ttl(CacheTag.ACTIVITY_LOG), compute
    )
