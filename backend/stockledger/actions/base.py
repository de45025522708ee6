"""
Shared plumbing for mutation actions.

An action is a plain function ``action(ctx, ...) -> ActionResult`` wrapped in
``@mutation(...tags)``. The wrapper turns domain errors into a failure result
and invalidates the given cache tags only after the wrapped function returned
successfully, i.e. after its commit.
"""
import logging
from dataclasses import dataclass
from functools import wraps
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar

from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, ValidationError
from sqlalchemy import func

from stockledger.core.errors import (
    AuthenticationRequired,
    AuthorizationDenied,
    DataAccessError,
    NotFound,
    ValidationFailure,
)
from stockledger.data.filters import Where
from stockledger.data.gateway import Gateway
from stockledger.schemas.forms import format_validation_errors
from stockledger.services.activity import log_activity
from stockledger.services.cache import CacheTag, ResultCache

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=BaseModel)


class ActionResult(BaseModel):
    success: bool
    message: str = ""
    errors: Dict[str, List[str]] = {}
    data: Optional[Dict[str, Any]] = None


def success_result(message: str, data: Optional[Dict[str, Any]] = None) -> ActionResult:
    return ActionResult(success=True, message=message, data=data)


def failure_result(message: str, errors: Optional[Dict[str, List[str]]] = None) -> ActionResult:
    return ActionResult(success=False, message=message, errors=errors or {})


@dataclass
class ActionContext:
    """Everything an action needs about the caller and the store."""

    gateway: Gateway
    cache: ResultCache
    tenant_id: int
    actor: str
    role: str = "manager"
    ip: Optional[str] = None

    def require_writer(self) -> None:
        if self.role not in ("manager", "admin"):
            raise AuthorizationDenied("Manager role required")

    def log(self, action: str, entity_type: str, entity_id=None, changes=None, note=None) -> None:
        log_activity(
            self.gateway,
            self.tenant_id,
            actor=self.actor,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            changes=changes,
            note=note,
            ip=self.ip,
        )


def validate(schema: Type[F], data: Optional[Dict[str, Any]]) -> F:
    try:
        return schema.model_validate(data or {})
    except ValidationError as e:
        raise ValidationFailure(format_validation_errors(e, schema)) from e


def field_error(field: str, message: str) -> ValidationFailure:
    return ValidationFailure({field: [message]}, message=message)


# ---------- ownership / uniqueness checks ----------

def get_owned(ctx: ActionContext, model, entity_id: Optional[int], label: str, include_inactive: bool = False):
    """The tenant's row or NotFound; another tenant's id looks exactly like a missing one."""
    obj = ctx.gateway.find_one(ctx.tenant_id, model, entity_id, include_inactive=include_inactive)
    if obj is None:
        raise NotFound(label)
    return obj


def check_reference(ctx: ActionContext, model, entity_id: Optional[int], field: str, label: str):
    """Like get_owned, for ids referenced from a form; reported against the form field."""
    if entity_id is None:
        return None
    obj = ctx.gateway.find_one(ctx.tenant_id, model, entity_id)
    if obj is None:
        raise field_error(field, f"{label} not found")
    return obj


def name_taken(ctx: ActionContext, model, name: str, exclude_id: Optional[int] = None) -> bool:
    clauses = [func.lower(model.name) == name.lower()]
    if exclude_id is not None:
        clauses.append(model.id != exclude_id)
    return bool(ctx.gateway.find_many(ctx.tenant_id, model, Where(*clauses), limit=1))


def commit(ctx: ActionContext, unique: Optional[Dict[str, Tuple[str, str]]] = None) -> None:
    """
    Commit the action's unit of work.

    ``unique`` maps a constraint marker (a column name appearing in the
    violated constraint) to ``(field, message)`` so a unique race that slipped
    past the pre-checks still comes back as a field error.
    """
    try:
        ctx.gateway.commit()
    except DataAccessError as e:
        for marker, (field, message) in (unique or {}).items():
            if e.constraint and marker in e.constraint:
                raise field_error(field, message) from e
        raise


def changes_between(obj, values: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """``{field: {"from": old, "to": new}}`` for every value that differs."""
    diff = {}
    for key, new in values.items():
        old = getattr(obj, key, None)
        if old != new:
            diff[key] = {"from": old, "to": new}
    return jsonable_encoder(diff)


def mutation(*tags: CacheTag, failure: str = "Failed to save changes."):
    def decorator(func):
        @wraps(func)
        def wrapper(ctx: ActionContext, *args, **kwargs) -> ActionResult:
            try:
                ctx.require_writer()
                result = func(ctx, *args, **kwargs)
            except ValidationFailure as e:
                ctx.gateway.rollback()
                return failure_result(e.message, e.errors)
            except NotFound as e:
                ctx.gateway.rollback()
                return failure_result(e.message, {"id": [e.message]})
            except (AuthenticationRequired, AuthorizationDenied) as e:
                ctx.gateway.rollback()
                return failure_result(e.message)
            except DataAccessError:
                # already logged and rolled back by the gateway
                return failure_result(failure, {"server": [failure]})

            if not result.success:
                ctx.gateway.rollback()
                return result

            ctx.cache.invalidate_many(tags)
            logger.info(f"{func.__name__} ok (tenant={ctx.tenant_id}, actor={ctx.actor})")
            return result

        wrapper.cache_tags = tags
        return wrapper

    return decorator
