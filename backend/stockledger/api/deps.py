# backend/stockledger/api/deps.py

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel
from sqlalchemy.orm import Session

from stockledger.actions.base import ActionContext
from stockledger.core.database import SessionLocal
from stockledger.core.errors import AuthenticationRequired, AuthorizationDenied
from stockledger.core.security import decode_token
from stockledger.data.gateway import Gateway, PlatformGateway
from stockledger.models.user import User as UserModel
from stockledger.services.cache import ResultCache

# Only used by Swagger UI for the "Authorize" flow.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token", auto_error=False)


class CurrentUser(BaseModel):
    id: int
    tenant_id: int
    username: str
    name: str
    role: str  # "admin" | "manager" | "viewer"


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_gateway(db: Session = Depends(get_db)) -> Gateway:
    return Gateway(db)


def get_platform_gateway(db: Session = Depends(get_db)) -> PlatformGateway:
    return PlatformGateway(db)


def get_cache(request: Request) -> ResultCache:
    return request.app.state.cache


def get_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> CurrentUser:
    # token is the raw JWT (OAuth2PasswordBearer strips "Bearer ")
    if not token:
        raise AuthenticationRequired()

    try:
        payload = decode_token(token)
    except ValueError:
        raise AuthenticationRequired()

    # sub is the user id
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise AuthenticationRequired()

    user = db.get(UserModel, user_id)
    if not user or not user.is_active:
        raise AuthenticationRequired()

    return CurrentUser(
        id=user.id,
        tenant_id=user.tenant_id,
        username=user.username,
        name=user.name,
        role=user.role,
    )


def require_manager(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if user.role not in ("manager", "admin"):
        raise AuthorizationDenied("Manager role required")
    return user


def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if user.role != "admin":
        raise AuthorizationDenied()
    return user


def get_action_context(
    request: Request,
    gateway: Gateway = Depends(get_gateway),
    cache: ResultCache = Depends(get_cache),
    user: CurrentUser = Depends(require_manager),
) -> ActionContext:
    return ActionContext(
        gateway=gateway,
        cache=cache,
        tenant_id=user.tenant_id,
        actor=user.name or user.username,
        role=user.role,
        ip=get_ip(request),
    )
