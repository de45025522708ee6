# backend/stockledger/api/auth_routes.py

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel
from sqlalchemy.orm import Session

from stockledger.api.deps import CurrentUser, get_current_user, get_db
from stockledger.core.security import create_access_token, verify_password
from stockledger.models.user import User
from stockledger.schemas.responses import UserOut

logger = logging.getLogger(__name__)

router = APIRouter()


class LoginIn(BaseModel):
    username: str
    password: str


class LoginOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut


def _authenticate(db: Session, username: str, password: str) -> LoginOut:
    username = (username or "").strip()

    user = db.query(User).filter(User.username == username).first()
    if not user or not user.is_active or not verify_password(password, user.password_hash):
        logger.info(f"Failed login for {username!r}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
        )

    token = create_access_token({"sub": str(user.id), "role": user.role, "tenant": user.tenant_id})

    return LoginOut(
        access_token=token,
        user=UserOut.model_validate(user),
    )


# JSON login
@router.post("/login", response_model=LoginOut)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    return _authenticate(db, payload.username, payload.password)


# OAuth2 form endpoint (Swagger Authorize uses this)
@router.post("/token", response_model=LoginOut)
def token(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    return _authenticate(db, form_data.username, form_data.password or "")


@router.get("/me", response_model=UserOut)
def me(current_user: CurrentUser = Depends(get_current_user)):
    return UserOut.model_validate(current_user.model_dump())
