from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, func

from stockledger.core.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)

    username = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)

    # "admin" | "manager" | "viewer"
    role = Column(String, nullable=False, default="viewer")

    password_hash = Column(String, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
