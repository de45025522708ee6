from sqlalchemy import Column, DateTime, Integer, String, func

from stockledger.core.database import Base


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True, index=True)

    name = Column(String, nullable=False)
    industry = Column(String, nullable=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
