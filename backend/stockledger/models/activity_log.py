from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text, func

from stockledger.core.database import Base


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)

    # what happened: "create" | "update" | "delete" | "stock_adjustment" | "receive" | "transfer"
    action = Column(String, nullable=False, index=True)

    # what item: "product" | "category" | "tag" | "batch" | "supplier" | "customer"
    #   | "location" | "sale" | "purchase_order" | "stock_movement"
    entity_type = Column(String, nullable=False, index=True)
    entity_id = Column(Integer, nullable=True)

    changes = Column(JSON, nullable=True)
    note = Column(Text, nullable=True)

    # who/where
    actor = Column(String, nullable=False, default="system")
    ip = Column(String, nullable=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
