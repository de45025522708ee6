import logging
from decimal import Decimal

from sqlalchemy.orm import Session

from stockledger.core.security import hash_password
from stockledger.models.product import Category, Product
from stockledger.models.tenant import Tenant
from stockledger.models.user import User

logger = logging.getLogger(__name__)


def seed_demo_data(db: Session) -> None:
    existing = db.query(User).count()
    if existing > 0:
        return

    tenant = Tenant(name="Demo Store", industry="retail")
    db.add(tenant)
    db.flush()

    # Change these creds anytime (demo defaults)
    users = [
        User(tenant_id=tenant.id, username="admin", name="Admin", role="admin",
             password_hash=hash_password("admin123")),
        User(tenant_id=tenant.id, username="manager", name="Manager", role="manager",
             password_hash=hash_password("manager123")),
        User(tenant_id=tenant.id, username="viewer", name="Viewer", role="viewer",
             password_hash=hash_password("viewer123")),
    ]

    parts = Category(tenant_id=tenant.id, name="Parts")
    tools = Category(tenant_id=tenant.id, name="Tools")
    db.add_all(users + [parts, tools])
    db.flush()

    db.add_all(
        [
            Product(tenant_id=tenant.id, name="Brake Pad Set", sku="BP-100", manufacturer="Acme",
                    quantity=3, price=Decimal("45.00"), low_stock_threshold=10, category_id=parts.id),
            Product(tenant_id=tenant.id, name="Oil Filter", sku="OF-200", manufacturer="Acme",
                    quantity=0, price=Decimal("12.50"), low_stock_threshold=5, category_id=parts.id),
            Product(tenant_id=tenant.id, name="Torque Wrench", sku="TW-300", manufacturer="Bolt",
                    quantity=25, price=Decimal("89.99"), low_stock_threshold=4, category_id=tools.id),
        ]
    )
    db.commit()
    logger.info(f"Seeded demo tenant {tenant.name!r} with users admin/manager/viewer")
