from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from stockledger.actions.base import ActionContext
from stockledger.api.deps import get_cache, get_db
from stockledger.core.database import Base
from stockledger.core.security import create_access_token, hash_password
from stockledger.data.gateway import Gateway
from stockledger.main import app
from stockledger.models import registry  # noqa: F401
from stockledger.models.product import Category, Product
from stockledger.models.tenant import Tenant
from stockledger.models.user import User
from stockledger.services.cache import ResultCache


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def gateway(db):
    return Gateway(db)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return ResultCache(clock=clock)


# ---------- factories ----------

@pytest.fixture
def make_tenant(db):
    def make(name="Acme Parts", industry="retail"):
        t = Tenant(name=name, industry=industry)
        db.add(t)
        db.commit()
        return t

    return make


@pytest.fixture
def tenant(make_tenant):
    return make_tenant()


@pytest.fixture
def other_tenant(make_tenant):
    return make_tenant(name="Globex")


@pytest.fixture
def make_category(db):
    def make(tenant, name="Parts"):
        c = Category(tenant_id=tenant.id, name=name)
        db.add(c)
        db.commit()
        return c

    return make


@pytest.fixture
def make_product(db):
    counter = {"n": 0}

    def make(tenant, **fields):
        counter["n"] += 1
        values = {
            "name": f"Product {counter['n']}",
            "manufacturer": "Acme",
            "quantity": 10,
            "price": Decimal("1.00"),
        }
        values.update(fields)
        p = Product(tenant_id=tenant.id, **values)
        db.add(p)
        db.commit()
        return p

    return make


@pytest.fixture
def make_user(db):
    def make(tenant, role="manager", username=None, password="secret123"):
        u = User(
            tenant_id=tenant.id,
            username=username or f"{role}-{tenant.id}",
            name=role.capitalize(),
            role=role,
            password_hash=hash_password(password),
        )
        db.add(u)
        db.commit()
        return u

    return make


@pytest.fixture
def ctx(gateway, cache, tenant):
    return ActionContext(gateway=gateway, cache=cache, tenant_id=tenant.id, actor="Tester")


# ---------- HTTP ----------

@pytest.fixture
def auth_headers():
    def headers(user) -> dict:
        token = create_access_token({"sub": str(user.id), "role": user.role})
        return {"Authorization": f"Bearer {token}"}

    return headers


@pytest.fixture
def client(session_factory, cache):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache] = lambda: cache
    yield TestClient(app)
    app.dependency_overrides.clear()
