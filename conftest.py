# Point the module-level app at SQLite before anything imports shop.main
import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from shop.accounts.models import Role, User  # noqa: E402
from shop.catalog.models import ProductModel  # noqa: E402
from shop.config import Settings  # noqa: E402
from shop.db import init_db, make_engine, make_sessionmaker  # noqa: E402
from shop.main import create_app  # noqa: E402

PASSWORD = "Str0ng!Pass"


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite+pysqlite:///:memory:",
        order_retry_backoff_base=0.0,
        db_startup_timeout_secs=1.0,
    )


@pytest.fixture
def engine(settings):
    eng = make_engine(settings.database_url)
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_sessionmaker(engine)


@pytest.fixture
def app(settings, engine):
    return create_app(settings, engine)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


def register_and_login(client, username: str, email: str, password: str = PASSWORD) -> str:
    r = client.post("/auth/register", json={"username": username, "email": email, "password": password})
    assert r.status_code == 201, r.json()
    r = client.post("/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.json()
    return r.json()["object"]["token"]


@pytest.fixture
def login_as(client):
    """Register ``username`` with a default password and return its token."""
    return lambda username: register_and_login(client, username, f"{username}@example.com")


@pytest.fixture
def buyer_token(client):
    return register_and_login(client, "buyer", "buyer@example.com")


@pytest.fixture
def admin_token(client, app):
    token = register_and_login(client, "admin", "admin@example.com")
    with app.state.sessionmaker() as s:
        user = s.query(User).filter_by(email="admin@example.com").one()
        user.role = Role.ADMIN.value
        s.commit()
    return token


@pytest.fixture
def make_product(app):
    """Insert a product directly and return its id."""
    counter = {"n": 0}

    def _make(name=None, price="5.00", stock=10, category="test"):
        counter["n"] += 1
        with app.state.sessionmaker() as s:
            row = ProductModel(
                name=name or f"Product {counter['n']}",
                description="A product used in tests",
                price=Decimal(price),
                stock=stock,
                category=category,
            )
            s.add(row)
            s.commit()
            return row.id

    return _make


@pytest.fixture
def stock_of(app):
    def _stock(product_id):
        with app.state.sessionmaker() as s:
            return s.get(ProductModel, product_id).stock

    return _stock
