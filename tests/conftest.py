from datetime import datetime, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session

from database.models import Customer, Sale, SaleLineItem, ServiceType, User, ROLE_ADMIN, ROLE_COLLABORATOR
from database.session import build_engine, create_db_and_tables
from main import create_app
from services.auth_service import AuthService

TEST_SECRET = "test-secret"
TEST_PASSWORD = "secret123"
# Hashed once, bcrypt is slow on purpose
TEST_PASSWORD_HASH = AuthService.get_password_hash(TEST_PASSWORD)

# 12:00 on 2024-03-15 in Sao Paulo
FIXED_NOW = datetime(2024, 3, 15, 15, 0, tzinfo=timezone.utc)


class FixedClock:
    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class CapturingRenderer:
    """Keeps the last report instead of drawing a PDF."""

    def __init__(self):
        self.report = None

    def render_report(self, report) -> bytes:
        self.report = report
        return b"%PDF-fake"


@pytest.fixture
def engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def auth_service():
    return AuthService(secret=TEST_SECRET)


@pytest.fixture
def renderer():
    return CapturingRenderer()


@pytest.fixture
def client(engine, auth_service, clock, renderer, monkeypatch):
    monkeypatch.delenv("ADMIN_EMAIL", raising=False)
    monkeypatch.delenv("SEED_SERVICE_TYPES", raising=False)
    app = create_app(engine=engine, auth_service=auth_service, clock=clock, renderer=renderer)
    with TestClient(app) as client:
        yield client


# --- Factories ---

def make_user(session, name="Ana", email=None, role=ROLE_COLLABORATOR):
    user = User(
        name=name,
        email=email or f"{name.lower()}@barbearia.test",
        password_hash=TEST_PASSWORD_HASH,
        role=role,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def make_customer(session, name="João", phone=None):
    customer = Customer(name=name, phone=phone)
    session.add(customer)
    session.commit()
    session.refresh(customer)
    return customer


def make_service_type(session, name="Corte", default_price="35.00"):
    service_type = ServiceType(name=name, default_price=Decimal(default_price))
    session.add(service_type)
    session.commit()
    session.refresh(service_type)
    return service_type


def make_sale(session, customer, user, total, occurred_at, service_type=None):
    sale = Sale(customer_id=customer.id, user_id=user.id, total=Decimal(total), occurred_at=occurred_at)
    session.add(sale)
    session.flush()
    if service_type is not None:
        session.add(SaleLineItem(sale_id=sale.id, service_type_id=service_type.id, charged_amount=Decimal(total)))
    session.commit()
    session.refresh(sale)
    return sale


def auth_headers(auth_service, user):
    return {"Authorization": f"Bearer {auth_service.create_access_token(user)}"}


@pytest.fixture
def admin(session):
    return make_user(session, name="Lucas", role=ROLE_ADMIN)


@pytest.fixture
def collaborator(session):
    return make_user(session, name="Bruno")


@pytest.fixture
def other_collaborator(session):
    return make_user(session, name="Carla")
