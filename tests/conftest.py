import base64
import itertools
import os
from datetime import date, datetime
from decimal import Decimal

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-long-enough-for-hs256")
os.environ.setdefault("TAX_ID_ENCRYPTION_KEY", base64.b64encode(b"k" * 32).decode())
os.environ.setdefault("INVITATION_PROVIDER_API_KEY", "sk_test_invitations")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from salina.core.database import Base, get_db
from salina.core.tenancy import TenantScope
from salina.main import app
from salina.models import (
    Contact, ContactRole, Contract, Invoice, Isbn, IsbnPrefix, Payment, Sale,
    Statement, Tenant, Title, User
)
from salina.services.user_service import UserService


class Factory:
    """Builds persisted rows with sensible defaults"""

    _seq = itertools.count(1)

    def __init__(self, db):
        self.db = db

    def _save(self, obj):
        self.db.add(obj)
        self.db.flush()
        return obj

    def tenant(self, name="Ink & Quill Press"):
        n = next(self._seq)
        return self._save(Tenant(name=name, subdomain=f"tenant{n}"))

    def user(self, tenant, role="finance", email=None, is_active=True):
        n = next(self._seq)
        return self._save(User(
            tenant_id=tenant.id,
            email=email or f"user{n}@example.com",
            role=role,
            is_active=is_active,
        ))

    def contact(self, tenant, first_name="Ada", last_name="Lovelace", email="ada@example.com",
                roles=("author",), **fields):
        contact = Contact(tenant_id=tenant.id, first_name=first_name, last_name=last_name,
                          email=email, **fields)
        contact.roles = [ContactRole(role=role) for role in roles]
        return self._save(contact)

    def title(self, tenant, title="The Silent Orchard"):
        return self._save(Title(tenant_id=tenant.id, title=title))

    def contract(self, tenant, author, title, advance_amount="0", advance_recouped="0"):
        return self._save(Contract(
            tenant_id=tenant.id,
            author_id=author.id,
            title_id=title.id,
            advance_amount=Decimal(advance_amount),
            advance_recouped=Decimal(advance_recouped),
        ))

    def sale(self, tenant, title, format="physical", channel="retail", quantity=1,
             unit_price="10.00", sale_date=None, total=None):
        unit_price = Decimal(unit_price)
        return self._save(Sale(
            tenant_id=tenant.id,
            title_id=title.id,
            format=format,
            channel=channel,
            quantity=quantity,
            unit_price=unit_price,
            total_amount=Decimal(total) if total is not None else unit_price * quantity,
            sale_date=sale_date or date(2025, 3, 15),
        ))

    def statement(self, tenant, author, net_payable, period_end, period_start=None):
        return self._save(Statement(
            tenant_id=tenant.id,
            author_id=author.id,
            period_start=period_start or period_end.replace(day=1),
            period_end=period_end,
            net_payable=Decimal(net_payable),
        ))

    def invoice(self, tenant, customer, balance_due, due_date, status="sent", total=None,
                amount_paid="0", invoice_date=None):
        n = next(self._seq)
        balance_due = Decimal(balance_due)
        return self._save(Invoice(
            tenant_id=tenant.id,
            customer_id=customer.id,
            invoice_number=f"INV-{n:05d}",
            invoice_date=invoice_date or date(2025, 1, 1),
            due_date=due_date,
            total=Decimal(total) if total is not None else balance_due + Decimal(amount_paid),
            amount_paid=Decimal(amount_paid),
            balance_due=balance_due,
            status=status,
        ))

    def payment(self, tenant, invoice, amount, payment_date):
        return self._save(Payment(
            tenant_id=tenant.id,
            invoice_id=invoice.id,
            amount=Decimal(amount),
            payment_date=payment_date,
        ))

    def prefix(self, tenant, prefix):
        return self._save(IsbnPrefix(tenant_id=tenant.id, prefix=prefix))

    def isbn(self, tenant, status="available", assigned_at=None, prefix=None):
        n = next(self._seq)
        return self._save(Isbn(
            tenant_id=tenant.id,
            prefix_id=prefix.id if prefix else None,
            isbn_13=f"978{n:010d}",
            status=status,
            assigned_at=assigned_at,
        ))


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False)()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def make(db):
    return Factory(db)


@pytest.fixture
def tenant(make):
    return make.tenant()


@pytest.fixture
def other_tenant(make):
    return make.tenant(name="Rival Books")


@pytest.fixture
def scope(db, tenant):
    return TenantScope.for_tenant(db, tenant.id)


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(db, make, tenant):
    """Bearer headers for a fresh user with the given role in ``tenant``"""
    def _headers(role="finance", for_tenant=None):
        user = make.user(for_tenant or tenant, role=role)
        db.commit()
        token = UserService(db).issue_user_token(user)
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def today():
    return date(2025, 6, 30)


@pytest.fixture
def now():
    return datetime(2025, 6, 30, 12, 0, 0)
