"""
SQLAlchemy Models for the Salina publishing ERP
"""
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, Date, Numeric, JSON,
    ForeignKey, Index, UniqueConstraint, event
)
from sqlalchemy.orm import relationship, Session
import enum

from salina.core.database import Base
from salina.core.exceptions import ImmutableRecordError


# ==================== ENUMS ====================

class UserRole(str, enum.Enum):
    OWNER = "owner"
    ADMIN = "admin"
    EDITOR = "editor"
    FINANCE = "finance"
    AUTHOR = "author"


class ContactRoleType(str, enum.Enum):
    AUTHOR = "author"
    CUSTOMER = "customer"
    VENDOR = "vendor"
    DISTRIBUTOR = "distributor"


class TaxIdType(str, enum.Enum):
    SSN = "ssn"
    EIN = "ein"


class SaleFormat(str, enum.Enum):
    PHYSICAL = "physical"
    EBOOK = "ebook"
    AUDIOBOOK = "audiobook"


class SaleChannel(str, enum.Enum):
    RETAIL = "retail"
    WHOLESALE = "wholesale"
    DIRECT = "direct"
    DISTRIBUTOR = "distributor"


class InvoiceStatus(str, enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    PARTIALLY_PAID = "partially_paid"
    OVERDUE = "overdue"
    PAID = "paid"
    VOID = "void"


class StatementStatus(str, enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    FAILED = "failed"


class IsbnStatus(str, enum.Enum):
    AVAILABLE = "available"
    ASSIGNED = "assigned"
    REGISTERED = "registered"
    RETIRED = "retired"


class AuditActionType(str, enum.Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    VIEW = "VIEW"
    APPROVE = "APPROVE"
    REJECT = "REJECT"


# ==================== TENANCY & IDENTITY ====================

class Tenant(Base):
    """Publisher organization; every other table is partitioned by it"""
    __tablename__ = 'tenants'

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    subdomain = Column(String(63), unique=True, nullable=False)
    timezone = Column(String(50), default="America/New_York")
    statement_frequency = Column(String(20), default="quarterly")
    created_at = Column(DateTime, default=datetime.utcnow)

    users = relationship("User", back_populates="tenant")


class User(Base):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    external_user_id = Column(String(255), unique=True, nullable=True)
    email = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.EDITOR.value)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    tenant = relationship("Tenant", back_populates="users")

    __table_args__ = (
        Index('ix_users_tenant_id', 'tenant_id'),
    )


class ApiKey(Base):
    """Client credentials for machine access; the secret is stored as a bcrypt hash"""
    __tablename__ = 'api_keys'

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    key_id = Column(String(64), unique=True, nullable=False)
    secret_hash = Column(String(255), nullable=False)
    name = Column(String(100), nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.FINANCE.value)
    revoked_at = Column(DateTime, nullable=True)
    last_used_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


# ==================== CONTACTS & CATALOG ====================

class Contact(Base):
    __tablename__ = 'contacts'

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    payment_method = Column(String(50), nullable=True)
    tin_encrypted = Column(Text, nullable=True)
    tin_type = Column(String(10), nullable=True)
    tin_last_four = Column(String(4), nullable=True)
    portal_user_id = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    status = Column(String(20), default="active")
    created_at = Column(DateTime, default=datetime.utcnow)

    roles = relationship("ContactRole", back_populates="contact", cascade="all, delete-orphan")
    portal_user = relationship("User")

    __table_args__ = (
        Index('ix_contacts_tenant_id', 'tenant_id'),
    )

    @property
    def display_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    def has_role(self, role: ContactRoleType) -> bool:
        return any(r.role == role.value for r in self.roles)


class ContactRole(Base):
    __tablename__ = 'contact_roles'

    id = Column(Integer, primary_key=True)
    contact_id = Column(Integer, ForeignKey('contacts.id', ondelete='CASCADE'), nullable=False)
    role = Column(String(20), nullable=False)

    contact = relationship("Contact", back_populates="roles")

    __table_args__ = (
        UniqueConstraint('contact_id', 'role', name='uq_contact_role'),
    )


class Title(Base):
    __tablename__ = 'titles'

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    title = Column(String(500), nullable=False)
    isbn = Column(String(17), nullable=True)
    publication_status = Column(String(20), default="draft")
    created_at = Column(DateTime, default=datetime.utcnow)


class Contract(Base):
    """Royalty contract linking an author to a title"""
    __tablename__ = 'contracts'

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    author_id = Column(Integer, ForeignKey('contacts.id'), nullable=False)
    title_id = Column(Integer, ForeignKey('titles.id'), nullable=False)
    advance_amount = Column(Numeric(12, 2), default=0)
    advance_recouped = Column(Numeric(12, 2), default=0)
    status = Column(String(20), default="active")
    created_at = Column(DateTime, default=datetime.utcnow)

    author = relationship("Contact")
    title = relationship("Title")


class Sale(Base):
    __tablename__ = 'sales'

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    title_id = Column(Integer, ForeignKey('titles.id'), nullable=False)
    format = Column(String(20), nullable=False)
    channel = Column(String(20), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)
    sale_date = Column(Date, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    title = relationship("Title")

    __table_args__ = (
        Index('ix_sales_tenant_date', 'tenant_id', 'sale_date'),
    )


class Statement(Base):
    """Royalty statement; net_payable is owed to the author"""
    __tablename__ = 'statements'

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    author_id = Column(Integer, ForeignKey('contacts.id'), nullable=False)
    contract_id = Column(Integer, ForeignKey('contracts.id'), nullable=True)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    net_payable = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(String(20), default=StatementStatus.DRAFT.value)
    created_at = Column(DateTime, default=datetime.utcnow)

    author = relationship("Contact")


# ==================== RECEIVABLES ====================

class Invoice(Base):
    __tablename__ = 'invoices'

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    customer_id = Column(Integer, ForeignKey('contacts.id'), nullable=False)
    invoice_number = Column(String(50), nullable=False)
    invoice_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=True)
    total = Column(Numeric(12, 2), nullable=False, default=0)
    amount_paid = Column(Numeric(12, 2), nullable=False, default=0)
    balance_due = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(String(20), default=InvoiceStatus.DRAFT.value)
    created_at = Column(DateTime, default=datetime.utcnow)

    customer = relationship("Contact")
    payments = relationship("Payment", back_populates="invoice")

    __table_args__ = (
        UniqueConstraint('tenant_id', 'invoice_number', name='uq_invoice_number_tenant'),
        Index('ix_invoices_tenant_status', 'tenant_id', 'status'),
    )


class Payment(Base):
    __tablename__ = 'payments'

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    invoice_id = Column(Integer, ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False)
    payment_date = Column(Date, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(String(30), nullable=True)

    invoice = relationship("Invoice", back_populates="payments")


# ==================== ISBN POOL ====================

class IsbnPrefix(Base):
    __tablename__ = 'isbn_prefixes'

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    prefix = Column(String(20), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class Isbn(Base):
    __tablename__ = 'isbns'

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    prefix_id = Column(Integer, ForeignKey('isbn_prefixes.id'), nullable=True)
    isbn_13 = Column(String(13), nullable=False)
    status = Column(String(20), nullable=False, default=IsbnStatus.AVAILABLE.value)
    assigned_at = Column(DateTime, nullable=True)

    prefix = relationship("IsbnPrefix")

    __table_args__ = (
        UniqueConstraint('tenant_id', 'isbn_13', name='uq_isbn_tenant'),
    )


# ==================== AUDIT ====================

class AuditLog(Base):
    """Append-only audit trail; rows are never updated or deleted"""
    __tablename__ = 'audit_logs'

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    action_type = Column(String(20), nullable=False)
    resource_type = Column(String(50), nullable=False)
    resource_id = Column(String(64), nullable=True)
    changes = Column(JSON, nullable=True)  # {"before": {...}, "after": {...}}
    details = Column("metadata", JSON, nullable=True)
    status = Column(String(20), default="success")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User")

    __table_args__ = (
        Index('ix_audit_logs_tenant_created', 'tenant_id', 'created_at'),
        Index('ix_audit_logs_resource', 'resource_type', 'resource_id'),
    )


@event.listens_for(Session, "before_flush")
def _guard_audit_log_immutability(session, flush_context, instances):
    for obj in session.deleted:
        if isinstance(obj, AuditLog):
            raise ImmutableRecordError("Audit log entries cannot be deleted")
    for obj in session.dirty:
        if isinstance(obj, AuditLog) and session.is_modified(obj):
            raise ImmutableRecordError("Audit log entries cannot be modified")
