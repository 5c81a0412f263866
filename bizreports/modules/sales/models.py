from bizreports.database.database import Base
from sqlalchemy import Column, String, DateTime, ForeignKey, Numeric, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from bizreports.common.mixins import TenantMixin, TimestampMixin
import enum


class SaleStatus(str, enum.Enum):
    DRAFT = "draft"          # Borrador, no afecta inventario
    COMPLETED = "completed"  # Venta cerrada
    CANCELLED = "cancelled"  # Anulada, excluida de rotación


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"           # Efectivo
    TRANSFER = "transfer"   # Transferencia
    CARD = "card"           # Tarjeta
    OTHER = "other"         # Otro


class Sale(Base, TenantMixin, TimestampMixin):
    __tablename__ = "sales"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    branch_id = Column(UUID(as_uuid=True), ForeignKey("branches.id"), nullable=True)
    customer_id = Column(UUID(as_uuid=True), nullable=True)
    user_id = Column(UUID(as_uuid=True), nullable=True)  # Vendedor

    number = Column(String(50), nullable=True)
    status = Column(String(20), nullable=False, default=SaleStatus.COMPLETED.value)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    sale_date = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    notes = Column(Text, nullable=True)

    # Totals
    subtotal = Column(Numeric(15, 2), nullable=False, default=0)
    tax_total = Column(Numeric(15, 2), nullable=False, default=0)
    discount_total = Column(Numeric(15, 2), nullable=False, default=0)
    total = Column(Numeric(15, 2), nullable=False, default=0)

    # Relationships
    branch = relationship("Branch")
    items = relationship("SaleItem", back_populates="sale", cascade="all, delete-orphan")


class SaleItem(Base, TenantMixin):
    __tablename__ = "sale_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    sale_id = Column(UUID(as_uuid=True), ForeignKey("sales.id"), nullable=False, index=True)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id"), nullable=True)

    quantity = Column(Numeric(15, 3), nullable=False)
    unit_price = Column(Numeric(15, 2), nullable=False, default=0)
    total = Column(Numeric(15, 2), nullable=False, default=0)

    # Relationships
    sale = relationship("Sale", back_populates="items")
    product = relationship("Product")


class Payment(Base, TenantMixin, TimestampMixin):
    __tablename__ = "payments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    sale_id = Column(UUID(as_uuid=True), ForeignKey("sales.id"), nullable=True)
    branch_id = Column(UUID(as_uuid=True), ForeignKey("branches.id"), nullable=True)

    method = Column(String(20), nullable=False, default=PaymentMethod.CASH.value)
    status = Column(String(20), nullable=False, default="completed")
    amount = Column(Numeric(15, 2), nullable=False)
    reference = Column(String(100), nullable=True)
    payment_date = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    # Relationships
    sale = relationship("Sale")
