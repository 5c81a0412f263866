from bizreports.database.database import Base
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, UniqueConstraint, Numeric
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from bizreports.common.mixins import TenantMixin, TimestampMixin
import enum


class MovementDirection(str, enum.Enum):
    IN = "in"    # Entrada
    OUT = "out"  # Salida


class Product(Base, TenantMixin, TimestampMixin):
    __tablename__ = "products"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String(100), nullable=False)
    sku = Column(String(50), nullable=False)
    description = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True)
    price_sale = Column(Numeric(15, 2), nullable=False, default=0)  # Precio de venta

    category_id = Column(UUID(as_uuid=True), ForeignKey("categories.id"), nullable=True)

    # Relationships
    category = relationship("Category", back_populates="products")
    stock_levels = relationship("StockLevel", back_populates="product", cascade="all, delete-orphan")
    movements = relationship("StockMovement", back_populates="product")

    __table_args__ = (
        UniqueConstraint("tenant_id", "sku", name="uq_product_tenant_sku"),
    )


class StockLevel(Base, TenantMixin, TimestampMixin):
    __tablename__ = "stock_levels"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id"), nullable=False)
    branch_id = Column(UUID(as_uuid=True), ForeignKey("branches.id"), nullable=False)

    qty_on_hand = Column(Numeric(15, 3), nullable=False, default=0)
    qty_reserved = Column(Numeric(15, 3), nullable=False, default=0)
    avg_cost = Column(Numeric(15, 2), nullable=False, default=0)  # Costo promedio ponderado
    min_level = Column(Numeric(15, 3), nullable=False, default=0)  # Nivel mínimo para alertas

    # Relationships
    product = relationship("Product", back_populates="stock_levels")
    branch = relationship("Branch", back_populates="stock_levels")

    __table_args__ = (
        UniqueConstraint("tenant_id", "product_id", "branch_id", name="uq_stock_tenant_product_branch"),
    )


class StockMovement(Base, TenantMixin):
    __tablename__ = "stock_movements"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id"), nullable=False)
    branch_id = Column(UUID(as_uuid=True), ForeignKey("branches.id"), nullable=False)

    direction = Column(String(10), nullable=False)  # in, out
    qty = Column(Numeric(15, 3), nullable=False)  # Siempre positiva, el sentido lo da direction
    unit_cost = Column(Numeric(15, 2), nullable=True)
    source = Column(String(30), nullable=True)  # purchase, sale, adjustment, transfer
    note = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    # Relationships
    product = relationship("Product", back_populates="movements")
    branch = relationship("Branch")
