from bizreports.database.database import Base
from sqlalchemy import Column, String, Boolean, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from sqlalchemy.orm import relationship
from bizreports.common.mixins import TenantMixin, TimestampMixin

class Branch(Base, TenantMixin, TimestampMixin):
    __tablename__ = "branches"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String(100), nullable=False)
    address = Column(String(255), nullable=True)
    is_main = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)

    # Relationships - using strings to avoid circular imports
    stock_levels = relationship("StockLevel", back_populates="branch")

    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_branch_tenant_name"),
    )
