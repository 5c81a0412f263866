from bizreports.database.database import Base
from sqlalchemy import Column, String, Boolean, JSON
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from bizreports.common.mixins import TenantMixin, TimestampMixin


class SavedReport(Base, TenantMixin, TimestampMixin):
    """Configuración de reporte serializada para volver a ejecutarla después"""
    __tablename__ = "saved_reports"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False)

    name = Column(String(150), nullable=False)
    description = Column(String(255), nullable=True)
    module = Column(String(30), nullable=False, index=True)
    filters = Column(JSON, nullable=False)  # ReportConfig o InventarioFilters tal cual
    is_favorite = Column(Boolean, default=False, nullable=False)
