from bizreports.database.database import Base
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Numeric
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from bizreports.common.mixins import TenantMixin, TimestampMixin
import enum


class ReservationStatus(str, enum.Enum):
    TENTATIVE = "tentative"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    CANCELLED = "cancelled"


class Reservation(Base, TenantMixin, TimestampMixin):
    __tablename__ = "reservations"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    branch_id = Column(UUID(as_uuid=True), ForeignKey("branches.id"), nullable=True)

    code = Column(String(30), nullable=True)
    guest_name = Column(String(150), nullable=True)
    space_name = Column(String(100), nullable=True)  # Habitación, cancha, mesa...
    channel = Column(String(30), nullable=True)  # direct, web, ota
    status = Column(String(20), nullable=False, default=ReservationStatus.CONFIRMED.value)
    occupants = Column(Integer, nullable=False, default=1)

    check_in = Column(DateTime(timezone=True), nullable=False, index=True)
    check_out = Column(DateTime(timezone=True), nullable=True)
    total_amount = Column(Numeric(15, 2), nullable=False, default=0)
