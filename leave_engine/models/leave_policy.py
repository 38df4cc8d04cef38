from sqlalchemy import Column, Integer, String, Float, Boolean, ForeignKey, DateTime
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from leave_engine.database import Base
import enum

ALL_DEPARTMENTS = "all"

class AccrualRate(str, enum.Enum):
    ANNUALLY = "annually"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ONE_TIME = "one-time"

class LeavePolicy(Base):
    __tablename__ = "leave_policies"

    id = Column(Integer, primary_key=True, index=True)
    leave_type_id = Column(Integer, ForeignKey("leave_types.id"), unique=True, index=True, nullable=False)
    description = Column(String, nullable=True)

    days_allowed = Column(Float, nullable=False, default=0.0)
    accrual_rate = Column(String, nullable=False, default=AccrualRate.ANNUALLY.value)
    carry_forward = Column(Boolean, default=False, nullable=False)
    max_carry_forward = Column(Float, nullable=True)  # Only set when carry_forward is on
    pro_rated = Column(Boolean, default=True, nullable=False)
    fractional_accrual = Column(Boolean, default=False, nullable=False)

    applicable_after_days = Column(Integer, default=0, nullable=False)
    requires_approval = Column(Boolean, default=True, nullable=False)
    requires_documents = Column(Boolean, default=False, nullable=False)
    allow_retroactive = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    department = Column(String, default=ALL_DEPARTMENTS, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    leave_type = relationship("LeaveType", back_populates="policy")
