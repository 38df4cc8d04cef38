from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import relationship
from leave_engine.database import Base
import enum

class LeaveCategory(str, enum.Enum):
    PAID = "paid"
    UNPAID = "unpaid"
    STATUTORY = "statutory"
    OTHER = "other"

class LeaveType(Base):
    __tablename__ = "leave_types"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, index=True, nullable=False)
    category = Column(String, default=LeaveCategory.PAID.value, nullable=False)

    policy = relationship("LeavePolicy", back_populates="leave_type", uselist=False)
