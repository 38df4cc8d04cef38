from sqlalchemy import Column, Integer, String, Date, Float, Boolean, ForeignKey, DateTime
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from leave_engine.database import Base
import enum

class LeaveStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"

# Statuses that hold days against the balance and block overlapping requests
ACTIVE_STATUSES = (LeaveStatus.PENDING.value, LeaveStatus.APPROVED.value)

class HalfDayPeriod(str, enum.Enum):
    FIRST_HALF = "first-half"
    SECOND_HALF = "second-half"

class LeaveRequest(Base):
    __tablename__ = "leave_requests"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(String, ForeignKey("employees.id"), index=True, nullable=False)
    leave_type_id = Column(Integer, ForeignKey("leave_types.id"), index=True, nullable=False)
    start_date = Column(Date, nullable=False, index=True)
    end_date = Column(Date, nullable=False, index=True)
    is_half_day = Column(Boolean, default=False, nullable=False)
    half_day_period = Column(String, nullable=True)
    number_of_days = Column(Float, nullable=False)
    reason = Column(String)
    contact_info = Column(String)
    status = Column(String, default=LeaveStatus.PENDING.value, nullable=False, index=True)
    applied_on = Column(DateTime(timezone=True), server_default=func.now())
    actioned_by = Column(String, nullable=True)
    actioned_on = Column(DateTime(timezone=True), nullable=True)
    comment = Column(String, nullable=True)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    employee = relationship("Employee", back_populates="leave_requests")
    leave_type = relationship("LeaveType")
    attachments = relationship("LeaveAttachment", back_populates="request", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<LeaveRequest {self.id} {self.employee_id} {self.start_date}..{self.end_date} {self.status}>"

    @property
    def is_terminal(self) -> bool:
        return self.status != LeaveStatus.PENDING.value

class LeaveAttachment(Base):
    __tablename__ = "leave_attachments"

    id = Column(Integer, primary_key=True, index=True)
    request_id = Column(Integer, ForeignKey("leave_requests.id"), index=True, nullable=False)
    filename = Column(String, nullable=False)
    content_type = Column(String, nullable=True)
    url = Column(String, nullable=True)  # Files live in external storage

    request = relationship("LeaveRequest", back_populates="attachments")
