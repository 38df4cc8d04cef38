from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from sqlalchemy.sql import func
from leave_engine.database import Base

class LeaveAuditLog(Base):
    """Append-only trail of leave request transitions."""
    __tablename__ = "leave_audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    request_id = Column(Integer, ForeignKey("leave_requests.id"), index=True, nullable=False)
    action = Column(String, nullable=False)
    actor_id = Column(String, nullable=True)
    before_status = Column(String, nullable=True)
    after_status = Column(String, nullable=False)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
