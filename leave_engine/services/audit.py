from typing import List, Optional

from leave_engine.models.audit_log import LeaveAuditLog
from leave_engine.services.base import BaseService


class AuditService(BaseService):

    def record(
        self,
        request,
        action: str,
        actor_id: Optional[str],
        before_status: Optional[str],
        details: Optional[dict] = None,
    ) -> LeaveAuditLog:
        """
        Append an audit entry for a leave request transition.
        Strictly append-only. Runs inside the caller's transaction so the
        entry is committed or rolled back together with the transition.
        """
        entry = LeaveAuditLog(
            request_id=request.id,
            action=action,
            actor_id=actor_id,
            before_status=before_status,
            after_status=request.status,
            details=details or {},
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def history(self, request_id: int) -> List[LeaveAuditLog]:
        return self.db.query(LeaveAuditLog).filter(
            LeaveAuditLog.request_id == request_id
        ).order_by(LeaveAuditLog.id).all()
