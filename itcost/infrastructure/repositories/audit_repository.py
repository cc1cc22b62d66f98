"""
Audit Repository - Data access for the audit trail.
"""
from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session

from itcost.models import AuditLog
from .base_repository import BaseRepository


class AuditRepository(BaseRepository[AuditLog]):
    """Repository for AuditLog entries."""

    def __init__(self, session: Session):
        super().__init__(session, AuditLog)

    def history(
        self,
        table_name: Optional[str] = None,
        action: Optional[str] = None,
        record_id: Optional[str] = None,
        limit: int = 200
    ) -> List[AuditLog]:
        """Audit entries newest first, optionally filtered."""
        query = self.session.query(AuditLog)
        if table_name:
            query = query.filter(AuditLog.table_name == table_name)
        if action:
            query = query.filter(AuditLog.action == action)
        if record_id:
            query = query.filter(AuditLog.record_id == str(record_id))
        return query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit).all()

    def delete_before(self, cutoff: datetime) -> int:
        return self.session.query(AuditLog).filter(
            AuditLog.created_at < cutoff
        ).delete(synchronize_session=False)
