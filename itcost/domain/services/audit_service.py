"""
Audit Service - Records data changes and lifecycle events.

Audit entries are written in the same session as the change they
describe, so they are committed (or rolled back) together with it.
"""
import logging
from datetime import datetime, timedelta, date
from decimal import Decimal
from typing import Optional, List, Dict, Any

from sqlalchemy.orm import Session

from itcost.config import get_config
from itcost.models import AuditLog
from itcost.infrastructure.repositories import AuditRepository

logger = logging.getLogger(__name__)


def _jsonable(values: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Make a values dict safe for a JSON column."""
    if values is None:
        return None
    result = {}
    for key, value in values.items():
        if isinstance(value, Decimal):
            result[key] = str(value)
        elif isinstance(value, (datetime, date)):
            result[key] = value.isoformat()
        else:
            result[key] = value
    return result


class AuditService:
    """Service for writing and reading the audit trail."""

    def __init__(self, session: Session):
        self.session = session
        self.audit_repo = AuditRepository(session)

    def log_audit(
        self,
        action: str,
        table_name: str,
        record_id,
        old_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
        user_id: Optional[int] = None
    ) -> AuditLog:
        """
        Add an audit entry to the session.

        Args:
            action: create, update, delete, approve, submit, close, import
            table_name: Table (or logical area) the change applies to
            record_id: Identifier of the changed record
            old_values: Values before the change
            new_values: Values after the change
            user_id: Acting user
        """
        entry = AuditLog(
            user_id=user_id,
            action=action,
            table_name=table_name,
            record_id=str(record_id),
            old_values=_jsonable(old_values),
            new_values=_jsonable(new_values),
        )
        self.audit_repo.add(entry)
        logger.debug(f"Audit {action} on {table_name}/{record_id} by user {user_id}")
        return entry

    def history(
        self,
        table_name: Optional[str] = None,
        action: Optional[str] = None,
        record_id: Optional[str] = None,
        limit: int = 200
    ) -> List[AuditLog]:
        return self.audit_repo.history(
            table_name=table_name, action=action, record_id=record_id, limit=limit
        )

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        """
        Delete entries older than the configured retention period.

        Returns:
            Number of entries removed (0 when retention is disabled)
        """
        retention_days = get_config().audit_retention_days
        if not retention_days:
            return 0

        cutoff = (now or datetime.utcnow()) - timedelta(days=retention_days)
        removed = self.audit_repo.delete_before(cutoff)
        self.session.commit()
        logger.info(f"Purged {removed} audit entries older than {cutoff:%Y-%m-%d}")
        return removed
