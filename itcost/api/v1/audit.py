"""
Audit API Endpoints.

Implements:
- GET /api/v1/audit - Audit trail, newest first (admin)
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from itcost.models import get_db, Profile
from itcost.domain.services import AuditService
from .auth import require_admin

router = APIRouter()


class AuditLogResponse(BaseModel):
    id: int
    user_id: Optional[int] = None
    action: str
    table_name: str
    record_id: str
    old_values: Optional[dict] = None
    new_values: Optional[dict] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


@router.get("", response_model=List[AuditLogResponse], summary="Audit trail")
def audit_history(
    table_name: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    record_id: Optional[str] = Query(None),
    limit: int = Query(200, ge=1, le=1000),
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin)
):
    return AuditService(db).history(table_name=table_name, action=action, record_id=record_id, limit=limit)
