"""
Configuration Item Service - CMDB records, CSV import and search.
"""
import logging
from typing import Optional, List, Dict, Any, Tuple

import pandas as pd
from rapidfuzz import fuzz
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from itcost.config import get_config
from itcost.models import Calculation, ConfigurationItem, Profile
from itcost.infrastructure.repositories import ConfigurationItemRepository
from itcost.domain.exceptions import (
    EntityNotFoundError,
    PermissionDeniedError,
    ReferenceInUseError,
    ValidationError,
)
from .audit_service import AuditService

logger = logging.getLogger(__name__)

CI_FIELDS = (
    "ci_number", "system_name", "system_owner", "system_administrator",
    "organization", "object_number", "is_active",
)


class ConfigurationItemService:
    """Service for configuration items. Writes require admin."""

    def __init__(self, session: Session):
        self.session = session
        self.config = get_config()
        self.ci_repo = ConfigurationItemRepository(session)
        self.audit = AuditService(session)

    def _require_admin(self, user: Profile) -> None:
        if not user.is_admin:
            raise PermissionDeniedError("Only admins may change configuration items")

    @staticmethod
    def _snapshot(item: ConfigurationItem) -> Dict[str, Any]:
        return {field: getattr(item, field) for field in CI_FIELDS}

    @staticmethod
    def _validate(values: Dict[str, Any]) -> None:
        if not (values.get("ci_number") or "").strip():
            raise ValidationError("ci_number", "is required")
        if not (values.get("system_name") or "").strip():
            raise ValidationError("system_name", "is required")

    def list_items(self, active_only: bool = False) -> List[ConfigurationItem]:
        return self.ci_repo.list_items(active_only=active_only)

    def get_item(self, item_id: int) -> ConfigurationItem:
        item = self.ci_repo.get_by_id(item_id)
        if item is None:
            raise EntityNotFoundError("ConfigurationItem", item_id)
        return item

    def create_item(self, data: Dict[str, Any], user: Profile) -> ConfigurationItem:
        self._require_admin(user)
        values = {field: data.get(field) for field in CI_FIELDS}
        if values["is_active"] is None:
            values["is_active"] = True
        self._validate(values)

        item = ConfigurationItem(**values, created_by=user.id)
        self.ci_repo.add(item)
        self.session.flush()
        self.audit.log_audit("create", "configuration_items", item.id, None, self._snapshot(item), user.id)
        self.session.commit()
        logger.info(f"Created configuration item {item.ci_number}")
        return item

    def update_item(self, item_id: int, data: Dict[str, Any], user: Profile) -> ConfigurationItem:
        self._require_admin(user)
        item = self.get_item(item_id)
        old_values = self._snapshot(item)

        values = dict(old_values)
        values.update({k: v for k, v in data.items() if k in CI_FIELDS})
        self._validate(values)
        for field, value in values.items():
            setattr(item, field, value)

        self.audit.log_audit("update", "configuration_items", item.id, old_values, self._snapshot(item), user.id)
        self.session.commit()
        return item

    def delete_item(self, item_id: int, user: Profile) -> None:
        self._require_admin(user)
        item = self.get_item(item_id)
        used = self.ci_repo.count_referencing(Calculation.configuration_item_id, item_id)
        if used:
            logger.warning(f"Refused to delete configuration item {item_id}: used by {used} calculations")
            raise ReferenceInUseError("ConfigurationItem", item_id, "calculations", used)
        old_values = self._snapshot(item)
        self.ci_repo.delete(item)
        self.audit.log_audit("delete", "configuration_items", item_id, old_values, None, user.id)
        self.session.commit()
        logger.info(f"Deleted configuration item {item_id}")

    # =========================================================================
    # Search
    # =========================================================================

    def search(self, query: str, active_only: bool = True, limit: Optional[int] = None) -> List[Tuple[ConfigurationItem, float]]:
        """
        Find configuration items by CI number or system name.

        Substring hits score 100; other items are scored with
        fuzz.token_set_ratio against the system name and kept when the
        score reaches the configured minimum.

        Returns:
            (item, score) pairs, best first
        """
        needle = (query or "").strip().lower()
        if not needle:
            return []

        min_score = self.config.ci_search_min_score
        results = []
        for item in self.ci_repo.list_items(active_only=active_only):
            ci_number = (item.ci_number or "").lower()
            system_name = (item.system_name or "").lower()
            if needle in ci_number or needle in system_name:
                score = 100.0
            else:
                score = fuzz.token_set_ratio(needle, system_name)
            if score >= min_score:
                results.append((item, float(score)))

        results.sort(key=lambda pair: (-pair[1], pair[0].ci_number))
        return results[:limit or self.config.ci_search_limit]

    # =========================================================================
    # Import
    # =========================================================================

    def import_items(self, df: pd.DataFrame, user: Profile) -> Dict[str, Any]:
        """
        Insert parsed configuration items row by row.

        Each row is inserted in its own savepoint so one bad row does not
        abort the rest.

        Args:
            df: Output of parse_configuration_item_csv

        Returns:
            {'success': int, 'failed': int, 'errors': ['Rad N: ...']}
        """
        self._require_admin(user)
        success = 0
        errors: List[str] = []

        for record in df.to_dict(orient="records"):
            row_number = record["row_number"]
            values = {
                field: (None if pd.isna(record.get(field)) else record.get(field))
                for field in self.config.ci_header_fields
            }
            if not values.get("ci_number") or not values.get("system_name"):
                errors.append(f"Rad {row_number}: CI number and system name are required")
                continue

            savepoint = self.session.begin_nested()
            try:
                self.ci_repo.add(ConfigurationItem(**values, is_active=True, created_by=user.id))
                self.session.flush()
                savepoint.commit()
                success += 1
            except SQLAlchemyError as e:
                savepoint.rollback()
                logger.warning(f"Configuration item import row {row_number} failed: {e}")
                errors.append(f"Rad {row_number}: {e.__class__.__name__}")

        self.audit.log_audit(
            "import", "configuration_items", "-", None,
            {"success": success, "failed": len(errors)}, user.id,
        )
        self.session.commit()
        logger.info(f"Configuration item import: {success} imported, {len(errors)} failed")
        return {"success": success, "failed": len(errors), "errors": errors}
