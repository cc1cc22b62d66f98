"""
Configuration Item Repository - Data access for CMDB records.
"""
from typing import List, Optional
from sqlalchemy.orm import Session

from itcost.models import ConfigurationItem
from .base_repository import BaseRepository


class ConfigurationItemRepository(BaseRepository[ConfigurationItem]):
    """Repository for ConfigurationItem entities."""

    def __init__(self, session: Session):
        super().__init__(session, ConfigurationItem)

    def list_items(self, active_only: bool = False) -> List[ConfigurationItem]:
        query = self.session.query(ConfigurationItem)
        if active_only:
            query = query.filter(ConfigurationItem.is_active.is_(True))
        return query.order_by(ConfigurationItem.ci_number).all()

    def get_by_ci_number(self, ci_number: str) -> Optional[ConfigurationItem]:
        return self.session.query(ConfigurationItem).filter(
            ConfigurationItem.ci_number == ci_number
        ).order_by(ConfigurationItem.id.desc()).first()
