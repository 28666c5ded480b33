"""SQLAlchemy models. All tables include organization_id; queries MUST filter by organization_id."""

from apps.universal_api.models.base import Base
from apps.universal_api.models.dynamic_data import DynamicData
from apps.universal_api.models.entity import Entity

__all__ = [
    "Base",
    "DynamicData",
    "Entity",
]
