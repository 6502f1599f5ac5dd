"""Models for IdBridge database tables."""

from idbridge.models.db.base import Base
from idbridge.models.db.housekeeping import Housekeeping
from idbridge.models.db.id_mapping import IdMapping

__all__ = ["Base", "Housekeeping", "IdMapping"]
