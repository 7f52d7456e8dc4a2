from .base import Base
from .engine import DBEngine
from .repository import Repository
from .settings import DBSettings, get_db_settings

__all__ = ["Base", "DBEngine", "DBSettings", "Repository", "get_db_settings"]
