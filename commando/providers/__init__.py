from .base import SettingProvider
from .database import DatabaseSettingProvider

__all__ = ["SettingProvider", "DatabaseSettingProvider"]
