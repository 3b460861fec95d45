from .manager import DatabaseManager
from .models import Base, ScopeSetting

__all__ = ["DatabaseManager", "Base", "ScopeSetting"]
