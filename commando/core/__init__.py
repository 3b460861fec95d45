from .event_system import EventSystem
from .scopes import GLOBAL_SCOPE, ScopeManager

__all__ = ["EventSystem", "ScopeManager", "GLOBAL_SCOPE"]
