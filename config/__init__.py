from .settings import CommandoSettings, settings

__all__ = ["CommandoSettings", "settings"]
