from .loader import ConfigLoader, AppConfig

__all__ = ["ConfigLoader", "AppConfig"]
