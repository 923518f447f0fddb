from .settings import SettingsManager
from .defaults import DEFAULT_SETTINGS

__all__ = ['SettingsManager', 'DEFAULT_SETTINGS']
