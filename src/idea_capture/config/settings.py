"""YAML-backed settings layered over DEFAULT_SETTINGS"""

import os
import logging
import yaml
from pathlib import Path
from typing import Any, List, Optional
from copy import deepcopy

from .defaults import DEFAULT_SETTINGS
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

VAULT_ENV_VAR = 'OBSIDIAN_VAULT_NAME'


def _split_keys(keys) -> List[str]:
    """('export.vault_name',) and ('export', 'vault_name') name the same setting"""
    if len(keys) == 1 and '.' in keys[0]:
        return keys[0].split('.')
    return list(keys)


def _merge(base: dict, override: dict) -> None:
    for key, value in override.items():
        if isinstance(base.get(key), dict) and isinstance(value, dict):
            _merge(base[key], value)
        else:
            base[key] = value


class SettingsManager:
    """
    Application settings.

    Values in <config_dir>/settings.yaml override the defaults key by key;
    anything the file leaves out keeps its default. A file that cannot be
    parsed, or that sets an unusable limit, raises ConfigurationError.
    """

    def __init__(self, config_dir: Optional[Path] = None):
        self.config_dir = Path(config_dir) if config_dir else Path.home() / "IdeaCapture" / "config"
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.settings_file = self.config_dir / "settings.yaml"
        self._settings = deepcopy(DEFAULT_SETTINGS)
        if self.settings_file.exists():
            _merge(self._settings, self._read())
            logger.debug(f"Loaded settings from {self.settings_file}")
        self.validate()

    def _read(self) -> dict:
        try:
            with open(self.settings_file, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid settings file {self.settings_file}: {e}") from e
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Settings file {self.settings_file} must contain a mapping")
        return data

    def validate(self) -> None:
        """Check the limits the capture and export paths depend on"""
        positive = [
            ('audio', 'sample_rate'),
            ('audio', 'max_duration_seconds'),
            ('export', 'max_uri_length'),
            ('export', 'enrichment_timeout_seconds'),
            ('export', 'summary_max_length'),
        ]
        for keys in positive:
            value = self.get(*keys)
            if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
                raise ConfigurationError(f"{'.'.join(keys)} must be a positive number, got {value!r}")

        margin = self.get('export', 'safety_margin')
        if not isinstance(margin, int) or margin < 0 or margin >= self.get('export', 'max_uri_length'):
            raise ConfigurationError(
                f"export.safety_margin must be between 0 and export.max_uri_length, got {margin!r}"
            )

    def save(self) -> None:
        with open(self.settings_file, 'w', encoding='utf-8') as f:
            yaml.safe_dump(self._settings, f, default_flow_style=False, sort_keys=False, allow_unicode=True)
        logger.debug(f"Saved settings to {self.settings_file}")

    def get(self, *keys: str, default: Any = None) -> Any:
        """get('export', 'vault_name') or get('export.vault_name')"""
        value = self._settings
        for key in _split_keys(keys):
            if not isinstance(value, dict) or key not in value:
                return default
            value = value[key]
        return value

    def set(self, *args) -> None:
        """set('export', 'vault_name', 'Ideas') or set('export.vault_name', 'Ideas')"""
        if len(args) < 2:
            raise ValueError("Need at least key and value")

        *keys, value = args
        keys = _split_keys(keys)
        target = self._settings
        for key in keys[:-1]:
            target = target.setdefault(key, {})
        target[keys[-1]] = value

    @property
    def all(self) -> dict:
        return deepcopy(self._settings)

    def get_vault_name(self) -> str:
        """Vault name from settings, falling back to OBSIDIAN_VAULT_NAME"""
        return self.get('export', 'vault_name') or os.environ.get(VAULT_ENV_VAR, '')

    def get_session_dir(self) -> Path:
        session_dir = Path(os.path.expanduser(self.get('logging', 'session_dir')))
        session_dir.mkdir(parents=True, exist_ok=True)
        return session_dir

    def get_download_dir(self) -> Path:
        return Path(os.path.expanduser(self.get('export', 'download_dir')))
