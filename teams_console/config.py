"""
Layered configuration for the Teams console.

Sources, later ones win:
1. appsettings.json
2. appsettings.{APP_ENVIRONMENT}.json
3. config.yaml
4. Environment variables ("GraphApi__ClientId" -> "GraphApi:ClientId")

Keys are looked up case-insensitively with ":" separating sections.
"""

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml
from rich.console import Console

from .exceptions import ConfigurationError

console = Console()

SEPARATOR = ":"
ENV_SEPARATOR = "__"
CONTAINER_BASE_PATH = Path("/app")
DEFAULT_ENVIRONMENT = "Production"

_TRUE_VALUES = {"true", "1", "yes", "on"}
_FALSE_VALUES = {"false", "0", "no", "off", ""}


def _find_key(data: Mapping[str, Any], key: str) -> Optional[str]:
    """Return the stored spelling of key, matching case-insensitively."""
    if key in data:
        return key
    lowered = key.lower()
    for existing in data:
        if str(existing).lower() == lowered:
            return existing
    return None


def _merge(target: Dict[str, Any], source: Mapping[str, Any]):
    """Deep-merge source into target, replacing keys case-insensitively."""
    for key, value in source.items():
        key = str(key)
        existing = _find_key(target, key)
        if existing is not None and existing != key:
            target[key] = target.pop(existing)
        if isinstance(value, Mapping) and isinstance(target.get(key), dict):
            _merge(target[key], value)
        elif isinstance(value, Mapping):
            target[key] = {}
            _merge(target[key], value)
        else:
            target[key] = value


def _set_path(target: Dict[str, Any], path: str, value: Any):
    parts = path.split(SEPARATOR)
    node = target
    for part in parts[:-1]:
        existing = _find_key(node, part)
        if existing is None or not isinstance(node[existing], dict):
            existing = existing or part
            node[existing] = {}
        node = node[existing]
    existing = _find_key(node, parts[-1])
    node[existing or parts[-1]] = value


def resolve_base_path(base_path: Optional[Union[str, Path]] = None) -> Path:
    """Pick the directory holding the settings files."""
    if base_path:
        return Path(base_path)
    if CONTAINER_BASE_PATH.is_dir():
        return CONTAINER_BASE_PATH
    return Path.cwd()


class Configuration:
    """
    Read-only view over merged settings.

    Usage:
        config = Configuration.load()
        client_id = config.get("GraphApi:ClientId")
        use_mock = config.get_bool("UseLocalMockData", False)
    """

    def __init__(self, data: Optional[Mapping[str, Any]] = None):
        self._data: Dict[str, Any] = {}
        if data:
            _merge(self._data, data)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Configuration":
        """Build configuration from a nested dict or flat "A:B" keys."""
        config = cls()
        for key, value in data.items():
            if SEPARATOR in str(key):
                _set_path(config._data, str(key), value)
            else:
                _merge(config._data, {key: value})
        return config

    @classmethod
    def load(
        cls,
        base_path: Optional[Union[str, Path]] = None,
        environment: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "Configuration":
        """
        Load settings files from base_path and overlay environment variables.

        Missing files are skipped. Unreadable files are reported and skipped.
        """
        environ = os.environ if environ is None else environ
        base = resolve_base_path(base_path)
        environment = environment or environ.get("APP_ENVIRONMENT", DEFAULT_ENVIRONMENT)

        config = cls()
        for filename in (
            "appsettings.json",
            f"appsettings.{environment}.json",
            "config.yaml",
        ):
            config._merge_file(base / filename)

        config._merge_environment(environ)
        return config

    def _merge_file(self, path: Path):
        if not path.is_file():
            return
        try:
            with open(path, encoding="utf-8-sig") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            console.print(f"[yellow]Skipping unreadable settings file {path}: {e}[/yellow]")
            return
        if not isinstance(data, Mapping):
            console.print(f"[yellow]Skipping settings file {path}: not a mapping[/yellow]")
            return
        _merge(self._data, data)

    def _merge_environment(self, environ: Mapping[str, str]):
        for name, value in environ.items():
            _set_path(self._data, name.replace(ENV_SEPARATOR, SEPARATOR), value)

    def _lookup(self, key: str) -> Any:
        node: Any = self._data
        for part in key.split(SEPARATOR):
            if not isinstance(node, Mapping):
                return None
            existing = _find_key(node, part)
            if existing is None:
                return None
            node = node[existing]
        return node

    def __contains__(self, key: str) -> bool:
        return self._lookup(key) is not None

    def get(self, key: str, default: Any = None) -> Any:
        value = self._lookup(key)
        return default if value is None else value

    def get_str(self, key: str, default: str = "") -> str:
        value = self._lookup(key)
        if value is None or isinstance(value, (dict, list)):
            return default
        return str(value)

    def get_bool(self, key: str, default: bool = False) -> bool:
        """
        Read a boolean setting.

        Raises:
            ConfigurationError: If the value is not a recognizable boolean
        """
        value = self._lookup(key)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE_VALUES:
            return True
        if text in _FALSE_VALUES:
            return False
        raise ConfigurationError(f"Setting '{key}' is not a boolean: {value!r}")

    def get_int(self, key: str, default: Optional[int] = None) -> Optional[int]:
        """
        Read an integer setting.

        Raises:
            ConfigurationError: If the value is not an integer
        """
        value = self._lookup(key)
        if value is None or value == "":
            return default
        if isinstance(value, bool):
            raise ConfigurationError(f"Setting '{key}' is not an integer: {value!r}")
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Setting '{key}' is not an integer: {value!r}") from e

    def get_section(self, key: str) -> Dict[str, Any]:
        """
        Return a nested section as a dict (empty when absent).

        Raises:
            ConfigurationError: If the key holds a scalar
        """
        value = self._lookup(key)
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            raise ConfigurationError(f"Setting '{key}' is not a section")
        return dict(value)
