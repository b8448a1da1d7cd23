from __future__ import annotations
from pathlib import Path
import fcntl
from typing import Any, Dict
import yaml

from modshield.exceptions import ConfigurationError
from modshield.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path("./config/app_config.yml").resolve()


class AppConfig:
    """File-lock based accessor around the YAML-based application configuration.

    The class caches contents of ``./config/app_config.yml`` and exposes
    dictionary-like access helpers. Moderation rules are validated separately
    by :func:`modshield.configuration.moderation_settings.load_moderation_settings`.
    """

    def __init__(self, config_path: Path) -> None:
        self.config_path = config_path
        self._data: Dict[str, Any] = {}
        self.reload()

    # --------------------------
    # Private helpers
    # --------------------------
    def load_from_disk(self) -> Dict[str, Any]:
        """Read and parse the YAML file.

        A missing file yields an empty mapping so built-in defaults apply.

        Raises:
            ConfigurationError: If the file is unreadable, is not valid YAML,
                or its top level or a known section is not a mapping.
        """
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                # Acquire a shared lock for reading
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                try:
                    data = yaml.safe_load(f)
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except FileNotFoundError:
            logger.warning("[APP CONFIGURATION] Config file %s not found; using defaults.", self.config_path)
            return {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Config {self.config_path} is not valid YAML: {exc}") from exc
        except OSError as exc:
            raise ConfigurationError(f"Config {self.config_path} could not be read: {exc}") from exc

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config {self.config_path} must contain a mapping at top level")
        for section in ("moderation", "punishments"):
            if data.get(section) is not None and not isinstance(data[section], dict):
                raise ConfigurationError(f"'{section}' in {self.config_path} must be a mapping")
        return data

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Reload configuration from disk and return the loaded mapping.

        Returns the raw mapping that was loaded (an empty dict when the file
        is missing). Raises :class:`ConfigurationError` on a malformed file
        and leaves the cached mapping untouched.
        """
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        """Return the current cached configuration mapping.

        Callers should not mutate it; use get(...) or the convenience
        properties instead.
        """
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Safe lookup for top-level configuration keys."""
        return self._data.get(key, default)

    # --------------------------
    # High-level shortcuts
    # --------------------------
    @property
    def moderation(self) -> Dict[str, Any]:
        """Return the raw ``moderation`` section (empty dict if absent)."""
        return self._data.get("moderation") or {}

    @property
    def punishments(self) -> Dict[str, Any]:
        """Return the raw ``punishments`` section (empty dict if absent)."""
        return self._data.get("punishments") or {}
