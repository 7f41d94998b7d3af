from __future__ import annotations
from pathlib import Path
import fcntl
from typing import Any, Dict
import yaml

from clubguard.configuration.permission_settings import PermissionSettings
from clubguard.configuration.security_settings import SecuritySettings
from clubguard.util.logger import get_logger

logger = get_logger("app_configuration")


DEFAULT_DATABASE_PATH = Path("./data/security.db")

# Used when the config file has no ``rate_limits`` section
DEFAULT_RATE_LIMITS: Dict[str, Dict[str, float]] = {
    "member": {"limit": 10, "window_seconds": 60},
    "fee": {"limit": 5, "window_seconds": 60},
    "vote": {"limit": 8, "window_seconds": 60},
    "sheet": {"limit": 3, "window_seconds": 60},
    "setup": {"limit": 2, "window_seconds": 300},
    "security": {"limit": 10, "window_seconds": 60},
    "default": {"limit": 15, "window_seconds": 60},
}


class AppConfig:
    """File-lock based accessor around the YAML-based application configuration.

    The class caches contents of ``./config/app_config.yml``, exposes
    dictionary-like access helpers, and wraps the ``permissions`` and
    ``security`` sections in :class:`PermissionSettings` and
    :class:`SecuritySettings`. Uses fcntl file locks for safe concurrent
    access across processes.
    """

    def __init__(self, config_path: Path) -> None:
        self.config_path = config_path
        self._data: Dict[str, Any] = {}
        self.reload()

    # --------------------------
    # Private helpers
    # --------------------------
    def load_from_disk(self) -> Dict[str, Any]:
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                try:
                    data = yaml.safe_load(f)
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
                return data if isinstance(data, dict) else {}
        except FileNotFoundError:
            logger.error("[APP CONFIGURATION] Config file %s not found.", self.config_path)
        except Exception as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
        return {}

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Reload configuration from disk and return the loaded mapping.

        Returns the raw mapping that was loaded (an empty dict on error).
        """
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        """Return the current cached configuration mapping.

        The returned dict is the internal cache (shallow reference). Callers
        should not mutate it.
        """
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Safe lookup for top-level configuration keys."""
        return self._data.get(key, default)

    # --------------------------
    # High-level shortcuts
    # --------------------------
    @property
    def permissions(self) -> PermissionSettings:
        section = self._data.get("permissions", {})
        return PermissionSettings(section if isinstance(section, dict) else {})

    @property
    def security(self) -> SecuritySettings:
        section = self._data.get("security", {})
        return SecuritySettings(section if isinstance(section, dict) else {})

    @property
    def rate_limits(self) -> Dict[str, Any]:
        """Return the raw per-command rate-limit table.

        Validation happens when the table is turned into a
        :class:`~clubguard.security.rate_limiter.RateLimitTable` at startup,
        so a broken table stops the bot instead of silently weakening limits.
        """
        table = self._data.get("rate_limits")
        if table is None:
            return dict(DEFAULT_RATE_LIMITS)
        return table if isinstance(table, dict) else {}

    @property
    def database_path(self) -> Path:
        section = self._data.get("database", {})
        if isinstance(section, dict) and section.get("path"):
            return Path(str(section["path"])).resolve()
        return DEFAULT_DATABASE_PATH.resolve()

