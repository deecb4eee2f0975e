"""Configuration loader for the audiobook CORS proxy."""

import os
from pathlib import Path
from typing import Any, Optional

import yaml

DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)


class Config:
    """Server configuration from config.yaml."""

    def __init__(self, config_path: str | Path | None = None):
        if config_path is None:
            # The default file is optional; fall back to built-in defaults
            self._config = (
                self._load_config(DEFAULT_CONFIG_PATH)
                if DEFAULT_CONFIG_PATH.exists()
                else {}
            )
        else:
            self._config = self._load_config(config_path)

    def _load_config(self, path: Path | str) -> dict[str, Any]:
        """Load configuration from YAML file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, "r") as f:
            return yaml.safe_load(f) or {}

    def _section(self, name: str) -> dict[str, Any]:
        return self._config.get(name) or {}

    @property
    def host(self) -> str:
        return self._section("server").get("host", "0.0.0.0")

    @property
    def port(self) -> int:
        """Listening port. The PORT environment variable wins over the file."""
        env_port = os.environ.get("PORT")
        if env_port:
            try:
                return int(env_port)
            except ValueError:
                pass
        return int(self._section("server").get("port", 3000))

    @property
    def cors_origins(self) -> list[str]:
        """Get CORS allowed origins. Defaults to ["*"]."""
        return self._section("server").get("cors_origins", ["*"])

    @property
    def debug(self) -> bool:
        """Get debug mode. Defaults to False."""
        return self._section("server").get("debug", False)

    @property
    def log_level(self) -> str:
        """Get log level. Defaults to 'info'."""
        return self._section("server").get("log_level", "info")

    @property
    def proxy_path(self) -> str:
        """Route the proxy answers on. Defaults to '/api/proxy'."""
        return self._section("proxy").get("path", "/api/proxy")

    @property
    def user_agent(self) -> str:
        """User-Agent sent upstream on every fetch."""
        return self._section("proxy").get("user_agent", DEFAULT_USER_AGENT)

    @property
    def upstream_timeout(self) -> Optional[float]:
        """Upstream timeout in seconds. None (the default) means no timeout."""
        raw_value = self._section("proxy").get("timeout")
        if raw_value is None:
            return None
        try:
            value = float(raw_value)
        except (TypeError, ValueError):
            return None
        return value if value > 0 else None

    @property
    def static_dir(self) -> Path:
        """Built front-end served by the dev server. Defaults to 'dist'."""
        return Path(self._section("dev").get("static_dir", "dist"))


# Global config instance
_config: Config | None = None


def get_config() -> Config:
    """Get global config instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config
