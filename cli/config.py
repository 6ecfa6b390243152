"""Configuration management for the FileShare CLI."""

import json
import os
import shutil
from pathlib import Path
from typing import Optional

from common.constants import SERVER_PORT
from common.logging_config import get_logger

logger = get_logger(__name__)


class Config:
    """Manages CLI configuration stored in JSON file."""

    DEFAULT_CONFIG = {
        "server_host": os.environ.get("FILESHARE_SERVER_HOST", "localhost"),
        "server_port": int(os.environ.get("FILESHARE_SERVER_PORT", str(SERVER_PORT))),
        "timeout": 30,
        "download_dir": "downloads",
    }

    def __init__(self, config_path: Path):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config JSON file (typically ~/.fileshare/config.json)
        """
        self.config_path = config_path
        self.data = self._load()

    def _load(self) -> dict:
        """
        Load configuration from file, creating defaults if necessary.

        Returns:
            Configuration dictionary
        """
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
        except PermissionError:
            import tempfile
            self.config_path = Path(tempfile.gettempdir()) / '.fileshare' / 'config.json'
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    data = json.load(f)
                config = self.DEFAULT_CONFIG.copy()
                config.update(data)
                return config
            except (json.JSONDecodeError, OSError) as e:
                logger.warning(f"Unreadable config at {self.config_path} ({e}), using defaults")
                backup_path = self.config_path.with_suffix('.json.bak')
                try:
                    shutil.copy(self.config_path, backup_path)
                except OSError:
                    pass
                return self.DEFAULT_CONFIG.copy()

        config = self.DEFAULT_CONFIG.copy()
        try:
            with open(self.config_path, 'w') as f:
                json.dump(config, f, indent=2)
        except OSError as e:
            logger.warning(f"Could not write default config to {self.config_path}: {e}")
        return config

    def save(self) -> None:
        """Save current configuration to file."""
        try:
            with open(self.config_path, 'w') as f:
                json.dump(self.data, f, indent=2)
        except OSError as e:
            logger.warning(f"Could not save config to {self.config_path}: {e}")

    def get_server_address(self) -> tuple[str, int]:
        """
        Get the server host and port.

        Returns:
            (host, port) tuple, e.g. ("localhost", 8000)
        """
        host = self.data.get('server_host', 'localhost')
        port = int(self.data.get('server_port', SERVER_PORT))
        return host, port

    def get_timeout(self) -> Optional[float]:
        """Socket timeout in seconds; 0 or null disables it."""
        timeout = self.data.get('timeout', 30)
        return float(timeout) if timeout else None

    def get_download_dir(self) -> Path:
        return Path(self.data.get('download_dir', 'downloads')).expanduser()

    def get_last_username(self) -> Optional[str]:
        return self.data.get('last_username')

    def set_last_username(self, username: str) -> None:
        """Remember the account used for the last successful login."""
        self.data['last_username'] = username
        self.save()
