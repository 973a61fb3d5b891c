"""
Pipeline Config Loader
======================

YAML-backed pipeline configuration with hot reload.

The file is watched with watchdog; a changed file is parsed and validated
before it replaces the active configuration, so a broken edit keeps the
previous configuration in place.
"""

import threading
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from inquiry_desk.core import ConfigurationException
from inquiry_desk.shared.config import IPipelineConfigProvider, PipelineConfig
from inquiry_desk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class ConfigFileHandler(FileSystemEventHandler):
    """Watchdog event handler for pipeline config file changes."""

    def __init__(self, config_manager: "PipelineConfigManager", config_path: Path):
        self.config_manager = config_manager
        self.config_path = config_path
        super().__init__()

    def on_modified(self, event):
        """Handle file modification event."""
        if event.is_directory:
            return
        if Path(event.src_path).resolve() == self.config_path.resolve():
            logger.info("Pipeline config file changed", extra={"path": event.src_path})
            self.config_manager.reload()


class PipelineConfigManager(IPipelineConfigProvider):
    """
    Thread-safe pipeline configuration manager with hot-reload support.

    Uses watchdog to monitor file changes and reload configuration
    without restarting the service.
    """

    def __init__(self):
        self._config: Optional[PipelineConfig] = None
        self._lock = threading.Lock()
        self._path: Optional[Path] = None
        self._observer = None

    def load(self, path: Path) -> PipelineConfig:
        """
        Initial configuration load.

        Raises:
            ConfigurationException: If the file exists but is invalid
        """
        self._path = Path(path)
        config = self._load_from_file(self._path)
        with self._lock:
            self._config = config
        return config

    def _load_from_file(self, path: Path) -> PipelineConfig:
        """Load and parse YAML config file."""
        if not path.exists():
            logger.warning("Pipeline config file not found, using defaults", extra={"path": str(path)})
            return PipelineConfig()

        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
            return PipelineConfig(**data)
        except (yaml.YAMLError, ValidationError, TypeError) as e:
            raise ConfigurationException(
                f"Invalid pipeline config {path}: {e}",
                {"path": str(path)}
            ) from e

    def reload(self) -> bool:
        """Reload configuration from file."""
        if self._path is None:
            return False

        try:
            new_config = self._load_from_file(self._path)
        except ConfigurationException as e:
            logger.error("Failed to reload pipeline config, keeping previous", extra={"error": e.message})
            return False

        with self._lock:
            self._config = new_config
        logger.info("Pipeline configuration reloaded successfully")
        return True

    def start_watching(self) -> None:
        """
        Start watching configuration file for changes.

        Skips watching if the file doesn't exist or inotify is unavailable.
        """
        if self._path is None:
            raise RuntimeError("Config not loaded. Call load() first.")

        if not self._path.exists():
            logger.info(
                "Pipeline config file doesn't exist, skipping file watch",
                extra={"path": str(self._path)}
            )
            return

        try:
            self._observer = Observer()
            handler = ConfigFileHandler(self, self._path)
            self._observer.schedule(handler, str(self._path.parent), recursive=False)
            self._observer.start()
            logger.info("Started watching pipeline config", extra={"path": str(self._path)})
        except OSError as e:
            logger.warning("File watching not available, using static config", extra={"error": str(e)})
            self._observer = None

    def stop_watching(self) -> None:
        """Stop watching configuration file (safe to call even if not watching)."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    def get_config(self) -> PipelineConfig:
        with self._lock:
            if self._config is None:
                raise RuntimeError("Pipeline configuration not loaded")
            return self._config

    @property
    def config(self) -> PipelineConfig:
        """Get current configuration."""
        return self.get_config()
