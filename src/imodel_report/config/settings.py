"""
Configuration management for the iModel report exporter.

Usage:
    from imodel_report.config.settings import Config
    config = Config()
    settings = config.get_duckdb_settings()

Environment Variables:
    IMODEL_REPORT_OUTPUT_ROOT: Root directory for output folders (default: out)
    DUCKDB_MEMORY_LIMIT: Memory limit for the snapshot connection
    DUCKDB_THREADS: Number of threads for the snapshot connection
    GEOMETRY_TABLE: Table holding element geometry (default: elements)
    GEOMETRY_ID_COLUMN: Element id column in that table (default: id)
    GEOMETRY_COLUMN: WKB/WKT geometry column (default: geometry)
    GEOMETRY_HEIGHT_COLUMN: Extrusion height column, empty to disable (default: height)
    PROGRESS_INTERVAL: Rows/elements between progress messages (default: 1000)
"""

import logging
import os
import re
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass
class ProcessingConfig:
    """DuckDB processing configuration."""
    memory_limit: str
    threads: int

    def __post_init__(self):
        """Validate processing configuration."""
        if self.threads < 1:
            raise ValueError("Thread count must be positive")

        if not any(self.memory_limit.endswith(unit) for unit in ['MB', 'GB', 'TB']):
            raise ValueError("Memory limit must end with MB, GB, or TB")


@dataclass
class GeometryConfig:
    """Where element geometry lives inside a snapshot."""
    table: str = "elements"
    id_column: str = "id"
    geometry_column: str = "geometry"
    height_column: Optional[str] = "height"

    def __post_init__(self):
        """Validate identifiers; they are spliced into SQL."""
        for name in (self.table, self.id_column, self.geometry_column, self.height_column):
            if name is not None and not _IDENTIFIER.match(name):
                raise ValueError(f"Invalid SQL identifier: {name!r}")


class ConfigurationError(Exception):
    """Raised when configuration is invalid or incomplete."""
    pass


class Config:
    """
    Centralized configuration for the exporter.

    Environment variables loaded (in order of preference):
    1. Explicit environment file passed to constructor
    2. .env.{ENVIRONMENT} (where ENVIRONMENT=development|production|staging)
    3. .env file in project root
    4. System environment variables

    Job descriptions (queries, output folder) are separate YAML/JSON files,
    see config_loader.
    """

    def __init__(self,
                 environment: Optional[str] = None,
                 env_file: Optional[Path] = None):
        self.environment = environment or os.getenv("ENVIRONMENT", "development")
        self.project_root = self._find_project_root()

        self._load_environment_variables(env_file)

        self._load_output_config()
        self._load_processing_config()
        self._load_geometry_config()

    def _find_project_root(self) -> Path:
        """Find project root directory containing pyproject.toml, .git or a .env file."""
        current = Path(__file__).resolve()

        for parent in current.parents:
            if any((parent / marker).exists() for marker in ['pyproject.toml', '.git']):
                return parent

        if (Path.cwd() / '.env').exists():
            return Path.cwd()

        return Path.cwd()

    def _load_environment_variables(self, env_file: Optional[Path]) -> None:
        """Load environment variables from appropriate source."""
        loaded_files = []

        if env_file:
            if env_file.exists():
                load_dotenv(env_file)
                loaded_files.append(str(env_file))
                logger.info(f"Loaded configuration from {env_file}")
            else:
                raise ConfigurationError(f"Specified env file not found: {env_file}")
        else:
            env_specific_file = self.project_root / f".env.{self.environment}"
            if env_specific_file.exists():
                load_dotenv(env_specific_file)
                loaded_files.append(str(env_specific_file))
                logger.info(f"Loaded environment-specific config: {env_specific_file}")

            generic_env_file = self.project_root / ".env"
            if generic_env_file.exists():
                load_dotenv(generic_env_file)
                loaded_files.append(str(generic_env_file))
                logger.info(f"Loaded generic config: {generic_env_file}")

        if not loaded_files:
            logger.debug("No .env files found, using system environment variables only")

        self._loaded_env_files = loaded_files

        logger.debug(f"Project root: {self.project_root}")
        logger.debug(f"Environment: {self.environment}")

    def _int_env(self, key: str, default: str) -> int:
        raw = os.getenv(key, default)
        try:
            return int(raw)
        except ValueError:
            raise ConfigurationError(f"{key} must be an integer, got {raw!r}")

    def _load_output_config(self) -> None:
        """Load output root and progress cadence."""
        self.output_root = Path(os.getenv("IMODEL_REPORT_OUTPUT_ROOT", "out"))
        self.progress_interval = self._int_env("PROGRESS_INTERVAL", "1000")
        if self.progress_interval < 1:
            raise ConfigurationError("PROGRESS_INTERVAL must be positive")

    def _load_processing_config(self) -> None:
        """Load DuckDB processing configuration."""
        memory_limit = os.getenv("DUCKDB_MEMORY_LIMIT", "4GB")
        threads = self._int_env("DUCKDB_THREADS", "4")

        try:
            self.processing = ProcessingConfig(
                memory_limit=memory_limit,
                threads=threads
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid processing configuration: {e}")

    def _load_geometry_config(self) -> None:
        """Load element geometry lookup configuration."""
        height_column = os.getenv("GEOMETRY_HEIGHT_COLUMN", "height") or None

        try:
            self.geometry = GeometryConfig(
                table=os.getenv("GEOMETRY_TABLE", "elements"),
                id_column=os.getenv("GEOMETRY_ID_COLUMN", "id"),
                geometry_column=os.getenv("GEOMETRY_COLUMN", "geometry"),
                height_column=height_column,
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid geometry configuration: {e}")

    def get_duckdb_settings(self) -> dict[str, Any]:
        """
        Get DuckDB configuration settings as dictionary.

        Returns:
            Dictionary of DuckDB settings ready for connection setup
        """
        return {
            'memory_limit': self.processing.memory_limit,
            'threads': self.processing.threads,
        }

    def __repr__(self) -> str:
        return (
            f"Config(environment={self.environment}, "
            f"output_root={self.output_root}, "
            f"geometry_table={self.geometry.table})"
        )


class PipelineLogger:
    """
    Diagnostic sink handed to the exporter.

    Wraps a standard logger so the export core never reaches for module-level
    logging state; tests pass a logger of their own and inspect its records.
    """

    def __init__(self, base_logger: Optional[logging.Logger] = None, progress_interval: int = 1000):
        self.logger = base_logger or logging.getLogger("imodel_report")
        self.progress_interval = progress_interval

    def debug(self, message: str) -> None:
        self.logger.debug(message)

    def info(self, message: str) -> None:
        self.logger.info(message)

    def warning(self, message: str) -> None:
        self.logger.warning(message)

    def error(self, message: str, exc_info: bool = False) -> None:
        self.logger.error(message, exc_info=exc_info)

    def is_progress_tick(self, count: int) -> bool:
        """True on every ``progress_interval``-th item."""
        return count > 0 and count % self.progress_interval == 0

    @contextmanager
    def phase(self, name: str):
        """Log how long a named phase took."""
        start = time.time()
        self.logger.info(f"{name} started")
        try:
            yield
        finally:
            self.logger.info(f"{name} finished in {time.time() - start:.1f}s")
