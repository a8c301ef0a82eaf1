"""Configuration management utilities for the homestead budget tools.

Provides:
- A small ``Config`` base class with dict/JSON round-tripping
- ``BudgetConfig``: currency display and export settings
- ``ProjectConfig``: the ordered list of phase data sources
- ``AppConfig``: web application settings read from environment variables
"""

from pathlib import Path
from typing import Dict, Any, List
import json
import os as _os


# Default location of the phase fixtures and the project file
DEFAULT_DATA_DIR = Path(__file__).resolve().parent.parent / "data"
DEFAULT_PROJECT_FILE = "project.json"


class Config:
    """Base configuration class for organizing application settings."""

    def to_dict(self) -> Dict[str, Any]:
        """Return all public attributes as a dictionary."""
        return {k: v for k, v in self.__dict__.items() if not k.startswith("_")}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create a config from defaults overridden by *data*.

        Unknown keys are kept as attributes so newer config files still load.
        """
        config = cls()
        for key, value in data.items():
            setattr(config, key, value)
        return config

    def save_json(self, path: Path) -> None:
        """Save configuration to a JSON file, creating parent directories."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2, default=str)

    @classmethod
    def load_json(cls, path: Path) -> "Config":
        """Load configuration from a JSON file.

        Raises:
            FileNotFoundError: If file doesn't exist
            json.JSONDecodeError: If file is not valid JSON
        """
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return cls.from_dict(data)


class BudgetConfig(Config):
    """Display and export settings for budget figures."""

    def __init__(self) -> None:
        self.currency = "R"
        self.thousands_sep = ","
        self.high_cost_threshold = 10000
        self.export_filename = "homestead-budget.csv"
        self.project_export_filename = "homestead-project-budget.csv"
        self.xlsx_filename = "homestead-budget.xlsx"


class ProjectConfig(Config):
    """Ordered phase sources for the whole project.

    ``phases`` is a list of dicts, each with ``name``, ``kind``
    (``"sections"`` or ``"mapping"``), ``path`` and, for section phases,
    ``files``.  Relative paths resolve against ``data_dir``.
    """

    def __init__(self) -> None:
        self.title = "Homestead Project"
        self.data_dir = DEFAULT_DATA_DIR
        self.phases: List[Dict[str, Any]] = []

    @classmethod
    def load(cls, path: Path | str | None = None,
             data_dir: Path | str | None = None) -> "ProjectConfig":
        """Load a project file.

        Args:
            path: Project JSON file (default: ``<data_dir>/project.json``)
            data_dir: Root for relative phase paths (default: the project
                file's directory)
        """
        if path is None:
            root = Path(data_dir) if data_dir is not None else DEFAULT_DATA_DIR
            path = root / DEFAULT_PROJECT_FILE
        path = Path(path)
        config = cls.load_json(path)
        config.data_dir = Path(data_dir) if data_dir is not None else path.parent
        if not isinstance(config.phases, list):
            raise ValueError(f"{path}: 'phases' must be a list")
        return config

    def phase_names(self) -> List[str]:
        return [str(p.get("name", "")) for p in self.phases if isinstance(p, dict)]


class AppConfig(Config):
    """Application-level configuration loaded from environment variables.

    All env vars have defaults so the application works out of the box.

    Environment variables:
        APP_DATA_DIR: Directory holding phase data (default: ./data)
        APP_PROJECT_CONFIG: Project file (default: <APP_DATA_DIR>/project.json)
        APP_PORT: API server port (default: 8000)
        APP_HOST: API server bind address (default: 127.0.0.1)
        APP_LOG_FORMAT: Logging format, "text" or "json" (default: text)
        APP_CORS_ORIGINS: Comma-separated allowed origins (default: *)
        APP_LOAD_WORKERS: Threads used to load phases concurrently (default: 4)
        APP_CACHE_TTL: Seconds to cache rendered budgets (default: 300)
        APP_HTTP_TIMEOUT: Seconds per remote phase request (default: 15)
    """

    def __init__(self) -> None:
        self.data_dir = Path(_os.getenv("APP_DATA_DIR", str(DEFAULT_DATA_DIR)))
        project = _os.getenv("APP_PROJECT_CONFIG")
        self.project_config = Path(project) if project else self.data_dir / DEFAULT_PROJECT_FILE
        self.api_port = int(_os.getenv("APP_PORT", "8000"))
        self.api_host = _os.getenv("APP_HOST", "127.0.0.1")
        self.log_format = _os.getenv("APP_LOG_FORMAT", "text")
        raw_origins = _os.getenv("APP_CORS_ORIGINS", "*")
        self.cors_origins: list[str] = (
            ["*"] if raw_origins == "*"
            else [o.strip() for o in raw_origins.split(",") if o.strip()]
        )
        self.load_workers = int(_os.getenv("APP_LOAD_WORKERS", "4"))
        self.cache_ttl = float(_os.getenv("APP_CACHE_TTL", "300"))
        self.http_timeout = float(_os.getenv("APP_HTTP_TIMEOUT", "15"))

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create an AppConfig instance populated from environment variables."""
        return cls()
