"""
Configuration management for pg_sweep.

Supports:
- TOML config files
- Environment variables (libpq PG* names)
- Command-line overrides
- Sensible defaults

Priority (highest to lowest):
1. Command-line arguments
2. Environment variables
3. Config file
4. Defaults
"""

import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Mapping

try:
    import tomllib  # Python 3.11+
except ImportError:
    import tomli as tomllib  # Fallback for older Python

from .telemetry.collector import CollectorConfig
from .telemetry.source import ISOLATION_LEVELS


# Default config file locations (searched in order)
CONFIG_SEARCH_PATHS = [
    Path.cwd() / "pg_sweep.toml",
    Path.cwd() / "config.toml",
    Path.home() / ".pg_sweep" / "config.toml",
    Path.home() / ".config" / "pg_sweep" / "config.toml",
]

OUTPUT_FORMATS = ("json", "table")

TRUE_VALUES = ("1", "true", "yes", "on")


@dataclass
class DatabaseConfig:
    """Database connection configuration."""
    host: str = "localhost"
    port: int = 5432
    user: str = "postgres"
    password: str = ""
    name: str = "postgres"
    connect_timeout: int = 10
    statement_timeout_ms: Optional[int] = None

    def connection_string(self) -> str:
        """Generate connection string (password masked)."""
        auth = f"{self.user}:***" if self.password else self.user
        return f"postgresql://{auth}@{self.host}:{self.port}/{self.name}"


@dataclass
class OutputConfig:
    """Output configuration."""
    format: str = "json"
    indent: Optional[int] = 2
    path: Optional[str] = None
    quiet: bool = False


@dataclass
class Config:
    """Main configuration container."""
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    collector: CollectorConfig = field(default_factory=CollectorConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    # Source tracking
    _config_file: Optional[Path] = None

    @classmethod
    def load(
        cls,
        config_path: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "Config":
        """
        Load configuration from file, then apply environment variables.

        Args:
            config_path: Explicit path to config file. If None, searches default locations.
            environ: Environment mapping (defaults to os.environ)

        Returns:
            Config instance with loaded values
        """
        config = cls()

        # Find config file
        if config_path:
            path = Path(config_path)
            if not path.exists():
                raise FileNotFoundError(f"Config file not found: {config_path}")
        else:
            path = cls._find_config_file()

        if path:
            config = cls._load_from_file(path)
            config._config_file = path

        return config.override_from_env(os.environ if environ is None else environ)

    @classmethod
    def _find_config_file(cls) -> Optional[Path]:
        """Find config file in default locations."""
        for path in CONFIG_SEARCH_PATHS:
            if path.exists():
                return path
        return None

    @classmethod
    def _load_from_file(cls, path: Path) -> "Config":
        """Load config from TOML file."""
        with open(path, "rb") as f:
            data = tomllib.load(f)

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create Config from dictionary."""
        config = cls()

        # Database
        if "database" in data:
            db = data["database"]
            config.database = DatabaseConfig(
                host=db.get("host", config.database.host),
                port=db.get("port", config.database.port),
                user=db.get("user", config.database.user),
                password=db.get("password", config.database.password),
                name=db.get("name", config.database.name),
                connect_timeout=db.get("connect_timeout", config.database.connect_timeout),
                statement_timeout_ms=db.get("statement_timeout_ms") or None,
            )

        # Collector
        if "collector" in data:
            col = data["collector"]
            config.collector = CollectorConfig(
                consistent_snapshot=col.get("consistent_snapshot", config.collector.consistent_snapshot),
                isolation_level=col.get("isolation_level", config.collector.isolation_level),
            )

        # Output
        if "output" in data:
            out = data["output"]
            config.output = OutputConfig(
                format=out.get("format", config.output.format),
                indent=out.get("indent", config.output.indent),
                path=out.get("path") or None,
                quiet=out.get("quiet", config.output.quiet),
            )

        return config

    def override_from_env(self, environ: Mapping[str, str]) -> "Config":
        """Apply PG* and PG_SWEEP_* environment variables."""
        if environ.get("PGHOST"):
            self.database.host = environ["PGHOST"]
        if environ.get("PGPORT"):
            self.database.port = int(environ["PGPORT"])
        if environ.get("PGUSER"):
            self.database.user = environ["PGUSER"]
        if environ.get("PGPASSWORD"):
            self.database.password = environ["PGPASSWORD"]
        if environ.get("PGDATABASE"):
            self.database.name = environ["PGDATABASE"]

        if environ.get("PG_SWEEP_CONSISTENT"):
            self.collector.consistent_snapshot = environ["PG_SWEEP_CONSISTENT"].lower() in TRUE_VALUES

        return self

    def override_from_args(self, args) -> "Config":
        """
        Override config values from argparse namespace.

        Args with value None are ignored (keeping config file values).
        """
        # Database overrides
        if getattr(args, "host", None):
            self.database.host = args.host
        if getattr(args, "port", None):
            self.database.port = args.port
        if getattr(args, "user", None):
            self.database.user = args.user
        if getattr(args, "password", None):
            self.database.password = args.password
        if getattr(args, "database", None):
            self.database.name = args.database
        if getattr(args, "statement_timeout", None):
            self.database.statement_timeout_ms = args.statement_timeout

        # Collector overrides
        if getattr(args, "consistent", None):
            self.collector.consistent_snapshot = True
        if getattr(args, "isolation_level", None):
            self.collector.isolation_level = args.isolation_level

        # Output overrides
        if getattr(args, "format", None):
            self.output.format = args.format
        if getattr(args, "output", None):
            self.output.path = args.output
        if getattr(args, "quiet", None):
            self.output.quiet = args.quiet

        return self

    def validate(self) -> list:
        """
        Validate configuration.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        # Database validation
        if not self.database.host:
            errors.append("Database host is required")
        if not self.database.user:
            errors.append("Database user is required")
        if not 0 < self.database.port < 65536:
            errors.append(f"Database port out of range: {self.database.port}")
        if self.database.statement_timeout_ms is not None and self.database.statement_timeout_ms < 0:
            errors.append("Statement timeout must not be negative")

        # Collector validation
        if self.collector.isolation_level not in ISOLATION_LEVELS:
            errors.append(
                f"Unknown isolation level '{self.collector.isolation_level}' "
                f"(choose from {', '.join(ISOLATION_LEVELS)})"
            )

        # Output validation
        if self.output.format not in OUTPUT_FORMATS:
            errors.append(f"Unknown output format '{self.output.format}' (choose from {', '.join(OUTPUT_FORMATS)})")

        return errors

    def summary(self, include_config_path: bool = True) -> str:
        """Generate human-readable config summary."""
        lines = []

        if include_config_path:
            if self._config_file:
                lines.append(f"Config: {self._config_file}")
            else:
                lines.append("Config: (defaults)")

        lines.append(f"Database: {self.database.user}@{self.database.host}:{self.database.port}/{self.database.name}")

        if self.collector.consistent_snapshot:
            lines.append(f"Snapshot: consistent ({self.collector.isolation_level})")
        else:
            lines.append("Snapshot: per-query (values may skew between queries)")

        lines.append(f"Output: {self.output.format} -> {self.output.path or 'stdout'}")

        return "\n".join(lines)


EXAMPLE_CONFIG = """# pg_sweep Configuration

[database]
host = "localhost"
port = 5432
user = "postgres"
password = ""
name = "postgres"
connect_timeout = 10
# statement_timeout_ms = 5000

[collector]
consistent_snapshot = false
isolation_level = "repeatable_read"

[output]
format = "json"
indent = 2
# path = "snapshot.json"
"""


def create_example_config(path: str = "pg_sweep.toml") -> Path:
    """Create example config file."""
    target = Path(path)

    if target.exists():
        raise FileExistsError(f"Config file already exists: {path}")

    target.write_text(EXAMPLE_CONFIG)
    return target
