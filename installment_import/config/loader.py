from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import DatabaseConfig, ImportPolicy, TargetEntity

"""Application settings loader.

Responsibilities:
- Load the YAML settings file (default config/import.yml)
- Validate it against config_schema.json (shipped next to this module)
- Apply defaults for every optional key

Connection parameters found in the environment take precedence over the
``database`` section; see installment_import.db.postgres.resolve_dsn.
"""

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "ConfigError",
    "Settings",
    "load_config",
    "load_mapping_file",
]

SCHEMA_PATH = Path(__file__).parent / "config_schema.json"
DEFAULT_CONFIG_PATH = Path("config/import.yml")

DEFAULT_MIN_INSTALLMENTS = 1
DEFAULT_PREVIEW_ROWS = 5
DEFAULT_PAGE_SIZE = 1000


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class Settings:
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    min_installments: int = DEFAULT_MIN_INSTALLMENTS
    preview_rows: int = DEFAULT_PREVIEW_ROWS
    page_size: int = DEFAULT_PAGE_SIZE
    policies: dict[TargetEntity, ImportPolicy] = field(default_factory=dict)

    def policy_for(self, entity: TargetEntity) -> ImportPolicy | None:
        return self.policies.get(entity)


def _load_yaml(path: Path) -> Any:
    try:
        return yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate settings data against the JSON schema.

    Raises:
        ConfigError: the schema file is missing or broken, or the data does
            not conform (unknown keys, wrong types, out-of-range values)
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def load_config(path: Path | None = None, *, required: bool = False) -> Settings:
    """Load settings from ``path``.

    A missing file yields the defaults unless ``required`` is set (the CLI
    sets it when ``--config`` is given explicitly).
    """
    path = path or DEFAULT_CONFIG_PATH
    if not path.exists():
        if required:
            raise ConfigError(f"config file not found: {path}")
        return Settings()

    data = _load_yaml(path) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping: {path}")
    _validate_config_schema(data)

    db_raw = data.get("database", {})
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    policies = {
        TargetEntity(name): ImportPolicy(value)
        for name, value in (data.get("policies") or {}).items()
    }
    return Settings(
        database=db,
        min_installments=data.get("min_installments", DEFAULT_MIN_INSTALLMENTS),
        preview_rows=data.get("preview_rows", DEFAULT_PREVIEW_ROWS),
        page_size=data.get("page_size", DEFAULT_PAGE_SIZE),
        policies=policies,
    )


def load_mapping_file(path: Path) -> dict[str, str]:
    """Read a column mapping (source column -> target field) from YAML.

    Key order is preserved. Keys and values are coerced to strings since
    spreadsheet headers are often numeric.
    """
    if not path.exists():
        raise ConfigError(f"mapping file not found: {path}")
    data = _load_yaml(path) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"mapping file must be a mapping of source column to target field: {path}")
    return {str(k): str(v) for k, v in data.items()}
