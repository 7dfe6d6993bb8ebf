from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError as SchemaValidationError

from ..models.config_models import (
    DAILY_RECORDS_TEMPLATE,
    DEFAULT_MAX_ROWS,
    DatabaseConfig,
    FieldRule,
    UploadConfig,
    UploadTemplate,
)

"""Config loader for CLI runs.

Responsibilities:
- Load YAML config/upload.yml
- Validate against upload_schema.json (shipped next to this module)
- Build UploadConfig / UploadTemplate objects; the built-in daily_records
  template is used unless the file overrides it
"""

SCHEMA_PATH = Path(__file__).with_name("upload_schema.json")
DEFAULT_CONFIG_PATH = Path("config/upload.yml")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against JSON schema.

    Raises:
        ConfigError: If the schema file is missing or not valid JSON, or the
            config data fails schema validation.
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except SchemaValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _build_template(record_type: str, raw: dict[str, Any]) -> UploadTemplate:
    headers = tuple(h.strip().lower() for h in raw["headers"])
    required = tuple(h.strip().lower() for h in raw.get("required_headers", raw["headers"]))
    unknown = [h for h in required if h not in headers]
    if unknown:
        raise ConfigError(f"template '{record_type}': required_headers not in headers: {unknown}")
    rules = {
        field.strip().lower(): FieldRule(
            required=bool(rule.get("required", False)),
            type=rule.get("type"),
            min=rule.get("min"),
            max=rule.get("max"),
        )
        for field, rule in raw["rules"].items()
    }
    return UploadTemplate(
        record_type=record_type,
        table_name=raw["table"],
        headers=headers,
        required_headers=required,
        rules=rules,
        max_rows=raw.get("max_rows", DEFAULT_MAX_ROWS),
    )


def default_config() -> UploadConfig:
    return UploadConfig(templates={DAILY_RECORDS_TEMPLATE.record_type: DAILY_RECORDS_TEMPLATE})


def load_config(path: Path, required: bool = True) -> UploadConfig:
    """Load config/upload.yml.

    A missing file is an error when required=True, otherwise the built-in
    defaults are returned.
    """
    if not path.exists():
        if required:
            raise ConfigError(f"config file not found: {path}")
        return default_config()
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    _validate_config_schema(data)

    templates = dict(default_config().templates)
    for record_type, raw in (data.get("templates") or {}).items():
        templates[record_type] = _build_template(record_type, raw)

    ref_tables = data.get("reference_tables") or {}
    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    return UploadConfig(
        templates=templates,
        cage_table=ref_tables.get("cages", "cages"),
        feed_type_table=ref_tables.get("feed_types", "feed_types"),
        database=db,
    )
