"""
Service configuration.

Settings are read from an optional YAML file and then overridden by
environment variables (a ``.env`` file is loaded first when given).

Expected YAML format:
```yaml
database:
  host: localhost
  port: 5432
  name: adoptions
  user: petadoptions
  table: transactions

pet_search:
  url: "http://petsearch.local/api/search?"
  timeout: 10.0

aggregation:
  transaction_limit: 25
  max_workers: null

logging:
  level: INFO
  format: json
```
"""

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from src.utils.validation import validate_base_url

# Environment variable -> (section, key)
ENV_OVERRIDES = {
    "DB_HOST": ("database", "host"),
    "DB_PORT": ("database", "port"),
    "DB_NAME": ("database", "name"),
    "DB_USER": ("database", "user"),
    "DB_PASSWORD": ("database", "password"),
    "DB_TABLE": ("database", "table"),
    "PET_SEARCH_URL": ("pet_search", "url"),
    "LOOKUP_TIMEOUT": ("pet_search", "timeout"),
    "TRANSACTION_LIMIT": ("aggregation", "transaction_limit"),
    "MAX_WORKERS": ("aggregation", "max_workers"),
    "LOG_LEVEL": ("logging", "level"),
    "LOG_FORMAT": ("logging", "format"),
}


class DatabaseSettings(BaseModel):
    host: str = "localhost"
    port: int = Field(default=5432, gt=0, lt=65536)
    name: str = "adoptions"
    user: str = "petadoptions"
    password: str | None = None
    table: str = "transactions"


class PetSearchSettings(BaseModel):
    url: str
    timeout: float = Field(default=10.0, gt=0)

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        return validate_base_url(value)


class AggregationSettings(BaseModel):
    transaction_limit: int = Field(default=25, gt=0, le=10000)
    max_workers: int | None = Field(default=None, gt=0)


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "text"] = "json"

    @field_validator("level", "format", mode="before")
    @classmethod
    def _normalize(cls, value: Any, info) -> Any:
        if not isinstance(value, str):
            return value
        return value.upper() if info.field_name == "level" else value.lower()


class AggregatorSettings(BaseModel):
    """
    Complete configuration of the adoption aggregator.
    """

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    pet_search: PetSearchSettings
    aggregation: AggregationSettings = Field(default_factory=AggregationSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path) as f:
        data = yaml.safe_load(f)

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping, got {type(data).__name__}")
    return data


def _apply_env_overrides(data: dict[str, Any], environ: dict[str, str]) -> dict[str, Any]:
    for env_var, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(env_var)
        if value is None or value == "":
            continue
        data.setdefault(section, {})
        if not isinstance(data[section], dict):
            raise ValueError(f"Configuration section '{section}' must be a mapping")
        data[section][key] = value
    return data


def load_settings(
    path: str | Path | None = None,
    env_file: str | Path | None = None,
    environ: dict[str, str] | None = None,
) -> AggregatorSettings:
    """
    Load settings from YAML and environment variables.

    Args:
        path: Optional YAML configuration file
        env_file: Optional .env file loaded into the process environment
        environ: Environment mapping to read overrides from (defaults to os.environ)

    Returns:
        Validated AggregatorSettings

    Raises:
        FileNotFoundError: If path is given but does not exist
        ValueError: If the YAML is malformed
        pydantic.ValidationError: If a value is invalid
    """
    if env_file is not None:
        load_dotenv(env_file, override=False)

    data = _read_yaml(Path(path)) if path is not None else {}
    data = _apply_env_overrides(data, dict(os.environ) if environ is None else environ)

    return AggregatorSettings.model_validate(data)
