"""calendarcard_lite.config_loader

Configuration model and loader for calendarcard_lite.

- `CardConfig` accepts the card's camelCase keys (`numberOfDays`) as well as
  snake_case (`number_of_days`), applies the documented defaults and rejects
  out-of-range values and invalid ignore expressions up front.
- `load_config()` reads a YAML or JSON file and returns a validated `CardConfig`.
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from .core.temporal import resolve_timezone
from .exceptions import ConfigValidationError

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "CALENDARCARD_CONFIG"
DEFAULT_CONFIG_FILENAME = "calendarcard.yaml"


class EntityDescriptor(BaseModel):
    """One configured calendar source.

    The card accepts either a bare entity id (`calendar.work`) or a mapping
    with a display name (`{entity: calendar.work, name: Work}`); both are
    normalized to this single shape on ingestion.
    """

    model_config = ConfigDict(frozen=True)

    entity: str = Field(..., min_length=1, description="Calendar entity id")
    name: Optional[str] = Field(default=None, description="Display name for the source")

    @property
    def kind(self) -> Literal["id", "named"]:
        return "named" if self.name else "id"

    @property
    def display_name(self) -> str:
        return self.name or self.entity

    @classmethod
    def coerce(cls, value: Any) -> EntityDescriptor:
        """Normalize a bare id, a mapping, or a descriptor into a descriptor.

        Raises:
            ValueError: If the value cannot be read as an entity descriptor
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            if not value.strip():
                raise ValueError("entity id cannot be empty")
            return cls(entity=value.strip())
        if isinstance(value, dict):
            entity_id = value.get("entity")
            if not isinstance(entity_id, str) or not entity_id.strip():
                raise ValueError(f"entity descriptor {value!r} has no entity id")
            name = value.get("name")
            return cls(entity=entity_id.strip(), name=str(name) if name else None)
        raise ValueError(f"unsupported entity descriptor {value!r}")


class CardConfig(BaseModel):
    """Validated configuration for one processing run.

    Unknown keys (the card's presentation options such as `timeFormat` or
    `showLocation`) are kept in `presentation` for the renderer and are
    never interpreted by the pipeline.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="allow",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    entities: list[EntityDescriptor] = Field(..., description="Calendar sources, in order")
    number_of_days: int = Field(default=7, ge=1, description="Window size starting today")
    events_limit: int = Field(default=99, ge=0, description="Max events, enforced per day")
    hide_past_events: bool = Field(default=False, description="Hide events that already ended")
    start_from_today: bool = Field(default=False, description="Hide events ended before today")
    show_multi_day: bool = Field(default=False, description="Split multi-day events per day")
    ignore_events_expression: str = Field(default="", description="Title regex to exclude")
    ignore_events_by_location_expression: str = Field(
        default="", description="Location regex to exclude"
    )
    timezone: Optional[str] = Field(default=None, description="IANA display timezone")

    @field_validator("entities", mode="before")
    @classmethod
    def normalize_entities(cls, v: Any) -> list[EntityDescriptor]:
        if v is None:
            raise ValueError("entities must be a list of calendar sources")
        if isinstance(v, (str, dict)):
            v = [v]
        if not isinstance(v, (list, tuple)):
            raise ValueError("entities must be a list of calendar sources")
        return [EntityDescriptor.coerce(item) for item in v]

    @field_validator("ignore_events_expression", "ignore_events_by_location_expression", mode="before")
    @classmethod
    def validate_expression(cls, v: Any) -> str:
        if v is None:
            return ""
        v = str(v)
        if v:
            try:
                re.compile(v, re.IGNORECASE)
            except re.error as e:
                raise ValueError(f"Invalid regular expression {v!r}: {e}") from e
        return v

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: Optional[str]) -> Optional[str]:
        if v:
            resolve_timezone(v)
        return v or None

    @property
    def presentation(self) -> dict[str, Any]:
        """Renderer-only options carried through from the source config."""
        return dict(self.model_extra or {})

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> CardConfig:
        """Create a CardConfig from a plain mapping.

        Raises:
            ConfigValidationError: If any value fails validation
        """
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigValidationError("Configuration must be a mapping", field_value=data)
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            first = e.errors()[0]
            field_name = ".".join(str(part) for part in first.get("loc", ()))
            raise ConfigValidationError(
                f"Invalid configuration: {first.get('msg')}",
                field_name=field_name or None,
                field_value=first.get("input"),
            ) from e


def _load_yaml_or_json(path: Path) -> Any:
    """Load a document from a YAML or JSON file (JSON chosen by `.json` suffix)."""
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() == ".json":
            return json.loads(text)
        loaded = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigValidationError(f"Unable to parse config file {path}: {e}") from e
    # safe_load returns None for empty files
    return {} if loaded is None else loaded


def load_config(path: str | None = None) -> CardConfig:
    """Load configuration from a YAML/JSON file and return a CardConfig.

    Args:
        path: Optional path to the config file. Defaults to $CALENDARCARD_CONFIG,
              then ./calendarcard.yaml.

    Raises:
        ConfigValidationError: If the file is missing, unparseable, not a mapping,
            or holds invalid values
    """
    p = Path(path or os.environ.get(CONFIG_PATH_ENV) or Path.cwd() / DEFAULT_CONFIG_FILENAME)
    logger.debug("Attempting to load config from %s", p)
    if not p.exists():
        raise ConfigValidationError(f"Config file {p} not found")

    raw = _load_yaml_or_json(p)
    if not isinstance(raw, dict):
        logger.warning("Config file %s parsed but top-level is not a mapping: %r", p, raw)
        raise ConfigValidationError("Config file must contain a mapping at top level")
    cfg = CardConfig.from_dict(raw)
    logger.info("Loaded configuration from %s (%d calendar sources)", p, len(cfg.entities))
    logger.debug("Configuration values: %s", cfg)
    return cfg
