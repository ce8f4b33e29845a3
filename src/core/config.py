"""Configuration loading and validation."""

import os
import re
import json
from pathlib import Path
from typing import Any, Optional
from dataclasses import dataclass, field

import yaml
from pydantic import BaseModel, Field, ValidationError
import jsonschema
import structlog

from .errors import ConfigError


logger = structlog.get_logger()


DEFAULT_EXTENSIONS = [
    ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".txt", ".csv", ".json", ".xml",
]

# Keys a rule record may carry next to its settings bag
RULE_RECORD_KEYS = ("type", "name", "enabled", "settings")

RULES_SCHEMA: dict[str, Any] = {
    "type": "array",
    "items": {
        "type": "object",
        "required": ["type"],
        "properties": {
            "type": {"type": "string", "minLength": 1},
            "name": {"type": "string"},
            "enabled": {"type": "boolean"},
            "settings": {"type": "object"},
        },
    },
}


class EmailConfig(BaseModel):
    """SMTP settings used by bulk email rules."""
    smtp_host: str = Field(default="")
    smtp_port: int = Field(default=587, ge=1, le=65535)
    use_ssl: bool = Field(default=False)   # SSL on connect; otherwise STARTTLS
    use_starttls: bool = Field(default=True)
    sender: str = Field(default="")
    username: Optional[str] = Field(default=None)
    password: Optional[str] = Field(default=None)
    timeout_seconds: int = Field(default=30, ge=1)

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_host and self.sender)


class SchedulerConfig(BaseModel):
    """Interval scheduler configuration."""
    interval_seconds: int = Field(default=30, ge=1)


class LoggingConfig(BaseModel):
    """Log output configuration."""
    level: str = Field(default="info")
    json_output: bool = Field(default=False)


class StatusServerConfig(BaseModel):
    """HTTP status endpoint served while scheduling."""
    enabled: bool = Field(default=False)
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8080, ge=1, le=65535)


class AppConfig(BaseModel):
    """Main application configuration."""
    name: str = Field(default="automation-runner")

    email: EmailConfig = Field(default_factory=EmailConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    status_server: StatusServerConfig = Field(default_factory=StatusServerConfig)

    # Paths
    rules_path: str = Field(default="./config/rules.yaml")


@dataclass
class RuleDefinition:
    """A single rule record: discriminator, name, enabled flag and settings bag."""
    type: str
    name: Optional[str] = None
    enabled: bool = True
    settings: dict[str, Any] = field(default_factory=dict)

    @property
    def type_key(self) -> str:
        """Normalized discriminator used for factory lookup."""
        return self.type.strip().lower()


def _snake_case(key: str) -> str:
    """Convert camelCase setting keys (csvPath) to snake_case (csv_path)."""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()


class ConfigLoader:
    """Loads and validates YAML/JSON configurations."""

    def __init__(self, config_dir: str = "./config"):
        self.config_dir = Path(config_dir)

    def load_app_config(self, path: Optional[str] = None) -> AppConfig:
        """Load main application configuration, falling back to defaults."""
        if path is None:
            path = self.config_dir / "automation.yaml"
        else:
            path = Path(path)

        data: dict[str, Any] = {}
        if path.exists():
            data = self._load_file(path)
            if not isinstance(data, dict):
                raise ConfigError("App config must be a mapping", config_path=str(path))
        else:
            logger.info("app_config_missing_using_defaults", path=str(path))

        try:
            config = AppConfig(**data)
        except ValidationError as e:
            raise ConfigError(f"Invalid app config: {e}", config_path=str(path))

        self._apply_env_overrides(config)
        return config

    def load_rule_definitions(self, path: Optional[str] = None) -> list[RuleDefinition]:
        """Load the ordered list of rule definitions from a YAML or JSON file."""
        if path is None:
            path = self.config_dir / "rules.yaml"
        else:
            path = Path(path)

        if not path.exists():
            logger.warning("rules_file_not_found", path=str(path))
            return []

        data = self._load_file(path)

        # Support both a bare list and {"rules": [...]}
        if isinstance(data, dict):
            raw_rules = data.get("rules", [])
        else:
            raw_rules = data or []

        try:
            jsonschema.validate(raw_rules, RULES_SCHEMA)
        except jsonschema.ValidationError as e:
            raise ConfigError(
                f"Invalid rule definitions: {e.message}",
                config_path=str(path),
            )

        definitions = [self.parse_rule_definition(raw) for raw in raw_rules]
        if not definitions:
            logger.warning("no_rules_defined", path=str(path))
        return definitions

    @staticmethod
    def parse_rule_definition(raw: dict[str, Any]) -> RuleDefinition:
        """Build a RuleDefinition, folding flat top-level keys into settings."""
        settings: dict[str, Any] = {}
        for key, value in raw.items():
            if key not in RULE_RECORD_KEYS:
                settings[_snake_case(key)] = value
        for key, value in (raw.get("settings") or {}).items():
            settings[_snake_case(key)] = value

        return RuleDefinition(
            type=raw["type"],
            name=raw.get("name") or None,
            enabled=raw.get("enabled", True),
            settings=settings,
        )

    def _load_file(self, path: Path) -> Any:
        """Load YAML or JSON file."""
        try:
            content = path.read_text()

            if path.suffix in (".yaml", ".yml"):
                return yaml.safe_load(content) or {}
            elif path.suffix == ".json":
                return json.loads(content)
            else:
                raise ConfigError(
                    f"Unsupported config format: {path.suffix}",
                    config_path=str(path)
                )
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML: {e}", config_path=str(path))
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON: {e}", config_path=str(path))
        except OSError as e:
            raise ConfigError(f"Cannot read config: {e}", config_path=str(path))

    def _apply_env_overrides(self, config: AppConfig) -> None:
        """Environment values win over file values."""
        if os.getenv("AUTOMATION_RULES"):
            config.rules_path = os.environ["AUTOMATION_RULES"]
        if os.getenv("SMTP_PASSWORD"):
            config.email.password = os.environ["SMTP_PASSWORD"]
        if os.getenv("LOG_LEVEL"):
            config.logging.level = os.environ["LOG_LEVEL"].lower()
        if os.getenv("LOG_FORMAT") == "json":
            config.logging.json_output = True
