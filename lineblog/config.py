from typing import Any

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigError

"""
config.py - runtime settings for the server.

Values come from LINEBLOG_* environment variables (or a .env file); the
command line in run_node.py can override any of them. Everything has a sane
default so a bare `lineblog --mode server` just works on 127.0.0.1:8080 with
./users.json.
"""

ENV_PREFIX = "LINEBLOG_"


class Settings(BaseSettings):
    host: str = "127.0.0.1"
    port: int = Field(default=8080, ge=0, le=65535)
    data_file: str = "users.json"
    idle_timeout: float = Field(default=600.0, ge=0)     # seconds; 0 disables
    report_interval: float = Field(default=10.0, ge=0)   # seconds between connection reports; 0 disables
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX, env_file=".env", extra="ignore", frozen=True
    )

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()

    def with_overrides(self, **overrides: Any) -> "Settings":
        """Validated copy with every non-None override applied."""
        values = self.model_dump()
        values.update({k: v for k, v in overrides.items() if v is not None})
        return build(**values)


def build(**values: Any) -> Settings:
    """Construct Settings, turning pydantic's ValidationError into ConfigError."""
    try:
        return Settings(**values)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc


def load_settings() -> Settings:
    """Settings from the environment (and .env), defaults for the rest."""
    return build()
