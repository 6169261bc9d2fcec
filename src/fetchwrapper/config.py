"""Instance-level defaults for the fetchwrapper clients."""

from __future__ import annotations

import os
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import FetchWrapperValidationError
from .security import validate_base_url

DEFAULT_HEADERS = {
    "Accept": "application/json",
    "User-Agent": "fetchwrapper-python/0.1.0",
}

_ENV_FIELDS = (
    "timeout",
    "retries",
    "retry_interval",
    "retry_on_fail",
    "base_url",
    "auto_parse_json",
)


class FetchConfig(BaseModel):
    """Defaults applied to every request unless the call overrides them.

    Durations are in seconds.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    timeout: float = Field(default=5.0, gt=0)
    retries: int = Field(default=3, ge=0)
    retry_interval: float = Field(default=1.0, ge=0)
    retry_on_fail: bool = False
    base_url: str = ""
    auto_parse_json: bool = False
    headers: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_HEADERS))

    @field_validator("base_url")
    @classmethod
    def _check_base_url(cls, value: str) -> str:
        validate_base_url(value)
        return value

    @classmethod
    def build(cls, config: FetchConfig | None = None, **settings: Any) -> FetchConfig:
        """Create a config from an optional base config plus keyword overrides."""
        values: dict[str, Any] = config.model_dump() if config is not None else {}
        values.update({key: value for key, value in settings.items() if value is not None})
        try:
            return cls(**values)
        except ValidationError as exc:
            raise FetchWrapperValidationError(f"Invalid configuration: {exc}", cause=exc) from exc

    @classmethod
    def from_env(
        cls,
        prefix: str = "FETCHWRAPPER_",
        environ: Mapping[str, str] | None = None,
        **overrides: Any,
    ) -> FetchConfig:
        """Load defaults from ``<prefix><FIELD>`` environment variables.

        Keyword overrides win over the environment.
        """
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for name in _ENV_FIELDS:
            raw = env.get(f"{prefix}{name.upper()}")
            if raw is not None and raw != "":
                values[name] = raw
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls.build(**values)
