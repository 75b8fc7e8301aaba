"""Resolver settings read from VISA_REPR_* environment variables.

Settings (precedence: keyword arguments > environment):
- VISA_REPR_CONFIG_PATH: absolute path of an explicit table file
- VISA_REPR_CROSS_COMPILE: evaluate config tables for the target
- VISA_REPR_CUSTOM: honour per-type VISA_REPR_<TYPE> overrides
- VISA_REPR_MISSING_OVERRIDE_POLICY: "error" (default) or "native"
- VISA_REPR_LOG_LEVEL: log level for the command-line front end

Per-type override variables share the prefix but are not settings; they
are read by env_overrides.py.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal, Mapping

from pydantic import ValidationError
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from .errors import ReprError, ResolutionFailed
from .model import PolicyMode

ENV_PREFIX = "VISA_REPR_"
CONFIG_PATH_VARIABLE = f"{ENV_PREFIX}CONFIG_PATH"
PROJECT_TABLE_FILENAME = "visa_repr_config.yaml"


def setting_variable(field_name: str) -> str:
    return f"{ENV_PREFIX}{field_name.upper()}"


class _EnvMappingSource(PydanticBaseSettingsSource):
    """Settings source reading VISA_REPR_* keys from an explicit mapping."""

    def __init__(self, settings_cls: type[BaseSettings], environ: Mapping[str, str]) -> None:
        super().__init__(settings_cls)
        self._environ = environ

    def get_field_value(
        self,
        field: Any,  # noqa: ARG002
        field_name: str,
    ) -> tuple[Any, str, bool]:
        val = self._environ.get(setting_variable(field_name))
        return val, field_name, False

    def __call__(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for field_name, field in self.settings_cls.model_fields.items():
            val, key, _ = self.get_field_value(field, field_name)
            # A blank variable counts as unset.
            if val is not None and val.strip():
                data[key] = val.strip()
        return data


class ResolverSettings(BaseSettings):
    """Resolver configuration. Env vars: VISA_REPR_CONFIG_PATH, VISA_REPR_CUSTOM, etc."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        case_sensitive=False,
        extra="ignore",
    )

    config_path: str | None = None
    cross_compile: bool = False
    custom: bool = False
    missing_override_policy: Literal["error", "native"] = "error"
    log_level: str = "WARNING"

    @property
    def mode(self) -> PolicyMode:
        return PolicyMode.from_flags(cross_compile=self.cross_compile, custom=self.custom)

    @classmethod
    def from_environ(cls, environ: Mapping[str, str] | None = None, **kwargs: Any) -> "ResolverSettings":
        """Build settings from `environ` (default: the process environment).

        Raises:
            ResolutionFailed: One InvalidSetting per offending variable
        """
        environ = os.environ if environ is None else environ
        settings_cls = _make_settings_class(environ)
        try:
            return settings_cls(**kwargs)
        except ValidationError as e:
            raise ResolutionFailed(
                [
                    ReprError.invalid_setting(
                        setting_variable(str(err["loc"][0]) if err["loc"] else "?"), err.get("input"), err["msg"]
                    )
                    for err in e.errors()
                ]
            ) from e


def _make_settings_class(environ: Mapping[str, str]) -> type[ResolverSettings]:
    """Create a settings class bound to one environment snapshot."""

    class _BoundResolverSettings(ResolverSettings):
        @classmethod
        def settings_customise_sources(
            cls,
            settings_cls: type[BaseSettings],
            init_settings: PydanticBaseSettingsSource,
            env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
            dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
            file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        ) -> tuple[PydanticBaseSettingsSource, ...]:
            # Precedence (first wins): init kwargs > environment snapshot
            return (init_settings, _EnvMappingSource(settings_cls, environ))

    return _BoundResolverSettings


def project_table_path(project_root: Path | None = None) -> Path:
    return (project_root or Path.cwd()) / PROJECT_TABLE_FILENAME
