"""Settings loading with deterministic precedence.

The cascade is always:
1) CLI params
2) Environment variables
3) ~/.config/taskosaur/taskosaur.yaml
4) Built-in model defaults

Environment variable format:
- Prefix: ``TASKOSAUR_``
- Nested keys: ``__`` separator
- Example: ``TASKOSAUR_POSTGRES__POOL_SIZE=9`` -> ``postgres.pool_size = "9"``
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Mapping

from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from .models import DEFAULT_CONFIG_PATH, ENV_PREFIX, TaskosaurSettings


class _InitAndYamlSettings(TaskosaurSettings):
    """Settings variant that ignores ``os.environ`` in favor of an explicit map."""

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings, YamlConfigSettingsSource(settings_cls))


def load_settings(
    *,
    cli_params: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
    config_path: str | Path | None = None,
) -> TaskosaurSettings:
    """Resolve ``TaskosaurSettings`` from CLI params, env, YAML and defaults.

    When ``environ`` is given it replaces ``os.environ`` entirely, which keeps
    tests independent of the calling shell.
    """
    yaml_file = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    settings_cls = _scoped_settings_class(
        explicit_environ=environ is not None, yaml_file=yaml_file
    )

    init_data: dict[str, Any] = {}
    if environ is not None:
        init_data = env_overrides(environ, prefix=ENV_PREFIX)
    init_data = _merge_dicts(init_data, cli_params or {})
    return settings_cls(**init_data)


def env_overrides(environ: Mapping[str, str], *, prefix: str) -> dict[str, Any]:
    """Map prefixed environment variables into a nested settings mapping."""
    output: dict[str, Any] = {}
    for key, raw_value in environ.items():
        if not key.startswith(prefix):
            continue
        path = [
            segment.strip().lower()
            for segment in key[len(prefix) :].split("__")
            if segment.strip()
        ]
        if not path:
            continue
        _set_nested(output, path, raw_value)
    return output


def _scoped_settings_class(
    *, explicit_environ: bool, yaml_file: Path
) -> type[TaskosaurSettings]:
    """Return a settings subclass bound to one YAML file."""
    base = _InitAndYamlSettings if explicit_environ else TaskosaurSettings

    class _ScopedSettings(base):  # type: ignore[valid-type, misc]
        model_config = SettingsConfigDict(yaml_file=yaml_file)

    return _ScopedSettings


def _set_nested(target: dict[str, Any], path: list[str], value: Any) -> None:
    """Set a nested mapping value by path, creating intermediate dicts."""
    cursor: dict[str, Any] = target
    for segment in path[:-1]:
        child = cursor.get(segment)
        if not isinstance(child, dict):
            child = {}
            cursor[segment] = child
        cursor = child
    cursor[path[-1]] = value


def _merge_dicts(
    base: Mapping[str, Any], override: Mapping[str, Any]
) -> dict[str, Any]:
    """Recursively merge mappings, with ``override`` taking precedence."""
    result = {key: copy.deepcopy(value) for key, value in base.items()}
    for key, override_value in override.items():
        base_value = result.get(key)
        if isinstance(base_value, dict) and isinstance(override_value, Mapping):
            result[key] = _merge_dicts(base_value, override_value)
            continue
        result[key] = copy.deepcopy(override_value)
    return result
