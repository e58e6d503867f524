"""API definition files, XDG paths and precedence resolution.

An *API definition* is a JSON or YAML document describing one API: its
base URL, builder defaults, placeholder map, initial config bag and a
declarative route table::

    {
      "base_url": "https://api.weixin.qq.com",
      "placeholders": {"access_token": "{access_token}"},
      "config": {"appId": "env:WECHAT_APP_ID"},
      "routes": {"getAccessToken": "GET /cgi-bin/token"}
    }

Definitions are found, in order of precedence, from the ``--definition``
CLI flag, the ``RESTFORGE_DEFINITION`` environment variable, or a
project-local ``restforge.json`` / ``restforge.yaml`` in the working
directory. A bare name (no path separator or extension) refers to
``<config_dir>/apis/<name>.json|yaml|yml``. ``RESTFORGE_BASE_URL``
overrides the definition's base URL, and the ``--base-url`` flag
overrides both.

Config bag values of the form ``env:VAR`` are read from the environment
when the definition is loaded.
"""

from __future__ import annotations

import json
import os
import platform
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from restforge.exceptions import ConfigError
from restforge.models import BodyEncoding, HTTPMethod, ResponseFormat

_APP_NAME = "restforge"
_PROJECT_FILENAMES = ("restforge.json", "restforge.yaml", "restforge.yml")
_DEFINITION_SUFFIXES = (".json", ".yaml", ".yml")

ENV_DEFINITION = "RESTFORGE_DEFINITION"
ENV_BASE_URL = "RESTFORGE_BASE_URL"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _xdg_dir(env_var: str, default_segments: tuple[str, ...], fallback: str) -> Path:
    if _is_xdg_platform():
        env_value = os.environ.get(env_var, "")
        base = Path(env_value) if env_value else Path.home().joinpath(*default_segments)
        path = base / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}" / fallback if fallback else Path.home() / f".{_APP_NAME}"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/restforge/`` (default ``~/.config/restforge/``).
    Elsewhere: ``~/.restforge/``.
    """
    return _xdg_dir("XDG_CONFIG_HOME", (".config",), "")


def get_cache_dir() -> Path:
    """Return the cache directory used by :class:`~restforge.cache.DiskCacheProvider`."""
    return _xdg_dir("XDG_CACHE_HOME", (".cache",), "cache")


def get_data_dir() -> Path:
    """Return the data directory (crash logs)."""
    return _xdg_dir("XDG_DATA_HOME", (".local", "share"), "logs")


def get_definitions_dir() -> Path:
    path = get_config_dir() / "apis"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Definition model ---


class ApiDefinition(BaseModel):
    """Declarative description of one API, loaded from a definition file."""

    base_url: Optional[str] = None
    default_headers: dict[str, str] = Field(default_factory=dict)
    timeout_ms: int = 5000
    max_retries: int = 3
    retry_delay_ms: int = 500
    body_encoding: BodyEncoding = BodyEncoding.JSON
    response_format: ResponseFormat = ResponseFormat.JSON
    default_method: HTTPMethod = HTTPMethod.POST
    placeholders: dict[str, str] = Field(default_factory=dict)
    config: dict[str, Any] = Field(default_factory=dict)
    routes: dict[str, Any] = Field(default_factory=dict)

    @field_validator("default_method", mode="before")
    @classmethod
    def _upper_method(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.upper()
        return value

    def builder_options(self) -> dict[str, Any]:
        """Return the :class:`~restforge.models.BuilderConfig` fields of this definition.

        Raises:
            ConfigError: No base URL is configured.
        """
        if not self.base_url:
            raise ConfigError(
                f"No base URL configured. Set 'base_url' in the definition, "
                f"export {ENV_BASE_URL}, or pass --base-url."
            )
        return self.model_dump(exclude={"routes"})


# --- Loading ---


def _parse(content: str, path: Path) -> dict[str, Any]:
    try:
        if path.suffix == ".json":
            data = json.loads(content)
        else:
            data = yaml.safe_load(content)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Invalid definition file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Definition file {path} must contain an object")
    return data


def find_definition(source: str) -> Path:
    """Resolve *source* (a path or a bare name) to an existing file.

    Raises:
        ConfigError: Nothing matches *source*.
    """
    path = Path(source).expanduser()
    if path.is_file():
        return path
    if os.sep not in source and not path.suffix:
        for suffix in _DEFINITION_SUFFIXES:
            candidate = get_definitions_dir() / f"{source}{suffix}"
            if candidate.is_file():
                return candidate
    raise ConfigError(f"Definition '{source}' not found")


def resolve_env_values(values: dict[str, Any]) -> dict[str, Any]:
    """Replace ``env:VAR`` strings with the variable's value.

    Raises:
        ConfigError: A referenced variable is not set.
    """
    resolved: dict[str, Any] = {}
    for key, value in values.items():
        if isinstance(value, str) and value.startswith("env:"):
            var = value[4:]
            env_value = os.environ.get(var)
            if env_value is None:
                raise ConfigError(f"Environment variable '{var}' referenced by config key '{key}' is not set")
            resolved[key] = env_value
        else:
            resolved[key] = value
    return resolved


def load_definition(source: str | Path) -> ApiDefinition:
    """Load and validate an API definition from a file path or bare name."""
    path = find_definition(str(source))
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read definition file {path}: {exc}") from exc
    data = _parse(content, path)
    try:
        definition = ApiDefinition.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid definition file {path}: {exc}") from exc
    definition.config = resolve_env_values(definition.config)
    return definition


def resolve_definition(
    definition_flag: Optional[str] = None,
    base_url_flag: Optional[str] = None,
) -> ApiDefinition:
    """Locate and load the active definition, applying base URL overrides.

    Precedence: CLI flag > environment variable > project-local file.

    Raises:
        ConfigError: No definition could be found.
    """
    source = definition_flag or os.environ.get(ENV_DEFINITION)
    if not source:
        for filename in _PROJECT_FILENAMES:
            candidate = Path.cwd() / filename
            if candidate.is_file():
                source = str(candidate)
                break
    if not source:
        raise ConfigError(
            f"No API definition found. Pass --definition, set {ENV_DEFINITION}, "
            f"or create restforge.json in the current directory."
        )

    definition = load_definition(source)
    base_url = base_url_flag or os.environ.get(ENV_BASE_URL)
    if base_url:
        definition.base_url = base_url
    return definition
