"""Tests for restforge.config -- XDG paths, definition loading and precedence."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from restforge.config import (
    ApiDefinition,
    find_definition,
    get_cache_dir,
    get_config_dir,
    get_data_dir,
    get_definitions_dir,
    load_definition,
    resolve_definition,
    resolve_env_values,
)
from restforge.exceptions import ConfigError
from restforge.models import HTTPMethod


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_json(path: Path, data: Any) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    return path


@pytest.fixture
def xdg_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point every XDG directory into tmp_path."""
    monkeypatch.setattr("restforge.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.delenv("RESTFORGE_DEFINITION", raising=False)
    monkeypatch.delenv("RESTFORGE_BASE_URL", raising=False)
    return tmp_path


# ---------------------------------------------------------------------------
# XDG path resolution
# ---------------------------------------------------------------------------


class TestXDGPaths:
    def test_dirs_follow_env(self, xdg_home: Path) -> None:
        assert get_config_dir() == xdg_home / "config" / "restforge"
        assert get_cache_dir() == xdg_home / "cache" / "restforge"
        assert get_data_dir() == xdg_home / "data" / "restforge"
        assert get_definitions_dir() == xdg_home / "config" / "restforge" / "apis"
        assert get_definitions_dir().is_dir()

    def test_xdg_default_under_home(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("restforge.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))
        assert get_config_dir() == tmp_path / ".config" / "restforge"

    def test_non_xdg_platform(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("restforge.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))
        assert get_config_dir() == tmp_path / ".restforge"
        assert get_cache_dir() == tmp_path / ".restforge" / "cache"


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


class TestLoadDefinition:
    def test_json_file(self, xdg_home: Path) -> None:
        path = _write_json(
            xdg_home / "wechat.json",
            {
                "base_url": "https://api.weixin.qq.com",
                "default_method": "get",
                "routes": {"getAccessToken": "GET /cgi-bin/token"},
            },
        )
        definition = load_definition(path)
        assert definition.base_url == "https://api.weixin.qq.com"
        assert definition.default_method is HTTPMethod.GET
        assert definition.routes == {"getAccessToken": "GET /cgi-bin/token"}
        assert definition.max_retries == 3

    def test_yaml_file(self, xdg_home: Path) -> None:
        path = xdg_home / "api.yaml"
        path.write_text(
            "base_url: https://api.example.com\n"
            "placeholders:\n"
            "  id: userId\n"
            "routes:\n"
            "  getUser: GET /users/{id}\n",
            encoding="utf-8",
        )
        definition = load_definition(path)
        assert definition.placeholders == {"id": "userId"}
        assert definition.routes["getUser"] == "GET /users/{id}"

    def test_bare_name_resolved_in_definitions_dir(self, xdg_home: Path) -> None:
        _write_json(get_definitions_dir() / "github.json", {"base_url": "https://api.github.com"})
        assert find_definition("github") == get_definitions_dir() / "github.json"
        assert load_definition("github").base_url == "https://api.github.com"

    def test_missing_definition(self, xdg_home: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_definition("nope")

    def test_invalid_json(self, xdg_home: Path) -> None:
        path = xdg_home / "bad.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid definition file"):
            load_definition(path)

    def test_non_object(self, xdg_home: Path) -> None:
        path = xdg_home / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="must contain an object"):
            load_definition(path)

    def test_schema_violation(self, xdg_home: Path) -> None:
        path = _write_json(xdg_home / "bad.json", {"max_retries": "many"})
        with pytest.raises(ConfigError, match="Invalid definition file"):
            load_definition(path)

    def test_env_values_resolved(self, xdg_home: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("WECHAT_SECRET", "s3cret")
        path = _write_json(
            xdg_home / "wechat.json",
            {"base_url": "https://x", "config": {"appId": "wx1", "appSecret": "env:WECHAT_SECRET"}},
        )
        assert load_definition(path).config == {"appId": "wx1", "appSecret": "s3cret"}


class TestResolveEnvValues:
    def test_non_env_values_untouched(self) -> None:
        assert resolve_env_values({"a": 1, "b": "plain"}) == {"a": 1, "b": "plain"}

    def test_unset_variable(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("RESTFORGE_TEST_UNSET", raising=False)
        with pytest.raises(ConfigError, match="RESTFORGE_TEST_UNSET"):
            resolve_env_values({"secret": "env:RESTFORGE_TEST_UNSET"})


class TestBuilderOptions:
    def test_lowercase_default_method(self) -> None:
        definition = ApiDefinition(base_url="https://x", default_method="patch")
        assert definition.default_method is HTTPMethod.PATCH
        assert definition.builder_options()["default_method"] is HTTPMethod.PATCH

    def test_excludes_routes(self) -> None:
        definition = ApiDefinition(base_url="https://x", routes={"a": "/a"})
        options = definition.builder_options()
        assert "routes" not in options
        assert options["base_url"] == "https://x"

    def test_requires_base_url(self) -> None:
        with pytest.raises(ConfigError, match="No base URL"):
            ApiDefinition().builder_options()


# ---------------------------------------------------------------------------
# Precedence
# ---------------------------------------------------------------------------


class TestResolveDefinition:
    def test_flag_wins_over_env(self, xdg_home: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        flag = _write_json(xdg_home / "flag.json", {"base_url": "https://flag"})
        env = _write_json(xdg_home / "env.json", {"base_url": "https://env"})
        monkeypatch.setenv("RESTFORGE_DEFINITION", str(env))
        assert resolve_definition(str(flag)).base_url == "https://flag"
        assert resolve_definition().base_url == "https://env"

    def test_project_file_fallback(self, xdg_home: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        project = xdg_home / "project"
        _write_json(project / "restforge.json", {"base_url": "https://project"})
        monkeypatch.chdir(project)
        assert resolve_definition().base_url == "https://project"

    def test_nothing_found(self, xdg_home: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(xdg_home)
        with pytest.raises(ConfigError, match="No API definition found"):
            resolve_definition()

    def test_base_url_precedence(self, xdg_home: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = _write_json(xdg_home / "api.json", {"base_url": "https://file"})
        monkeypatch.setenv("RESTFORGE_BASE_URL", "https://env")
        assert resolve_definition(str(path)).base_url == "https://env"
        assert resolve_definition(str(path), "https://flag").base_url == "https://flag"
