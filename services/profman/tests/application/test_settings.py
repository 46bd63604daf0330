from pathlib import Path

import tomli_w

from profman.application.settings import (
    ENV_PROFILE,
    ENV_REGISTRY,
    ENV_STORE,
    ENV_SYSTEM,
    default_config_path,
    read_config,
    resolve_settings,
)


def _config(tmp_path: Path, table: dict[str, object]) -> Path:
    path = tmp_path / "config.toml"
    path.write_text(tomli_w.dumps({"profman": table}), encoding="utf-8")
    return path


def test_defaults_without_config(tmp_path: Path) -> None:
    result = resolve_settings(config_path=tmp_path / "missing.toml", environ={})

    assert result.exit_code == 0
    settings = result.value
    assert settings is not None
    assert settings.store_root == Path.home() / ".local" / "share" / "profman"
    assert settings.profile.name == "profile"
    assert settings.registry is None
    assert settings.system


def test_config_file_values_are_used(tmp_path: Path) -> None:
    path = _config(
        tmp_path,
        {
            "store": str(tmp_path / "store"),
            "profile": str(tmp_path / "profile"),
            "registry": str(tmp_path / "registry.yaml"),
            "system": "riscv64-linux",
        },
    )

    settings = resolve_settings(config_path=path, environ={}).value

    assert settings is not None
    assert settings.store_root == tmp_path / "store"
    assert settings.profile == tmp_path / "profile"
    assert settings.registry == tmp_path / "registry.yaml"
    assert settings.system == "riscv64-linux"


def test_environment_overrides_config_and_cli_overrides_environment(tmp_path: Path) -> None:
    path = _config(tmp_path, {"store": "/from/config", "profile": "/from/config/profile"})
    environ = {
        ENV_STORE: "/from/env",
        ENV_PROFILE: "/from/env/profile",
        ENV_REGISTRY: "/from/env/registry.yaml",
        ENV_SYSTEM: "aarch64-darwin",
    }

    settings = resolve_settings(
        config_path=path, profile=Path("/from/cli/profile"), environ=environ
    ).value

    assert settings is not None
    assert settings.store_root == Path("/from/env")
    assert settings.profile == Path("/from/cli/profile")
    assert settings.registry == Path("/from/env/registry.yaml")
    assert settings.system == "aarch64-darwin"


def test_other_tables_are_ignored(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text(tomli_w.dumps({"other": {"store": "/nope"}}), encoding="utf-8")

    assert read_config(path).value == {}


def test_invalid_toml_is_reported(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text("[profman\nstore = ", encoding="utf-8")

    result = resolve_settings(config_path=path, environ={})

    assert result.value is None
    assert result.exit_code == 2
    assert result.diagnostics[0].code == "CONFIG_PARSE_FAILED"
    assert str(result.diagnostics[0].location) == str(path)


def test_default_config_path_honours_overrides(tmp_path: Path) -> None:
    assert default_config_path({"PROFMAN_CONFIG": str(tmp_path / "c.toml")}) == tmp_path / "c.toml"
    assert default_config_path({"XDG_CONFIG_HOME": str(tmp_path)}) == (
        tmp_path / "profman" / "config.toml"
    )


def test_config_that_is_not_utf8_is_reported(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_bytes(b'[profman]\nstore = "\xff\xfe"\n')

    result = read_config(path)

    assert result.value is None
    assert result.diagnostics[0].code == "CONFIG_PARSE_FAILED"
