from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
import platform
import tomllib
from typing import Mapping

from profman.domain.diagnostics import Diagnostic, FileLocation, Severity
from profman.domain.json_types import JsonDict, as_json_dict
from profman.domain.result import Result

CONFIG_TABLE = "profman"
ENV_CONFIG = "PROFMAN_CONFIG"
ENV_STORE = "PROFMAN_STORE"
ENV_PROFILE = "PROFMAN_PROFILE"
ENV_REGISTRY = "PROFMAN_REGISTRY"
ENV_SYSTEM = "PROFMAN_SYSTEM"

_MACHINE_ALIASES = {"amd64": "x86_64", "arm64": "aarch64"}


@dataclass(frozen=True)
class Settings:
    store_root: Path
    profile: Path
    registry: Path | None
    system: str


def default_system() -> str:
    machine = platform.machine().lower()
    return f"{_MACHINE_ALIASES.get(machine, machine)}-{platform.system().lower()}"


def default_config_path(environ: Mapping[str, str]) -> Path:
    explicit = environ.get(ENV_CONFIG)
    if explicit:
        return Path(explicit).expanduser()
    base = environ.get("XDG_CONFIG_HOME")
    root = Path(base).expanduser() if base else Path.home() / ".config"
    return root / "profman" / "config.toml"


def _default_store() -> Path:
    return Path.home() / ".local" / "share" / "profman"


def _default_profile() -> Path:
    return Path.home() / ".local" / "state" / "profman" / "profiles" / "profile"


def read_config(path: Path) -> Result[JsonDict]:
    if not path.exists():
        return Result(value={})
    try:
        raw = as_json_dict(tomllib.loads(path.read_text(encoding="utf-8")))
    except (OSError, UnicodeDecodeError, tomllib.TOMLDecodeError) as e:
        return Result(
            diagnostics=[
                Diagnostic(
                    code="CONFIG_PARSE_FAILED",
                    rule="config.parse",
                    severity=Severity.ERROR,
                    message=str(e),
                    location=FileLocation(str(path)),
                )
            ]
        )
    return Result(value=as_json_dict(raw.get(CONFIG_TABLE)))


def _pick(
    cli: Path | str | None,
    environ: Mapping[str, str],
    env_key: str,
    config: JsonDict,
    config_key: str,
) -> str | None:
    if cli is not None:
        return str(cli)
    if environ.get(env_key):
        return environ[env_key]
    value = config.get(config_key)
    if isinstance(value, str) and value:
        return value
    return None


def resolve_settings(
    *,
    config_path: Path | None = None,
    profile: Path | None = None,
    store: Path | None = None,
    registry: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Result[Settings]:
    env = os.environ if environ is None else environ
    config_result = read_config(config_path or default_config_path(env))
    if config_result.value is None:
        return Result(diagnostics=config_result.diagnostics)
    config = config_result.value

    store_value = _pick(store, env, ENV_STORE, config, "store")
    profile_value = _pick(profile, env, ENV_PROFILE, config, "profile")
    registry_value = _pick(registry, env, ENV_REGISTRY, config, "registry")
    system_value = _pick(None, env, ENV_SYSTEM, config, "system")

    settings = Settings(
        store_root=Path(store_value).expanduser() if store_value else _default_store(),
        profile=Path(profile_value).expanduser() if profile_value else _default_profile(),
        registry=Path(registry_value).expanduser() if registry_value else None,
        system=system_value or default_system(),
    )
    return Result(value=settings, diagnostics=config_result.diagnostics)
