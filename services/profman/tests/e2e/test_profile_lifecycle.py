import json
import os
from pathlib import Path

from typer.testing import CliRunner
import yaml

from profman.entrypoints.cli import app

SYSTEM = "x86_64-linux"
OLD = "a" * 40
NEW = "b" * 40


def _write_registry(path: Path, master: str) -> None:
    def hello(version: str) -> dict[str, object]:
        return {
            "name": f"hello-{version}",
            "files": {"bin/hello": {"contents": f"hello {version}\n", "executable": True}},
        }

    data = {
        "version": 1,
        "flakes": {
            "pkgs": {
                "branches": {"master": master},
                "revisions": {
                    OLD: {"packages": {f"packages.{SYSTEM}.hello": hello("2.9")}},
                    NEW: {"packages": {f"packages.{SYSTEM}.hello": hello("2.10")}},
                },
            }
        },
    }
    path.write_text(yaml.safe_dump(data), encoding="utf-8")


def test_install_upgrade_remove_lifecycle(tmp_path: Path) -> None:
    registry = tmp_path / "registry.yaml"
    _write_registry(registry, OLD)
    profile = tmp_path / "profiles" / "profile"
    env = {
        "PROFMAN_CONFIG": str(tmp_path / "config.toml"),
        "PROFMAN_STORE": str(tmp_path / "root"),
        "PROFMAN_REGISTRY": str(registry),
        "PROFMAN_SYSTEM": SYSTEM,
        "PROFMAN_PROFILE": str(profile),
    }
    runner = CliRunner()

    result = runner.invoke(app, ["install", "pkgs#hello"], env=env)
    assert result.exit_code == 0, result.output
    assert "installed 1 packages" in result.output
    assert (profile / "bin" / "hello").read_text() == "hello 2.9\n"

    result = runner.invoke(app, ["info"], env=env)
    assert result.exit_code == 0
    fields = result.output.strip().split(" ")
    assert fields[:3] == [
        "0",
        f"pkgs#packages.{SYSTEM}.hello",
        f"pkgs/{OLD}#packages.{SYSTEM}.hello",
    ]
    assert fields[3].endswith("-hello-2.9")

    result = runner.invoke(app, ["upgrade"], env=env)
    assert result.exit_code == 0
    assert "upgraded 0 packages" in result.output
    assert os.readlink(profile) == "profile-1-link"

    _write_registry(registry, NEW)
    result = runner.invoke(app, ["upgrade", ".*hello"], env=env)
    assert result.exit_code == 0
    assert "upgraded 1 packages" in result.output
    assert (profile / "bin" / "hello").read_text() == "hello 2.10\n"
    assert os.readlink(profile) == "profile-2-link"

    result = runner.invoke(app, ["info", "--json"], env=env)
    element = json.loads(result.output)["artifacts"][0]
    assert element["resolvedRef"] == f"pkgs/{NEW}#packages.{SYSTEM}.hello"

    result = runner.invoke(app, ["remove", "0"], env=env)
    assert result.exit_code == 0
    assert "removed 1 packages, kept 0 packages" in result.output
    assert sorted(os.listdir(profile)) == ["manifest.json"]
    assert json.loads((profile / "manifest.json").read_text()) == {"elements": [], "version": 1}
    assert os.readlink(profile) == "profile-3-link"
    assert os.readlink(profile.parent / "profile-1-link") != os.readlink(
        profile.parent / "profile-3-link"
    )


def test_failed_build_keeps_previous_generation(tmp_path: Path) -> None:
    registry = tmp_path / "registry.yaml"
    registry.write_text(
        yaml.safe_dump(
            {
                "version": 1,
                "flakes": {
                    "pkgs": {
                        "branches": {"master": OLD},
                        "revisions": {
                            OLD: {
                                "packages": {
                                    "ok": {"name": "ok", "files": {"bin/ok": "ok"}},
                                    "broken": {"name": "broken", "error": "build exploded"},
                                }
                            }
                        },
                    }
                },
            }
        ),
        encoding="utf-8",
    )
    profile = tmp_path / "profile"
    env = {
        "PROFMAN_CONFIG": str(tmp_path / "config.toml"),
        "PROFMAN_STORE": str(tmp_path / "root"),
        "PROFMAN_REGISTRY": str(registry),
        "PROFMAN_PROFILE": str(profile),
    }
    runner = CliRunner()
    assert runner.invoke(app, ["install", "pkgs#ok"], env=env).exit_code == 0

    result = runner.invoke(app, ["install", "pkgs#broken"], env=env)

    assert result.exit_code == 3
    assert "error[BUILD_FAILED]" in result.output
    assert os.readlink(profile) == "profile-1-link"
    assert sorted(os.listdir(profile)) == ["bin", "manifest.json"]


def test_conflicting_packages_are_not_published(tmp_path: Path) -> None:
    registry = tmp_path / "registry.yaml"
    registry.write_text(
        yaml.safe_dump(
            {
                "version": 1,
                "flakes": {
                    "pkgs": {
                        "branches": {"master": OLD},
                        "revisions": {
                            OLD: {
                                "packages": {
                                    "gnu-tool": {"name": "gnu-tool", "files": {"bin/tool": "gnu"}},
                                    "bsd-tool": {"name": "bsd-tool", "files": {"bin/tool": "bsd"}},
                                }
                            }
                        },
                    }
                },
            }
        ),
        encoding="utf-8",
    )
    profile = tmp_path / "profile"
    env = {
        "PROFMAN_CONFIG": str(tmp_path / "config.toml"),
        "PROFMAN_STORE": str(tmp_path / "root"),
        "PROFMAN_REGISTRY": str(registry),
        "PROFMAN_PROFILE": str(profile),
    }

    result = CliRunner().invoke(app, ["install", "pkgs#gnu-tool", "pkgs#bsd-tool"], env=env)

    assert result.exit_code == 3
    assert "error[MERGE_CONFLICT]" in result.output
    assert not os.path.lexists(profile)


def test_unwritable_store_is_reported(tmp_path: Path) -> None:
    registry = tmp_path / "registry.yaml"
    _write_registry(registry, OLD)
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory\n")
    profile = tmp_path / "profiles" / "profile"
    env = {
        "PROFMAN_CONFIG": str(tmp_path / "config.toml"),
        "PROFMAN_STORE": str(blocker / "root"),
        "PROFMAN_REGISTRY": str(registry),
        "PROFMAN_SYSTEM": SYSTEM,
        "PROFMAN_PROFILE": str(profile),
    }

    result = CliRunner().invoke(app, ["install", "pkgs#hello", "--json"], env=env)

    assert result.exit_code == 3
    data = json.loads(result.output)
    assert [d["code"] for d in data["diagnostics"]] == ["STORE_WRITE_FAILED"]
    assert data["diagnostics"][0]["is_execution"] is True
    assert not os.path.lexists(profile)
