from dataclasses import dataclass
import logging
from pathlib import Path
import sys
from typing import NoReturn, TypeVar

import typer

from profman.adapters.environment.symlink_farm import SymlinkFarmBuilder
from profman.adapters.errors import ResolutionFailure
from profman.adapters.profile.generations import GenerationProfile
from profman.adapters.resolver.registry import RegistryResolver
from profman.adapters.store.local import LocalStore
from profman.application.info import info as info_use_case
from profman.application.install import install as install_use_case
from profman.application.remove import remove as remove_use_case
from profman.application.result_serialization import serialize_result
from profman.application.settings import Settings, resolve_settings
from profman.application.transaction import ProfileChange, diagnostic_from_error
from profman.application.upgrade import upgrade as upgrade_use_case
from profman.domain.result import Result

T = TypeVar("T")

app = typer.Typer(add_completion=False, help="Install, remove, upgrade and inspect packages in a profile.")


@dataclass
class Runtime:
    settings: Settings
    store: LocalStore
    environment: SymlinkFarmBuilder
    profile: GenerationProfile

    def resolver(self) -> RegistryResolver:
        if self.settings.registry is None:
            raise ResolutionFailure(
                "no package registry is configured",
                hint="set PROFMAN_REGISTRY or 'registry' in the [profman] config table",
            )
        return RegistryResolver(self.settings.registry, self.store, self.settings.system)


def _log_level(verbose: int) -> int:
    if verbose >= 2:
        return logging.DEBUG
    if verbose == 1:
        return logging.INFO
    return logging.WARNING


@app.callback()
def main(
    ctx: typer.Context,
    verbose: int = typer.Option(0, "--verbose", "-v", count=True),
    config: Path | None = typer.Option(None, "--config"),
):
    logging.basicConfig(
        level=_log_level(verbose), format="%(message)s", stream=sys.stderr, force=True
    )
    ctx.obj = config


def _runtime(ctx: typer.Context, profile: Path | None) -> Result[Runtime]:
    settings_result = resolve_settings(config_path=ctx.obj, profile=profile)
    settings = settings_result.value
    if settings is None:
        return Result(diagnostics=settings_result.diagnostics)
    runtime = Runtime(
        settings=settings,
        store=LocalStore(settings.store_root),
        environment=SymlinkFarmBuilder(),
        profile=GenerationProfile(settings.profile),
    )
    return Result(value=runtime, diagnostics=settings_result.diagnostics)


def _emit(
    result: Result[T],
    command: str,
    args: list[str],
    json: bool,
    profile: Path | None = None,
) -> NoReturn:
    if json:
        import json as _json

        data = serialize_result(
            result, command=command, args=args, profile=str(profile) if profile else None
        )
        typer.echo(_json.dumps(data))
        raise typer.Exit(result.exit_code)

    for diagnostic in result.diagnostics:
        typer.echo(diagnostic.render(), err=True)
    value = result.value
    if isinstance(value, ProfileChange):
        typer.echo(value.summary)
    elif isinstance(value, list):
        for line in value:
            typer.echo(str(line))
    raise typer.Exit(result.exit_code)


@app.command()
def install(
    ctx: typer.Context,
    refs: list[str] = typer.Argument(..., help="Package references, e.g. nixpkgs#hello."),
    profile: Path | None = typer.Option(None, "--profile"),
    json: bool = False,
):
    runtime_result = _runtime(ctx, profile)
    rt = runtime_result.value
    if rt is None:
        _emit(runtime_result, "install", refs, json)
    try:
        resolver = rt.resolver()
    except ResolutionFailure as e:
        _emit(Result.failure(diagnostic_from_error(e)), "install", refs, json, rt.profile.path)
    result = install_use_case(
        refs,
        store=rt.store,
        resolver=resolver,
        environment=rt.environment,
        profile=rt.profile,
    )
    _emit(result, "install", refs, json, rt.profile.path)


@app.command()
def remove(
    ctx: typer.Context,
    selectors: list[str] = typer.Argument(None, help="Positions, store paths or attribute patterns."),
    profile: Path | None = typer.Option(None, "--profile"),
    json: bool = False,
):
    args = selectors or []
    runtime_result = _runtime(ctx, profile)
    rt = runtime_result.value
    if rt is None:
        _emit(runtime_result, "remove", args, json)
    result = remove_use_case(
        args, store=rt.store, environment=rt.environment, profile=rt.profile
    )
    _emit(result, "remove", args, json, rt.profile.path)


@app.command()
def upgrade(
    ctx: typer.Context,
    selectors: list[str] = typer.Argument(None, help="Positions, store paths or attribute patterns."),
    profile: Path | None = typer.Option(None, "--profile"),
    json: bool = False,
):
    args = selectors or []
    runtime_result = _runtime(ctx, profile)
    rt = runtime_result.value
    if rt is None:
        _emit(runtime_result, "upgrade", args, json)
    try:
        resolver = rt.resolver()
    except ResolutionFailure as e:
        _emit(Result.failure(diagnostic_from_error(e)), "upgrade", args, json, rt.profile.path)
    result = upgrade_use_case(
        args,
        store=rt.store,
        resolver=resolver,
        environment=rt.environment,
        profile=rt.profile,
    )
    _emit(result, "upgrade", args, json, rt.profile.path)


@app.command()
def info(
    ctx: typer.Context,
    profile: Path | None = typer.Option(None, "--profile"),
    json: bool = False,
):
    runtime_result = _runtime(ctx, profile)
    rt = runtime_result.value
    if rt is None:
        _emit(runtime_result, "info", [], json)
    _emit(info_use_case(rt.profile.path), "info", [], json, rt.profile.path)
