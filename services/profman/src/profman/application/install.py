from __future__ import annotations

from dataclasses import replace
import logging

from profman.application.manifest_store import load_manifest
from profman.application.transaction import (
    ProfileChange,
    change_artifact,
    commit_manifest,
    diagnostic_from_error,
)
from profman.domain.diagnostics import Diagnostic
from profman.domain.errors import InvalidReference, ProfmanError, UnsupportedInstallable
from profman.domain.installable import FlakeInstallable, parse_installable
from profman.domain.manifest import ProfileElement, ProfileElementSource
from profman.domain.result import Result
from profman.ports.environment import EnvironmentBuilderPort
from profman.ports.profile import ProfilePort
from profman.ports.resolver import ResolverPort
from profman.ports.store import BuildRequest, StorePort

logger = logging.getLogger(__name__)


def _classify(
    installables: list[str], store: StorePort
) -> tuple[list[FlakeInstallable], list[Diagnostic]]:
    accepted: list[FlakeInstallable] = []
    diagnostics: list[Diagnostic] = []
    for index, text in enumerate(installables):
        try:
            installable = parse_installable(text, store.is_store_path)
        except InvalidReference as e:
            located = replace(e, details={**(e.details or {}), "installable": text, "index": index})
            diagnostics.append(diagnostic_from_error(located))
            continue
        if not isinstance(installable, FlakeInstallable):
            error = UnsupportedInstallable(
                f"'profile install' does not support argument '{text}'",
                details={"installable": text, "index": index},
                hint="install packages by reference, e.g. nixpkgs#hello",
            )
            diagnostics.append(diagnostic_from_error(error))
            continue
        accepted.append(installable)
    return accepted, diagnostics


def install(
    installables: list[str],
    *,
    store: StorePort,
    resolver: ResolverPort,
    environment: EnvironmentBuilderPort,
    profile: ProfilePort,
) -> Result[ProfileChange]:
    try:
        manifest = load_manifest(profile.path)
    except ProfmanError as e:
        return Result.failure(diagnostic_from_error(e))

    accepted, diagnostics = _classify(installables, store)
    if diagnostics:
        return Result.failure(*diagnostics)

    try:
        to_build: set[BuildRequest] = set()
        for installable in accepted:
            logger.info("resolving '%s'", installable.what())
            resolution = resolver.resolve(installable.ref, installable.attr_path)
            manifest.elements.append(
                ProfileElement(
                    store_paths=frozenset({resolution.derivation.out_path}),
                    source=ProfileElementSource(
                        original_ref=installable.ref,
                        resolved_ref=resolution.resolved_ref,
                        attr_path=resolution.attr_path,
                    ),
                )
            )
            to_build.add(BuildRequest(resolution.derivation.drv_path))

        store.build_paths(to_build)
        artifact = commit_manifest(
            manifest, store=store, environment=environment, profile=profile
        )
    except ProfmanError as e:
        return Result.failure(diagnostic_from_error(e))

    change = ProfileChange(
        artifact_path=artifact,
        manifest=manifest,
        summary=f"installed {len(accepted)} packages",
    )
    return Result(value=change, artifacts=[change_artifact("install", change)])
