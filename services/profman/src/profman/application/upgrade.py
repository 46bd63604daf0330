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
from profman.domain.errors import ProfmanError
from profman.domain.manifest import ProfileElementSource
from profman.domain.matchers import matches, parse_matchers
from profman.domain.result import Result
from profman.ports.environment import EnvironmentBuilderPort
from profman.ports.profile import ProfilePort
from profman.ports.resolver import ResolverPort
from profman.ports.store import BuildRequest, StorePort

logger = logging.getLogger(__name__)


def upgrade(
    selectors: list[str],
    *,
    store: StorePort,
    resolver: ResolverPort,
    environment: EnvironmentBuilderPort,
    profile: ProfilePort,
) -> Result[ProfileChange]:
    try:
        manifest = load_manifest(profile.path)
        matchers = parse_matchers(selectors, store.is_store_path)
    except ProfmanError as e:
        return Result.failure(diagnostic_from_error(e))

    upgraded = 0
    try:
        to_build: set[BuildRequest] = set()
        for position, element in enumerate(manifest.elements):
            source = element.source
            if (
                source is None
                or source.original_ref.is_immutable
                or not matches(element, position, matchers)
            ):
                continue

            logger.debug("checking '%s' for updates", source.attr_path)
            resolution = resolver.resolve(source.original_ref, source.attr_path)
            if resolution.resolved_ref == source.resolved_ref:
                continue

            logger.info(
                "upgrading '%s' from flake '%s' to '%s'",
                source.attr_path,
                source.resolved_ref,
                resolution.resolved_ref,
            )
            manifest.elements[position] = replace(
                element,
                store_paths=frozenset({resolution.derivation.out_path}),
                source=ProfileElementSource(
                    original_ref=source.original_ref,
                    resolved_ref=resolution.resolved_ref,
                    attr_path=resolution.attr_path,
                ),
            )
            to_build.add(BuildRequest(resolution.derivation.drv_path))
            upgraded += 1

        store.build_paths(to_build)
        artifact = commit_manifest(
            manifest, store=store, environment=environment, profile=profile
        )
    except ProfmanError as e:
        return Result.failure(diagnostic_from_error(e))

    change = ProfileChange(
        artifact_path=artifact,
        manifest=manifest,
        summary=f"upgraded {upgraded} packages",
    )
    return Result(value=change, artifacts=[change_artifact("upgrade", change)])
