from __future__ import annotations

import logging

from profman.application.manifest_store import load_manifest
from profman.application.transaction import (
    ProfileChange,
    change_artifact,
    commit_manifest,
    diagnostic_from_error,
)
from profman.domain.errors import ProfmanError
from profman.domain.manifest import ProfileManifest
from profman.domain.matchers import matches, parse_matchers
from profman.domain.result import Result
from profman.ports.environment import EnvironmentBuilderPort
from profman.ports.profile import ProfilePort
from profman.ports.store import StorePort

logger = logging.getLogger(__name__)


def remove(
    selectors: list[str],
    *,
    store: StorePort,
    environment: EnvironmentBuilderPort,
    profile: ProfilePort,
) -> Result[ProfileChange]:
    try:
        old_manifest = load_manifest(profile.path)
        matchers = parse_matchers(selectors, store.is_store_path)
    except ProfmanError as e:
        return Result.failure(diagnostic_from_error(e))

    new_manifest = ProfileManifest(
        elements=[
            element
            for position, element in enumerate(old_manifest.elements)
            if not matches(element, position, matchers)
        ]
    )
    removed = len(old_manifest.elements) - len(new_manifest.elements)
    summary = f"removed {removed} packages, kept {len(new_manifest.elements)} packages"
    logger.info(summary)

    try:
        artifact = commit_manifest(
            new_manifest, store=store, environment=environment, profile=profile
        )
    except ProfmanError as e:
        return Result.failure(diagnostic_from_error(e))

    change = ProfileChange(artifact_path=artifact, manifest=new_manifest, summary=summary)
    return Result(value=change, artifacts=[change_artifact("remove", change)])
