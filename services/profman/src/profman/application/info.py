from __future__ import annotations

from pathlib import Path

from profman.application.manifest_store import load_manifest
from profman.application.transaction import diagnostic_from_error
from profman.domain.errors import ProfmanError
from profman.domain.json_types import JsonDict, as_json_dict
from profman.domain.manifest import ProfileElement, ProfileManifest
from profman.domain.result import Result

NO_SOURCE = "-"


def describe_element(position: int, element: ProfileElement) -> str:
    source = element.source
    original = source.describe_original() if source else NO_SOURCE
    resolved = source.describe_resolved() if source else NO_SOURCE
    return f"{position} {original} {resolved} {' '.join(sorted(element.store_paths))}"


def describe_manifest(manifest: ProfileManifest) -> list[str]:
    return [describe_element(i, element) for i, element in enumerate(manifest.elements)]


def _element_artifact(position: int, element: ProfileElement) -> JsonDict:
    source = element.source
    return as_json_dict(
        {
            "kind": "element",
            "position": position,
            "active": element.active,
            "originalRef": source.describe_original() if source else None,
            "resolvedRef": source.describe_resolved() if source else None,
            "storePaths": sorted(element.store_paths),
        }
    )


def info(profile_dir: Path) -> Result[list[str]]:
    try:
        manifest = load_manifest(profile_dir)
    except ProfmanError as e:
        return Result.failure(diagnostic_from_error(e))
    return Result(
        value=describe_manifest(manifest),
        artifacts=[_element_artifact(i, e) for i, e in enumerate(manifest.elements)],
    )
