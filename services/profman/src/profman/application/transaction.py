from __future__ import annotations

from dataclasses import dataclass
import logging

from profman.application.profile_builder import build_profile
from profman.domain.diagnostics import ArgumentLocation, Diagnostic, FileLocation, Location, Severity
from profman.domain.errors import ProfmanError
from profman.domain.json_types import JsonDict, as_json_dict
from profman.domain.manifest import ProfileManifest
from profman.ports.environment import EnvironmentBuilderPort
from profman.ports.profile import ProfilePort
from profman.ports.store import StorePort

logger = logging.getLogger(__name__)

_ARGUMENT_KEYS = ("installable", "selector", "reference")


@dataclass(frozen=True)
class ProfileChange:
    artifact_path: str
    manifest: ProfileManifest
    summary: str


def commit_manifest(
    manifest: ProfileManifest,
    *,
    store: StorePort,
    environment: EnvironmentBuilderPort,
    profile: ProfilePort,
) -> str:
    artifact = build_profile(manifest, store=store, environment=environment)
    profile.publish(artifact)
    logger.debug("published '%s' as the current generation of '%s'", artifact, profile.path)
    return artifact


def _location_for(details: JsonDict | None) -> Location | None:
    if not details:
        return None
    for key in _ARGUMENT_KEYS:
        value = details.get(key)
        if isinstance(value, str):
            index = details.get("index")
            return ArgumentLocation(key, value, index if isinstance(index, int) else None)
    path = details.get("path")
    if isinstance(path, str):
        return FileLocation(path)
    return None


def diagnostic_from_error(error: ProfmanError) -> Diagnostic:
    details = as_json_dict(error.details) if error.details else None
    if error.cause is not None:
        details = {**(details or {}), "cause": f"{type(error.cause).__name__}: {error.cause}"}
    return Diagnostic(
        code=error.code,
        rule=error.rule,
        severity=Severity.ERROR,
        message=error.message,
        location=_location_for(error.details),
        hint=error.hint,
        details=details,
        is_execution=error.is_execution,
    )


def change_artifact(command: str, change: ProfileChange) -> JsonDict:
    return as_json_dict(
        {
            "kind": "profile",
            "command": command,
            "path": change.artifact_path,
            "elements": len(change.manifest.elements),
            "summary": change.summary,
        }
    )
