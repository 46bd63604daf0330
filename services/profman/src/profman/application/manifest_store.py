from __future__ import annotations

import json
import logging
from pathlib import Path

import jsonschema

from profman.domain.errors import InvalidReference, ManifestParseError, UnsupportedManifestVersion
from profman.domain.json_types import JsonDict, as_json_dict, canonical_json, is_json_dict
from profman.domain.manifest import MANIFEST_VERSION, ProfileManifest

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "manifest.json"


def schema_path() -> Path:
    return Path(__file__).resolve().parents[1] / "schemas" / "profile-manifest.v1.schema.json"


def _load_schema() -> JsonDict:
    return as_json_dict(json.loads(schema_path().read_text(encoding="utf-8")))


def manifest_path(profile_dir: Path) -> Path:
    return profile_dir / MANIFEST_FILENAME


def load_manifest(profile_dir: Path) -> ProfileManifest:
    path = manifest_path(profile_dir)
    if not path.exists():
        logger.debug("no manifest at '%s', starting from an empty profile", path)
        return ProfileManifest()

    try:
        raw: object = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ManifestParseError(
            f"profile manifest '{path}' could not be read: {e}",
            details={"path": str(path)},
            cause=e,
        ) from e
    if not is_json_dict(raw):
        raise ManifestParseError(
            f"profile manifest '{path}' is not a JSON object",
            details={"path": str(path)},
        )

    document = as_json_dict(raw)
    version = document.get("version", 0)
    if isinstance(version, bool) or version != MANIFEST_VERSION:
        raise UnsupportedManifestVersion(
            f"profile manifest '{path}' has unsupported version {version}",
            details={"path": str(path), "version": version},
            hint=f"only manifest version {MANIFEST_VERSION} is supported",
        )

    try:
        jsonschema.validate(document, _load_schema())
    except jsonschema.ValidationError as e:
        raise ManifestParseError(
            f"profile manifest '{path}' is invalid: {e.message}",
            details={"path": str(path), "field": "/".join(str(p) for p in e.absolute_path)},
            cause=e,
        ) from e

    try:
        return ProfileManifest.from_json(document)
    except InvalidReference as e:
        raise ManifestParseError(
            f"profile manifest '{path}' contains an invalid reference: {e}",
            details={"path": str(path)},
            cause=e,
        ) from e


def serialize_manifest(manifest: ProfileManifest) -> bytes:
    return canonical_json(manifest.to_json())
