from __future__ import annotations

import logging
from pathlib import Path

import yaml

from profman.adapters.errors import ResolutionFailure
from profman.domain.errors import InvalidReference
from profman.domain.flakeref import FlakeRef, parse_flake_ref
from profman.domain.json_types import JsonDict, as_json_dict
from profman.ports.resolver import DerivationInfo, Resolution
from profman.ports.store import Derivation, StorePort

logger = logging.getLogger(__name__)

REGISTRY_VERSION = 1
DEFAULT_BRANCH = "master"


def _normalize_files(raw: object) -> JsonDict:
    files: JsonDict = {}
    for rel, entry in as_json_dict(raw).items():
        if isinstance(entry, dict):
            files[rel] = as_json_dict(entry)
        else:
            files[rel] = {"contents": "" if entry is None else str(entry)}
    return files


class RegistryResolver:
    def __init__(self, registry_path: Path, store: StorePort, system: str) -> None:
        self.registry_path = registry_path
        self.store = store
        self.system = system

    def _load(self) -> JsonDict:
        try:
            raw: object = yaml.safe_load(self.registry_path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ResolutionFailure(
                f"package registry '{self.registry_path}' could not be read",
                details={"path": str(self.registry_path)},
                cause=e,
            ) from e
        registry = as_json_dict(raw)
        if registry.get("version") != REGISTRY_VERSION:
            raise ResolutionFailure(
                f"package registry '{self.registry_path}' has unsupported version {registry.get('version')}",
                details={"path": str(self.registry_path)},
            )
        return registry

    def _find_flake(self, flakes: JsonDict, ref: FlakeRef) -> tuple[str, JsonDict]:
        if ref.kind == "indirect" and ref.id in flakes:
            return ref.id, as_json_dict(flakes[ref.id])
        if ref.kind == "github":
            for name, entry in flakes.items():
                flake = as_json_dict(entry)
                if flake.get("url") == f"github:{ref.id}":
                    return name, flake
        raise ResolutionFailure(
            f"cannot find flake '{ref}' in the package registry",
            details={"reference": str(ref)},
        )

    def _pick_rev(self, flake: JsonDict, ref: FlakeRef) -> str:
        revisions = as_json_dict(flake.get("revisions"))
        if ref.rev is not None:
            rev = ref.rev
        else:
            branch = ref.ref or str(flake.get("default_branch") or DEFAULT_BRANCH)
            branches = as_json_dict(flake.get("branches"))
            rev = str(branches.get(branch) or "")
            if not rev:
                raise ResolutionFailure(
                    f"flake '{ref}' has no branch '{branch}'",
                    details={"reference": str(ref)},
                )
        if rev not in revisions:
            raise ResolutionFailure(
                f"flake '{ref}' has no revision '{rev}'",
                details={"reference": str(ref)},
            )
        return rev

    def _locked_ref(self, name: str, flake: JsonDict, rev: str) -> FlakeRef:
        url = flake.get("url")
        try:
            base = parse_flake_ref(str(url)) if url else FlakeRef(kind="indirect", id=name)
        except InvalidReference as e:
            raise ResolutionFailure(
                f"flake '{name}' has an invalid url '{url}'", details={"reference": name}, cause=e
            ) from e
        return base.with_rev(rev)

    def _attr_candidates(self, attr_path: str) -> list[str]:
        candidates = [
            attr_path,
            f"packages.{self.system}.{attr_path}",
            f"legacyPackages.{self.system}.{attr_path}",
        ]
        return list(dict.fromkeys(candidates))

    def resolve(self, ref: FlakeRef, attr_path: str) -> Resolution:
        if ref.kind == "path":
            raise ResolutionFailure(
                f"path reference '{ref}' cannot be resolved through the package registry",
                details={"reference": str(ref)},
            )
        registry = self._load()
        name, flake = self._find_flake(as_json_dict(registry.get("flakes")), ref)
        rev = self._pick_rev(flake, ref)
        locked = self._locked_ref(name, flake, rev)
        packages = as_json_dict(as_json_dict(as_json_dict(flake.get("revisions")).get(rev)).get("packages"))

        for candidate in self._attr_candidates(attr_path):
            if candidate not in packages:
                continue
            package = as_json_dict(packages[candidate])
            error = package.get("error")
            derivation = Derivation(
                name=str(package.get("name") or candidate.split(".")[-1]),
                files=_normalize_files(package.get("files")),
                error=str(error) if error else None,
            )
            try:
                drv_path, out_path = self.store.add_derivation(derivation)
            except ValueError as e:
                raise ResolutionFailure(
                    f"package '{locked}#{candidate}' has an invalid name: {e}",
                    details={"reference": str(ref)},
                    cause=e,
                ) from e
            logger.debug("resolved '%s#%s' to '%s#%s'", ref, attr_path, locked, candidate)
            return Resolution(
                attr_path=candidate,
                resolved_ref=locked,
                derivation=DerivationInfo(drv_path=drv_path, out_path=out_path),
            )

        raise ResolutionFailure(
            f"flake '{locked}' does not provide attribute '{attr_path}'",
            details={"reference": str(ref)},
            hint=f"tried: {', '.join(self._attr_candidates(attr_path))}",
        )
