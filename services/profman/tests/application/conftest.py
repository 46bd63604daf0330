from dataclasses import dataclass
import hashlib
import os
from pathlib import Path
import tempfile

import pytest

from profman.adapters.errors import BuildFailure, ResolutionFailure
from profman.application.archive import restore_path
from profman.application.manifest_store import manifest_path, serialize_manifest
from profman.domain.flakeref import FlakeRef, parse_flake_ref
from profman.domain.manifest import ProfileManifest
from profman.ports.environment import Package
from profman.ports.resolver import DerivationInfo, Resolution
from profman.ports.store import BuildRequest, Derivation, ValidPathInfo


class FakeStore:
    store_dir = "/store"

    def __init__(self, root: Path) -> None:
        self.root = root
        self.build_calls: list[set[BuildRequest]] = []
        self.added: dict[str, ValidPathInfo] = {}
        self.fail_build = False

    def is_store_path(self, path: str) -> bool:
        rest = path[len("/store/"):]
        return path.startswith("/store/") and bool(rest) and "/" not in rest

    def add_derivation(self, derivation: Derivation) -> tuple[str, str]:
        return f"/store/{derivation.name}.drv", f"/store/{derivation.name}"

    def build_paths(self, requests: set[BuildRequest]) -> None:
        self.build_calls.append(set(requests))
        if self.fail_build:
            raise BuildFailure("builder failed", details={"failed": sorted(str(r) for r in requests)})

    def make_fixed_output_path(
        self, name: str, nar_hash: str, references: frozenset[str]
    ) -> str:
        digest = hashlib.sha256(":".join([nar_hash, *sorted(references)]).encode()).hexdigest()
        return f"/store/{digest[:32]}-{name}"

    def add_to_store(self, info: ValidPathInfo, nar: bytes) -> None:
        self.added[info.path] = info
        local = self.local(info.path)
        if not local.exists():
            local.parent.mkdir(parents=True, exist_ok=True)
            restore_path(nar, local)

    def local(self, path: str) -> Path:
        return self.root / "objects" / Path(path).name


class FakeResolver:
    def __init__(self) -> None:
        self.table: dict[tuple[str, str], Resolution] = {}
        self.calls: list[tuple[str, str]] = []

    def provide(self, ref: str, attr_path: str, resolved: str, out_path: str) -> None:
        self.table[(ref, attr_path)] = Resolution(
            attr_path=attr_path,
            resolved_ref=parse_flake_ref(resolved),
            derivation=DerivationInfo(drv_path=f"{out_path}.drv", out_path=out_path),
        )

    def resolve(self, ref: FlakeRef, attr_path: str) -> Resolution:
        self.calls.append((str(ref), attr_path))
        try:
            return self.table[(str(ref), attr_path)]
        except KeyError:
            raise ResolutionFailure(
                f"cannot resolve '{ref}#{attr_path}'", details={"reference": str(ref)}
            ) from None


class FakeEnvironment:
    def __init__(self, root: Path) -> None:
        self.root = root
        self.calls: list[list[Package]] = []

    def merge(self, packages: list[Package]) -> Path:
        self.calls.append(list(packages))
        self.root.mkdir(parents=True, exist_ok=True)
        tree = Path(tempfile.mkdtemp(dir=self.root))
        for package in packages:
            os.symlink(package.path, tree / Path(package.path).name)
        return tree


class FakeProfile:
    def __init__(self, root: Path, store: FakeStore) -> None:
        self.link = root / "profile"
        self.store = store
        self.published: list[str] = []

    @property
    def path(self) -> Path:
        return self.link

    def publish(self, artifact_path: str) -> None:
        self.published.append(artifact_path)
        if os.path.lexists(self.link):
            self.link.unlink()
        os.symlink(self.store.local(artifact_path), self.link)

    def seed(self, manifest: ProfileManifest) -> None:
        seeded = self.link.parent / "seeded"
        seeded.mkdir()
        manifest_path(seeded).write_bytes(serialize_manifest(manifest))
        os.symlink(seeded, self.link)


@dataclass
class World:
    store: FakeStore
    resolver: FakeResolver
    environment: FakeEnvironment
    profile: FakeProfile

    def ports(self) -> dict[str, object]:
        return {
            "store": self.store,
            "environment": self.environment,
            "profile": self.profile,
        }


@pytest.fixture
def world(tmp_path: Path) -> World:
    store = FakeStore(tmp_path / "store")
    return World(
        store=store,
        resolver=FakeResolver(),
        environment=FakeEnvironment(tmp_path / "env"),
        profile=FakeProfile(tmp_path, store),
    )
