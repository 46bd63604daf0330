from __future__ import annotations

import logging
import shutil

from profman.application.archive import hash_path
from profman.application.manifest_store import MANIFEST_FILENAME, serialize_manifest
from profman.domain.errors import ProfileWriteError
from profman.domain.manifest import ProfileManifest
from profman.ports.environment import EnvironmentBuilderPort, Package
from profman.ports.store import StorePort, ValidPathInfo

logger = logging.getLogger(__name__)

# Every active element gets the same priority until per-element priorities exist.
DEFAULT_PRIORITY = 5
PROFILE_NAME = "profile"


def collect_packages(manifest: ProfileManifest) -> tuple[list[Package], frozenset[str]]:
    packages: list[Package] = []
    references: set[str] = set()
    for element in manifest.elements:
        for path in sorted(element.store_paths):
            if element.active:
                packages.append(Package(path=path, active=True, priority=DEFAULT_PRIORITY))
            references.add(path)
    return packages, frozenset(references)


def build_profile(
    manifest: ProfileManifest,
    *,
    store: StorePort,
    environment: EnvironmentBuilderPort,
) -> str:
    packages, references = collect_packages(manifest)
    tree = environment.merge(packages)
    try:
        manifest_file = tree / MANIFEST_FILENAME
        if manifest_file.is_symlink():
            manifest_file.unlink()
        elif manifest_file.is_dir():
            # merged from packages that ship a manifest.json directory
            shutil.rmtree(manifest_file)
        manifest_file.write_bytes(serialize_manifest(manifest))
        tree_hash, nar = hash_path(tree)
    except OSError as e:
        raise ProfileWriteError(
            f"could not write the profile tree: {e}",
            details={"path": str(tree)},
            cause=e,
        ) from e
    finally:
        shutil.rmtree(tree, ignore_errors=True)

    path = store.make_fixed_output_path(PROFILE_NAME, tree_hash.digest, references)
    info = ValidPathInfo(
        path=path,
        nar_hash=str(tree_hash),
        nar_size=tree_hash.size,
        references=references,
        ca=f"fixed:r:{tree_hash}",
    )
    store.add_to_store(info, nar)
    logger.info(
        "built profile '%s' from %d active packages (%d references)",
        path,
        len(packages),
        len(references),
    )
    return path
