"""Merges package outputs into a single tree of symlinks.

A name provided by one package becomes a symlink into that package. A name
provided as a directory by several packages becomes a real directory whose
entries are merged the same way. Any other collision is settled by priority
(lower number wins); two winners pointing at different files are a conflict.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import os
from pathlib import Path
import shutil
import tempfile

from profman.adapters.errors import EnvironmentBuildError, MergeConflict
from profman.ports.environment import Package

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Provider:
    path: Path
    package: Package


class SymlinkFarmBuilder:
    def __init__(self, temp_root: Path | None = None) -> None:
        self.temp_root = temp_root

    def merge(self, packages: list[Package]) -> Path:
        try:
            if self.temp_root is not None:
                self.temp_root.mkdir(parents=True, exist_ok=True)
            tree = Path(tempfile.mkdtemp(prefix="profman-env-", dir=self.temp_root))
        except OSError as e:
            raise EnvironmentBuildError(
                f"could not create a profile tree: {e}",
                details={"path": str(self.temp_root)} if self.temp_root else None,
                cause=e,
            ) from e
        try:
            providers: list[_Provider] = []
            for package in packages:
                if not package.active:
                    continue
                root = Path(package.path)
                if not root.is_dir():
                    logger.warning("skipping '%s': not a directory", package.path)
                    continue
                providers.append(_Provider(root, package))
            self._merge_dir(tree, Path("."), providers)
        except OSError as e:
            shutil.rmtree(tree, ignore_errors=True)
            raise EnvironmentBuildError(
                f"could not link packages into the profile tree: {e}",
                details={"packages": [p.path for p in packages]},
                cause=e,
            ) from e
        except BaseException:
            shutil.rmtree(tree, ignore_errors=True)
            raise
        return tree

    def _merge_dir(self, dest: Path, rel: Path, providers: list[_Provider]) -> None:
        entries: dict[str, list[_Provider]] = {}
        for provider in providers:
            for name in os.listdir(provider.path):
                entries.setdefault(name, []).append(
                    _Provider(provider.path / name, provider.package)
                )
        for name in sorted(entries):
            self._link(dest / name, rel / name, entries[name])

    def _link(self, dest: Path, rel: Path, candidates: list[_Provider]) -> None:
        if len(candidates) == 1:
            os.symlink(candidates[0].path, dest)
            return

        if all(c.path.is_dir() for c in candidates):
            dest.mkdir()
            self._merge_dir(dest, rel, candidates)
            return

        best = min(c.package.priority for c in candidates)
        winners = [c for c in candidates if c.package.priority == best]
        targets = {os.path.realpath(c.path) for c in winners}
        if len(targets) > 1:
            first, second = winners[0], winners[1]
            raise MergeConflict(
                f"files '{first.path}' and '{second.path}' have the same priority {best}",
                details={
                    "path": rel.as_posix(),
                    "packages": [w.package.path for w in winners],
                },
                hint="remove one of the conflicting packages from the profile",
            )
        os.symlink(winners[0].path, dest)
