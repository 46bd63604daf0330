from __future__ import annotations

import logging
import os
from pathlib import Path
import re

from profman.adapters.errors import PublishError

logger = logging.getLogger(__name__)

_GENERATION_PATTERN = re.compile(r"^(?P<name>.+)-(?P<number>[0-9]+)-link$")


class GenerationProfile:
    """A profile symlink pointing at numbered generation links.

    ``<profile>`` -> ``<profile>-<N>-link`` -> store path. Publishing creates
    the next generation (or reuses the newest one when it already points at
    the artifact) and then swaps ``<profile>`` in a single rename.
    """

    def __init__(self, link: Path) -> None:
        self.link = link.absolute()

    @property
    def path(self) -> Path:
        return self.link

    def _generation_link(self, number: int) -> Path:
        return self.link.parent / f"{self.link.name}-{number}-link"

    def generations(self) -> list[tuple[int, str]]:
        directory = self.link.parent
        if not directory.is_dir():
            return []
        found: list[tuple[int, str]] = []
        for entry in directory.iterdir():
            match = _GENERATION_PATTERN.match(entry.name)
            if match is None or match.group("name") != self.link.name:
                continue
            if entry.is_symlink():
                found.append((int(match.group("number")), os.readlink(entry)))
        return sorted(found)

    def current_generation(self) -> int | None:
        if not self.link.is_symlink():
            return None
        match = _GENERATION_PATTERN.match(os.readlink(self.link))
        return int(match.group("number")) if match else None

    def _swap(self, target: str) -> None:
        temp = self.link.parent / f".{self.link.name}.{os.getpid()}.tmp"
        if os.path.lexists(temp):
            temp.unlink()
        os.symlink(target, temp)
        try:
            os.replace(temp, self.link)
        except OSError:
            temp.unlink(missing_ok=True)
            raise

    def publish(self, artifact_path: str) -> None:
        try:
            self.link.parent.mkdir(parents=True, exist_ok=True)
            existing = self.generations()
            if existing and existing[-1][1] == artifact_path:
                number = existing[-1][0]
                logger.debug("generation %d already points at '%s'", number, artifact_path)
            else:
                number = existing[-1][0] + 1 if existing else 1
                os.symlink(artifact_path, self._generation_link(number))
                logger.info("created generation %d of '%s'", number, self.link)
            self._swap(self._generation_link(number).name)
        except OSError as e:
            raise PublishError(
                f"could not publish '{artifact_path}' to profile '{self.link}': {e}",
                details={"path": str(self.link)},
                cause=e,
            ) from e
