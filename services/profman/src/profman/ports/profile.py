from pathlib import Path
from typing import Protocol


class ProfilePort(Protocol):
    @property
    def path(self) -> Path: ...

    def publish(self, artifact_path: str) -> None: ...
