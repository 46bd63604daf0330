from dataclasses import dataclass
from pathlib import Path
from typing import Protocol


@dataclass(frozen=True)
class Package:
    path: str
    active: bool
    priority: int


class EnvironmentBuilderPort(Protocol):
    def merge(self, packages: list[Package]) -> Path: ...
