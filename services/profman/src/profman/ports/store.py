from dataclasses import dataclass, field
from typing import Protocol

from profman.domain.json_types import JsonDict


@dataclass(frozen=True)
class BuildRequest:
    drv_path: str
    outputs: tuple[str, ...] = ("out",)

    def __str__(self) -> str:
        return f"{self.drv_path}!{','.join(self.outputs)}"


@dataclass(frozen=True)
class Derivation:
    name: str
    files: JsonDict = field(default_factory=dict)
    error: str | None = None


@dataclass(frozen=True)
class ValidPathInfo:
    path: str
    nar_hash: str
    nar_size: int
    references: frozenset[str]
    ca: str | None = None


class StorePort(Protocol):
    @property
    def store_dir(self) -> str: ...

    def is_store_path(self, path: str) -> bool: ...

    def add_derivation(self, derivation: Derivation) -> tuple[str, str]:
        """Register a derivation; returns ``(drv_path, out_path)``."""
        ...

    def build_paths(self, requests: set[BuildRequest]) -> None: ...

    def make_fixed_output_path(
        self, name: str, nar_hash: str, references: frozenset[str]
    ) -> str: ...

    def add_to_store(self, info: ValidPathInfo, nar: bytes) -> None: ...
