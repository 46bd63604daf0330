from dataclasses import dataclass
from typing import Protocol

from profman.domain.flakeref import FlakeRef


@dataclass(frozen=True)
class DerivationInfo:
    drv_path: str
    out_path: str


@dataclass(frozen=True)
class Resolution:
    attr_path: str
    resolved_ref: FlakeRef
    derivation: DerivationInfo


class ResolverPort(Protocol):
    def resolve(self, ref: FlakeRef, attr_path: str) -> Resolution: ...
