from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from profman.domain.flakeref import FlakeRef, parse_flake_ref

DEFAULT_ATTR_PATH = "defaultPackage"


@dataclass(frozen=True)
class FlakeInstallable:
    text: str
    ref: FlakeRef
    attr_path: str

    def what(self) -> str:
        return f"{self.ref}#{self.attr_path}"


@dataclass(frozen=True)
class StorePathInstallable:
    text: str

    def what(self) -> str:
        return self.text


@dataclass(frozen=True)
class AttrPathInstallable:
    text: str

    def what(self) -> str:
        return self.text


Installable = FlakeInstallable | StorePathInstallable | AttrPathInstallable


def parse_installable(text: str, is_store_path: Callable[[str], bool]) -> Installable:
    if is_store_path(text):
        return StorePathInstallable(text)
    if "#" in text:
        ref_text, _, attr_path = text.partition("#")
        return FlakeInstallable(text, parse_flake_ref(ref_text), attr_path or DEFAULT_ATTR_PATH)
    if ":" in text:
        return FlakeInstallable(text, parse_flake_ref(text), DEFAULT_ATTR_PATH)
    return AttrPathInstallable(text)
