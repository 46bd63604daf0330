from __future__ import annotations

from dataclasses import dataclass, field

from profman.domain.flakeref import FlakeRef, parse_flake_ref
from profman.domain.json_types import JsonDict, as_json_dict, as_json_list, as_str_list

MANIFEST_VERSION = 1


@dataclass(frozen=True)
class ProfileElementSource:
    original_ref: FlakeRef
    resolved_ref: FlakeRef
    attr_path: str

    def describe_original(self) -> str:
        return f"{self.original_ref}#{self.attr_path}"

    def describe_resolved(self) -> str:
        return f"{self.resolved_ref}#{self.attr_path}"


@dataclass(frozen=True)
class ProfileElement:
    store_paths: frozenset[str]
    source: ProfileElementSource | None = None
    active: bool = True

    def to_json(self) -> JsonDict:
        obj: JsonDict = {
            "storePaths": as_json_list(sorted(self.store_paths)),
            "active": self.active,
        }
        if self.source is not None:
            obj["originalUri"] = str(self.source.original_ref)
            obj["uri"] = str(self.source.resolved_ref)
            obj["attrPath"] = self.source.attr_path
        return obj

    @classmethod
    def from_json(cls, raw: JsonDict) -> ProfileElement:
        source = None
        uri = raw.get("uri")
        if isinstance(uri, str) and uri:
            source = ProfileElementSource(
                original_ref=parse_flake_ref(str(raw.get("originalUri") or uri)),
                resolved_ref=parse_flake_ref(uri),
                attr_path=str(raw.get("attrPath") or ""),
            )
        return cls(
            store_paths=frozenset(as_str_list(raw.get("storePaths"))),
            source=source,
            active=bool(raw.get("active", True)),
        )


def _new_elements() -> list[ProfileElement]:
    return []


@dataclass
class ProfileManifest:
    elements: list[ProfileElement] = field(default_factory=_new_elements)

    def to_json(self) -> JsonDict:
        return {
            "version": MANIFEST_VERSION,
            "elements": [element.to_json() for element in self.elements],
        }

    @classmethod
    def from_json(cls, raw: JsonDict) -> ProfileManifest:
        return cls(
            elements=[
                ProfileElement.from_json(as_json_dict(item))
                for item in as_json_list(raw.get("elements"))
            ]
        )
