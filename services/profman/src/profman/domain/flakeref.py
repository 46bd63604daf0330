from __future__ import annotations

from dataclasses import dataclass, replace
import re
from typing import Literal

from profman.domain.errors import InvalidReference

RefKind = Literal["indirect", "github", "path"]

REV_PATTERN = re.compile(r"^[0-9a-f]{40}$")
ID_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9_-]*$")
REF_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9._/-]*$")
OWNER_REPO_PATTERN = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9._-]*$")


@dataclass(frozen=True)
class FlakeRef:
    kind: RefKind
    id: str
    ref: str | None = None
    rev: str | None = None

    @property
    def is_immutable(self) -> bool:
        return self.rev is not None

    def with_rev(self, rev: str) -> FlakeRef:
        return replace(self, ref=None, rev=rev)

    def __str__(self) -> str:
        if self.kind == "path":
            return f"path:{self.id}"
        base = f"github:{self.id}" if self.kind == "github" else self.id
        suffix = self.rev or self.ref
        return f"{base}/{suffix}" if suffix else base


def _split_ref_or_rev(value: str | None) -> tuple[str | None, str | None]:
    if not value:
        return None, None
    if REV_PATTERN.match(value):
        return None, value
    return value, None


def parse_flake_ref(text: str) -> FlakeRef:
    raw = text.strip()
    if not raw:
        raise InvalidReference("empty package reference")

    if raw.startswith("path:") or raw.startswith("/"):
        path = raw[len("path:"):] if raw.startswith("path:") else raw
        if not path.startswith("/"):
            raise InvalidReference(
                f"path reference '{text}' must be absolute",
                details={"reference": text},
            )
        return FlakeRef(kind="path", id=path.rstrip("/") or "/")

    if raw.startswith("github:"):
        parts = raw[len("github:"):].split("/", 2)
        if len(parts) < 2 or not all(OWNER_REPO_PATTERN.match(p) for p in parts[:2]):
            raise InvalidReference(
                f"github reference '{text}' must look like github:<owner>/<repo>[/<ref>]",
                details={"reference": text},
            )
        ref, rev = _split_ref_or_rev(parts[2] if len(parts) == 3 else None)
        if ref is not None and not REF_NAME_PATTERN.match(ref):
            raise InvalidReference(f"invalid branch or tag in '{text}'", details={"reference": text})
        return FlakeRef(kind="github", id=f"{parts[0]}/{parts[1]}", ref=ref, rev=rev)

    if ":" in raw:
        scheme = raw.split(":", 1)[0]
        raise InvalidReference(
            f"unsupported reference scheme '{scheme}' in '{text}'",
            details={"reference": text},
            hint="use an indirect id (nixpkgs), github:<owner>/<repo> or path:<dir>",
        )

    flake_id, _, suffix = raw.partition("/")
    if not ID_PATTERN.match(flake_id):
        raise InvalidReference(f"invalid reference id in '{text}'", details={"reference": text})
    ref, rev = _split_ref_or_rev(suffix or None)
    if ref is not None and not REF_NAME_PATTERN.match(ref):
        raise InvalidReference(f"invalid branch or tag in '{text}'", details={"reference": text})
    return FlakeRef(kind="indirect", id=flake_id, ref=ref, rev=rev)
