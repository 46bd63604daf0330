#!/usr/bin/env python3
from __future__ import annotations

from pathlib import Path
from typing import TypeGuard

import yaml


REPO_ROOT = Path(__file__).resolve().parents[1]
CATALOG = Path("services/profman/src/profman/diagnostics/codes.yaml")
OUTPUT = Path("docs/reference/diagnostic-codes.md")


def _is_dict(value: object) -> TypeGuard[dict[object, object]]:
    return isinstance(value, dict)


def _is_list(value: object) -> TypeGuard[list[object]]:
    return isinstance(value, list)


def _as_dict(value: object) -> dict[str, object]:
    if not _is_dict(value):
        return {}
    return {str(k): v for k, v in value.items()}


def _load_yaml(path: Path) -> dict[str, object]:
    raw: object = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    return _as_dict(raw)


def _cell(value: object) -> str:
    return str(value or "").strip().replace("\n", " ").replace("|", "\\|")


def load_codes(path: Path) -> list[dict[str, object]]:
    data = _load_yaml(path)
    if data.get("version") != 1:
        raise SystemExit(f"Unsupported diagnostics version: {data.get('version')}")

    raw_codes = data.get("codes")
    if not _is_list(raw_codes):
        raise SystemExit("Invalid codes.yaml: expected top-level 'codes' list")
    codes: list[dict[str, object]] = []
    seen: set[str] = set()
    for entry in raw_codes:
        if not _is_dict(entry):
            raise SystemExit("Invalid codes.yaml: entries must be mappings")
        item = _as_dict(entry)
        code = _cell(item.get("code"))
        if not code or not _cell(item.get("severity")) or not _cell(item.get("rule")):
            raise SystemExit(
                f"Invalid diagnostic entry (missing required fields): {item}"
            )
        if code in seen:
            raise SystemExit(f"Duplicate diagnostic code: {code}")
        seen.add(code)
        codes.append(item)
    return codes


def render(codes: list[dict[str, object]]) -> str:
    lines = [
        "> **Generated file. Do not edit directly.**",
        "> Run: `python scripts/generate_diagnostic_codes.py`",
        "",
        "# Diagnostic codes",
        "",
        f"This page is generated from `{CATALOG.as_posix()}`.",
        "",
        "| Code | Severity | Rule | Message | Hint |",
        "|---|---|---|---|---|",
    ]
    for item in sorted(codes, key=lambda x: str(x.get("code", ""))):
        lines.append(
            f"| `{_cell(item.get('code'))}` | `{_cell(item.get('severity'))}` "
            f"| `{_cell(item.get('rule'))}` | {_cell(item.get('message'))} "
            f"| {_cell(item.get('hint'))} |"
        )
    return "\n".join(lines) + "\n"


def generate(repo_root: Path = REPO_ROOT) -> Path:
    src = repo_root / CATALOG
    out = repo_root / OUTPUT
    if not src.exists():
        raise SystemExit(f"Diagnostics source not found: {src}")

    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(render(load_codes(src)), encoding="utf-8")
    print(f"Generated {out}")
    return out


if __name__ == "__main__":
    generate()
