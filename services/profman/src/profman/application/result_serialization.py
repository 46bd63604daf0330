from __future__ import annotations

from datetime import datetime, timezone
from typing import TypeVar

from profman.application.transaction import ProfileChange
from profman.domain.diagnostics import ArgumentLocation, Diagnostic, FileLocation, Location
from profman.domain.json_types import JsonDict, as_json_dict
from profman.domain.result import Result

T = TypeVar("T")

RESULT_SCHEMA_VERSION = 1


def location_to_json(location: Location | None) -> JsonDict | None:
    if isinstance(location, FileLocation):
        return {"kind": location.kind, "path": location.path}
    if isinstance(location, ArgumentLocation):
        return {
            "kind": location.kind,
            "argument": location.argument,
            "value": location.value,
            "index": location.index,
        }
    if location is not None:
        return {"kind": location.kind}
    return None


def diagnostic_to_json(diag: Diagnostic) -> JsonDict:
    return as_json_dict(
        {
            "id": diag.id,
            "code": diag.code,
            "rule": diag.rule,
            "severity": diag.severity.value,
            "message": diag.message,
            "hint": diag.hint,
            "details": diag.details,
            "is_execution": diag.is_execution,
            "location": location_to_json(diag.location),
        }
    )


def serialize_result(
    result: Result[T],
    command: str,
    args: list[str],
    *,
    profile: str | None = None,
) -> JsonDict:
    """Render a result as the single JSON document printed by ``--json``."""
    summary = result.value.summary if isinstance(result.value, ProfileChange) else None
    return as_json_dict(
        {
            "result_schema_version": RESULT_SCHEMA_VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "command": command,
            "args": args,
            "profile": profile,
            "exit_code": result.exit_code,
            "summary": summary,
            "diagnostics": [diagnostic_to_json(d) for d in result.diagnostics],
            "artifacts": result.artifacts,
        }
    )
