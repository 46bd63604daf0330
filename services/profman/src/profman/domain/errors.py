from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from profman.domain.json_types import JsonDict


@dataclass
class ProfmanError(Exception):
    message: str
    details: JsonDict | None = None
    hint: str | None = None
    cause: Exception | None = None

    code: ClassVar[str] = "PROFMAN_ERROR"
    rule: ClassVar[str] = "profman"
    is_execution: ClassVar[bool] = False

    def __str__(self) -> str:
        return self.message


class UnsupportedManifestVersion(ProfmanError):
    code = "MANIFEST_VERSION_UNSUPPORTED"
    rule = "manifest.version"


class ManifestParseError(ProfmanError):
    code = "MANIFEST_PARSE_FAILED"
    rule = "manifest.parse"


class UnsupportedInstallable(ProfmanError):
    code = "INSTALLABLE_UNSUPPORTED"
    rule = "install.installable"


class InvalidReference(ProfmanError):
    code = "REFERENCE_INVALID"
    rule = "reference.parse"


class InvalidSelector(ProfmanError):
    code = "SELECTOR_INVALID"
    rule = "selector.pattern"


class ProfileWriteError(ProfmanError):
    code = "PROFILE_WRITE_FAILED"
    rule = "profile.write"
    is_execution = True
