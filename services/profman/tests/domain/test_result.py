from profman.domain.diagnostics import ArgumentLocation, Diagnostic, FileLocation, Severity
from profman.domain.result import Result


def _diag(is_execution: bool, severity: Severity = Severity.ERROR) -> Diagnostic:
    return Diagnostic(
        code="X",
        rule="x",
        severity=severity,
        message="boom",
        is_execution=is_execution,
    )


def test_exit_codes() -> None:
    assert Result(value=1).exit_code == 0
    assert Result(diagnostics=[_diag(False, Severity.WARN)]).exit_code == 0
    assert Result(diagnostics=[_diag(False)]).exit_code == 2
    assert Result(diagnostics=[_diag(False), _diag(True)]).exit_code == 3


def test_has_errors_ignores_warnings() -> None:
    assert not Result(diagnostics=[_diag(False, Severity.WARN)]).has_errors
    assert Result(diagnostics=[_diag(True)]).has_errors


def test_diagnostic_render_includes_hint() -> None:
    diagnostic = Diagnostic(
        code="INSTALLABLE_UNSUPPORTED",
        rule="install.installable",
        severity=Severity.ERROR,
        message="'profile install' does not support argument 'hello'",
        hint="install packages by reference, e.g. nixpkgs#hello",
    )
    assert diagnostic.render() == (
        "error[INSTALLABLE_UNSUPPORTED]: 'profile install' does not support argument 'hello'\n"
        "  hint: install packages by reference, e.g. nixpkgs#hello"
    )


def test_diagnostic_id_is_stable() -> None:
    location = FileLocation("/p/manifest.json")
    a = Diagnostic(code="X", rule="x", severity=Severity.ERROR, message="m", location=location)
    b = Diagnostic(code="X", rule="x", severity=Severity.ERROR, message="m", location=location)
    assert a.id == b.id
    assert len(a.id) == 12


def test_locations_render() -> None:
    assert str(FileLocation("/p/manifest.json")) == "/p/manifest.json"
    location = ArgumentLocation("selector", "(bad", 2)
    assert location.kind == "argument"
    assert str(location) == "selector '(bad'"


def test_failure_collects_diagnostics() -> None:
    result: Result[int] = Result.failure(_diag(False), _diag(True))
    assert result.value is None
    assert len(result.errors()) == 2
    assert result.exit_code == 3
