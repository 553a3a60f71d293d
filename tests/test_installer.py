from __future__ import annotations

import shlex
import sys

import allure

from script_studio.execution.installer import DependencyInstaller

pytestmark = [
    allure.epic("Script Execution"),
    allure.feature("Dependency Installation"),
]

_PYTHON = shlex.quote(sys.executable)


def _fake_installer(code: str, *, timeout_seconds: int = 10) -> DependencyInstaller:
    return DependencyInstaller(
        command=f"{_PYTHON} -c {shlex.quote(code)}",
        timeout_seconds=timeout_seconds,
    )


def test_successful_install_reports_ok() -> None:
    installer = _fake_installer("import sys; print('installed', sys.argv[1])")

    result = installer.install("rich==13.7.0")

    assert result.ok
    assert result.exit_code == 0
    assert result.stdout_preview == "installed rich==13.7.0"


def test_failures_are_reported_not_raised() -> None:
    installer = _fake_installer(
        "import sys; sys.stderr.write('no such package'); "
        "sys.exit(1 if sys.argv[1] == 'bad' else 0)",
    )

    results = installer.install_all(["bad", "good"])

    assert [result.ok for result in results] == [False, True]
    assert results[0].exit_code == 1
    assert results[0].stderr_preview == "no such package"


def test_install_timeout_is_reported() -> None:
    installer = _fake_installer("import time; time.sleep(10)", timeout_seconds=1)

    result = installer.install("slowpkg")

    assert not result.ok
    assert result.error == "Install timed out after 1s."


def test_missing_installer_is_reported() -> None:
    installer = DependencyInstaller(command="script-studio-no-such-installer install")

    result = installer.install("anything")

    assert not result.ok
    assert result.error is not None
    assert result.error.startswith("Installer failed to start")
