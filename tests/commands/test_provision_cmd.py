"""CLI tests for distprov provision.

This file focuses on CLI-specific concerns for the provision command:
- Command execution and exit codes
- Option overrides (--dry-run, --guest, --stop-on-error, --max-concurrent)
- Summary output
- Configuration and preflight errors

The pipeline itself is tested in tests/unit/core/test_orchestrator.py.
"""

import json
import shutil
from pathlib import Path

import pytest
from click.testing import CliRunner

from distprov.cli.cli import cli
from distprov.cli.commands.provision import provision_cmd
from distprov.core.context import Logger, ProvisionContext
from tests.fakes.http import FakeHttpClient
from tests.fakes.wsl import FakeWsl, failure
from tests.test_utils.builders import config_data


def _factory(wsl: FakeWsl, http: FakeHttpClient | None = None):
    def build(config, *, dry_run: bool, logger: Logger) -> ProvisionContext:
        return ProvisionContext.for_test(wsl=wsl, http=http, dry_run=dry_run, logger=logger)

    return build


def _write_config(tmp_path: Path, guests: tuple[str, ...] = ("RHEL9",), **sections) -> Path:
    path = tmp_path / "config.json"
    path.write_text(json.dumps(config_data(tmp_path, guests, **sections)), encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def wsl_on_path(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(shutil, "which", lambda name: f"C:/Windows/System32/{name}")


def test_provision_success(tmp_path: Path) -> None:
    wsl = FakeWsl()
    config_path = _write_config(tmp_path)

    result = CliRunner().invoke(
        provision_cmd, ["--config", str(config_path)], obj=_factory(wsl), catch_exceptions=False
    )

    assert result.exit_code == 0, result.output
    assert "RHEL9" in result.output
    assert "SUCCESS" in result.output
    assert wsl.guests == ["RHEL9"]


def test_provision_through_group(tmp_path: Path) -> None:
    wsl = FakeWsl()
    config_path = _write_config(tmp_path)

    result = CliRunner().invoke(
        cli, ["provision", "--config", str(config_path)], obj=_factory(wsl), catch_exceptions=False
    )

    assert result.exit_code == 0, result.output
    assert ("import", "RHEL9") in wsl.lifecycle_calls


def test_failed_guest_gives_exit_code_one(tmp_path: Path) -> None:
    wsl = FakeWsl(import_failures={"RHEL8": failure("bad image")})
    config_path = _write_config(tmp_path, guests=("RHEL9", "RHEL8"))

    result = CliRunner().invoke(
        provision_cmd, ["--config", str(config_path)], obj=_factory(wsl), catch_exceptions=False
    )

    assert result.exit_code == 1
    assert "SUCCESS" in result.output
    assert "FAILED" in result.output
    assert wsl.guests == ["RHEL9"]


def test_stop_on_error_flag_overrides_settings(tmp_path: Path) -> None:
    wsl = FakeWsl(import_failures={"RHEL9": failure("bad image")})
    config_path = _write_config(tmp_path, guests=("RHEL9", "RHEL8"))

    result = CliRunner().invoke(
        provision_cmd,
        ["--config", str(config_path), "--stop-on-error"],
        obj=_factory(wsl),
        catch_exceptions=False,
    )

    assert result.exit_code == 1
    assert "SKIPPED" in result.output
    assert ("import", "RHEL8") not in wsl.lifecycle_calls


def test_guest_option_limits_the_run(tmp_path: Path) -> None:
    wsl = FakeWsl()
    config_path = _write_config(tmp_path, guests=("RHEL9", "RHEL8"))

    result = CliRunner().invoke(
        provision_cmd,
        ["--config", str(config_path), "--guest", "rhel8"],
        obj=_factory(wsl),
        catch_exceptions=False,
    )

    assert result.exit_code == 0, result.output
    assert wsl.guests == ["RHEL8"]


def test_unknown_guest_is_an_error(tmp_path: Path) -> None:
    wsl = FakeWsl()
    config_path = _write_config(tmp_path)

    result = CliRunner().invoke(
        provision_cmd,
        ["--config", str(config_path), "--guest", "Fedora"],
        obj=_factory(wsl),
        catch_exceptions=False,
    )

    assert result.exit_code == 1
    assert "Error: " in result.output
    assert "Unknown distribution(s): Fedora" in result.output
    assert wsl.lifecycle_calls == []


def test_max_concurrent_override(tmp_path: Path) -> None:
    wsl = FakeWsl()
    config_path = _write_config(tmp_path, guests=("A", "B", "C"))

    result = CliRunner().invoke(
        provision_cmd,
        ["--config", str(config_path), "--max-concurrent", "3"],
        obj=_factory(wsl),
        catch_exceptions=False,
    )

    assert result.exit_code == 0, result.output
    assert sorted(wsl.guests) == ["A", "B", "C"]


def test_dry_run_changes_nothing(tmp_path: Path) -> None:
    wsl = FakeWsl(guests=["RHEL9"])
    http = FakeHttpClient()
    config_path = _write_config(tmp_path)

    result = CliRunner().invoke(
        provision_cmd,
        ["--config", str(config_path), "--dry-run"],
        obj=_factory(wsl, http),
        catch_exceptions=False,
    )

    assert result.exit_code == 0, result.output
    assert "preview" in result.output
    assert wsl.mutating_calls == []
    assert http.requested == []
    assert not (tmp_path / "downloads").exists()


def test_missing_config_file(tmp_path: Path) -> None:
    result = CliRunner().invoke(
        provision_cmd,
        ["--config", str(tmp_path / "absent.toml")],
        obj=_factory(FakeWsl()),
        catch_exceptions=False,
    )

    assert result.exit_code == 1
    assert "Error: " in result.output
    assert "Configuration file not found" in result.output


def test_invalid_config_lists_problems(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path, settings={"max_concurrent_distributions": 0})

    result = CliRunner().invoke(
        provision_cmd,
        ["--config", str(config_path)],
        obj=_factory(FakeWsl()),
        catch_exceptions=False,
    )

    assert result.exit_code == 1
    assert "settings.max_concurrent_distributions" in result.output


def test_preflight_failure_touches_no_guest(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(shutil, "which", lambda name: None)
    wsl = FakeWsl()
    config_path = _write_config(tmp_path)

    result = CliRunner().invoke(
        provision_cmd, ["--config", str(config_path)], obj=_factory(wsl), catch_exceptions=False
    )

    assert result.exit_code == 1
    assert "Environment preflight failed" in result.output
    assert "WSL executable not found: wsl.exe" in result.output
    assert wsl.lifecycle_calls == []


def test_log_file_is_written_when_log_dir_configured(tmp_path: Path) -> None:
    wsl = FakeWsl()
    paths = {
        "download_dir": str(tmp_path / "downloads"),
        "backup_dir": str(tmp_path / "backups"),
        "log_dir": str(tmp_path / "logs"),
    }
    config_path = _write_config(tmp_path, paths=paths)

    result = CliRunner().invoke(
        provision_cmd, ["--config", str(config_path)], obj=_factory(wsl), catch_exceptions=False
    )

    assert result.exit_code == 0, result.output
    log_files = list((tmp_path / "logs").glob("distprov-*.log"))
    assert len(log_files) == 1
    content = log_files[0].read_text(encoding="utf-8")
    assert "[INFO] distprov: [RHEL9] Provisioning started" in content
    assert "changeme" not in content
