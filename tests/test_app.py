from __future__ import annotations

import os
import signal
import textwrap
from datetime import datetime, timedelta

import pytest

import app
from models.results import RunStatus, RunVerdict
from services.maintenance import MaintenanceDriver, MaintenanceInterrupted

CONFIG = """
targets:
  - {name: db01, borg_repo: /r1, borg_passphrase: one, restic_repo: "vault:/a", restic_password: two}
  - {name: web02, borg_repo: /r2, borg_passphrase: three, restic_repo: "vault:/b", restic_password: four}
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "maintenance.yaml"
    path.write_text(textwrap.dedent(CONFIG))
    return str(path)


@pytest.fixture
def processed(monkeypatch):
    names = []

    def run_target(self, target, cancel_token=None):
        names.append(target.name)
        return RunVerdict(target=target.name, status=RunStatus.NORMAL)

    monkeypatch.setattr(MaintenanceDriver, "run_target", run_target)
    return names


def test_missing_config_processes_no_target(tmp_path, processed) -> None:
    assert app.main(["--config", str(tmp_path / "absent.yaml"), "run"]) == 78
    assert processed == []


def test_run_processes_targets_in_order(config_file, processed) -> None:
    assert app.main(["--config", config_file, "run"]) == 0
    assert processed == ["db01", "web02"]


def test_run_can_select_targets(config_file, processed) -> None:
    assert app.main(["--config", config_file, "run", "--target", "web02"]) == 0
    assert processed == ["web02"]


def test_unknown_target_is_a_configuration_error(config_file, processed) -> None:
    assert app.main(["--config", config_file, "run", "--target", "mail03"]) == 78
    assert processed == []


def test_error_verdict_sets_exit_status(config_file, monkeypatch) -> None:
    def run_target(self, target, cancel_token=None):
        status = RunStatus.ERROR if target.name == "web02" else RunStatus.NORMAL
        return RunVerdict(target=target.name, status=status)

    monkeypatch.setattr(MaintenanceDriver, "run_target", run_target)
    assert app.main(["--config", config_file, "run"]) == 1


def test_interrupted_run_exits_2_and_restores_handlers(config_file, monkeypatch, capsys) -> None:
    def run_target(self, target, cancel_token=None):
        raise MaintenanceInterrupted(target.name)

    before = signal.getsignal(signal.SIGTERM)
    monkeypatch.setattr(MaintenanceDriver, "run_target", run_target)
    assert app.main(["--config", config_file, "run"]) == 2
    assert "Maintenance interrupted while maintaining db01" in capsys.readouterr().err
    assert signal.getsignal(signal.SIGTERM) is before


def test_signal_handler_cancels_token() -> None:
    token = app.CancellationToken()
    previous = app.install_signal_handlers(token)
    try:
        signal.getsignal(signal.SIGTERM)(signal.SIGTERM, None)
    finally:
        app.restore_signal_handlers(previous)
    assert token.cancelled


def test_rotation_reminder_output(tmp_path, capsys) -> None:
    marker = tmp_path / "ROTATE"
    marker.touch()
    old = (datetime.now() - timedelta(days=120)).timestamp()
    os.utime(marker, (old, old))

    assert app.main(["rotation", "--rotate-file", str(marker), "--days", "90"]) == 0
    out = capsys.readouterr().out.splitlines()
    assert out[0] == "Time to rotate your backup drive!"
    assert out[1].startswith("The current timestamp: ")


def test_rotation_not_due_prints_nothing(tmp_path, capsys) -> None:
    marker = tmp_path / "ROTATE"
    marker.touch()
    assert app.main(["rotation", "--rotate-file", str(marker), "--days", "90"]) == 0
    assert capsys.readouterr().out == ""


def test_rotation_missing_marker(tmp_path, capsys) -> None:
    marker = tmp_path / "ROTATE"
    assert app.main(["rotation", "--rotate-file", str(marker), "--days", "90"]) == 1
    assert capsys.readouterr().out.strip() == \
        f"***ERROR*** Cannot determine rotation time: {marker} does not exist"


@pytest.mark.parametrize("days", ["0", "-5"])
def test_rotation_rejects_non_positive_period(tmp_path, days) -> None:
    marker = tmp_path / "ROTATE"
    marker.touch()
    assert app.main(["rotation", "--rotate-file", str(marker), "--days", days]) == 78


def test_rotation_rejects_unusable_configured_period(tmp_path) -> None:
    marker = tmp_path / "ROTATE"
    marker.touch()
    config = tmp_path / "maintenance.yaml"
    config.write_text(f"global_settings:\n  rotation:\n    rotate_file: {marker}\n    days: soon\n"
                      "targets: []\n")
    assert app.main(["--config", str(config), "rotation"]) == 78
