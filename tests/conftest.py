from __future__ import annotations

from datetime import date, timedelta
from typing import Dict, List, Tuple

import pytest

from models.results import EngineType, OperationResult, OperationType
from models.targets import Target
from services.engines import EngineAdapter

TODAY = date(2024, 5, 2)


def borg_archive_line(day: date, host: str = "db01") -> str:
    stamp = day.isoformat()
    return f"Keeping archive (rule: daily #1):        {host}-{stamp}T03:00:01     Thu, {stamp} 03:00:01 [4c1d0b7e]"


def restic_snapshot_line(day: date, host: str = "db01") -> str:
    return f"4f2a9c1e  {day.isoformat()} 03:00:04  {host}  daily snapshot  /etc /home /root /var"


def make_target(name: str = "db01", freshness_days: int = 1) -> Target:
    return Target(
        name=name,
        borg_repo=f"ssh://borg@vault/./{name}",
        borg_passphrase=f"{name}-borg-secret",
        restic_repo=f"vault:/srv/restic/{name}",
        restic_password=f"{name}-restic-secret",
        freshness_days=freshness_days,
    )


class ScriptedAdapter(EngineAdapter):
    """Adapter that replays canned results instead of starting engines"""

    def __init__(self) -> None:
        super().__init__()
        self.responses: Dict[Tuple[str, EngineType, OperationType], Tuple[int, List[str]]] = {}
        self.calls: List[Tuple[str, EngineType, OperationType]] = []

    def script(self, target: str, engine: EngineType, operation: OperationType,
               exit_code: int = 0, output: List[str] | None = None) -> None:
        self.responses[(target, engine, operation)] = (exit_code, output or [])

    def run(self, target, engine, operation) -> OperationResult:
        self.calls.append((target.name, engine, operation))
        exit_code, output = self.responses.get((target.name, engine, operation), (0, []))
        return OperationResult(operation=operation, engine=engine, exit_code=exit_code, output=list(output))


def script_healthy_target(adapter: ScriptedAdapter, name: str, today: date = TODAY) -> None:
    # Borg lists archives from today and yesterday, restic one snapshot from today.
    yesterday = today - timedelta(days=1)
    adapter.script(name, EngineType.BORG, OperationType.PRUNE, 0,
                   [borg_archive_line(today, name), borg_archive_line(yesterday, name)])
    adapter.script(name, EngineType.BORG, OperationType.COMPACT_OR_DELETE, 0, ["compaction freed 0 B"])
    adapter.script(name, EngineType.BORG, OperationType.CHECK, 0, ["Archive consistency check complete"])
    adapter.script(name, EngineType.RESTIC, OperationType.PRUNE, 0,
                   ["Applying Policy: keep 24 hourly, 7 daily, 4 weekly, 12 monthly, 1 yearly snapshots",
                    restic_snapshot_line(today, name)])
    adapter.script(name, EngineType.RESTIC, OperationType.CHECK, 0, ["no errors were found"])


@pytest.fixture
def adapter() -> ScriptedAdapter:
    return ScriptedAdapter()
