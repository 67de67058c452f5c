from __future__ import annotations

import itertools

import pytest

from models.results import AuditCount, EngineType, OperationResult, OperationType, RunStatus
from services.verdict import aggregate, build_verdict, failure_reasons, summary_lines


def _results(borg_prune=0, borg_compact=0, borg_check=0, restic_prune=0, restic_check=0):
    codes = [
        (EngineType.BORG, OperationType.PRUNE, borg_prune),
        (EngineType.BORG, OperationType.COMPACT_OR_DELETE, borg_compact),
        (EngineType.BORG, OperationType.CHECK, borg_check),
        (EngineType.RESTIC, OperationType.PRUNE, restic_prune),
        (EngineType.RESTIC, OperationType.CHECK, restic_check),
    ]
    return [OperationResult(operation=op, engine=engine, exit_code=code) for engine, op, code in codes]


def _counts(borg=1, restic=1):
    return [AuditCount(engine=EngineType.BORG, count=borg), AuditCount(engine=EngineType.RESTIC, count=restic)]


@pytest.mark.parametrize("flags", list(itertools.product([False, True], repeat=6)))
def test_error_iff_any_failure_condition(flags) -> None:
    borg_prune, borg_compact, restic_prune, restic_check, borg_stale, restic_stale = flags
    results = _results(
        borg_prune=1 if borg_prune else 0,
        borg_compact=2 if borg_compact else 0,
        restic_prune=1 if restic_prune else 0,
        restic_check=3 if restic_check else 0,
    )
    counts = _counts(borg=0 if borg_stale else 2, restic=0 if restic_stale else 1)
    expected = RunStatus.ERROR if any(flags) else RunStatus.NORMAL
    assert aggregate(results, counts) == expected


def test_borg_check_failure_alone_is_not_an_error() -> None:
    assert aggregate(_results(borg_check=1), _counts()) == RunStatus.NORMAL


def test_missing_operation_counts_as_failure() -> None:
    results = [r for r in _results() if not (r.engine == EngineType.RESTIC and r.operation == OperationType.CHECK)]
    reasons = failure_reasons(results, _counts())
    assert reasons == ["Restic check did not run"]


def test_missing_audit_counts_as_failure() -> None:
    reasons = failure_reasons(_results(), [AuditCount(engine=EngineType.BORG, count=3)])
    assert reasons == ["Restic snapshots were not audited"]


def test_summary_lines_report_every_exit_code() -> None:
    verdict = build_verdict("db01", _results(borg_check=1, restic_check=2), _counts(borg=2, restic=1))
    assert verdict.status == RunStatus.ERROR
    assert summary_lines(verdict) == [
        "Overall status for db01: ERROR",
        "Borg exit codes: prune 0 compact 0 check 1",
        "Restic exit codes: prune 0 check: 2",
        "Total snapshots found: Borg 2 Restic 1",
    ]
    assert verdict.reasons == ["Restic check exited with 2"]


def test_freshness_reasons_name_the_engine() -> None:
    reasons = failure_reasons(_results(), _counts(borg=0, restic=0))
    assert reasons == ["No recent Borg snapshots found", "No recent Restic snapshots found"]
