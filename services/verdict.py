"""
Verdict aggregation
Folds engine exit codes and freshness counts into a NORMAL/ERROR status
"""
from typing import List, Optional

from models.results import (
    AuditCount, EngineType, OperationResult, OperationType, RunStatus, RunVerdict,
    find_count, find_result
)


# Exit codes that decide the verdict. Borg check is reported but is not part
# of the failure condition.
REQUIRED_SUCCESSES = (
    (EngineType.BORG, OperationType.PRUNE),
    (EngineType.BORG, OperationType.COMPACT_OR_DELETE),
    (EngineType.RESTIC, OperationType.PRUNE),
    (EngineType.RESTIC, OperationType.CHECK),
)

AUDITED_ENGINES = (EngineType.BORG, EngineType.RESTIC)

MINIMUM_SNAPSHOTS = 1


def failure_reasons(results: List[OperationResult], audit_counts: List[AuditCount]) -> List[str]:
    """Every failure condition that holds; empty means the run is NORMAL"""
    reasons = []

    for engine, operation in REQUIRED_SUCCESSES:
        result = find_result(results, engine, operation)
        if result is None:
            reasons.append(f"{engine.label} {operation.value} did not run")
        elif result.exit_code != 0:
            reasons.append(f"{engine.label} {operation.value} exited with {result.exit_code}")

    for engine in AUDITED_ENGINES:
        count = find_count(audit_counts, engine)
        if count is None:
            reasons.append(f"{engine.label} snapshots were not audited")
        elif count < MINIMUM_SNAPSHOTS:
            reasons.append(f"No recent {engine.label} snapshots found")

    return reasons


def aggregate(results: List[OperationResult], audit_counts: List[AuditCount]) -> RunStatus:
    """ERROR iff any required operation failed or an engine has no fresh snapshot"""
    if failure_reasons(results, audit_counts):
        return RunStatus.ERROR
    return RunStatus.NORMAL


def build_verdict(target_name: str, results: List[OperationResult],
                  audit_counts: List[AuditCount]) -> RunVerdict:
    reasons = failure_reasons(results, audit_counts)
    return RunVerdict(
        target=target_name,
        status=RunStatus.ERROR if reasons else RunStatus.NORMAL,
        operation_results=list(results),
        audit_counts=list(audit_counts),
        reasons=reasons
    )


def _exit_code(verdict: RunVerdict, engine: EngineType, operation: OperationType) -> str:
    result: Optional[OperationResult] = verdict.result_for(engine, operation)
    return str(result.exit_code) if result is not None else "-"


def summary_lines(verdict: RunVerdict) -> List[str]:
    """Operator-facing summary, one line per fact"""
    borg_count = verdict.count_for(EngineType.BORG)
    restic_count = verdict.count_for(EngineType.RESTIC)
    return [
        f"Overall status for {verdict.target}: {verdict.status.value}",
        "Borg exit codes: prune {} compact {} check {}".format(
            _exit_code(verdict, EngineType.BORG, OperationType.PRUNE),
            _exit_code(verdict, EngineType.BORG, OperationType.COMPACT_OR_DELETE),
            _exit_code(verdict, EngineType.BORG, OperationType.CHECK),
        ),
        "Restic exit codes: prune {} check: {}".format(
            _exit_code(verdict, EngineType.RESTIC, OperationType.PRUNE),
            _exit_code(verdict, EngineType.RESTIC, OperationType.CHECK),
        ),
        "Total snapshots found: Borg {} Restic {}".format(
            borg_count if borg_count is not None else 0,
            restic_count if restic_count is not None else 0,
        ),
    ]
