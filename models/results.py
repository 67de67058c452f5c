"""
Maintenance run results
Per-operation results, freshness counts and the per-target verdict
"""
from datetime import date
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field


class EngineType(Enum):
    """Snapshot engines driven by a maintenance run"""
    BORG = "borg"
    RESTIC = "restic"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class OperationType(Enum):
    """Maintenance operations, in the order they run for one engine"""
    PRUNE = "prune"                          # borg prune / restic forget --prune
    COMPACT_OR_DELETE = "compact"            # borg compact; restic folds this into PRUNE
    CHECK = "check"


class RunStatus(Enum):
    NORMAL = "NORMAL"
    ERROR = "ERROR"


class OperationResult(BaseModel):
    """Exit code and combined output of one engine invocation"""
    operation: OperationType
    engine: EngineType
    exit_code: int
    output: List[str] = Field(default_factory=list)
    command: List[str] = Field(default_factory=list)
    duration_seconds: float = 0.0
    timed_out: bool = False

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


class AuditCount(BaseModel):
    """Snapshot lines found inside the freshness window for one engine"""
    engine: EngineType
    count: int = Field(default=0, ge=0)


class DailyCount(BaseModel):
    """Snapshot lines found for a single calendar day"""
    engine: EngineType
    days_ago: int = Field(ge=0)
    day: date
    count: int = Field(default=0, ge=0)


class RunVerdict(BaseModel):
    """Outcome of one target's maintenance run"""
    target: str
    status: RunStatus
    operation_results: List[OperationResult] = Field(default_factory=list)
    audit_counts: List[AuditCount] = Field(default_factory=list)
    reasons: List[str] = Field(default_factory=list)

    @property
    def is_error(self) -> bool:
        return self.status == RunStatus.ERROR

    def result_for(self, engine: EngineType, operation: OperationType) -> Optional[OperationResult]:
        """Latest result recorded for an engine operation, if it ran"""
        return find_result(self.operation_results, engine, operation)

    def count_for(self, engine: EngineType) -> Optional[int]:
        return find_count(self.audit_counts, engine)


def find_result(results: List[OperationResult], engine: EngineType,
                operation: OperationType) -> Optional[OperationResult]:
    """Return the last result matching engine and operation"""
    found = None
    for result in results:
        if result.engine == engine and result.operation == operation:
            found = result
    return found


def find_count(audit_counts: List[AuditCount], engine: EngineType) -> Optional[int]:
    """Sum of audit counts for an engine, or None when the engine was never audited"""
    counts = [item.count for item in audit_counts if item.engine == engine]
    return sum(counts) if counts else None
