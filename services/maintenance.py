"""
Unified maintenance service for Borg and Restic repositories
Drives every registered target through prune, compact and check, audits
freshness, and turns the outcome into a per-target verdict and an exit status
"""
import logging
import threading
from datetime import date
from typing import Callable, Iterable, List, Optional, TextIO

from models.results import EngineType, OperationResult, OperationType, RunVerdict
from models.targets import Target
from services.engines import EngineAdapter
from services.freshness import FreshnessAuditor
from services.maintenance_defaults import ExitStatus, MaintenanceDefaults
from services.run_reporter import RunReporter
from services.verdict import build_verdict, summary_lines

logger = logging.getLogger(__name__)

ENGINE_ORDER = (EngineType.BORG, EngineType.RESTIC)


class MaintenanceInterrupted(Exception):
    """Raised when a run is cancelled between engine operations"""

    def __init__(self, target_name: Optional[str] = None):
        self.target_name = target_name
        where = f" while maintaining {target_name}" if target_name else ""
        super().__init__(f"Maintenance interrupted{where}")


class CancellationToken:
    """Set from a signal handler, checked by the driver between operations"""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class MaintenanceDriver:
    """Sequential maintenance over an ordered list of targets"""

    def __init__(
        self,
        adapter: Optional[EngineAdapter] = None,
        auditor: Optional[FreshnessAuditor] = None,
        stream: Optional[TextIO] = None,
        verbose: bool = False,
        clock: Callable[[], date] = date.today
    ):
        self.adapter = adapter or EngineAdapter()
        self.auditor = auditor or FreshnessAuditor()
        self.stream = stream
        self.verbose = verbose
        self.clock = clock

    def run_all(self, targets: Iterable[Target], cancel_token: Optional[CancellationToken] = None) -> int:
        """Maintain every target; non-zero if any target ended in ERROR"""
        verdicts = self.run_targets(targets, cancel_token)
        failed = [verdict.target for verdict in verdicts if verdict.is_error]
        if failed:
            logger.warning("Maintenance finished with errors for: %s", ", ".join(failed))
            return ExitStatus.ERROR
        logger.info("Maintenance finished normally for %d target(s)", len(verdicts))
        return ExitStatus.OK

    def run_targets(self, targets: Iterable[Target],
                    cancel_token: Optional[CancellationToken] = None) -> List[RunVerdict]:
        verdicts = []
        for target in targets:
            if cancel_token is not None and cancel_token.cancelled:
                raise MaintenanceInterrupted()
            verdict = self.run_target(target, cancel_token)
            logger.info("Maintenance for %s: %s", target.name, verdict.status.value)
            verdicts.append(verdict)
        return verdicts

    def run_target(self, target: Target, cancel_token: Optional[CancellationToken] = None) -> RunVerdict:
        """Run both engines for one target and report the verdict"""
        reporter = RunReporter(self.stream, self.verbose, target.secrets)
        reporter.log(f"Starting maintenance for {target.name}")

        results: List[OperationResult] = []
        for engine in ENGINE_ORDER:
            for operation in self.adapter.operations_for(engine):
                if cancel_token is not None and cancel_token.cancelled:
                    reporter.log("Maintenance interrupted", "ERROR")
                    reporter.flush()
                    raise MaintenanceInterrupted(target.name)
                result = self._run_operation(target, engine, operation)
                reporter.log_output(result)
                results.append(result)

        daily = self.auditor.count_by_day(results, target.freshness_days, self.clock())
        for item in daily:
            reporter.log(f"Found {item.count} {item.engine.value} backups for {item.days_ago} days ago")
        audit_counts = self.auditor.summarize(daily)

        verdict = build_verdict(target.name, results, audit_counts)
        for line in summary_lines(verdict):
            reporter.log(line)
        for reason in verdict.reasons:
            reporter.log(reason, "ERROR")

        reporter.report(verdict)
        return verdict

    def _run_operation(self, target: Target, engine: EngineType, operation: OperationType) -> OperationResult:
        try:
            return self.adapter.run(target, engine, operation)
        except Exception as e:
            # Keep the batch going; the failure is aggregated like any other
            logger.exception("%s %s failed to run for %s", engine.value, operation.value, target.name)
            return OperationResult(
                operation=operation,
                engine=engine,
                exit_code=MaintenanceDefaults.INVOCATION_FAILED_EXIT,
                output=[f"Execution error: {str(e)}"]
            )
