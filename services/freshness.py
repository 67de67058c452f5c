"""
Backup freshness auditing
Counts snapshot lines in prune/forget output that fall inside a target's freshness window
"""
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional

from models.results import AuditCount, DailyCount, EngineType, OperationResult


# Substrings that identify a snapshot listing line in each engine's verbose output:
#   borg prune --list:   "Keeping archive (rule: daily #1):   db01-2024-05-02T03:00:01 ..."
#   restic forget -v:    "4f2a9c1e  2024-05-02 03:00:04  db01  daily snapshot  /etc"
SNAPSHOT_MARKERS: Dict[EngineType, str] = {
    EngineType.BORG: " archive (",
    EngineType.RESTIC: " snapshot ",
}

DATE_FORMAT = "%Y-%m-%d"


class FreshnessAuditor:
    """Textual freshness audit over captured engine output

    A window of N days checks today plus the N previous calendar days, so the
    default of 1 means "today or yesterday". Dates are local calendar dates.
    """

    def __init__(self, markers: Optional[Dict[EngineType, str]] = None):
        self.markers = markers or SNAPSHOT_MARKERS

    def window(self, freshness_days: int, today: Optional[date] = None) -> List[date]:
        """Calendar days checked for a freshness window, newest first"""
        if freshness_days < 0:
            raise ValueError(f"freshness_days must not be negative, got {freshness_days}")
        today = today or date.today()
        return [today - timedelta(days=offset) for offset in range(freshness_days + 1)]

    def count_by_day(self, results: Iterable[OperationResult], freshness_days: int,
                     today: Optional[date] = None) -> List[DailyCount]:
        """Per-engine, per-day snapshot line counts"""
        results = list(results)
        daily = []
        for days_ago, day in enumerate(self.window(freshness_days, today)):
            date_string = day.strftime(DATE_FORMAT)
            for engine, marker in self.markers.items():
                count = sum(
                    1 for line in self._engine_lines(results, engine)
                    if marker in line and date_string in line
                )
                daily.append(DailyCount(engine=engine, days_ago=days_ago, day=day, count=count))
        return daily

    def audit(self, results: Iterable[OperationResult], freshness_days: int,
              today: Optional[date] = None) -> List[AuditCount]:
        """One AuditCount per engine, summed over the whole window"""
        return self.summarize(self.count_by_day(results, freshness_days, today))

    def summarize(self, daily: Iterable[DailyCount]) -> List[AuditCount]:
        totals = {engine: 0 for engine in self.markers}
        for item in daily:
            totals[item.engine] = totals.get(item.engine, 0) + item.count
        return [AuditCount(engine=engine, count=count) for engine, count in totals.items()]

    @staticmethod
    def _engine_lines(results: List[OperationResult], engine: EngineType) -> Iterable[str]:
        for result in results:
            if result.engine == engine:
                yield from result.output
