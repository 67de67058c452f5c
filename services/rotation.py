"""
Backup drive rotation reminder
The rotation marker file is touched whenever an offline drive is swapped in;
once it is older than the rotation period the operator is told to swap again
"""
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import List, Optional, Union

from services.maintenance_defaults import MaintenanceDefaults


class RotationFileMissing(Exception):
    """The rotation marker file does not exist"""


@dataclass
class RotationStatus:
    rotate_file: Path
    last_rotated: datetime
    age_days: int
    period_days: int

    @property
    def due(self) -> bool:
        return self.age_days >= self.period_days

    def messages(self) -> List[str]:
        if not self.due:
            return []
        return [
            "Time to rotate your backup drive!",
            f"The current timestamp: {self.last_rotated.isoformat(sep=' ')}",
        ]


class RotationReminder:
    """Compares the marker file's modification date with the rotation period"""

    def __init__(self, rotate_file: Union[str, Path] = MaintenanceDefaults.ROTATE_FILE,
                 period_days: int = MaintenanceDefaults.ROTATE_DAYS):
        if period_days < 1:
            raise ValueError(f"Rotation period must be at least one day, got {period_days}")
        self.rotate_file = Path(rotate_file)
        self.period_days = period_days

    def check(self, today: Optional[date] = None) -> RotationStatus:
        """Status of the marker file, measured in whole calendar days"""
        if not self.rotate_file.exists():
            raise RotationFileMissing(
                f"Cannot determine rotation time: {self.rotate_file} does not exist"
            )
        today = today or date.today()
        last_rotated = datetime.fromtimestamp(self.rotate_file.stat().st_mtime).astimezone()
        return RotationStatus(
            rotate_file=self.rotate_file,
            last_rotated=last_rotated,
            age_days=(today - last_rotated.date()).days,
            period_days=self.period_days
        )
