"""
Default maintenance parameters for Borg and Restic repository operations
The retention policy is global and identical for both engines
"""
from dataclasses import dataclass
from typing import List


@dataclass(frozen=True)
class RetentionPolicy:
    """Bucketed keep-counts, measured from the time of the run"""
    keep_hourly: int = 24     # one day of hourly snapshots
    keep_daily: int = 7       # one week of dailies
    keep_weekly: int = 4      # one month of weeklies
    keep_monthly: int = 12    # one year of monthlies
    keep_yearly: int = 1

    def to_args(self) -> List[str]:
        """Keep flags understood by both `borg prune` and `restic forget`"""
        return [
            '--keep-hourly', str(self.keep_hourly),
            '--keep-daily', str(self.keep_daily),
            '--keep-weekly', str(self.keep_weekly),
            '--keep-monthly', str(self.keep_monthly),
            '--keep-yearly', str(self.keep_yearly),
        ]


RETENTION_POLICY = RetentionPolicy()


@dataclass
class MaintenanceDefaults:
    """Default settings used when the configuration file leaves them out"""
    CONFIG_FILE = "/etc/bastion/maintenance.yaml"
    SECRETS_FILE = "secrets.env"          # relative to the config file
    TARGET_SECRETS_DIR = "secrets"        # secrets/<target>.env

    # Maintenance hosts run with a fixed PATH, not the operator's
    PATH = "/bin:/sbin:/usr/bin:/usr/sbin"
    BORG_BINARY = "borg"
    RESTIC_BINARY = "restic"

    OPERATION_TIMEOUT = 6 * 3600          # seconds per engine invocation
    FRESHNESS_DAYS = 1                    # "today and yesterday"

    # Drive rotation reminder
    ROTATE_FILE = "/mnt/backup/ROTATE"
    ROTATE_DAYS = 90

    # Synthetic exit codes for invocations that never produced one
    INVOCATION_FAILED_EXIT = -1
    TIMEOUT_EXIT = 124


class ExitStatus:
    """Process exit codes of the maintenance command"""
    OK = 0
    ERROR = 1
    INTERRUPTED = 2
    CONFIGURATION_MISSING = 78            # sysexits EX_CONFIG
