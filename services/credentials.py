"""
Scoped engine credentials
Builds the child-process environment for one engine call and wipes it afterwards
"""
import os
from typing import Dict, Mapping, Optional

from models.results import EngineType
from models.targets import Target
from services.maintenance_defaults import MaintenanceDefaults


# Variables an engine reads its repository or secrets from. Never inherited
# from the parent process, only ever set from the target being maintained.
ENGINE_ENV_PREFIXES = ('BORG_', 'RESTIC_', 'RCLONE_')


class EngineContext:
    """Short-lived execution context carrying one target's engine credentials

    Usage:
        with EngineContext(target, EngineType.BORG) as environment:
            executor.execute_locally(command, environment)
    """

    def __init__(self, target: Target, engine: EngineType, path: str = MaintenanceDefaults.PATH,
                 base_environment: Optional[Mapping[str, str]] = None):
        self.target = target
        self.engine = engine
        self.path = path
        self.base_environment = os.environ if base_environment is None else base_environment
        self.environment: Dict[str, str] = {}

    def __enter__(self) -> Dict[str, str]:
        self.environment = self._build_environment()
        return self.environment

    def __exit__(self, exc_type, exc, tb) -> None:
        # Drop every reference to the secrets this context held
        self.environment.clear()
        self.environment = {}

    def _build_environment(self) -> Dict[str, str]:
        env = {
            key: value for key, value in self.base_environment.items()
            if not key.startswith(ENGINE_ENV_PREFIXES)
        }
        env['PATH'] = self.path
        env.update(self.credential_vars())
        return env

    def credential_vars(self) -> Dict[str, str]:
        """Engine-specific repository and secret variables for the target"""
        if self.engine == EngineType.BORG:
            return {
                'BORG_REPO': self.target.borg_repo,
                'BORG_PASSPHRASE': self.target.borg_passphrase,
            }
        if self.engine == EngineType.RESTIC:
            # The repository itself is reached through rclone options on the command line
            return {'RESTIC_PASSWORD': self.target.restic_password}
        raise ValueError(f"Unknown engine: {self.engine}")
