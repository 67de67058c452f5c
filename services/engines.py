"""
Engine adapter for Borg and Restic maintenance operations
Builds engine command lines and runs them under a scoped credential context
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from models.results import EngineType, OperationResult, OperationType
from models.targets import Target
from services.credentials import ENGINE_ENV_PREFIXES, EngineContext
from services.execution import CommandExecutionService, CommandObfuscationService, ExecutionConfig
from services.maintenance_defaults import MaintenanceDefaults, RETENTION_POLICY

logger = logging.getLogger(__name__)


# Per-engine operation order. Borg only reclaims space for archives the prior
# prune removed; restic forget --prune marks and deletes in one call.
ENGINE_OPERATIONS: Dict[EngineType, Tuple[OperationType, ...]] = {
    EngineType.BORG: (OperationType.PRUNE, OperationType.COMPACT_OR_DELETE, OperationType.CHECK),
    EngineType.RESTIC: (OperationType.PRUNE, OperationType.CHECK),
}


@dataclass
class EngineCommand:
    """Planned engine invocation"""
    engine: EngineType
    operation: OperationType
    binary: str
    args: List[str] = field(default_factory=list)

    def to_command(self) -> List[str]:
        return [self.binary] + self.args


class BorgCommandBuilder:
    """Builds borg command lines; repository and passphrase come from the environment"""

    def __init__(self, binary: str = MaintenanceDefaults.BORG_BINARY):
        self.binary = binary

    def build(self, target: Target, operation: OperationType) -> EngineCommand:
        if operation == OperationType.PRUNE:
            args = ['prune', '-v', '--list'] + RETENTION_POLICY.to_args()
        elif operation == OperationType.COMPACT_OR_DELETE:
            args = ['compact', '-v']
        elif operation == OperationType.CHECK:
            args = ['check', '-v']
        else:
            raise ValueError(f"Unsupported borg operation: {operation}")
        return EngineCommand(EngineType.BORG, operation, self.binary, args)


class ResticCommandBuilder:
    """Builds restic command lines against a repository served by rclone over ssh"""

    def __init__(self, binary: str = MaintenanceDefaults.RESTIC_BINARY):
        self.binary = binary

    def build(self, target: Target, operation: OperationType) -> EngineCommand:
        if operation == OperationType.PRUNE:
            # forget and prune together so no marked snapshots are left behind
            args = ['forget'] + RETENTION_POLICY.to_args() + ['--prune=true', '-v']
        elif operation == OperationType.CHECK:
            args = ['check', '-v']
        else:
            raise ValueError(f"Unsupported restic operation: {operation}")
        return EngineCommand(EngineType.RESTIC, operation, self.binary,
                             self.repository_args(target) + args)

    @staticmethod
    def repository_args(target: Target) -> List[str]:
        return [
            '-o', f'rclone.program=ssh {target.restic_host} rclone',
            '-o', f'rclone.args=serve restic --stdio {target.restic_path}',
            '-r', 'rclone:',
        ]


class EngineAdapter:
    """Uniform run(target, engine, operation) interface over both engines"""

    def __init__(
        self,
        executor: Optional[CommandExecutionService] = None,
        path: str = MaintenanceDefaults.PATH,
        borg_binary: str = MaintenanceDefaults.BORG_BINARY,
        restic_binary: str = MaintenanceDefaults.RESTIC_BINARY,
        timeout: Optional[int] = MaintenanceDefaults.OPERATION_TIMEOUT
    ):
        self.executor = executor or CommandExecutionService(ExecutionConfig(timeout=timeout))
        self.path = path
        self.builders = {
            EngineType.BORG: BorgCommandBuilder(borg_binary),
            EngineType.RESTIC: ResticCommandBuilder(restic_binary),
        }

    @staticmethod
    def operations_for(engine: EngineType) -> Tuple[OperationType, ...]:
        """Operations for an engine, in the order they must run"""
        return ENGINE_OPERATIONS[engine]

    def build_command(self, target: Target, engine: EngineType, operation: OperationType) -> EngineCommand:
        return self.builders[engine].build(target, operation)

    def run(self, target: Target, engine: EngineType, operation: OperationType) -> OperationResult:
        """Run one engine operation; a failing engine is a result, never an exception"""
        command = self.build_command(target, engine, operation).to_command()
        logger.debug("Running %s %s for %s", engine.value, operation.value, target.name)

        with EngineContext(target, engine, path=self.path) as environment:
            logger.debug("Engine environment for %s: %s", target.name,
                         CommandObfuscationService.obfuscate_environment_vars(
                             {key: value for key, value in environment.items()
                              if key.startswith(ENGINE_ENV_PREFIXES)}))
            execution = self.executor.execute_locally(command, environment)

        if execution.invocation_failed:
            logger.warning("Could not start %s for %s: %s", engine.value, target.name,
                           CommandObfuscationService.obfuscate_text(execution.stdout, target.secrets))
        elif execution.timeout_expired:
            logger.warning("%s %s timed out for %s", engine.value, operation.value, target.name)

        # Output stays verbatim for the freshness audit; RunReporter masks it for the operator
        return OperationResult(
            operation=operation,
            engine=engine,
            exit_code=execution.returncode,
            output=execution.lines,
            command=command,
            duration_seconds=execution.duration_seconds,
            timed_out=execution.timeout_expired
        )
