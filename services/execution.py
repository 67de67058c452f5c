"""
Unified Execution Service
Runs engine processes with captured output and masks secrets for logging
"""
import re
import subprocess
from time import time
from typing import Dict, Iterable, List, Optional
from pydantic import BaseModel

from services.maintenance_defaults import MaintenanceDefaults


# =============================================================================
# **DATA STRUCTURES** - Execution configuration and results
# =============================================================================

class ExecutionConfig(BaseModel):
    """Execution configuration parameters"""
    timeout: Optional[int] = MaintenanceDefaults.OPERATION_TIMEOUT
    text: bool = True


class ExecutionResult(BaseModel):
    """Execution result data structure; stdout holds stdout and stderr interleaved"""
    returncode: int
    stdout: str = ""
    duration_seconds: float = 0.0
    timeout_expired: bool = False
    invocation_failed: bool = False

    @property
    def lines(self) -> List[str]:
        return self.stdout.splitlines()


# =============================================================================
# **COMMAND OBFUSCATION CONCERN** - Security and logging safety
# =============================================================================

class CommandObfuscationService:
    """Command obfuscation - ONLY handles secret masking for logging"""

    # Password patterns for the engines we drive
    PASSWORD_PATTERNS = [
        r'(BORG_PASSPHRASE=)([^\s]+)',
        r'(RESTIC_PASSWORD=)([^\s]+)',
        r'(--password[=\s]+)([^\s]+)',
        r'(passphrase[=:\s]+)([^\s\'\"]+)',
    ]

    SENSITIVE_KEYS = {'PASSPHRASE', 'PASSWORD', 'SECRET', 'TOKEN'}

    @classmethod
    def obfuscate_text(cls, text: str, secrets: Iterable[str] = ()) -> str:
        """Obfuscation concern: mask known secret values and generic password patterns"""
        if not text:
            return text

        masked = text
        for secret in secrets:
            if secret:
                masked = masked.replace(secret, '***')

        for pattern in cls.PASSWORD_PATTERNS:
            masked = re.sub(pattern, r'\1***', masked, flags=re.IGNORECASE)

        return masked

    @classmethod
    def obfuscate_lines(cls, lines: Iterable[str], secrets: Iterable[str] = ()) -> List[str]:
        secrets = tuple(secrets)
        return [cls.obfuscate_text(line, secrets) for line in lines]

    @classmethod
    def obfuscate_command_array(cls, command: List[str], secrets: Iterable[str] = ()) -> List[str]:
        """Obfuscation concern: mask sensitive data in command arrays"""
        return cls.obfuscate_lines(command, secrets)

    @classmethod
    def obfuscate_environment_vars(cls, env_vars: Dict[str, str]) -> Dict[str, str]:
        """Obfuscation concern: mask sensitive environment variables"""
        obfuscated = {}
        for key, value in env_vars.items():
            if any(sensitive in key.upper() for sensitive in cls.SENSITIVE_KEYS):
                obfuscated[key] = '***'
            else:
                obfuscated[key] = value
        return obfuscated


# =============================================================================
# **COMMAND EXECUTION CONCERN** - Process execution and management
# =============================================================================

class CommandExecutionService:
    """Command execution - ONLY handles process execution and result management

    Never raises for a failing command: non-zero exits, timeouts and processes
    that cannot be started all come back as an ExecutionResult.
    """

    def __init__(self, config: Optional[ExecutionConfig] = None):
        self.config = config or ExecutionConfig()

    def execute_locally(
        self,
        command: List[str],
        environment: Optional[Dict[str, str]] = None,
        working_directory: Optional[str] = None
    ) -> ExecutionResult:
        """Execution concern: run command with exactly the given environment"""
        start_time = time()
        try:
            result = subprocess.run(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                timeout=self.config.timeout,
                text=self.config.text,
                errors='replace',
                env=environment,
                cwd=working_directory
            )

            return ExecutionResult(
                returncode=result.returncode,
                stdout=result.stdout or "",
                duration_seconds=time() - start_time
            )

        except subprocess.TimeoutExpired as e:
            partial = e.output or ""
            if isinstance(partial, bytes):
                partial = partial.decode(errors='replace')
            message = f"Command timed out after {self.config.timeout} seconds"
            return ExecutionResult(
                returncode=MaintenanceDefaults.TIMEOUT_EXIT,
                stdout=f"{partial}\n{message}" if partial else message,
                duration_seconds=time() - start_time,
                timeout_expired=True
            )
        except (OSError, subprocess.SubprocessError) as e:
            return ExecutionResult(
                returncode=MaintenanceDefaults.INVOCATION_FAILED_EXIT,
                stdout=f"Execution error: {str(e)}",
                duration_seconds=time() - start_time,
                invocation_failed=True
            )
