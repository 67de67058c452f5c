"""
Per-run operator log
Buffers one target's maintenance log and shows it only when the run needs attention
"""
import sys
from datetime import datetime
from typing import Iterable, List, Optional, TextIO

from models.results import OperationResult, RunVerdict
from services.execution import CommandObfuscationService


class RunReporter:
    """Buffers timestamped entries for a single target run

    The buffer is written to the operator stream (stdout, mailed by cron) only
    when the verdict is ERROR. With verbose=True every entry is also echoed as
    it is recorded. Either way the buffer is emptied by report().
    """

    def __init__(self, stream: Optional[TextIO] = None, verbose: bool = False,
                 secrets: Iterable[str] = ()):
        self.stream = stream if stream is not None else sys.stdout
        self.verbose = verbose
        # Credential values masked in every engine line written to the operator
        self.secrets = tuple(secrets)
        self._buffer: List[str] = []

    @property
    def entries(self) -> List[str]:
        return list(self._buffer)

    def log(self, message: str, level: str = "INFO") -> None:
        """Record a single timestamped entry"""
        self._record(f"[{self._timestamp()}] {level}: {message}")

    def log_output(self, result: OperationResult) -> None:
        """Record an engine invocation: header line, then its output with secrets masked"""
        header = f"{result.engine.value} {result.operation.value} exited with {result.exit_code}"
        if result.timed_out:
            header += " (timed out)"
        self.log(header, "INFO" if result.succeeded else "ERROR")
        if result.command:
            command = CommandObfuscationService.obfuscate_command_array(result.command, self.secrets)
            self._record(f"$ {' '.join(command)}")
        for line in CommandObfuscationService.obfuscate_lines(result.output, self.secrets):
            self._record(line)

    def report(self, verdict: RunVerdict) -> bool:
        """Flush the buffer when the verdict is ERROR, then discard it

        Returns True if anything was written.
        """
        try:
            if not verdict.is_error or not self._buffer:
                return False
            self.stream.write("\n".join(self._buffer) + "\n")
            self.stream.flush()
            return True
        finally:
            self._buffer.clear()

    def flush(self) -> None:
        """Write out and discard whatever is buffered, regardless of verdict"""
        if self._buffer:
            self.stream.write("\n".join(self._buffer) + "\n")
            self.stream.flush()
        self._buffer.clear()

    def _record(self, entry: str) -> None:
        self._buffer.append(entry)
        if self.verbose:
            self.stream.write(entry + "\n")
            self.stream.flush()

    @staticmethod
    def _timestamp() -> str:
        return datetime.now().astimezone().isoformat(timespec='seconds')
