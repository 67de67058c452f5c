"""
Backup target definitions
One Target per registered source host, covering both snapshot engines
"""
from typing import Tuple
from pydantic import BaseModel, ConfigDict, Field, field_validator


class Target(BaseModel):
    """A source host whose Borg and Restic repositories are maintained together"""
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    borg_repo: str = Field(min_length=1)
    borg_passphrase: str = Field(default="", repr=False)
    restic_repo: str = Field(min_length=1)  # "<ssh host>:<repository path>"
    restic_password: str = Field(default="", repr=False)
    freshness_days: int = Field(default=1, ge=0)

    @field_validator("restic_repo")
    @classmethod
    def require_host_and_path(cls, value: str) -> str:
        host, sep, path = value.partition(":")
        if not sep or not host or not path:
            raise ValueError("restic_repo must look like <host>:<path>")
        return value

    @property
    def restic_host(self) -> str:
        """SSH host that serves the Restic repository through rclone"""
        return self._split_restic_repo()[0]

    @property
    def restic_path(self) -> str:
        """Repository path on the Restic relay host"""
        return self._split_restic_repo()[1]

    @property
    def secrets(self) -> Tuple[str, ...]:
        """Credential values that must never reach logs"""
        return tuple(value for value in (self.borg_passphrase, self.restic_password) if value)

    def _split_restic_repo(self) -> Tuple[str, str]:
        host, _, path = self.restic_repo.partition(':')
        return host, path
