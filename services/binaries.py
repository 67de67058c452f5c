"""
Engine binary availability
Reports whether the tools a maintenance run depends on can be started
"""
import os
from typing import Any, Dict, Optional

from services.execution import CommandExecutionService, ExecutionConfig
from services.maintenance_defaults import MaintenanceDefaults


class BinaryCheckerService:
    """Binary availability checking - ONLY handles binary detection and versioning"""

    SUPPORTED_BINARIES = {
        'borg': {
            'version_args': ['--version'],
            'description': 'Borg backup tool'
        },
        'restic': {
            'version_args': ['version'],
            'description': 'Restic backup tool'
        },
        'ssh': {
            'version_args': ['-V'],
            'description': 'OpenSSH client (restic rclone transport)'
        },
    }

    def __init__(self, executor: Optional[CommandExecutionService] = None,
                 path: str = MaintenanceDefaults.PATH, binaries: Optional[Dict[str, str]] = None):
        self.executor = executor or CommandExecutionService(ExecutionConfig(timeout=30))
        self.path = path
        # name -> executable, e.g. {'borg': '/usr/local/bin/borg'}
        self.binaries = {name: name for name in self.SUPPORTED_BINARIES}
        self.binaries.update(binaries or {})

    def check_binary_availability(self, binary_name: str) -> Dict[str, Any]:
        """Binary concern: check if a binary can be started with the maintenance PATH"""
        if binary_name not in self.SUPPORTED_BINARIES:
            return {
                'available': False,
                'error': f'Unsupported binary: {binary_name}',
                'supported_binaries': list(self.SUPPORTED_BINARIES.keys())
            }

        binary_info = self.SUPPORTED_BINARIES[binary_name]
        command = [self.binaries[binary_name]] + binary_info['version_args']
        environment = dict(os.environ)
        environment['PATH'] = self.path

        result = self.executor.execute_locally(command, environment)
        if result.returncode == 0:
            lines = result.lines
            return {
                'available': True,
                'version': lines[0].strip() if lines else '',
                'description': binary_info['description']
            }
        return {
            'available': False,
            'error': f'{binary_name} not found or not executable',
            'output': result.stdout.strip() or None
        }

    def check_all(self) -> Dict[str, Dict[str, Any]]:
        return {name: self.check_binary_availability(name) for name in self.SUPPORTED_BINARIES}
