#!/usr/bin/env python3
"""
Configuration manager for the maintenance host
Loads the YAML target registry and merges ${VAR} secrets from .env files
"""
import os
import re
import yaml
from dotenv import dotenv_values
from pydantic import ValidationError

from models.targets import Target
from services.maintenance_defaults import MaintenanceDefaults

PLACEHOLDER_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


class ConfigurationMissing(Exception):
    """Required maintenance configuration is absent or unusable"""


class MaintenanceConfig:
    """Manages the maintenance configuration in YAML format

    Layout (paths relative to the directory of config_file):
        maintenance.yaml          global_settings + ordered targets list
        secrets.env               values for ${VAR} placeholders, all targets
        secrets/<target>.env      values for ${VAR} placeholders, one target only
    """

    def __init__(self, config_file=None):
        self.config_file = config_file or os.environ.get('BASTION_CONFIG', MaintenanceDefaults.CONFIG_FILE)
        self.config_dir = os.path.dirname(os.path.abspath(self.config_file))
        self.config = self.load_config()

    def load_config(self):
        """Load global settings and the target list; fail fast on anything missing"""
        raw = self._load_yaml()
        global_settings = self._get_default_settings()
        user_settings = raw.get('global_settings') or {}
        rotation = dict(global_settings['rotation'])
        rotation.update(user_settings.get('rotation') or {})
        global_settings.update(user_settings)
        global_settings['rotation'] = rotation

        return {
            'global_settings': global_settings,
            'targets': raw.get('targets'),
        }

    def get_global_settings(self):
        """Get global settings"""
        return self.config.get('global_settings', {})

    def get_setting(self, key, default=None):
        return self.get_global_settings().get(key, default)

    def get_targets(self):
        """Build the ordered target registry with secrets resolved"""
        entries = self.config.get('targets')
        if not entries or not isinstance(entries, list):
            raise ConfigurationMissing(f"No targets defined in {self.config_file}")

        shared_secrets = self._load_secrets(os.path.join(self.config_dir, MaintenanceDefaults.SECRETS_FILE))
        targets = []
        seen = set()

        for index, entry in enumerate(entries):
            if not isinstance(entry, dict) or not entry.get('name'):
                raise ConfigurationMissing(f"Target #{index + 1} in {self.config_file} has no name")
            name = str(entry['name'])
            if name in seen:
                raise ConfigurationMissing(f"Target '{name}' is defined more than once")
            seen.add(name)

            # Target-scoped secrets override shared ones and never leak to other targets
            secrets = dict(shared_secrets)
            secrets.update(self._load_secrets(
                os.path.join(self.config_dir, MaintenanceDefaults.TARGET_SECRETS_DIR, f"{name}.env")
            ))
            entry = {key: self._coerce_text(key, value) for key, value in entry.items()}
            resolved = self._merge_secrets(entry, secrets)

            unresolved = sorted(set(self._find_placeholders(resolved)))
            if unresolved:
                raise ConfigurationMissing(
                    f"Target '{name}' references undefined secrets: {', '.join(unresolved)}"
                )

            resolved.setdefault('freshness_days', MaintenanceDefaults.FRESHNESS_DAYS)
            if resolved['freshness_days'] is None:
                resolved['freshness_days'] = MaintenanceDefaults.FRESHNESS_DAYS

            try:
                targets.append(Target(**resolved))
            except ValidationError as e:
                raise ConfigurationMissing(f"Invalid target '{name}': {e}") from e

        return targets

    @staticmethod
    def _coerce_text(key, value):
        """YAML turns numeric passphrases into ints; booleans are left for validation"""
        if key == 'freshness_days' or isinstance(value, bool) or not isinstance(value, (int, float)):
            return value
        return str(value)

    def _load_yaml(self):
        if not os.path.exists(self.config_file):
            raise ConfigurationMissing(f"Configuration file not found: {self.config_file}")

        try:
            with open(self.config_file, 'r') as f:
                content = f.read().strip()
        except OSError as e:
            raise ConfigurationMissing(f"Cannot read {self.config_file}: {e}") from e

        if not content:
            raise ConfigurationMissing(f"Configuration file is empty: {self.config_file}")

        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigurationMissing(f"Malformed configuration in {self.config_file}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationMissing(f"Configuration in {self.config_file} must be a mapping")
        return data

    def _load_secrets(self, secrets_file):
        if not os.path.exists(secrets_file):
            return {}
        return {key: value for key, value in dotenv_values(secrets_file).items() if value is not None}

    def _merge_secrets(self, config, secrets):
        """Merge secrets into config by replacing ${VAR} placeholders"""
        def replace_vars(obj):
            if isinstance(obj, str):
                for key, value in secrets.items():
                    obj = obj.replace(f"${{{key}}}", value)
                return obj
            elif isinstance(obj, dict):
                return {k: replace_vars(v) for k, v in obj.items()}
            elif isinstance(obj, list):
                return [replace_vars(item) for item in obj]
            else:
                return obj

        return replace_vars(config)

    def _find_placeholders(self, obj):
        if isinstance(obj, str):
            yield from PLACEHOLDER_PATTERN.findall(obj)
        elif isinstance(obj, dict):
            for value in obj.values():
                yield from self._find_placeholders(value)
        elif isinstance(obj, list):
            for item in obj:
                yield from self._find_placeholders(item)

    def _get_default_settings(self):
        """Return default global settings"""
        return {
            "show_output": False,                                   # mirror the run log live
            "operation_timeout": MaintenanceDefaults.OPERATION_TIMEOUT,
            "path": MaintenanceDefaults.PATH,
            "borg_binary": MaintenanceDefaults.BORG_BINARY,
            "restic_binary": MaintenanceDefaults.RESTIC_BINARY,
            "rotation": {
                "rotate_file": MaintenanceDefaults.ROTATE_FILE,
                "days": MaintenanceDefaults.ROTATE_DAYS,
            },
        }
