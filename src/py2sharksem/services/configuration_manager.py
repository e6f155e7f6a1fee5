"""
Configuration management for saved SEM connection profiles.

Profiles are stored as JSON. Profiles can also be imported from, or
exported to, a YAML file of the form::

    microscopes:
      - name: Vega Lab 2
        host: 192.168.1.50
        port: 8300
        timeout: 30
        description: Basement
"""
from pathlib import Path
from typing import List, Dict, Optional, Tuple, Union
from dataclasses import dataclass
import logging
import json

import yaml

from ..core.errors import ConfigurationError, ErrorCodes, wrap_external_error
from ..models.connection import DEFAULT_PORT, DEFAULT_TIMEOUT, SemConnectionSettings


logger = logging.getLogger(__name__)

FILE_FORMAT_VERSION = '1.0'


@dataclass
class MicroscopeConfiguration:
    """Named connection profile for one microscope."""

    name: str
    host: str
    port: int = DEFAULT_PORT
    timeout: float = DEFAULT_TIMEOUT
    description: str = ""

    def __str__(self) -> str:
        return f"{self.name} ({self.host}:{self.port})"

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'host': self.host,
            'port': self.port,
            'timeout': self.timeout,
            'description': self.description
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'MicroscopeConfiguration':
        """Create from a dict loaded from JSON or YAML.

        Raises:
            ConfigurationError: If required keys are missing or malformed
        """
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Profile entry must be a mapping, got {type(data).__name__}",
                error_code=ErrorCodes.CONFIG_INVALID
            )
        missing = [key for key in ('name', 'host') if key not in data]
        if missing:
            raise ConfigurationError(
                f"Profile is missing required keys: {', '.join(missing)}",
                setting_name=missing[0],
                error_code=ErrorCodes.CONFIG_INVALID
            )
        try:
            return cls(
                name=str(data['name']),
                host=str(data['host']),
                port=int(data.get('port', DEFAULT_PORT)),
                timeout=float(data.get('timeout', DEFAULT_TIMEOUT)),
                description=str(data.get('description', ''))
            )
        except (TypeError, ValueError) as e:
            raise wrap_external_error(
                e, f"Invalid value in profile '{data.get('name')}'", ConfigurationError
            ) from e

    def to_settings(self) -> SemConnectionSettings:
        """Convert to SemConnectionSettings for a controller."""
        return SemConnectionSettings(host=self.host, port=self.port, timeout=self.timeout)


class ConfigurationManager:
    """Manages microscope profiles using JSON-based storage."""

    def __init__(self, config_file: Union[str, Path] = "sem_configurations.json"):
        """Initialize configuration manager.

        Args:
            config_file: Path to JSON file storing profiles

        Raises:
            ConfigurationError: If an existing file cannot be parsed
        """
        self.config_file = Path(config_file)
        self._configurations: Dict[str, MicroscopeConfiguration] = {}
        self._load_from_json()

    def _load_from_json(self) -> None:
        """Load profiles from the JSON file; a missing file means no profiles."""
        self._configurations = {}
        if not self.config_file.exists():
            logger.info(f"Configuration file not found: {self.config_file}. Starting with empty configuration set.")
            return

        try:
            with open(self.config_file, 'r') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading configurations from JSON: {e}")
            raise wrap_external_error(
                e, f"Cannot read configuration file {self.config_file}", ConfigurationError,
                path=str(self.config_file)
            ) from e

        for config_data in data.get('configurations', []):
            config = MicroscopeConfiguration.from_dict(config_data)
            self._configurations[config.name] = config

        logger.info(f"Loaded {len(self._configurations)} configurations from {self.config_file}")

    def _save_to_json(self) -> None:
        data = {
            'configurations': [config.to_dict() for config in self._configurations.values()],
            'version': FILE_FORMAT_VERSION
        }
        self.config_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_file, 'w') as f:
            json.dump(data, f, indent=2)
        logger.info(f"Saved {len(self._configurations)} configurations to {self.config_file}")

    def discover_configurations(self) -> List[MicroscopeConfiguration]:
        return list(self._configurations.values())

    def get_configuration(self, name: str) -> Optional[MicroscopeConfiguration]:
        return self._configurations.get(name)

    def get_configuration_names(self) -> List[str]:
        """Configuration names sorted alphabetically."""
        return sorted(self._configurations.keys())

    def get_default_configuration(self) -> Optional[MicroscopeConfiguration]:
        """First configuration alphabetically, or None if there are none."""
        names = self.get_configuration_names()
        if names:
            return self._configurations[names[0]]
        return None

    def refresh(self) -> List[MicroscopeConfiguration]:
        """Reload from the JSON file to pick up external changes."""
        self._load_from_json()
        return list(self._configurations.values())

    def save_configuration(self, name: str, host: str, port: int = DEFAULT_PORT,
                           timeout: float = DEFAULT_TIMEOUT,
                           description: str = "") -> Tuple[bool, str]:
        """Validate and store a new profile.

        Returns:
            Tuple of (success, message)

        Example:
            >>> manager = ConfigurationManager()
            >>> ok, msg = manager.save_configuration("Vega", "192.168.1.50")
        """
        settings = SemConnectionSettings(host=host, port=port, timeout=timeout)
        valid, errors = settings.validate()
        if not valid:
            error_msg = ", ".join(errors)
            logger.warning(f"Invalid configuration parameters: {error_msg}")
            return False, f"Invalid parameters: {error_msg}"

        if name in self._configurations:
            logger.warning(f"Configuration '{name}' already exists")
            return False, f"Configuration '{name}' already exists"

        self._configurations[name] = MicroscopeConfiguration(
            name=name, host=host, port=port, timeout=timeout, description=description
        )
        self._save_to_json()
        logger.info(f"Saved configuration '{name}' ({host}:{port})")
        return True, f"Configuration '{name}' saved successfully"

    def delete_configuration(self, name: str) -> Tuple[bool, str]:
        if name not in self._configurations:
            logger.warning(f"Configuration '{name}' not found")
            return False, f"Configuration '{name}' not found"

        del self._configurations[name]
        self._save_to_json()
        logger.info(f"Deleted configuration '{name}'")
        return True, f"Configuration '{name}' deleted successfully"

    def import_yaml(self, path: Union[str, Path], overwrite: bool = False) -> int:
        """Merge profiles from a YAML file.

        Args:
            path: YAML file with a top-level ``microscopes`` list
            overwrite: Replace existing profiles with the same name

        Returns:
            Number of profiles imported

        Raises:
            ConfigurationError: If the file is unreadable or malformed, or a
                profile fails validation
        """
        path = Path(path)
        try:
            with open(path, 'r') as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise wrap_external_error(
                e, f"Cannot read YAML profiles from {path}", ConfigurationError, path=str(path)
            ) from e

        if not isinstance(data, dict) or not isinstance(data.get('microscopes'), list):
            raise ConfigurationError(
                f"{path} must contain a 'microscopes' list",
                setting_name='microscopes',
                error_code=ErrorCodes.CONFIG_INVALID
            )

        imported = 0
        for entry in data['microscopes']:
            config = MicroscopeConfiguration.from_dict(entry)
            valid, errors = config.to_settings().validate()
            if not valid:
                raise ConfigurationError(
                    f"Profile '{config.name}' is invalid: {', '.join(errors)}",
                    setting_name=config.name,
                    error_code=ErrorCodes.CONFIG_INVALID
                )
            if config.name in self._configurations and not overwrite:
                logger.warning(f"Skipping existing configuration '{config.name}'")
                continue
            self._configurations[config.name] = config
            imported += 1

        if imported:
            self._save_to_json()
        logger.info(f"Imported {imported} configurations from {path}")
        return imported

    def export_yaml(self, path: Union[str, Path]) -> None:
        """Write all profiles to a YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        data = {'microscopes': [config.to_dict() for config in self._configurations.values()]}
        with open(path, 'w') as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False, indent=2)
        logger.info(f"Exported {len(self._configurations)} configurations to {path}")
