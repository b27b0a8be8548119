"""
Configuration loading and saving utilities.

Configuration is read from a YAML or JSON file and then overridden by
``TETHER_*`` environment variables.
"""

import json
import logging
import os
from dataclasses import fields, is_dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union, get_args, get_origin

import yaml

from .models import ApplicationConfig

logger = logging.getLogger(__name__)

# Shorter spellings kept alongside the generated <SECTION>_<FIELD> names
ENV_ALIASES = {
    "LOG_LEVEL": ("logging", "level"),
    "LOG_DIR": ("logging", "log_directory"),
    "LOG_FILE_ENABLED": ("logging", "file_enabled"),
}


class ConfigLoader:
    """Configuration loader supporting YAML/JSON files and environment overrides."""

    def __init__(self, env_prefix: str = "TETHER_") -> None:
        self._env_prefix = env_prefix

    def load_config(self, config_file: Optional[str] = None) -> ApplicationConfig:
        """
        Load configuration from file and environment variables.

        Args:
            config_file: Path to configuration file (optional)

        Returns:
            Loaded and validated configuration
        """
        config_data: Dict[str, Any] = {}

        if config_file:
            config_data = self._load_from_file(config_file)
            logger.debug(f"Loaded configuration from {config_file}")

        env_overrides = self._load_from_environment()
        config_data = self._merge_configs(config_data, env_overrides)

        config = ApplicationConfig.from_dict(config_data)
        config.config_file_path = config_file

        return config

    def save_config(self, config: ApplicationConfig, file_path: str, format: str = "yaml") -> None:
        """
        Save configuration to file.

        Args:
            config: Configuration to save
            file_path: Output file path
            format: File format (yaml or json)
        """
        config_data = config.to_dict()
        config_data.pop("config_file_path", None)

        if format.lower() == "yaml":
            self._save_yaml(config_data, file_path)
        elif format.lower() == "json":
            self._save_json(config_data, file_path)
        else:
            raise ValueError(f"Unsupported format: {format}")

    def _load_from_file(self, file_path: str) -> Dict[str, Any]:
        path = Path(file_path)

        if not path.exists():
            raise FileNotFoundError(
                f"Configuration file not found: {file_path}")

        if path.suffix.lower() in ['.yaml', '.yml']:
            data = self._load_yaml(file_path)
        elif path.suffix.lower() == '.json':
            data = self._load_json(file_path)
        else:
            raise ValueError(
                f"Unsupported configuration file format: {path.suffix}")

        if not isinstance(data, dict):
            raise ValueError(f"Configuration in {file_path} must be a mapping")
        return data

    def _load_yaml(self, file_path: str) -> Any:
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                return yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {file_path}: {e}") from e

    def _load_json(self, file_path: str) -> Any:
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {file_path}: {e}") from e

    def _save_yaml(self, data: Dict[str, Any], file_path: str) -> None:
        with open(file_path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(data, f, default_flow_style=False, indent=2, sort_keys=False)

    def _save_json(self, data: Dict[str, Any], file_path: str) -> None:
        with open(file_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)

    def env_variables(self) -> Dict[str, Tuple[Optional[str], str]]:
        """
        Map every recognised environment variable to a config location.

        Top-level settings use ``<PREFIX><FIELD>``; section settings use
        ``<PREFIX><SECTION>_<FIELD>`` (``TETHER_LIFECYCLE_ORDERS``).

        Returns:
            Variable name to ``(section, field)``; section is None at top level
        """
        variables: Dict[str, Tuple[Optional[str], str]] = {}
        for top in fields(ApplicationConfig):
            if top.name == "config_file_path":
                continue
            if is_dataclass(top.type):
                for item in fields(top.type):
                    suffix = f"{top.name}_{item.name}".upper()
                    variables[f"{self._env_prefix}{suffix}"] = (top.name, item.name)
            else:
                variables[f"{self._env_prefix}{top.name.upper()}"] = (None, top.name)
        for alias, location in ENV_ALIASES.items():
            variables[f"{self._env_prefix}{alias}"] = location
        return variables

    def _load_from_environment(self) -> Dict[str, Any]:
        """Load configuration overrides from environment variables."""
        config: Dict[str, Any] = {}

        for env_var, (section, name) in self.env_variables().items():
            value = os.getenv(env_var)
            if value is None:
                continue
            converter = self._converter_for(section, name)
            try:
                converted = converter(value)
            except (ValueError, TypeError) as e:
                raise ValueError(
                    f"Invalid value for {env_var}: {value} ({e})") from e
            target = config if section is None else config.setdefault(section, {})
            target[name] = converted

        return config

    def _converter_for(self, section: Optional[str], name: str) -> Callable[[str], Any]:
        owner = ApplicationConfig
        if section is not None:
            owner = next(f.type for f in fields(ApplicationConfig) if f.name == section)
        field_type = next(f.type for f in fields(owner) if f.name == name)

        optional = False
        if get_origin(field_type) is Union:
            args = [arg for arg in get_args(field_type) if arg is not type(None)]
            optional = len(args) < len(get_args(field_type))
            field_type = args[0]

        if field_type is bool:
            converter: Callable[[str], Any] = self._parse_bool
        elif get_origin(field_type) in (list, List):
            converter = self._parse_list
        else:
            converter = field_type

        if optional:
            return lambda value: None if value.lower() in ('', 'none', 'null') else converter(value)
        return converter

    def _parse_bool(self, value: str) -> bool:
        return value.lower() in ('true', '1', 'yes', 'on', 'enabled')

    def _parse_list(self, value: str) -> List[str]:
        return [item.strip() for item in value.split(',') if item.strip()]

    def _merge_configs(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Overlay ``override`` on ``base``; configuration sections merge field by field."""
        result = dict(base)
        for key, value in override.items():
            if isinstance(value, dict) and isinstance(result.get(key), dict):
                result[key] = {**result[key], **value}
            else:
                result[key] = value
        return result
