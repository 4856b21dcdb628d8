"""Configuration loader with YAML support, built-in defaults and environment variable substitution."""

import copy
import os
import re
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import yaml

from .logger import LOG_LEVELS

DEFAULT_CONFIG_PATH = 'paper-dump.yaml'

DEFAULT_CONFIG: Dict[str, Any] = {
    'dropbox': {
        'access_token': '${DBX_OAUTH_TOKEN}',
        'api_base_url': 'https://api.dropboxapi.com/2',
        'timeout': 30,
        'verify_ssl': True,
    },
    'export': {
        'output_directory': 'docs',
        'images_directory': 'images',
        'registry_file': 'list.json',
        'index_file': 'index.html',
        'metadata_only': False,
        'progress_bars': True,
    },
    'concurrency': {
        'document_workers': 10,
        'resource_workers': 10,
    },
    'retry': {
        'max_attempts': 3,
        'delay_seconds': 3.0,
    },
    'logging': {
        'level': None,
        'file': None,
    },
}


class ConfigLoader:
    """Handles loading and validation of configuration files."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}')

    @classmethod
    def load(cls, config_path: Optional[str] = None, required: bool = False) -> Dict[str, Any]:
        """
        Load configuration from YAML file over the built-in defaults.

        Args:
            config_path: Path to YAML configuration file (defaults to paper-dump.yaml)
            required: Raise if the file does not exist instead of using defaults

        Returns:
            Merged configuration dictionary with environment variables substituted

        Raises:
            FileNotFoundError: If a required config file doesn't exist
            yaml.YAMLError: If YAML parsing fails
            ValueError: If the file does not contain a mapping
        """
        config_path = config_path or DEFAULT_CONFIG_PATH
        user_config: Dict[str, Any] = {}

        if os.path.exists(config_path):
            with open(config_path, 'r', encoding='utf-8') as f:
                config_data = yaml.safe_load(f)
            if config_data is None:
                config_data = {}
            if not isinstance(config_data, dict):
                raise ValueError("Configuration file must contain a dictionary")
            user_config = config_data
        elif required:
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        merged = deep_merge(DEFAULT_CONFIG, user_config)
        return cls._substitute_env_vars_recursive(merged)

    @classmethod
    def validate(cls, config: Dict[str, Any]) -> None:
        """
        Validate configuration for required fields and correct values.

        Args:
            config: Configuration dictionary to validate

        Raises:
            ValueError: If validation fails
        """
        base_url = get_nested(config, 'dropbox.api_base_url')
        if not base_url:
            raise ValueError("Missing required configuration: dropbox.api_base_url")
        cls._validate_url(base_url, 'dropbox.api_base_url')

        timeout = get_nested(config, 'dropbox.timeout', 30)
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ValueError("dropbox.timeout must be a positive number")

        output_dir = get_nested(config, 'export.output_directory')
        if not output_dir:
            raise ValueError("Missing required configuration: export.output_directory")
        if os.path.exists(output_dir) and not os.path.isdir(output_dir):
            raise ValueError(f"export.output_directory '{output_dir}' is not a directory")

        images_dir = get_nested(config, 'export.images_directory')
        if not images_dir or os.path.isabs(images_dir):
            raise ValueError("export.images_directory must be a non-empty relative path")

        for field in ('concurrency.document_workers', 'concurrency.resource_workers', 'retry.max_attempts'):
            value = get_nested(config, field)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ValueError(f"{field} must be a positive integer")

        delay = get_nested(config, 'retry.delay_seconds')
        if isinstance(delay, bool) or not isinstance(delay, (int, float)) or delay < 0:
            raise ValueError("retry.delay_seconds must be a non-negative number")

        level = get_nested(config, 'logging.level')
        if level and str(level).upper() not in LOG_LEVELS:
            raise ValueError(f"logging.level must be one of: {sorted(LOG_LEVELS)}")

    @classmethod
    def merge_with_args(cls, config: Dict[str, Any], args) -> Dict[str, Any]:
        """
        Merge configuration with CLI arguments; CLI arguments take precedence.

        Args:
            config: Base configuration dictionary
            args: Parsed CLI arguments

        Returns:
            Merged configuration dictionary
        """
        merged = copy.deepcopy(config)
        merged.setdefault('export', {})
        merged.setdefault('logging', {})

        if getattr(args, 'no_export', False):
            merged['export']['metadata_only'] = True

        if getattr(args, 'output_dir', None):
            merged['export']['output_directory'] = args.output_dir

        if getattr(args, 'log_file', None):
            merged['logging']['file'] = args.log_file

        return merged

    @classmethod
    def _substitute_env_vars_recursive(cls, data: Any) -> Any:
        """Recursively substitute environment variables in data structure."""
        if isinstance(data, dict):
            return {key: cls._substitute_env_vars_recursive(value) for key, value in data.items()}
        elif isinstance(data, list):
            return [cls._substitute_env_vars_recursive(item) for item in data]
        elif isinstance(data, str):
            return cls._substitute_env_vars(data)
        else:
            return data

    @classmethod
    def _substitute_env_vars(cls, value: str) -> str:
        """Substitute environment variables in a string value; unknown variables are kept verbatim."""
        def replace_match(match):
            env_value = os.getenv(match.group(1))
            return env_value if env_value is not None else match.group(0)

        return cls.ENV_VAR_PATTERN.sub(replace_match, value)

    @classmethod
    def has_unresolved_env_var(cls, value: Any) -> bool:
        return isinstance(value, str) and cls.ENV_VAR_PATTERN.search(value) is not None

    @staticmethod
    def _validate_url(url: str, field_name: str) -> None:
        """Validate URL format."""
        parsed = urlparse(url)
        if parsed.scheme not in ('http', 'https'):
            raise ValueError(f"{field_name} must use http or https scheme: {url}")
        if not parsed.netloc:
            raise ValueError(f"{field_name} missing hostname: {url}")


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``base`` with ``override`` merged in, recursing into nested dicts."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def get_nested(config: dict, path: str, default: Any = None) -> Any:
    """Safely retrieve nested configuration values using dot notation.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., "dropbox.api_base_url")
        default: Default value if path doesn't exist

    Returns:
        Value at the nested path or default
    """
    value = config

    for key in path.split('.'):
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default

    return value


__all__ = ['ConfigLoader', 'DEFAULT_CONFIG', 'DEFAULT_CONFIG_PATH', 'deep_merge', 'get_nested']
