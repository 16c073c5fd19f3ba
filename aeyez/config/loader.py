"""
Configuration loader for Aeyez.

Loads aeyez.yaml, validates it with the Pydantic models in schema.py and
resolves provider API keys from environment variables into a RuntimeConfig.

Configuration specification (AeyezConfig, safe to commit) and runtime
configuration (RuntimeConfig, holds secrets in memory only) are kept apart.
A missing API key is not an error: the provider is simply unavailable.

Functions:
    load_config: Load and validate a YAML configuration file
    runtime_config_from_env: Build the default configuration without a file
    resolve_providers: Resolve env_api_key references to API keys
"""

import logging
import os
from collections.abc import Mapping
from pathlib import Path

import yaml
from pydantic import ValidationError

from aeyez.exceptions import ConfigFileNotFoundError, ConfigValidationError

from .schema import AeyezConfig, RuntimeConfig, RuntimeProvider

logger = logging.getLogger(__name__)


def load_config(
    config_path: str | Path, environ: Mapping[str, str] | None = None
) -> RuntimeConfig:
    """
    Load aeyez.yaml and resolve API keys from environment variables.

    This function:
    1. Loads YAML from the specified path
    2. Validates structure using the AeyezConfig Pydantic model
    3. Resolves API key environment variables
    4. Returns RuntimeConfig ready for the gateway factory

    Args:
        config_path: Path to the YAML file (relative or absolute)
        environ: Environment mapping, defaults to os.environ

    Returns:
        RuntimeConfig with resolved API keys

    Raises:
        ConfigFileNotFoundError: If the file doesn't exist
        ConfigValidationError: If YAML is invalid or validation fails

    Example:
        >>> config = load_config("aeyez.yaml")
        >>> config.provider("openai").settings.model_name
        'gpt-4o-mini'

    Security:
        - API keys come from the environment only and are never logged
        - Uses yaml.safe_load() to prevent code injection
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigFileNotFoundError(f"Configuration file not found: {config_path}")

    try:
        with config_path.open(encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigValidationError(f"Invalid YAML syntax in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigValidationError(
            f"Failed to read configuration file {config_path}: {e}"
        ) from e

    if raw_config is None:
        raise ConfigValidationError(f"Configuration file is empty: {config_path}")

    if not isinstance(raw_config, dict):
        raise ConfigValidationError(
            f"Configuration root must be a mapping in {config_path}, "
            f"got {type(raw_config).__name__}"
        )

    try:
        aeyez_config = AeyezConfig.model_validate(raw_config)
    except ValidationError as e:
        error_messages = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            error_messages.append(f"  - {loc}: {error['msg']}")

        raise ConfigValidationError(
            f"Configuration validation failed in {config_path}:\n"
            + "\n".join(error_messages)
        ) from e

    logger.info(f"Loaded configuration from {config_path}")
    return _build_runtime_config(aeyez_config, environ)


def runtime_config_from_env(environ: Mapping[str, str] | None = None) -> RuntimeConfig:
    """
    Build a RuntimeConfig from built-in defaults and the environment.

    Used when no configuration file is supplied: OPENAI_API_KEY and
    GOOGLE_API_KEY select which providers are available.
    """
    return _build_runtime_config(AeyezConfig(), environ)


def resolve_providers(
    config: AeyezConfig, environ: Mapping[str, str] | None = None
) -> dict[str, RuntimeProvider]:
    """
    Resolve each provider's env_api_key into a RuntimeProvider.

    Unset or blank variables produce api_key=None (provider unavailable)
    and an INFO log naming the variable, never its value.
    """
    env = os.environ if environ is None else environ
    resolved: dict[str, RuntimeProvider] = {}

    for name, settings in config.providers.items():
        api_key = env.get(settings.env_api_key)
        if not api_key or api_key.isspace():
            logger.info(
                f"Provider '{name}' unavailable: "
                f"environment variable {settings.env_api_key} is not set"
            )
            api_key = None

        resolved[name] = RuntimeProvider(
            provider=name, settings=settings, api_key=api_key
        )

    return resolved


def _build_runtime_config(
    config: AeyezConfig, environ: Mapping[str, str] | None
) -> RuntimeConfig:
    return RuntimeConfig(
        providers=resolve_providers(config, environ),
        analysis=config.analysis,
        extraction=config.extraction,
        scoring=config.scoring,
        database_path=config.database_path,
    )
