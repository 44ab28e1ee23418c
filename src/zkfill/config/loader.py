"""Configuration loading and validation."""

from pathlib import Path

import yaml
from pydantic import ValidationError

from zkfill.config.schema import ZkFillConfig
from zkfill.errors import ConfigError

DEFAULT_CONFIG_PATH = Path.home() / ".zkfill" / "zkfill.yaml"


def load_config(path: Path | None = None) -> ZkFillConfig:
    """Load and validate zkfill configuration from YAML file.

    Args:
        path: Path to config file. If None, tries default location.
              If file doesn't exist, returns default config.

    Returns:
        Validated configuration object

    Raises:
        ConfigError: If config file exists but is invalid
    """
    if path is None:
        path = DEFAULT_CONFIG_PATH

    # Zero-config mode: if file doesn't exist, use all defaults
    if not path.exists():
        return ZkFillConfig()

    try:
        with open(path) as f:
            config_data = yaml.safe_load(f)

        if config_data is None:
            return ZkFillConfig()
        if not isinstance(config_data, dict):
            raise ConfigError(f"Expected a mapping at the top of {path}")

        return ZkFillConfig(**config_data)

    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"Configuration validation failed: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to load config from {path}: {e}") from e


def save_config(config: ZkFillConfig, path: str | Path | None = None) -> None:
    """Save configuration to YAML file.

    Args:
        config: Configuration object to save
        path: Destination path (string or Path object). If None, uses default location.
    """
    if path is None:
        path = DEFAULT_CONFIG_PATH
    elif isinstance(path, str):
        path = Path(path)

    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        yaml.safe_dump(config.model_dump(), f, default_flow_style=False, sort_keys=False)


def artifacts_dir(config: ZkFillConfig) -> Path:
    return Path(config.circuit.artifacts_dir).expanduser()
