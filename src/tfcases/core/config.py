"""Suite configuration loading."""

import logging
from pathlib import Path

from pydantic import ValidationError
from yaml import SafeLoader, load
from yaml.error import MarkedYAMLError

from tfcases.errors import ConfigError, ErrorContext
from tfcases.schema import CONFIG_NAMES, SuiteConfig

logger = logging.getLogger(__name__)


def find_config(directory: Path | str) -> Path | None:
    """Return the suite configuration file of a directory, if any."""
    directory = Path(directory)
    for name in CONFIG_NAMES:
        if (candidate := directory / name).is_file():
            return candidate

    return None


def load_config(path: Path | str) -> SuiteConfig:
    """Load and validate a suite configuration document.

    An empty document is a valid configuration with every default.

    Args:
        path: Path of the `tfcases.yaml` file.

    Returns:
        Validated suite configuration.

    Raises:
        ConfigError: If the file can not be read, is not valid YAML or
            does not match the configuration schema.
    """
    path = Path(path)
    filename = path.as_posix()

    try:
        with path.open('rt', encoding='utf-8') as content:
            data = load(content, Loader=SafeLoader)  # noqa: S506
    except OSError as base:
        raise ConfigError(f'Can not read suite configuration {filename!r}') from base
    except MarkedYAMLError as base:
        raise ConfigError.from_yaml_error(base) from base

    if data is None:
        data = {}

    if not isinstance(data, dict):
        raise ConfigError('Suite configuration must be a mapping', context=ErrorContext(
            filename=filename,
            element=data,
        ))

    try:
        config = SuiteConfig.model_validate(data)
    except ValidationError as base:
        raise ConfigError.from_pydantic_error(base, data=data, filename=filename) from base

    logger.debug('Loaded suite configuration %s', filename)

    return config


def resolve_paths(config: SuiteConfig, path: Path | str) -> tuple[Path, Path]:
    """Resolve the module and output directories of a configuration.

    Args:
        config: Suite configuration.
        path: Path of the configuration file.

    Returns:
        The module directory, relative to the configuration file, and
        the output directory, relative to the module.
    """
    source = Path(path).parent / config.source
    return source, source / config.output
