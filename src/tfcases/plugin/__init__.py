"""Pytest plugin collecting tfcases suite configurations.

This module integrates tfcases with pytest by:
- registering custom command-line options;
- configuring shared runtime settings and a function registry;
- collecting suite configuration files as test files.

Files named `tfcases.yaml` or `tfcases.yml` are collected: every
generated scenario becomes a test item evaluated with `terraform test`
in plan mode, and every coverage gap becomes an item that fails, or is
skipped when the gap is acknowledged.
"""

from typing import TYPE_CHECKING

from tfcases.schema import CONFIG_NAMES

from .spec import SuiteSpec

if TYPE_CHECKING:
    from pathlib import Path

if TYPE_CHECKING:
    from _pytest.config import Config
    from _pytest.config.argparsing import Parser
    from _pytest.nodes import Node


def pytest_addoption(parser: 'Parser') -> None:
    """Register pytest command-line options for tfcases.

    Args:
        parser: Pytest argument parser.
    """
    group = parser.getgroup('tfcases')
    group.addoption(
        '--tfcases-terraform',
        action='store',
        dest='tfcases_terraform',
        default=None,
        help='Terraform executable used to evaluate scenarios.',
    )
    group.addoption(
        '--tfcases-strict',
        action='store_true',
        dest='tfcases_strict',
        default=None,
        help=(
            'Enable strict mode. Unacknowledged coverage gaps and '
            'plugin loading issues fail collection.'
        ),
    )
    group.addoption(
        '--tfcases-timeout',
        action='store',
        dest='tfcases_timeout',
        type=float,
        default=None,
        help='Timeout of a single Terraform command, in seconds.',
    )


def pytest_configure(config: 'Config') -> None:
    """Configure tfcases integration.

    This hook resolves runtime settings from the environment and the
    command line, and attaches them to the pytest configuration object
    as `config.tfcases_settings`, together with a shared function
    registry as `config.tfcases_functions`.

    Args:
        config: Pytest configuration object.
    """
    from tfcases.core import FunctionRegistry  # noqa: PLC0415
    from tfcases.settings import Settings  # noqa: PLC0415

    overrides = {
        key: value
        for key, value in (
            ('terraform', config.getoption('tfcases_terraform', default=None)),
            ('strict', config.getoption('tfcases_strict', default=None)),
            ('timeout', config.getoption('tfcases_timeout', default=None)),
        )
        if value is not None
    }

    settings = Settings(**overrides)

    config.tfcases_settings = settings  # type: ignore[attr-defined]
    config.tfcases_functions = FunctionRegistry(strict=settings.strict)  # type: ignore[attr-defined]


def pytest_collect_file(parent: 'Node', file_path: 'Path') -> SuiteSpec | None:
    """Collect suite configuration files.

    Args:
        parent: Parent pytest collection node.
        file_path: Path to the file being considered.

    Returns:
        A `SuiteSpec` collector for `tfcases.yaml` files, otherwise `None`.
    """
    if file_path.name in CONFIG_NAMES:
        return SuiteSpec.from_parent(
            parent,
            path=file_path,
        )

    return None
