"""Tests configurations and fixtures."""

from importlib.metadata import EntryPoint, EntryPoints
from typing import TYPE_CHECKING

import pytest

from tfcases.core import FunctionRegistry, InterfaceExtractor

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

if TYPE_CHECKING:
    from pytest_mock import MockerFixture, MockType

if TYPE_CHECKING:
    from tfcases.extensions import Plugin
    from tfcases.schema import ModuleInterface


#: Module whose backups are enabled in production only.
BACKUP_MODULE = {
    'variable': [
        {'environment': {'type': '${string}', 'default': 'dev'}},
        {'name': {'type': '${string}'}},
    ],
    'locals': [
        {
            'backup_enabled': '${var.environment == "prod"}',
            'bucket_name': '${var.name}-${var.environment}',
        },
    ],
    'output': [
        {'backup_enabled': {'value': '${local.backup_enabled}'}},
        {'bucket_name': {'value': '${local.bucket_name}'}},
    ],
}

#: Module merging fixed infrastructure addresses with operator ones.
ACCESS_MODULE = {
    'variable': [
        {'access_list_ips': {'type': '${map(string)}', 'default': {}}},
    ],
    'locals': [
        {
            'infrastructure_ips': {
                'vpn': '10.0.0.1/32',
                'bastion': '10.0.0.2/32',
                'monitoring': '10.0.0.3/32',
            },
        },
    ],
    'output': [
        {'allowed_ips': {'value': '${merge(local.infrastructure_ips, var.access_list_ips)}'}},
    ],
}


@pytest.fixture
def functions() -> FunctionRegistry:
    """Provide a function registry with built-in functions only."""
    return FunctionRegistry(load_plugins=False)


@pytest.fixture
def extract(functions: FunctionRegistry) -> 'Callable[[dict], ModuleInterface]':
    """Provide a factory extracting interfaces from parsed documents."""
    def extract_document(document: dict) -> 'ModuleInterface':
        return InterfaceExtractor(functions).extract_document(document)

    return extract_document


@pytest.fixture
def backup_module(extract: 'Callable[[dict], ModuleInterface]') -> 'ModuleInterface':
    """Interface of a module with an environment-driven backup branch."""
    return extract(BACKUP_MODULE)


@pytest.fixture
def access_module(extract: 'Callable[[dict], ModuleInterface]') -> 'ModuleInterface':
    """Interface of a module merging fixed and configured access lists."""
    return extract(ACCESS_MODULE)


@pytest.fixture
def write_module(tmp_path: 'Path') -> 'Callable[..., Path]':
    """Provide a factory writing Terraform files into a module directory.

    Files are written to a real temporary directory, since the HCL
    parser loads its grammar from the installed package.
    """
    def write(**files: str) -> 'Path':
        module = tmp_path / 'module'
        module.mkdir(exist_ok=True)
        for name, content in files.items():
            (module / f'{name}.tf').write_text(content, encoding='utf-8')
        return module

    return write


@pytest.fixture
def patch_entrypoints(mocker: 'MockerFixture') -> 'Callable[..., MockType]':
    """Provide a factory for mocking `importlib.metadata.entry_points`.

    Returns a callable that patches `entry_points()` to simulate
    discovery of plugins in the `tfcases_plugins` entry point group.

    The returned factory allows configuring:
    - successfully loadable plugins,
    - or an exception raised during plugin loading,
    - or an empty entry point list.
    """
    def patch(*plugins: 'Plugin | object', raises: Exception | None = None) -> 'MockType':
        """Patch `entry_points` with a controlled plugin configuration.

        Args:
            plugins: Objects to be returned by `EntryPoint.load()`.
                If empty, no entry points are registered.
            raises: Exception to raise when `EntryPoint.load()` is called.
                Used to simulate plugin load failures.

        Returns:
            A mock patch object produced by `mocker.patch` that replaces
            `importlib.metadata.entry_points` for the duration of the test.
        """
        entrypoints = []
        for plugin in plugins:
            ep = mocker.Mock(spec=EntryPoint)
            ep.group = 'tfcases_plugins'
            ep.name = 'tests'
            ep.value = 'tests.plugins:test'
            ep.load.return_value = plugin
            if raises is not None:
                ep.load.side_effect = raises
            entrypoints.append(ep)

        return mocker.patch(
            'importlib.metadata.entry_points',
            return_value=EntryPoints(entrypoints),
        )

    return patch
