"""Tests for the suite generation workflow."""

import logging
from typing import TYPE_CHECKING

import pytest

from tfcases.core import Workflow
from tfcases.errors import CoverageGapError, CoverageWarning
from tfcases.schema import SuiteConfig

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

if TYPE_CHECKING:
    from tfcases.core import FunctionRegistry
    from tfcases.schema import ModuleInterface

#: Module exposing an attribute known only after apply.
BUCKET_MODULE = {
    'variable': [{'name': {'type': '${string}', 'default': 'logs'}}],
    'resource': [{'aws_s3_bucket': {'this': {'bucket': '${var.name}'}}}],
    'output': [
        {'name': {'value': '${var.name}'}},
        {'arn': {'value': '${aws_s3_bucket.this.arn}'}},
    ],
}

MODULE_SOURCE = '''
variable "environment" {
  type    = string
  default = "dev"
}

locals {
  backup_enabled = var.environment == "prod"
}

output "backup_enabled" {
  value = local.backup_enabled
}
'''


def test_build(functions: 'FunctionRegistry', backup_module: 'ModuleInterface') -> None:
    """Build a single test file with every scenario."""
    with pytest.warns(CoverageWarning, match='output.bucket_name@name_null: fails to evaluate'):
        suite = Workflow(functions=functions).build(backup_module)

    assert len(suite.test_files) == 1
    test_file = suite.test_files[0]
    assert test_file.name == 'main'
    assert test_file.variables == {'name': 'example'}
    assert [item.name for item in suite.scenarios] == [
        'defaults',
        'backup_enabled_true',
        'environment_null',
        'name_null',
    ]
    assert [gap.target for gap in suite.unacknowledged] == [
        'output.bucket_name@environment_null',
        'output.bucket_name@name_null',
    ]


@pytest.mark.filterwarnings('error')
def test_build_split(functions: 'FunctionRegistry', backup_module: 'ModuleInterface') -> None:
    """Split scenarios into one test file per feature area."""
    config = SuiteConfig(
        split=True,
        areas={'Backups': ['environment']},
        acknowledged=['output.bucket_name'],
    )

    suite = Workflow(config, functions=functions).build(backup_module)

    assert [(item.name, [scenario.name for scenario in item.scenarios]) for item in suite.test_files] == [
        ('defaults', ['defaults']),
        ('backups', ['backup_enabled_true', 'environment_null']),
        ('name', ['name_null']),
    ]
    assert all(item.variables == {'name': 'example'} for item in suite.test_files)
    assert len(suite.gaps) == 2
    assert suite.unacknowledged == ()


def test_coverage_warning(functions: 'FunctionRegistry',
                          extract: 'Callable[[dict], ModuleInterface]') -> None:
    """Warn about unacknowledged gaps."""
    interface = extract(BUCKET_MODULE)

    with pytest.warns(CoverageWarning, match='output.arn: depends on values known only after apply'):
        suite = Workflow(functions=functions).build(interface)

    assert [gap.target for gap in suite.unacknowledged] == ['output.arn']
    assert [item.condition for item in suite.scenarios[0].assertions] == ['output.name == "logs"']


def test_coverage_strict(functions: 'FunctionRegistry',
                         extract: 'Callable[[dict], ModuleInterface]') -> None:
    """Refuse unacknowledged gaps in strict mode."""
    interface = extract(BUCKET_MODULE)

    with pytest.raises(CoverageGapError, match='1 unacknowledged coverage gap') as error:
        Workflow(strict=True, functions=functions).build(interface)

    assert [gap.target for gap in error.value.gaps] == ['output.arn']


@pytest.mark.filterwarnings('error')
def test_coverage_acknowledged(functions: 'FunctionRegistry',
                               extract: 'Callable[[dict], ModuleInterface]',
                               caplog: pytest.LogCaptureFixture) -> None:
    """Keep acknowledged gaps without warnings, even in strict mode."""
    config = SuiteConfig(acknowledged=['output.arn', 'output.stale'])

    with caplog.at_level(logging.WARNING, logger='tfcases.core.pipeline'):
        suite = Workflow(config, strict=True, functions=functions).build(extract(BUCKET_MODULE))

    assert [(gap.target, gap.acknowledged) for gap in suite.gaps] == [('output.arn', True)]
    assert suite.unacknowledged == ()
    assert "Acknowledged gap 'output.stale' does not match" in caplog.text


def test_generate(functions: 'FunctionRegistry', write_module: 'Callable[..., Path]') -> None:
    """Generate the suite of a module directory."""
    module = write_module(main=MODULE_SOURCE)

    suite = Workflow(functions=functions).generate(module)

    assert suite.interface.path == module.as_posix()
    assert [item.name for item in suite.scenarios] == ['defaults', 'backup_enabled_true', 'environment_null']
