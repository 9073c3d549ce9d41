"""Tests for the command-line interface."""

import subprocess
from json import dumps, loads
from typing import TYPE_CHECKING

import pytest
from click.testing import CliRunner

from tfcases.__main__ import cli

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from pytest_mock import MockerFixture

MODULE_SOURCE = '''
variable "environment" {
  type    = string
  default = "dev"
}

variable "name" {
  type = string
}

locals {
  backup_enabled = var.environment == "prod"
}

output "backup_enabled" {
  value = local.backup_enabled
}

output "bucket_name" {
  value = "${var.name}-${var.environment}"
}
'''

UNKNOWN_SOURCE = '''
resource "aws_s3_bucket" "this" {
  bucket = "logs"
}

output "arn" {
  value = aws_s3_bucket.this.arn
}
'''


@pytest.fixture
def module(write_module: 'Callable[..., Path]') -> 'Path':
    """Module directory of the backup example."""
    return write_module(main=MODULE_SOURCE)


@pytest.fixture
def runner() -> CliRunner:
    """Command-line runner."""
    return CliRunner()


def test_schema(runner: CliRunner) -> None:
    """Print the configuration JSON Schema."""
    result = runner.invoke(cli, ['schema'])

    assert result.exit_code == 0
    assert loads(result.output)['title'] == 'tfcases'


def test_extract(runner: CliRunner, module: 'Path') -> None:
    """Print the interface of a module."""
    result = runner.invoke(cli, ['extract', str(module)])

    assert result.exit_code == 0, result.output
    assert 'name: environment' in result.output
    assert 'expression: var.environment == "prod"' in result.output


def test_generate(runner: CliRunner, module: 'Path') -> None:
    """Write the suite of a module next to it."""
    result = runner.invoke(cli, ['generate', str(module)])

    assert result.exit_code == 0, result.output

    path = module / 'tests' / 'main.tftest.hcl'
    assert path.as_posix() in result.output

    source = path.read_text(encoding='utf-8')
    assert 'run "backup_enabled_true" {' in source
    assert 'condition     = output.bucket_name == "example-prod"' in source
    assert source.count('command = plan') == 4


def test_generate_config(runner: CliRunner, module: 'Path', tmp_path: 'Path') -> None:
    """Follow a suite configuration pointing at a module."""
    suite = tmp_path / 'suite'
    suite.mkdir()
    (suite / 'tfcases.yaml').write_text(
        'source: ../module\n'
        'output: generated\n'
        'variables:\n'
        '  name: billing\n'
        'areas:\n'
        '  backups: [environment]\n',
        encoding='utf-8',
    )

    result = runner.invoke(cli, ['generate', str(suite), '--split'])

    assert result.exit_code == 0, result.output
    assert sorted(path.name for path in (module / 'generated').iterdir()) == [
        'backups.tftest.hcl',
        'defaults.tftest.hcl',
        'name.tftest.hcl',
    ]
    assert 'name = "billing"' in (module / 'generated' / 'defaults.tftest.hcl').read_text(encoding='utf-8')


def test_generate_output(runner: CliRunner, module: 'Path', tmp_path: 'Path') -> None:
    """Write the suite into an explicit directory."""
    result = runner.invoke(cli, ['generate', str(module), '-o', str(tmp_path / 'out')])

    assert result.exit_code == 0, result.output
    assert (tmp_path / 'out' / 'main.tftest.hcl').is_file()


def test_generate_gaps(runner: CliRunner, write_module: 'Callable[..., Path]') -> None:
    """Report gaps, and fail on them in strict mode."""
    module = write_module(main=UNKNOWN_SOURCE)

    result = runner.invoke(cli, ['generate', str(module)])
    assert result.exit_code == 0, result.output
    assert 'gap: output.arn: depends on values known only after apply' in result.output

    result = runner.invoke(cli, ['generate', str(module), '--strict'])
    assert result.exit_code == 1
    assert '1 unacknowledged coverage gap(s)' in result.output


def test_generate_invalid(runner: CliRunner, write_module: 'Callable[..., Path]') -> None:
    """Report modules that can not be read."""
    module = write_module(main='output "x" {\n  value = local.missing\n}\n')

    result = runner.invoke(cli, ['generate', str(module)])

    assert result.exit_code == 1
    assert "undeclared local value 'missing'" in result.output


@pytest.mark.parametrize('failing, expect_code', (
    pytest.param((), 0, id='pass'),
    pytest.param(('backup_enabled_true',), 1, id='fail'),
))
def test_run(runner: CliRunner, module: 'Path', mocker: 'MockerFixture',
             failing: tuple[str, ...], expect_code: int) -> None:
    """Evaluate every scenario through Terraform."""
    def terraform(command: list[str], **kwargs: object) -> subprocess.CompletedProcess[str]:
        if command[1] == 'init':
            return subprocess.CompletedProcess(command, 0, '', '')
        name = command[3].rsplit('/', 1)[1].removesuffix('.tftest.hcl')
        status = 'fail' if name in failing else 'pass'
        event = {
            'type': 'test_run',
            'test_run': {'run': name, 'progress': 'complete', 'status': status},
        }
        return subprocess.CompletedProcess(command, int(status == 'fail'), dumps(event), '')

    process = mocker.patch('tfcases.runner.subprocess.run', side_effect=terraform)

    result = runner.invoke(cli, ['run', str(module), '--terraform', 'tf'])

    assert result.exit_code == expect_code, result.output
    assert 'pass  main::defaults' in result.output
    assert process.call_args_list[0].args[0][:2] == ['tf', 'init']
    assert process.call_count == 5

    if failing:
        assert 'fail  main::backup_enabled_true' in result.output
        assert '1 scenario(s) failed' in result.output


def test_run_error(runner: CliRunner, module: 'Path', mocker: 'MockerFixture') -> None:
    """Print the diagnostics of scenarios that errored."""
    def terraform(command: list[str], **kwargs: object) -> subprocess.CompletedProcess[str]:
        if command[1] == 'init':
            return subprocess.CompletedProcess(command, 0, '', '')
        name = command[3].rsplit('/', 1)[1].removesuffix('.tftest.hcl')
        events = [{
            'type': 'test_run',
            'test_run': {'run': name, 'progress': 'complete', 'status': 'pass'},
        }]
        if name == 'name_null':
            events = [
                {
                    'type': 'diagnostic',
                    '@testrun': name,
                    'diagnostic': {
                        'severity': 'error',
                        'summary': 'Invalid value for variable',
                        'detail': 'name must be set',
                    },
                },
                {
                    'type': 'test_run',
                    'test_run': {'run': name, 'progress': 'complete', 'status': 'error'},
                },
            ]
        stdout = '\n'.join(dumps(event) for event in events)
        return subprocess.CompletedProcess(command, int(name == 'name_null'), stdout, '')

    mocker.patch('tfcases.runner.subprocess.run', side_effect=terraform)

    result = runner.invoke(cli, ['run', str(module)])

    assert result.exit_code == 1, result.output
    assert 'error main::name_null\n      Invalid value for variable: name must be set\n' in result.output
    assert '1 scenario(s) failed' in result.output
