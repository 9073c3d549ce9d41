"""Integration tests for the pytest plugin."""

import subprocess
from json import dumps
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from collections.abc import Callable

    from pytest_mock import MockerFixture, MockType

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

resource "aws_s3_bucket" "this" {
  bucket = var.name
}

output "backup_enabled" {
  value = local.backup_enabled
}

output "arn" {
  value = aws_s3_bucket.this.arn
}
'''

#: Local whose two conditions depend only on values known after apply.
TIER_SOURCE = '''
locals {
  tier = aws_s3_bucket.this.id == "" ? "none" : (aws_s3_bucket.this.region == "" ? "partial" : "full")
}
'''

#: Scenario items collected from the module.
SCENARIOS = (
    'main::defaults',
    'main::backup_enabled_true',
    'main::environment_null',
    'main::name_null',
)


@pytest.fixture
def suite(pytester: pytest.Pytester) -> 'Callable[..., None]':
    """Provide a factory writing the module and its suite configuration."""
    def write(*acknowledged: str, source: str = MODULE_SOURCE) -> None:
        pytester.mkdir('module')
        pytester.path.joinpath('module', 'main.tf').write_text(source, encoding='utf-8')

        config = 'source: module\nvariables:\n  name: example\n'
        if acknowledged:
            config += 'acknowledged:\n' + ''.join(f'  - {target}\n' for target in acknowledged)
        pytester.path.joinpath('tfcases.yaml').write_text(config, encoding='utf-8')

    return write


@pytest.fixture
def terraform(mocker: 'MockerFixture') -> 'Callable[..., MockType]':
    """Provide a factory mocking Terraform, failing the given runs."""
    def patch(*failing: str) -> 'MockType':
        def run(command: list[str], **kwargs: object) -> subprocess.CompletedProcess[str]:
            if command[1] == 'init':
                return subprocess.CompletedProcess(command, 0, '', '')
            name = command[3].rsplit('/', 1)[1].removesuffix('.tftest.hcl')
            status = 'fail' if name in failing else 'pass'
            event = {
                'type': 'test_run',
                'test_run': {'run': name, 'progress': 'complete', 'status': status},
            }
            return subprocess.CompletedProcess(command, int(status == 'fail'), dumps(event), '')

        return mocker.patch('tfcases.runner.subprocess.run', side_effect=run)

    return patch


def test_collect(pytester: pytest.Pytester, suite: 'Callable[..., None]',
                 terraform: 'Callable[..., MockType]') -> None:
    """Collect scenarios and gaps of a suite configuration."""
    suite()
    terraform()

    result = pytester.runpytest_inprocess('--collect-only', '-q')

    result.stdout.fnmatch_lines([
        *(f'tfcases.yaml::{name}' for name in SCENARIOS),
        'tfcases.yaml::gap::output.arn',
    ])


def test_collect_shared_target(pytester: pytest.Pytester, suite: 'Callable[..., None]',
                               terraform: 'Callable[..., MockType]') -> None:
    """Number gap items sharing a target."""
    suite(source=MODULE_SOURCE + TIER_SOURCE)
    terraform()

    result = pytester.runpytest_inprocess('--collect-only', '-q')

    result.stdout.fnmatch_lines([
        'tfcases.yaml::gap::local.tier::1',
        'tfcases.yaml::gap::local.tier::2',
        'tfcases.yaml::gap::output.arn',
    ])
    assert result.ret == 0


def test_run(pytester: pytest.Pytester, suite: 'Callable[..., None]',
             terraform: 'Callable[..., MockType]') -> None:
    """Evaluate scenarios and fail on unacknowledged gaps."""
    suite()
    process = terraform()

    result = pytester.runpytest_inprocess('-v')

    result.assert_outcomes(passed=4, failed=1)
    result.stdout.fnmatch_lines(['*Coverage gap output.arn*'])

    commands = [call.args[0][1] for call in process.call_args_list]
    assert commands == ['init', 'test', 'test', 'test', 'test']


def test_run_failure(pytester: pytest.Pytester, suite: 'Callable[..., None]',
                     terraform: 'Callable[..., MockType]') -> None:
    """Report failing scenarios."""
    suite('output.arn')
    terraform('backup_enabled_true')

    result = pytester.runpytest_inprocess('-v')

    result.assert_outcomes(passed=3, failed=1, skipped=1)
    result.stdout.fnmatch_lines([
        '*tfcases.yaml::main::backup_enabled_true FAILED*',
        '*Scenario fail*',
    ])


def test_acknowledged(pytester: pytest.Pytester, suite: 'Callable[..., None]',
                      terraform: 'Callable[..., MockType]') -> None:
    """Skip acknowledged gaps."""
    suite('output.arn')
    terraform()

    result = pytester.runpytest_inprocess('-rs')

    result.assert_outcomes(passed=4, skipped=1)
    result.stdout.fnmatch_lines(['*Acknowledged coverage gap: depends on values known only after apply*'])


def test_strict(pytester: pytest.Pytester, suite: 'Callable[..., None]',
                terraform: 'Callable[..., MockType]') -> None:
    """Fail collection on unacknowledged gaps in strict mode."""
    suite()
    process = terraform()

    result = pytester.runpytest_inprocess('--tfcases-strict')

    result.assert_outcomes(errors=1)
    result.stdout.fnmatch_lines(['*1 unacknowledged coverage gap*'])
    process.assert_not_called()


def test_invalid_config(pytester: pytest.Pytester) -> None:
    """Report invalid suite configurations as collection errors."""
    pytester.path.joinpath('tfcases.yaml').write_text('unknown: 1\n', encoding='utf-8')

    result = pytester.runpytest_inprocess()

    result.assert_outcomes(errors=1)
    result.stdout.fnmatch_lines(['*Extra inputs are not permitted*'])
