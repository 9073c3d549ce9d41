"""Tests for assertion synthesis."""

from typing import TYPE_CHECKING

import pytest

from tfcases.core import AssertionSynthesizer, ScenarioEnumerator
from tfcases.core.synthesizer import acknowledge, describe_inputs, effective_values
from tfcases.schema import CoverageGap, Scenario

if TYPE_CHECKING:
    from collections.abc import Callable

if TYPE_CHECKING:
    from tfcases.core import FunctionRegistry
    from tfcases.schema import ModuleInterface

#: Module with a gated resource and outputs known only after apply.
GATED_MODULE = {
    'variable': [
        {'enabled': {'type': '${bool}', 'default': False}},
        {'name': {'type': '${string}', 'default': 'logs'}},
    ],
    'resource': [
        {'aws_s3_bucket': {'this': {'count': '${var.enabled ? 1 : 0}', 'bucket': '${var.name}'}}},
    ],
    'output': [
        {'bucket_arn': {'value': '${aws_s3_bucket.this[0].arn}'}},
        {'matches': {'value': '${regexall("^l", var.name)}'}},
        {'name': {'value': '${upper(var.name)}'}},
    ],
}

#: Reason of gaps on outputs interpolating a null input.
NULL_TEMPLATE = 'fails to evaluate: Template interpolation of a null value'

#: Module indexing a list input.
ZONES_MODULE = {
    'variable': [{'zones': {'type': '${list(string)}', 'default': ['a', 'b']}}],
    'output': [{'primary': {'value': '${var.zones[0]}'}}],
}

DEFAULTS = Scenario(name='defaults', kind='defaults')
ENABLED = Scenario(name='enabled_true', kind='branch', variables={'enabled': True}, focus=('enabled',))


def assertions(scenario: Scenario) -> list[tuple[str, str]]:
    """Conditions and messages of a scenario's assertions."""
    return [(item.condition, item.message) for item in scenario.assertions]


def synthesize(functions: 'FunctionRegistry', interface: 'ModuleInterface') -> tuple:
    """Enumerate and synthesize a module's scenarios."""
    enumeration = ScenarioEnumerator(functions).enumerate(interface)
    return AssertionSynthesizer(functions).synthesize(
        interface, enumeration.scenarios, enumeration.variables,
    )


def test_backup_module(functions: 'FunctionRegistry',
                       backup_module: 'ModuleInterface') -> None:
    """Assert on the backup flag and bucket name per environment."""
    scenarios, gaps = synthesize(functions, backup_module)

    defaults, enabled, environment_null, name_null = scenarios

    assert assertions(defaults) == [
        (
            'output.backup_enabled == false',
            'output.backup_enabled should equal false when all inputs use their defaults',
        ),
        (
            'output.bucket_name == "example-dev"',
            'output.bucket_name should equal "example-dev" when all inputs use their defaults',
        ),
    ]
    assert assertions(enabled) == [
        (
            'output.backup_enabled == true',
            'output.backup_enabled should equal true when environment = "prod"',
        ),
        (
            'output.bucket_name == "example-prod"',
            'output.bucket_name should equal "example-prod" when environment = "prod"',
        ),
    ]
    assert [item.condition for item in environment_null.assertions] == ['output.backup_enabled == false']
    assert name_null.assertions == ()
    assert [(gap.kind, gap.target, gap.reason) for gap in gaps] == [
        ('output', 'output.bucket_name@environment_null', NULL_TEMPLATE),
        ('output', 'output.bucket_name@name_null', NULL_TEMPLATE),
    ]
    assert [gap.origin for gap in gaps] == ['output.bucket_name'] * 2


def test_evaluation_gaps(functions: 'FunctionRegistry',
                         extract: 'Callable[[dict], ModuleInterface]') -> None:
    """Report outputs failing to evaluate in a scenario as scoped gaps."""
    scenarios, gaps = synthesize(functions, extract(ZONES_MODULE))

    by_name = {scenario.name: scenario for scenario in scenarios}
    assert [item.condition for item in by_name['defaults'].assertions] == ['output.primary == "a"']
    assert by_name['zones_empty'].assertions == ()

    reasons = {gap.target: gap.reason for gap in gaps}
    assert 'Invalid index' in reasons['output.primary@zones_empty']
    assert all(gap.kind == 'output' and gap.origin == 'output.primary' for gap in gaps)
    assert 'output.primary' not in reasons

def test_access_module(functions: 'FunctionRegistry',
                       access_module: 'ModuleInterface') -> None:
    """Assert on the number of allowed addresses."""
    scenarios, _ = synthesize(functions, access_module)

    assert [(item.name, item.assertions[0].condition) for item in scenarios] == [
        ('defaults', 'length(output.allowed_ips) == 3'),
        ('access_list_ips_null', 'length(output.allowed_ips) == 3'),
        ('access_list_ips_populated', 'length(output.allowed_ips) == 5'),
    ]

    populated = scenarios[2].assertions[0]
    assert populated.target == 'length(output.allowed_ips)'
    assert populated.expected == 5
    assert populated.message == (
        'length(output.allowed_ips) should equal 5 when access_list_ips = a map with 2 entries'
    )


def test_gated_module(functions: 'FunctionRegistry',
                      extract: 'Callable[[dict], ModuleInterface]') -> None:
    """Assert on resource counts and report unplannable outputs once."""
    interface = extract(GATED_MODULE)

    scenarios, gaps = AssertionSynthesizer(functions).synthesize(interface, (DEFAULTS, ENABLED))

    assert [item.condition for item in scenarios[0].assertions] == [
        'output.name == "LOGS"',
        'length(aws_s3_bucket.this) == 0',
    ]
    assert assertions(scenarios[1]) == [(
        'length(aws_s3_bucket.this) == 1',
        'aws_s3_bucket.this should have 1 instance(s) when enabled = true',
    )]

    assert [(gap.kind, gap.target) for gap in gaps] == [
        ('output', 'output.bucket_arn'),
        ('output', 'output.matches'),
    ]
    assert 'aws_s3_bucket.this' in gaps[0].reason
    assert 'outside the supported subset' in gaps[1].reason
    assert not any(gap.acknowledged for gap in gaps)


def test_acknowledged(functions: 'FunctionRegistry',
                      extract: 'Callable[[dict], ModuleInterface]') -> None:
    """Keep acknowledged gaps, flagged as such."""
    interface = extract(GATED_MODULE)
    synthesizer = AssertionSynthesizer(functions, acknowledged=['output.matches'])

    _, gaps = synthesizer.synthesize(interface, (DEFAULTS,))

    assert [(gap.target, gap.acknowledged) for gap in gaps] == [
        ('output.bucket_arn', False),
        ('output.matches', True),
    ]
    assert str(gaps[1]).endswith('(acknowledged)')


def test_deterministic(functions: 'FunctionRegistry',
                       backup_module: 'ModuleInterface') -> None:
    """Synthesize identical assertions for identical inputs."""
    enumeration = ScenarioEnumerator(functions).enumerate(backup_module)
    synthesizer = AssertionSynthesizer(functions)

    first = synthesizer.synthesize(backup_module, enumeration.scenarios, enumeration.variables)
    second = synthesizer.synthesize(backup_module, enumeration.scenarios, enumeration.variables)

    assert first == second
    assert all(scenario.command == 'plan' for scenario in first[0])


@pytest.mark.parametrize('target, value, expect_condition, expect_expected', (
    pytest.param('output.flag', True, 'output.flag == true', True, id='bool'),
    pytest.param('output.size', 3, 'output.size == 3', 3, id='number'),
    pytest.param('output.empty', None, 'output.empty == null', None, id='null'),
    pytest.param('output.names', ['a', 'b'], 'length(output.names) == 2', 2, id='list'),
    pytest.param('output.tags', {}, 'length(output.tags) == 0', 0, id='empty map'),
))
def test_assertion(functions: 'FunctionRegistry', target: str, value: object,
                   expect_condition: str, expect_expected: object) -> None:
    """Compare scalars directly and collections by length."""
    assertion = AssertionSynthesizer(functions).assertion(target, value, DEFAULTS)

    assert assertion.condition == expect_condition
    assert assertion.expected == expect_expected


def test_effective_values(backup_module: 'ModuleInterface') -> None:
    """Resolve overrides over suite variables over defaults."""
    scenario = Scenario(name='prod', kind='branch', variables={'environment': 'prod'}, focus=('environment',))

    assert effective_values(backup_module, {'name': 'svc'}, scenario) == {'environment': 'prod', 'name': 'svc'}
    assert effective_values(backup_module, {}, DEFAULTS) == {'environment': 'dev', 'name': None}


def test_describe_inputs() -> None:
    """Describe the governing inputs of a scenario."""
    assert describe_inputs(DEFAULTS) == 'all inputs use their defaults'
    assert describe_inputs(ENABLED) == 'enabled = true'


def test_acknowledge() -> None:
    """Flag acknowledged gaps without dropping any."""
    gaps = (
        CoverageGap(kind='output', target='output.a', reason='unknown'),
        CoverageGap(kind='branch', target='local.b', reason='unknown'),
    )

    assert [gap.acknowledged for gap in acknowledge(gaps, ['local.b'])] == [False, True]


def test_acknowledge_scoped() -> None:
    """Cover the scenario-scoped gaps of an acknowledged target."""
    gaps = (
        CoverageGap(kind='output', target='output.a@name_null', reason=NULL_TEMPLATE),
        CoverageGap(kind='output', target='output.b@name_null', reason=NULL_TEMPLATE),
    )

    assert [gap.acknowledged for gap in acknowledge(gaps, ['output.a'])] == [True, False]
    assert [gap.acknowledged for gap in acknowledge(gaps, ['output.b@name_null'])] == [False, True]
