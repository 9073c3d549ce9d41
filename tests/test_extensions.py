"""Tests for functions, plugins and the function registry."""

from typing import TYPE_CHECKING

import pytest
from pydantic import ValidationError

from tfcases.builtins.functions import BUILTINS, to_bool, to_number, to_string
from tfcases.core import FunctionRegistry
from tfcases.errors import ExpressionError, PluginError, PluginWarning
from tfcases.expressions import Evaluator, parse_expression
from tfcases.extensions import Function, Plugin
from tfcases.values import UNKNOWN

if TYPE_CHECKING:
    from collections.abc import Callable

    from pytest_mock import MockType

CIDRHOST = Function(
    name='cidrhost',
    function=lambda prefix, host: f'{prefix.split("/")[0].rsplit(".", 1)[0]}.{int(host)}',
    min_args=2,
    max_args=2,
)

NETWORK_PLUGIN = Plugin(name='network', functions=[CIDRHOST])


def test_function_call() -> None:
    """Invoke a function with evaluated arguments."""
    assert CIDRHOST('10.0.0.0/24', 5) == '10.0.0.5'


@pytest.mark.parametrize('args, expect_message', (
    pytest.param(('10.0.0.0/24',), 'takes 2 argument', id='too few'),
    pytest.param(('10.0.0.0/24', 1, 2), 'takes 2 argument', id='too many'),
    pytest.param(('10.0.0.0/24', 'first'), 'Invalid call', id='invalid argument'),
))
def test_function_errors(args: tuple, expect_message: str) -> None:
    """Report arity mismatches and failing implementations."""
    with pytest.raises(ExpressionError, match=expect_message):
        CIDRHOST(*args)


def test_function_unknown() -> None:
    """Propagate unknown arguments without invoking the implementation."""
    assert CIDRHOST(UNKNOWN, 1) is UNKNOWN

    aware = Function(name='known', function=lambda value: value is not UNKNOWN, allow_unknown=True)
    assert aware(UNKNOWN) is False


def test_function_arity_bounds() -> None:
    """Reject inconsistent arity bounds."""
    with pytest.raises(ValidationError, match='lower than minimum'):
        Function(name='broken', function=len, min_args=2, max_args=1)


def test_builtins_registered(functions: FunctionRegistry) -> None:
    """Register every built-in function."""
    assert len(functions) == len(BUILTINS)
    assert all(function.name in functions for function in BUILTINS)
    assert 'cidrhost' not in functions


@pytest.mark.parametrize('source, expect_value', (
    pytest.param('merge({a = 1}, null, {b = 2})', {'a': 1, 'b': 2}, id='merge'),
    pytest.param('length("abc")', 3, id='length'),
    pytest.param('lookup({a = 1}, "b", 0)', 0, id='lookup default'),
    pytest.param('coalesce("", "x")', 'x', id='coalesce'),
    pytest.param('join("-", ["a", "b"])', 'a-b', id='join'),
    pytest.param('keys({b = 1, a = 2})', ['a', 'b'], id='keys'),
    pytest.param('tostring(1.0)', '1', id='tostring'),
    pytest.param('length(merge({a = 1}, {b = 2}))', 2, id='nested'),
))
def test_builtins(functions: FunctionRegistry, source: str, expect_value: object) -> None:
    """Evaluate built-in functions."""
    assert Evaluator(functions).evaluate(parse_expression(source)) == expect_value


@pytest.mark.parametrize('value, expect_text', (
    pytest.param(True, 'true', id='bool'),
    pytest.param(2.0, '2', id='whole float'),
    pytest.param(2.5, '2.5', id='float'),
    pytest.param('x', 'x', id='string'),
))
def test_to_string(value: object, expect_text: str) -> None:
    """Convert primitives to strings like Terraform."""
    assert to_string(value) == expect_text


def test_conversions() -> None:
    """Convert strings to numbers and booleans."""
    assert to_number('3') == 3
    assert to_number('3.5') == 3.5
    assert to_bool('true') is True

    with pytest.raises(ExpressionError):
        to_number('three')

    with pytest.raises(ExpressionError):
        to_bool('yes')


def test_load_plugin(patch_entrypoints: 'Callable[..., MockType]') -> None:
    """Register functions from plugins."""
    patch_entrypoints(NETWORK_PLUGIN)

    registry = FunctionRegistry()

    assert registry['cidrhost'] == CIDRHOST
    assert Evaluator(registry).evaluate(parse_expression('cidrhost("10.1.2.0/24", 7)')) == '10.1.2.7'


def test_plugin_shadowing(patch_entrypoints: 'Callable[..., MockType]') -> None:
    """Warn when a plugin shadows a registered function."""
    upper = Function(name='upper', function=lambda value: value.lower(), min_args=1, max_args=1)
    patch_entrypoints(Plugin(name='strings', functions=[upper]))

    with pytest.warns(PluginWarning, match=r'is shadowing an existing$'):
        registry = FunctionRegistry()

    assert registry['upper'] == upper


def test_plugin_strict_shadowing(patch_entrypoints: 'Callable[..., MockType]') -> None:
    """Refuse shadowing functions in strict mode."""
    upper = Function(name='upper', function=str.lower, min_args=1, max_args=1)
    patch_entrypoints(Plugin(name='strings', functions=[upper]))

    with pytest.raises(PluginError, match=r'is shadowing an existing$'):
        FunctionRegistry(strict=True)


@pytest.mark.parametrize('strict', (False, True))
def test_plugin_not_a_plugin(patch_entrypoints: 'Callable[..., MockType]', strict: bool) -> None:
    """Skip objects that are not plugins, or refuse them in strict mode."""
    patch_entrypoints(object())

    if strict:
        with pytest.raises(PluginError, match='is not a plugin'):
            FunctionRegistry(strict=True)
        return

    with pytest.warns(PluginWarning, match='is not a plugin'):
        registry = FunctionRegistry()

    assert len(registry) == len(BUILTINS)


def test_plugin_load_failure(patch_entrypoints: 'Callable[..., MockType]') -> None:
    """Warn about plugins failing to load."""
    patch_entrypoints(NETWORK_PLUGIN, raises=ImportError('missing module'))

    with pytest.warns(PluginWarning, match=r"Failed to load entrypoint 'tests'"):
        registry = FunctionRegistry()

    assert 'cidrhost' not in registry


def test_plugin_strict_load_failure(patch_entrypoints: 'Callable[..., MockType]') -> None:
    """Refuse plugins failing to load in strict mode."""
    patch_entrypoints(NETWORK_PLUGIN, raises=ImportError('missing module'))

    with pytest.raises(PluginError, match='Failed to load') as error:
        FunctionRegistry(strict=True)

    assert isinstance(error.value.__cause__, ImportError)
    assert error.value.entrypoint is not None


def test_skip_plugins(patch_entrypoints: 'Callable[..., MockType]') -> None:
    """Skip discovery when plugins are disabled."""
    entrypoints = patch_entrypoints(NETWORK_PLUGIN)

    registry = FunctionRegistry(load_plugins=False)

    assert 'cidrhost' not in registry
    entrypoints.assert_not_called()
