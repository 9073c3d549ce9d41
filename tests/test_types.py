"""Tests for type constraints and value rendering."""

import pytest

from tfcases.schema.types import ANY, TypeSpec, infer_type, parse_type
from tfcases.values import UNKNOWN, describe, normalize, quote, to_hcl

STRING = TypeSpec(kind='string')
NUMBER = TypeSpec(kind='number')


@pytest.mark.parametrize('source, expect_text', (
    pytest.param('string', 'string', id='string'),
    pytest.param('number', 'number', id='number'),
    pytest.param('list(string)', 'list(string)', id='list'),
    pytest.param('map(list(number))', 'map(list(number))', id='nested'),
    pytest.param('tuple([string, bool])', 'tuple([string, bool])', id='tuple'),
    pytest.param(
        'object({name = string, size = optional(number)})',
        'object({name = string, size = optional(number)})',
        id='object with optional attribute',
    ),
    pytest.param('list(any)', 'list(any)', id='list of any'),
))
def test_parse_type(source: str, expect_text: str) -> None:
    """Resolve type constraints and render them back."""
    assert str(parse_type(source)) == expect_text


@pytest.mark.parametrize('source', (
    'string(1)',
    'object(var.attributes)',
    'map(string, number)',
    'custom',
    '"string',
))
def test_parse_type_unknown(source: str) -> None:
    """Mark unresolvable type constraints as unknown."""
    assert parse_type(source).kind == 'unknown'


def test_parse_type_missing() -> None:
    """Treat an undeclared type constraint as `any`."""
    assert parse_type(None) == ANY


@pytest.mark.parametrize('value, expect_text', (
    pytest.param(True, 'bool', id='bool'),
    pytest.param(3, 'number', id='integer'),
    pytest.param(1.5, 'number', id='float'),
    pytest.param('dev', 'string', id='string'),
    pytest.param(['a', 'b'], 'list(string)', id='list'),
    pytest.param([], 'list(any)', id='empty list'),
    pytest.param({}, 'map(any)', id='empty map'),
    pytest.param({'a': 1, 'b': 2}, 'map(number)', id='map'),
    pytest.param({'a': 1, 'b': 'x'}, 'object({a = number, b = string})', id='object'),
    pytest.param(None, 'any', id='null'),
))
def test_infer_type(value: object, expect_text: str) -> None:
    """Infer types from default values."""
    assert str(infer_type(value)) == expect_text


@pytest.mark.parametrize('source, expect_sample', (
    pytest.param('string', 'example', id='string'),
    pytest.param('number', 1, id='number'),
    pytest.param('bool', True, id='bool'),
    pytest.param('list(string)', ['example'], id='list'),
    pytest.param('map(number)', {'key1': 1}, id='map'),
    pytest.param('tuple([string, number])', ['example', 1], id='tuple'),
    pytest.param(
        'object({name = string, size = optional(number)})',
        {'name': 'example'},
        id='object skips optional attributes',
    ),
))
def test_sample(source: str, expect_sample: object) -> None:
    """Build representative values of a type."""
    assert parse_type(source).sample() == expect_sample


def test_sample_seed() -> None:
    """Vary samples with the seed."""
    assert STRING.sample(2) == 'example-2'
    assert NUMBER.sample(3) == 3
    assert TypeSpec(kind='bool').sample(2) is False


def test_sample_unknown() -> None:
    """Refuse to sample values of unknown type."""
    with pytest.raises(ValueError, match='unknown type'):
        parse_type('custom').sample()


@pytest.mark.parametrize('source, expect_empty, expect_populated', (
    pytest.param('list(string)', [], ['example', 'example-2'], id='list'),
    pytest.param('set(number)', [], [1, 2], id='set'),
    pytest.param('map(string)', {}, {'key1': 'example', 'key2': 'example-2'}, id='map'),
))
def test_collections(source: str, expect_empty: object, expect_populated: object) -> None:
    """Build empty and populated values of collection types."""
    spec = parse_type(source)

    assert spec.is_variable_length
    assert spec.empty() == expect_empty
    assert spec.populated() == expect_populated


@pytest.mark.parametrize('source', (
    'string',
    'tuple([string])',
    'object({name = string})',
))
def test_collections_fixed(source: str) -> None:
    """Refuse empty and populated values of fixed-shape types."""
    spec = parse_type(source)

    assert not spec.is_variable_length

    with pytest.raises(ValueError):
        spec.empty()

    with pytest.raises(ValueError):
        spec.populated()


@pytest.mark.parametrize('value, expect_text', (
    pytest.param(None, 'null', id='null'),
    pytest.param(False, 'false', id='bool'),
    pytest.param(3.0, '3', id='whole float'),
    pytest.param(0.25, '0.25', id='float'),
    pytest.param('a "b"', '"a \\"b\\""', id='quotes'),
    pytest.param('${var.x}', '"$${var.x}"', id='template escape'),
    pytest.param(['a', 1], '["a", 1]', id='list'),
    pytest.param({}, '{}', id='empty map'),
    pytest.param(
        {'a': 1, 'bb': 'x'},
        '{\n  a  = 1\n  bb = "x"\n}',
        id='map',
    ),
    pytest.param(
        {'with space': True, 'long-key': 1},
        '{\n  "with space" = true\n  long-key     = 1\n}',
        id='quoted keys',
    ),
))
def test_to_hcl(value: object, expect_text: str) -> None:
    """Render values as HCL literals."""
    assert to_hcl(value) == expect_text


def test_to_hcl_unknown() -> None:
    """Refuse to render unknown values."""
    with pytest.raises(TypeError):
        to_hcl(UNKNOWN)


@pytest.mark.parametrize('text, expect_text', (
    pytest.param('plain', '"plain"', id='plain'),
    pytest.param('back\\slash', '"back\\\\slash"', id='backslash'),
    pytest.param('line\nbreak', '"line\\nbreak"', id='newline'),
    pytest.param('%{ if }', '"%%{ if }"', id='directive'),
))
def test_quote(text: str, expect_text: str) -> None:
    """Quote strings as HCL literals."""
    assert quote(text) == expect_text


@pytest.mark.parametrize('value, expect_text', (
    pytest.param('prod', '"prod"', id='string'),
    pytest.param([], 'an empty list', id='empty list'),
    pytest.param({'a': 1, 'b': 2}, 'a map with 2 entries', id='map'),
    pytest.param(UNKNOWN, '(known after apply)', id='unknown'),
))
def test_describe(value: object, expect_text: str) -> None:
    """Describe values in messages."""
    assert describe(value) == expect_text


def test_normalize() -> None:
    """Normalize runtime values into Terraform values."""
    assert normalize({'a': (1, 2), 'b': {'c', 'a'}}) == {'a': [1, 2], 'b': ['a', 'c']}

    with pytest.raises(TypeError):
        normalize({1: 'a'})
