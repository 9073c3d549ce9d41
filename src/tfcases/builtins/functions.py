"""Built-in Terraform functions for the expression evaluator.

This module implements the subset of the Terraform standard library
most commonly found in module locals and outputs: collection helpers,
string helpers, numeric helpers and type conversions.

Functions receive evaluated arguments and raise `ExpressionError` when
Terraform would report an invalid function argument.
"""

from json import dumps
from math import ceil, floor
from re import sub
from typing import TYPE_CHECKING

from tfcases.errors import ExpressionError, UnsupportedExpression
from tfcases.extensions import Function
from tfcases.values import UNKNOWN, is_collection, is_number, sort_key

if TYPE_CHECKING:
    from tfcases.values import RuntimeValue


def _ensure_list(value: 'RuntimeValue', name: str) -> list['RuntimeValue']:
    """Require a list, tuple or set argument."""
    if not isinstance(value, (list, tuple, set, frozenset)):
        raise ExpressionError(f'{name}: expected a list, got {type(value).__name__}')
    return list(value)


def _ensure_map(value: 'RuntimeValue', name: str) -> dict[str, 'RuntimeValue']:
    """Require a map or object argument."""
    if not isinstance(value, dict):
        raise ExpressionError(f'{name}: expected a map, got {type(value).__name__}')
    return value


def _ensure_string(value: 'RuntimeValue', name: str) -> str:
    """Require a string, converting numbers and booleans like Terraform."""
    if isinstance(value, str):
        return value
    if value is None or is_collection(value):
        raise ExpressionError(f'{name}: expected a string')
    return to_string(value)


def to_string(value: 'RuntimeValue') -> str:
    """Convert a primitive value to its Terraform string form."""
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if is_number(value) or isinstance(value, str):
        return str(value)
    raise ExpressionError(f'Can not convert {type(value).__name__} to string')


def to_number(value: 'RuntimeValue') -> int | float:
    """Convert a value to a Terraform number."""
    if is_number(value):
        return value
    if isinstance(value, str):
        try:
            number = float(value)
        except ValueError as base:
            raise ExpressionError(f'Can not convert {value!r} to number') from base
        return int(number) if number.is_integer() and '.' not in value else number
    raise ExpressionError(f'Can not convert {type(value).__name__} to number')


def to_bool(value: 'RuntimeValue') -> bool:
    """Convert a value to a Terraform boolean."""
    if isinstance(value, bool):
        return value
    if value in ('true', 'false'):
        return value == 'true'
    raise ExpressionError(f'Can not convert {value!r} to bool')


def _length(value: 'RuntimeValue') -> 'RuntimeValue':
    if value is UNKNOWN:
        return UNKNOWN
    if isinstance(value, str) or is_collection(value):
        return len(value)
    raise ExpressionError('length: argument must be a string, collection or structure')


def _merge(*maps: 'RuntimeValue') -> 'RuntimeValue':
    if any(item is UNKNOWN for item in maps):
        return UNKNOWN
    merged: dict[str, RuntimeValue] = {}
    for item in maps:
        if item is not None:
            merged.update(_ensure_map(item, 'merge'))
    return merged


def _concat(*lists: 'RuntimeValue') -> 'RuntimeValue':
    if any(item is UNKNOWN for item in lists):
        return UNKNOWN
    return [value for item in lists for value in _ensure_list(item, 'concat')]


def _keys(value: 'RuntimeValue') -> 'RuntimeValue':
    if value is UNKNOWN:
        return UNKNOWN
    return sorted(_ensure_map(value, 'keys'))


def _values(value: 'RuntimeValue') -> list['RuntimeValue']:
    mapping = _ensure_map(value, 'values')
    return [mapping[key] for key in sorted(mapping)]


def _lookup(mapping: 'RuntimeValue', key: 'RuntimeValue', *default: 'RuntimeValue') -> 'RuntimeValue':
    mapping = _ensure_map(mapping, 'lookup')
    if key in mapping:
        return mapping[key]
    if default:
        return default[0]
    raise ExpressionError(f'lookup: the given key {key!r} does not exist')


def _coalesce(*values: 'RuntimeValue') -> 'RuntimeValue':
    for value in values:
        if value is not None and value != '':
            return value
    raise ExpressionError('coalesce: no non-null, non-empty-string arguments')


def _coalescelist(*values: 'RuntimeValue') -> 'RuntimeValue':
    for value in values:
        if _ensure_list(value, 'coalescelist'):
            return list(value)
    return []


def _distinct(value: 'RuntimeValue') -> list['RuntimeValue']:
    result: list[RuntimeValue] = []
    for item in _ensure_list(value, 'distinct'):
        if item not in result:
            result.append(item)
    return result


def _flatten(value: 'RuntimeValue') -> list['RuntimeValue']:
    result: list[RuntimeValue] = []
    for item in _ensure_list(value, 'flatten'):
        if isinstance(item, (list, tuple, set, frozenset)):
            result.extend(_flatten(item))
        else:
            result.append(item)
    return result


def _compact(value: 'RuntimeValue') -> list['RuntimeValue']:
    return [item for item in _ensure_list(value, 'compact') if item not in (None, '')]


def _toset(value: 'RuntimeValue') -> list['RuntimeValue']:
    return sorted(_distinct(value), key=sort_key)


def _tolist(value: 'RuntimeValue') -> list['RuntimeValue']:
    return _ensure_list(value, 'tolist')


def _tomap(value: 'RuntimeValue') -> dict[str, 'RuntimeValue']:
    return dict(_ensure_map(value, 'tomap'))


def _element(value: 'RuntimeValue', index: 'RuntimeValue') -> 'RuntimeValue':
    items = _ensure_list(value, 'element')
    if not items:
        raise ExpressionError('element: can not use element function with an empty list')
    return items[int(to_number(index)) % len(items)]


def _one(value: 'RuntimeValue') -> 'RuntimeValue':
    items = _ensure_list(value, 'one')
    if len(items) > 1:
        raise ExpressionError('one: must be a list, set, or tuple value with either zero or one elements')
    return items[0] if items else None


def _range(*args: 'RuntimeValue') -> list[int | float]:
    numbers = [to_number(arg) for arg in args]
    start, step = 0, 1
    if len(numbers) == 1:
        (stop,) = numbers
    elif len(numbers) == 2:  # noqa: PLR2004
        start, stop = numbers
    else:
        start, stop, step = numbers
    if step == 0:
        raise ExpressionError('range: step must not be zero')
    result = []
    current = start
    while (step > 0 and current < stop) or (step < 0 and current > stop):
        result.append(current)
        current += step
    return result


def _zipmap(keys: 'RuntimeValue', values: 'RuntimeValue') -> dict[str, 'RuntimeValue']:
    keys, values = _ensure_list(keys, 'zipmap'), _ensure_list(values, 'zipmap')
    if len(keys) != len(values):
        raise ExpressionError('zipmap: number of keys and values must match')
    return {_ensure_string(key, 'zipmap'): value for key, value in zip(keys, values, strict=True)}


def _format(template: 'RuntimeValue', *args: 'RuntimeValue') -> str:
    template = _ensure_string(template, 'format')
    result, index, position = '', 0, 0
    while position < len(template):
        char = template[position]
        if char != '%':
            result += char
            position += 1
            continue
        verb = template[position + 1:position + 2]
        position += 2
        if verb == '%':
            result += '%'
            continue
        if verb not in ('s', 'd', 'v', 'q'):
            raise UnsupportedExpression(f'format: verb %{verb} is not supported')
        if index >= len(args):
            raise ExpressionError('format: not enough arguments')
        value = args[index]
        index += 1
        if verb == 'd':
            result += str(int(to_number(value)))
        elif verb == 'q':
            result += dumps(_ensure_string(value, 'format'))
        else:
            result += _ensure_string(value, 'format')
    return result


def _replace(text: 'RuntimeValue', search: 'RuntimeValue', replacement: 'RuntimeValue') -> str:
    text = _ensure_string(text, 'replace')
    search = _ensure_string(search, 'replace')
    replacement = _ensure_string(replacement, 'replace')
    if len(search) > 1 and search.startswith('/') and search.endswith('/'):
        return sub(search[1:-1], sub(r'\$(\d+)', r'\\\1', replacement), text)
    return text.replace(search, replacement)


def _substr(text: 'RuntimeValue', offset: 'RuntimeValue', length: 'RuntimeValue') -> str:
    text = _ensure_string(text, 'substr')
    offset, length = int(to_number(offset)), int(to_number(length))
    if offset < 0:
        offset += len(text)
    return text[offset:] if length < 0 else text[offset:offset + length]


def _numbers(values: tuple['RuntimeValue', ...], name: str) -> list[int | float]:
    if not values:
        raise ExpressionError(f'{name}: at least one argument is required')
    return [to_number(value) for value in values]


def _sum(value: 'RuntimeValue') -> int | float:
    items = _ensure_list(value, 'sum')
    if not items:
        raise ExpressionError('sum: can not sum an empty list')
    return sum(to_number(item) for item in items)


def _alltrue(value: 'RuntimeValue') -> bool:
    return all(to_bool(item) for item in _ensure_list(value, 'alltrue'))


def _anytrue(value: 'RuntimeValue') -> bool:
    return any(to_bool(item) for item in _ensure_list(value, 'anytrue'))


def _contains(collection: 'RuntimeValue', value: 'RuntimeValue') -> bool:
    return value in _ensure_list(collection, 'contains')


def _join(separator: 'RuntimeValue', *lists: 'RuntimeValue') -> str:
    separator = _ensure_string(separator, 'join')
    return separator.join(
        _ensure_string(item, 'join')
        for value in lists
        for item in _ensure_list(value, 'join')
    )


def _split(separator: 'RuntimeValue', text: 'RuntimeValue') -> list[str]:
    return _ensure_string(text, 'split').split(_ensure_string(separator, 'split'))


def _jsonencode(value: 'RuntimeValue') -> str:
    return dumps(value, separators=(',', ':'), sort_keys=True)


length = Function(name='length', function=_length, min_args=1, max_args=1, allow_unknown=True)
merge = Function(name='merge', function=_merge, allow_unknown=True)
concat = Function(name='concat', function=_concat, allow_unknown=True)
keys = Function(name='keys', function=_keys, min_args=1, max_args=1, allow_unknown=True)
values = Function(name='values', function=_values, min_args=1, max_args=1)
lookup = Function(name='lookup', function=_lookup, min_args=2, max_args=3)
contains = Function(name='contains', function=_contains, min_args=2, max_args=2)
coalesce = Function(name='coalesce', function=_coalesce, min_args=1)
coalescelist = Function(name='coalescelist', function=_coalescelist, min_args=1)
distinct = Function(name='distinct', function=_distinct, min_args=1, max_args=1)
flatten = Function(name='flatten', function=_flatten, min_args=1, max_args=1)
compact = Function(name='compact', function=_compact, min_args=1, max_args=1)
element = Function(name='element', function=_element, min_args=2, max_args=2)
one = Function(name='one', function=_one, min_args=1, max_args=1)
range_ = Function(name='range', function=_range, min_args=1, max_args=3)
zipmap = Function(name='zipmap', function=_zipmap, min_args=2, max_args=2)
alltrue = Function(name='alltrue', function=_alltrue, min_args=1, max_args=1)
anytrue = Function(name='anytrue', function=_anytrue, min_args=1, max_args=1)
sum_ = Function(name='sum', function=_sum, min_args=1, max_args=1)
max_ = Function(name='max', function=lambda *args: max(_numbers(args, 'max')), min_args=1)
min_ = Function(name='min', function=lambda *args: min(_numbers(args, 'min')), min_args=1)
abs_ = Function(name='abs', function=lambda value: abs(to_number(value)), min_args=1, max_args=1)
ceil_ = Function(name='ceil', function=lambda value: ceil(to_number(value)), min_args=1, max_args=1)
floor_ = Function(name='floor', function=lambda value: floor(to_number(value)), min_args=1, max_args=1)

lower = Function(
    name='lower',
    function=lambda value: _ensure_string(value, 'lower').lower(),
    min_args=1,
    max_args=1,
)
upper = Function(
    name='upper',
    function=lambda value: _ensure_string(value, 'upper').upper(),
    min_args=1,
    max_args=1,
)
trimspace = Function(
    name='trimspace',
    function=lambda value: _ensure_string(value, 'trimspace').strip(),
    min_args=1,
    max_args=1,
)
startswith = Function(
    name='startswith',
    function=lambda value, prefix: _ensure_string(value, 'startswith').startswith(prefix),
    min_args=2,
    max_args=2,
)
endswith = Function(
    name='endswith',
    function=lambda value, suffix: _ensure_string(value, 'endswith').endswith(suffix),
    min_args=2,
    max_args=2,
)
join = Function(name='join', function=_join, min_args=2)
split = Function(name='split', function=_split, min_args=2, max_args=2)
format_ = Function(name='format', function=_format, min_args=1)
replace = Function(name='replace', function=_replace, min_args=3, max_args=3)
substr = Function(name='substr', function=_substr, min_args=3, max_args=3)
jsonencode = Function(name='jsonencode', function=_jsonencode, min_args=1, max_args=1)

tostring = Function(
    name='tostring',
    function=lambda value: None if value is None else _ensure_string(value, 'tostring'),
    min_args=1,
    max_args=1,
)
tonumber = Function(
    name='tonumber',
    function=lambda value: None if value is None else to_number(value),
    min_args=1,
    max_args=1,
)
tobool = Function(
    name='tobool',
    function=lambda value: None if value is None else to_bool(value),
    min_args=1,
    max_args=1,
)
tolist = Function(name='tolist', function=_tolist, min_args=1, max_args=1)
toset = Function(name='toset', function=_toset, min_args=1, max_args=1)
tomap = Function(name='tomap', function=_tomap, min_args=1, max_args=1)

#: All built-in functions in registration order.
BUILTINS = (
    length, merge, concat, keys, values, lookup, contains, coalesce,
    coalescelist, distinct, flatten, compact, element, one, range_,
    zipmap, alltrue, anytrue, sum_, max_, min_, abs_, ceil_, floor_,
    lower, upper, trimspace, startswith, endswith, join, split,
    format_, replace, substr, jsonencode, tostring, tonumber, tobool,
    tolist, toset, tomap,
)
