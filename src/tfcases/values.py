"""Core value definitions for Terraform data.

This module defines the value model shared by the expression evaluator,
the enumerator and the renderer. Terraform values map onto plain Python
data: strings, numbers, booleans, `None` for `null`, lists for tuples,
lists and sets, and string-keyed dicts for maps and objects.

Values that Terraform only learns after resources are created are
represented by the `UNKNOWN` sentinel.
"""

from collections.abc import Mapping, Sequence
from json import dumps
from re import ASCII
from re import compile as regexp
from typing import Any, Final

#: A scalar is an atomic Terraform value.
type Scalar = str | int | float | bool

#: A fully known Terraform value.
type Value = Scalar | Sequence[Value] | Mapping[str, Value] | None

#: Any Python object prior to normalization.
type RuntimeValue = Any

MAPPINGS = (dict,)
SCALARS = (str, int, float, bool)
SEQUENCES = (list, tuple, set, frozenset)

_BARE_KEY = regexp(r'^[a-zA-Z_][\w-]*$', flags=ASCII)


class Unknown:
    """Sentinel for values known only after apply."""

    _instance: 'Unknown | None' = None

    def __new__(cls) -> 'Unknown':
        """Return the shared sentinel instance."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        """String representation."""
        return '(known after apply)'

    def __bool__(self) -> bool:
        """Unknown values are never truthy."""
        return False


#: Shared unknown value.
UNKNOWN: Final = Unknown()


def is_unknown(value: RuntimeValue) -> bool:
    """Check whether a value is, or contains, an unknown value."""
    if value is UNKNOWN:
        return True

    if isinstance(value, MAPPINGS):
        return any(is_unknown(item) for item in value.values())

    if isinstance(value, SEQUENCES) and not isinstance(value, str):
        return any(is_unknown(item) for item in value)

    return False


def is_number(value: RuntimeValue) -> bool:
    """Check whether a value is a Terraform number."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_collection(value: RuntimeValue) -> bool:
    """Check whether a value is a Terraform collection or structure."""
    return isinstance(value, (*MAPPINGS, *SEQUENCES)) and not isinstance(value, str)


def _normalize_key(value: RuntimeValue) -> str:
    """Validate and normalize a mapping key.

    Raises:
        TypeError: If the provided key is not a string.
    """
    if not isinstance(value, str):
        raise TypeError(f'Can not use {value!r} as mapping key')

    return value


def normalize(value: RuntimeValue) -> Value:
    """Recursively normalize a runtime value into a Terraform `Value`.

    Sequences of any kind become lists, mappings become dicts with
    string keys, whole floats stay floats.

    Args:
        value: Runtime value to normalize.

    Returns:
        A fully normalized value.

    Raises:
        TypeError: If the value type is unsupported.
    """
    if value is None or isinstance(value, SCALARS):
        return value

    if isinstance(value, MAPPINGS):
        return {
            _normalize_key(key): normalize(item)
            for key, item in value.items()
        }

    if isinstance(value, (set, frozenset)):
        return sorted((normalize(item) for item in value), key=sort_key)

    if isinstance(value, SEQUENCES):
        return [normalize(item) for item in value]

    raise TypeError(f'{value!r} has unsupported type')


def sort_key(value: RuntimeValue) -> tuple[int, str]:
    """Stable ordering key for heterogeneous values."""
    if isinstance(value, bool):
        return 0, str(value)
    if is_number(value):
        return 1, f'{value:020.6f}'
    if isinstance(value, str):
        return 2, value
    return 3, dumps(value, sort_keys=True, default=repr)


def to_hcl(value: RuntimeValue, indent: int = 0) -> str:
    """Render a value as an HCL literal.

    Args:
        value: Known value to render.
        indent: Indentation level of the enclosing block, in spaces.

    Returns:
        HCL source text for the value.

    Raises:
        TypeError: If the value is unknown or unsupported.
    """
    if value is None:
        return 'null'

    if isinstance(value, bool):
        return 'true' if value else 'false'

    if is_number(value):
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return repr(value)

    if isinstance(value, str):
        return quote(value)

    if isinstance(value, MAPPINGS):
        if not value:
            return '{}'
        padding = ' ' * (indent + 2)
        width = max(len(render_key(key)) for key in value)
        lines = [
            f'{padding}{render_key(key).ljust(width)} = {to_hcl(item, indent + 2)}'
            for key, item in value.items()
        ]
        return '{\n' + '\n'.join(lines) + '\n' + ' ' * indent + '}'

    if isinstance(value, SEQUENCES):
        return '[' + ', '.join(to_hcl(item, indent) for item in value) + ']'

    raise TypeError(f'{value!r} can not be rendered as HCL')


def render_key(key: str) -> str:
    """Render an object key, quoting it when required."""
    if _BARE_KEY.match(key):
        return key
    return quote(key)


def quote(text: str) -> str:
    """Render a string as a quoted HCL string literal.

    Template sequences are escaped so that the literal is never
    interpolated by Terraform.
    """
    escaped = (
        text.replace('\\', '\\\\')
        .replace('"', '\\"')
        .replace('\n', '\\n')
        .replace('\r', '\\r')
        .replace('\t', '\\t')
        .replace('${', '$${')
        .replace('%{', '%%{')
    )

    return f'"{escaped}"'


def describe(value: RuntimeValue) -> str:
    """Short human-readable rendering of a value for messages."""
    if value is UNKNOWN:
        return repr(value)

    if isinstance(value, MAPPINGS):
        return f'a map with {len(value)} entries' if value else 'an empty map'

    if isinstance(value, SEQUENCES):
        return f'a list with {len(value)} entries' if value else 'an empty list'

    return to_hcl(value)
