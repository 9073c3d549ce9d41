"""Identifier types and validation rules.

This module defines the name patterns used for Terraform identifiers
(variables, outputs, locals, resource names) and for generated scenario
names, together with helpers that turn arbitrary text into valid,
descriptive identifiers.

Generated scenario names become `run` block labels in Terraform test
files, so they must satisfy the Terraform identifier grammar.
"""

from re import sub
from typing import Annotated

from pydantic import Field

#: Base pattern for Terraform identifiers.
_NAME_PATTERN = r'[a-zA-Z_][\w-]*'

#: Maximum length of a generated scenario name.
MAX_NAME_LENGTH = 64


Identifier = Annotated[
    str, Field(
        pattern=rf'^{_NAME_PATTERN}$',
        title='Identifier',
        description=(
            'Terraform identifier. Must start with a letter or underscore '
            'and may contain letters, digits, underscores and dashes. '
            'Identifiers are restricted to ASCII characters.'
        ),
        examples=[
            'environment',
            'access_list_ips',
        ],
    ),
]

ScenarioName = Annotated[
    str, Field(
        pattern=r'^[a-z][a-z0-9_]*$',
        max_length=MAX_NAME_LENGTH,
        title='Scenario name',
        description=(
            'Unique name of a scenario, used as the `run` block label. '
            'Lower-case snake case describing the intent of the scenario.'
        ),
        examples=[
            'defaults',
            'backup_enabled_true',
            'access_list_ips_populated',
        ],
    ),
]


def slugify(*parts: object) -> str:
    """Build a scenario-name compatible slug from text fragments.

    Args:
        *parts: Fragments joined with underscores.

    Returns:
        A lower-case snake case identifier, never empty.
    """
    text = '_'.join(str(part) for part in parts if part not in (None, ''))
    slug = sub(r'[^a-z0-9]+', '_', text.lower()).strip('_')

    if not slug:
        slug = 'scenario'
    if not slug[0].isalpha():
        slug = f's_{slug}'

    return slug[:MAX_NAME_LENGTH].rstrip('_')


def unique_name(name: str, taken: set[str]) -> str:
    """Return `name` or a numbered variant not present in `taken`.

    The chosen name is added to `taken`.
    """
    candidate, index = name, 2
    while candidate in taken:
        suffix = f'_{index}'
        candidate = f'{name[:MAX_NAME_LENGTH - len(suffix)]}{suffix}'
        index += 1

    taken.add(candidate)

    return candidate
