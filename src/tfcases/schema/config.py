"""Suite configuration document.

A suite configuration (`tfcases.yaml`) sits next to, or points at, a
Terraform module and tunes how its test suite is generated: values for
required inputs, feature areas, additional candidate values, and the
coverage gaps the operator has acknowledged.
"""

from pathlib import Path

from pydantic import Field

from tfcases.models import DescribedMixin, SchemaModel
from tfcases.names import Identifier  # noqa: TC001
from tfcases.values import Value  # noqa: TC001

#: File names collected as suite configurations.
CONFIG_NAMES = ('tfcases.yaml', 'tfcases.yml')


class Hint(SchemaModel):
    """Additional candidate values for one input."""

    input: Identifier = Field(
        title='Input name',
        json_schema_extra={
            'x-ref': 'HintInput',
        },
    )

    values: list[Value] = Field(
        min_length=1,
        title='Candidate values',
        description=(
            'Values tried before generated candidates when driving '
            'branches governed by this input.'
        ),
    )


class SuiteConfig(DescribedMixin, SchemaModel):
    """Suite configuration for one module."""

    source: Path = Field(
        default=Path('.'),
        title='Module source',
        description='Path of the module directory, relative to the configuration file.',
    )

    output: Path = Field(
        default=Path('tests'),
        title='Output directory',
        description='Directory receiving generated test files, relative to the module.',
    )

    name: str = Field(
        default='main',
        pattern=r'^[a-z][a-z0-9_-]*$',
        title='Test file name',
        description='Stem of the generated test file when scenarios are not split by area.',
    )

    variables: dict[Identifier, Value] = Field(
        default_factory=dict,
        title='Suite variables',
        description='Values for inputs without defaults, shared by all scenarios.',
        json_schema_extra={
            'x-ref': 'SuiteVariables',
        },
    )

    areas: dict[Identifier, list[Identifier]] = Field(
        default_factory=dict,
        title='Feature areas',
        description='Feature area names mapped to the inputs they cover.',
    )

    hints: list[Hint] = Field(
        default_factory=list,
        title='Value hints',
    )

    acknowledged: list[str] = Field(
        default_factory=list,
        title='Acknowledged gaps',
        description=(
            'Targets of coverage gaps accepted by the operator. A target '
            'also covers the gaps scoped to single scenarios of it.'
        ),
    )

    combine: bool = Field(
        default=False,
        title='Combine independent branches',
        description='Merge scenarios of branches driven by disjoint inputs.',
    )

    split: bool = Field(
        default=False,
        title='Split by feature area',
        description='Write one test file per feature area.',
    )

    def hint_values(self, name: str) -> list[Value]:
        """Hinted values for an input, in declaration order."""
        return [
            value
            for hint in self.hints
            if hint.input == name
            for value in hint.values
        ]
