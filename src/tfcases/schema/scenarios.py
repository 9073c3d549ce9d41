"""Scenario, assertion and test file records.

Scenarios are authored by the enumerator, receive their assertions from
the synthesizer, are evaluated once by the external collaborator and
then discarded. They are always evaluated in plan mode: the `command`
field admits no other value.
"""

from typing import Literal

from pydantic import Field, model_validator

from tfcases.models import DescribedMixin, SchemaModel
from tfcases.names import Identifier, ScenarioName  # noqa: TC001
from tfcases.values import Value  # noqa: TC001

from .gaps import CoverageGap  # noqa: TC001
from .interface import ModuleInterface  # noqa: TC001

#: The only command a scenario may be evaluated with.
PLAN = 'plan'

type Command = Literal['plan']
type ScenarioKind = Literal['defaults', 'branch', 'edge']


class Assertion(SchemaModel):
    """Predicate over one planned value with its failure explanation."""

    target: str = Field(
        title='Assertion target',
        description='Planned value the predicate inspects, e.g. `output.backup_enabled`.',
    )

    condition: str = Field(
        title='Condition',
        description='HCL condition of the `assert` block.',
    )

    expected: Value = Field(
        title='Expected value',
        description='Value the target is expected to compare against.',
    )

    message: str = Field(
        title='Failure explanation',
        description=(
            'Explanation shown on failure, stating the expected condition '
            'and the governing inputs that produced it.'
        ),
    )


class Scenario(DescribedMixin, SchemaModel):
    """Concrete set of input values exercising one behavior of a module."""

    name: ScenarioName

    kind: ScenarioKind

    area: str = Field(
        default='defaults',
        title='Feature area',
        description='Feature area the scenario belongs to; scenarios are grouped into test files by area.',
    )

    variables: dict[Identifier, Value] = Field(
        default_factory=dict,
        title='Variable overrides',
        description='Input values set by this scenario on top of the suite defaults.',
    )

    focus: tuple[str, ...] = Field(
        default=(),
        title='Governing inputs',
        description='Inputs whose values this scenario is about.',
    )

    command: Command = Field(
        default=PLAN,
        title='Evaluation command',
        description='Always `plan`: scenarios never provision resources.',
    )

    assertions: tuple[Assertion, ...] = ()

    @model_validator(mode='after')
    def check_focus(self) -> 'Scenario':
        """Check that every overridden input is governed by the scenario.

        Raises:
            ValueError: If an override is missing from the focus.
        """
        missing = [name for name in self.variables if name not in self.focus]
        if missing:
            raise ValueError(f'Overridden inputs missing from focus: {", ".join(missing)}')

        return self


class TestFile(SchemaModel):
    """Named grouping of shared variable values and ordered scenarios."""

    __test__ = False

    name: str = Field(
        pattern=r'^[a-z][a-z0-9_-]*$',
        title='File name',
        description='Stem of the `.tftest.hcl` file.',
    )

    variables: dict[Identifier, Value] = Field(
        default_factory=dict,
        title='Shared variables',
        description='File-level variable values shared by every scenario.',
    )

    scenarios: tuple[Scenario, ...] = ()

    @model_validator(mode='after')
    def check_unique_names(self) -> 'TestFile':
        """Check that scenario names are unique within the file.

        Raises:
            ValueError: If two scenarios share a name.
        """
        names = [scenario.name for scenario in self.scenarios]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f'Duplicate scenario names: {", ".join(duplicates)}')

        return self

    @property
    def filename(self) -> str:
        """File name of the rendered test file."""
        return f'{self.name}.tftest.hcl'


class Suite(SchemaModel):
    """Result of the workflow for one module."""

    interface: ModuleInterface

    test_files: tuple[TestFile, ...] = ()

    gaps: tuple[CoverageGap, ...] = ()

    @property
    def scenarios(self) -> tuple[Scenario, ...]:
        """All scenarios, in file order."""
        return tuple(
            scenario
            for test_file in self.test_files
            for scenario in test_file.scenarios
        )

    @property
    def unacknowledged(self) -> tuple[CoverageGap, ...]:
        """Gaps the operator has not accepted."""
        return tuple(gap for gap in self.gaps if not gap.acknowledged)
