"""Coverage gap records."""

from typing import Literal

from pydantic import Field

from tfcases.models import SchemaModel

type GapKind = Literal['output', 'branch', 'input', 'resource']


class CoverageGap(SchemaModel):
    """Behavior of the module that plan-only tests can not assert on.

    Gaps are surfaced to the operator for manual acknowledgment and are
    never dropped from results, even when acknowledged.
    """

    kind: GapKind

    target: str = Field(
        title='Gap target',
        description=(
            'Address of the output, branch, input or resource concerned, '
            'suffixed with `@<scenario>` when only that scenario is affected.'
        ),
    )

    reason: str = Field(
        title='Reason',
        description='Why the target can not be asserted on.',
    )

    acknowledged: bool = Field(
        default=False,
        title='Acknowledged flag',
        description='Whether the operator accepted this gap in the suite configuration.',
    )

    @property
    def origin(self) -> str:
        """Target without the scenario a gap is scoped to, if any."""
        return self.target.partition('@')[0]

    def __str__(self) -> str:
        """String representation."""
        mark = ' (acknowledged)' if self.acknowledged else ''
        return f'{self.target}: {self.reason}{mark}'
