"""Pytest items for generated scenarios and coverage gaps."""

from typing import TYPE_CHECKING

import pytest

from tfcases.errors import ErrorContext, TfCasesError

if TYPE_CHECKING:
    from typing import Any

    from tfcases.runner import ScenarioResult
    from tfcases.schema import CoverageGap, Scenario
    from tfcases.values import Value


class ScenarioCase(pytest.Item):
    """Pytest item evaluating one scenario in plan mode."""

    __test__ = False

    def __init__(self, *,
                 scenario: 'Scenario',
                 variables: dict[str, 'Value'],
                 **kwargs: 'Any') -> None:
        """Initialize a pytest item backed by a scenario.

        Args:
            scenario: Scenario with its assertions.
            variables: Suite-level variable values.
            **kwargs: Keyword pytest.Item arguments.
        """
        super().__init__(**kwargs)

        self.scenario = scenario
        self.variables = variables

    def runtest(self) -> None:
        """Evaluate the scenario and check every assertion.

        Raises:
            AssertionError: If the run or any assertion fails.
        """
        result = self.parent.get_runner().evaluate(self.scenario, self.variables)  # type: ignore[attr-defined]
        if not result.passed:
            raise self.fail_result(result)

    def fail_result(self, result: 'ScenarioResult') -> AssertionError:
        """Create an AssertionError describing a failed scenario.

        Args:
            result: Outcome reported by the runner.

        Returns:
            AssertionError with formatted context of the first failure.
        """
        if result.status == 'error' or not result.failures:
            message = f'Scenario {result.status}'
            if result.diagnostics:
                message += ': ' + '; '.join(result.diagnostics)
            return AssertionError(TfCasesError.format(message, ErrorContext(
                filename=f'{self.path}',
                scenario=self.scenario.name,
                element={'variables': self.scenario.variables},
            )))

        failure = result.failures[0]
        return AssertionError(TfCasesError.format(
            f'Assertion failed: {failure.explanation or failure.assertion.message}',
            ErrorContext(
                filename=f'{self.path}',
                scenario=self.scenario.name,
                assertion_num=self.scenario.assertions.index(failure.assertion),
                element=failure.assertion.model_dump(exclude={'message'}),
            ),
        ))

    def reportinfo(self) -> 'tuple[Any, int | None, str]':
        """Report location of the item."""
        return self.path, None, f'scenario {self.scenario.name}'


class GapCase(pytest.Item):
    """Pytest item surfacing one coverage gap."""

    __test__ = False

    def __init__(self, *, gap: 'CoverageGap', **kwargs: 'Any') -> None:
        """Initialize a pytest item backed by a coverage gap.

        Args:
            gap: Coverage gap.
            **kwargs: Keyword pytest.Item arguments.
        """
        super().__init__(**kwargs)

        self.gap = gap

    def runtest(self) -> None:
        """Skip acknowledged gaps, fail on the others."""
        if self.gap.acknowledged:
            pytest.skip(f'Acknowledged coverage gap: {self.gap.reason}')

        pytest.fail(f'Coverage gap {self.gap}', pytrace=False)

    def reportinfo(self) -> 'tuple[Any, int | None, str]':
        """Report location of the item."""
        return self.path, None, f'coverage gap {self.gap.target}'
