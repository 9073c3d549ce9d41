"""Assertion synthesis for enumerated scenarios.

For every scenario the synthesizer evaluates the outputs governed by the
scenario's inputs under the scenario's effective values, and turns each
planned value into an `assert` predicate: scalars are compared directly,
collections by their length, nulls against `null`.

Outputs that reference values known only after apply, or that leave the
supported expression subset, can not be asserted on in plan mode. They
are reported once each as coverage gaps. An output failing to evaluate
under one scenario is reported as a gap scoped to that scenario, with a
`<target>@<scenario>` target.
"""

import logging
from typing import TYPE_CHECKING

from tfcases.errors import ExpressionError, UnsupportedExpression
from tfcases.expressions import Evaluator
from tfcases.schema import Assertion, CoverageGap
from tfcases.values import describe, is_collection, is_unknown, normalize, to_hcl

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from tfcases.expressions import Node
    from tfcases.extensions import Function
    from tfcases.schema import Dependent, ModuleInterface, Scenario
    from tfcases.schema.gaps import GapKind
    from tfcases.values import RuntimeValue, Value

#: Marker for values that can not be asserted on.
_SKIP = object()

logger = logging.getLogger(__name__)


def acknowledge(gaps: 'Iterable[CoverageGap]', targets: 'Iterable[str]') -> tuple[CoverageGap, ...]:
    """Flag the gaps whose target the operator has acknowledged.

    Gaps are never dropped, acknowledged or not.
    """
    targets = set(targets)
    return tuple(
        gap.model_copy(update={'acknowledged': True}) if {gap.target, gap.origin} & targets else gap
        for gap in gaps
    )


def effective_values(interface: 'ModuleInterface',
                     variables: 'Mapping[str, Value]',
                     scenario: 'Scenario') -> dict[str, 'Value']:
    """Resolve the value of every input under a scenario.

    Scenario overrides win over suite variables, which win over the
    declared defaults.
    """
    values: dict[str, Value] = {}
    for item in interface.inputs:
        if item.name in scenario.variables:
            values[item.name] = scenario.variables[item.name]
        elif item.name in variables:
            values[item.name] = variables[item.name]
        else:
            values[item.name] = item.default

    return values


def describe_inputs(scenario: 'Scenario') -> str:
    """Describe the governing input values of a scenario."""
    if not scenario.variables:
        return 'all inputs use their defaults'

    return ', '.join(
        f'{name} = {describe(value)}'
        for name, value in scenario.variables.items()
    )


class AssertionSynthesizer:
    """Derives plan-time assertions for scenarios.

    Synthesis is deterministic: the same interface and scenarios always
    yield the same assertions, in the same order.
    """

    def __init__(self, functions: 'Mapping[str, Function]',
                 acknowledged: 'Iterable[str]' = ()) -> None:
        """Initialize the synthesizer.

        Args:
            functions: Function definitions used to evaluate outputs.
            acknowledged: Gap targets accepted by the operator.
        """
        self.functions = functions
        self.acknowledged = tuple(acknowledged)

    def synthesize(self, interface: 'ModuleInterface',
                   scenarios: 'Iterable[Scenario]',
                   variables: 'Mapping[str, Value] | None' = None) -> tuple[
        tuple['Scenario', ...],
        tuple[CoverageGap, ...],
    ]:
        """Attach assertions to scenarios.

        Args:
            interface: Module interface.
            scenarios: Enumerated scenarios.
            variables: Suite-level variable values.

        Returns:
            Scenarios with their assertions and the output or resource
            gaps found, each target reported once.
        """
        variables = variables or {}
        locals_ = interface.local_nodes()
        gaps: dict[str, CoverageGap] = {}
        result: list[Scenario] = []

        for scenario in scenarios:
            values = effective_values(interface, variables, scenario)
            evaluator = Evaluator(self.functions, values, locals_, module_path=interface.path)
            assertions = [
                *self._outputs(interface, scenario, evaluator, gaps),
                *self._resources(interface, scenario, evaluator, gaps),
            ]
            result.append(scenario.model_copy(update={'assertions': tuple(assertions)}))

        logger.info(
            'Synthesized %d assertions over %d scenarios',
            sum(len(scenario.assertions) for scenario in result), len(result),
        )

        return tuple(result), acknowledge(gaps.values(), self.acknowledged)

    def assertion(self, target: str, value: 'Value', scenario: 'Scenario') -> Assertion:
        """Build the predicate asserting a planned value.

        Args:
            target: Reference to the planned value, e.g. `output.name`.
            value: Value the target takes in the scenario.
            scenario: Scenario the assertion belongs to.

        Returns:
            Assertion with its condition and failure explanation.
        """
        if value is None:
            subject, expected = target, None
        elif is_collection(value):
            subject, expected = f'length({target})', len(value)
        else:
            subject, expected = target, value

        return Assertion(
            target=subject,
            condition=f'{subject} == {to_hcl(expected)}',
            expected=expected,
            message=f'{subject} should equal {to_hcl(expected)} when {describe_inputs(scenario)}',
        )

    def _outputs(self, interface: 'ModuleInterface', scenario: 'Scenario',
                 evaluator: Evaluator, gaps: dict[str, CoverageGap]) -> list[Assertion]:
        """Assertions over the outputs of interest of a scenario."""
        assertions: list[Assertion] = []

        for output in interface.outputs:
            if not self._of_interest(output, scenario):
                continue
            value = self._plan(output, output.address, 'output', scenario, evaluator, gaps)
            if value is not _SKIP:
                assertions.append(self.assertion(output.address, value, scenario))

        return assertions

    def _resources(self, interface: 'ModuleInterface', scenario: 'Scenario',
                   evaluator: Evaluator, gaps: dict[str, CoverageGap]) -> list[Assertion]:
        """Assertions over the instance counts of gated resources."""
        assertions: list[Assertion] = []

        for resource in interface.resources:
            gate = resource.count or resource.for_each
            if gate is None or not gate.inputs or not self._of_interest(gate, scenario):
                continue
            value = self._plan(gate, resource.address, 'resource', scenario, evaluator, gaps)
            if value is _SKIP:
                continue
            if resource.count is not None:
                if value is None or not isinstance(value, int) or isinstance(value, bool):
                    logger.debug('Count of %s is not a whole number: %r', resource.address, value)
                    continue
                instances = value
            elif is_collection(value):
                instances = len(value)
            else:
                continue
            assertions.append(Assertion(
                target=f'length({resource.address})',
                condition=f'length({resource.address}) == {instances}',
                expected=instances,
                message=(
                    f'{resource.address} should have {instances} instance(s) '
                    f'when {describe_inputs(scenario)}'
                ),
            ))

        return assertions

    @staticmethod
    def _of_interest(item: 'Dependent', scenario: 'Scenario') -> bool:
        """Check whether an expression is governed by the scenario."""
        if scenario.kind == 'defaults':
            return True
        return bool(set(item.inputs) & set(scenario.focus))

    def _plan(self, item: 'Dependent', target: str, kind: 'GapKind', scenario: 'Scenario',
              evaluator: Evaluator, gaps: dict[str, CoverageGap]) -> 'RuntimeValue':
        """Evaluate an expression, recording a gap when it can not be planned."""
        if target in gaps:
            return _SKIP

        if item.unknowns:
            gaps[target] = CoverageGap(
                kind=kind,
                target=target,
                reason=f'depends on values known only after apply: {", ".join(item.unknowns)}',
            )
            return _SKIP

        node: Node = item.node
        try:
            value = evaluator.evaluate(node)
        except UnsupportedExpression as base:
            gaps[target] = CoverageGap(
                kind=kind,
                target=target,
                reason=f'uses expressions outside the supported subset: {base.message}',
            )
            return _SKIP
        except ExpressionError as base:
            scoped = f'{target}@{scenario.name}'
            logger.debug('Can not evaluate %s in scenario %s: %s', target, scenario.name, base.message)
            gaps[scoped] = CoverageGap(
                kind=kind,
                target=scoped,
                reason=f'fails to evaluate: {base.message}',
            )
            return _SKIP

        if is_unknown(value):
            gaps[target] = CoverageGap(
                kind=kind,
                target=target,
                reason='evaluates to a value known only after apply',
            )
            return _SKIP

        return normalize(value)

