"""Scenario enumeration over a module interface.

The enumerator derives the minimal set of scenarios exercising a
module: the happy path with all defaults, a scenario driving every
branch to each of its outcomes, and edge-value scenarios for the
inputs the module actually uses.

Candidate values for an input come from its default, the literals it
is compared against, the bounds documented by its validation rules,
samples of its type and the operator's hints. Assignments are searched
in order of fewest overridden inputs, so every branch scenario changes
as little as possible relative to the defaults.
"""

import logging
from itertools import combinations, product
from json import dumps
from typing import TYPE_CHECKING

from pydantic import Field

from tfcases.errors import ExpressionError, UnsupportedExpression
from tfcases.expressions import Evaluator, bounds, comparands, parse_expression
from tfcases.models import SchemaModel
from tfcases.names import slugify, unique_name
from tfcases.schema import CoverageGap, Scenario, SuiteConfig
from tfcases.values import Value  # noqa: TC001
from tfcases.values import describe, is_collection, is_number, normalize

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from tfcases.expressions import Node
    from tfcases.extensions import Function
    from tfcases.schema import Branch, InputDeclaration, ModuleInterface
    from tfcases.values import RuntimeValue

#: Maximum number of assignments tried when driving one branch outcome.
MAX_COMBINATIONS = 512

#: Maximum number of candidate values kept per input.
MAX_CANDIDATES = 12

#: Number of entries of populated collection values.
POPULATED_SIZE = 2

logger = logging.getLogger(__name__)

type Assignment = dict[str, Value]


def _fingerprint(value: 'RuntimeValue') -> str:
    """Canonical text of a value, distinguishing `true` from `1`."""
    return dumps(value, sort_keys=True, default=repr)


def _compatible(spec_kind: str, value: Value) -> bool:
    """Check whether a non-null value conforms to a type kind."""
    match spec_kind:
        case 'string':
            return isinstance(value, str)
        case 'number':
            return is_number(value)
        case 'bool':
            return isinstance(value, bool)
        case 'list' | 'set' | 'tuple':
            return isinstance(value, list)
        case 'map' | 'object':
            return isinstance(value, dict)

    return True


class Enumeration(SchemaModel):
    """Result of the scenario enumeration for one module."""

    variables: dict[str, Value] = Field(
        default_factory=dict,
        title='Suite variables',
        description='Values for inputs without defaults, shared by every scenario.',
    )

    scenarios: tuple[Scenario, ...] = ()

    gaps: tuple[CoverageGap, ...] = ()


class ScenarioEnumerator:
    """Derives scenarios covering the branches and edges of a module.

    The enumerator is a pure function of the interface and the suite
    configuration: enumerating the same interface twice yields the same
    scenarios in the same order.
    """

    def __init__(self, functions: 'Mapping[str, Function]',
                 config: SuiteConfig | None = None, *,
                 max_combinations: int = MAX_COMBINATIONS) -> None:
        """Initialize the enumerator.

        Args:
            functions: Function definitions used to evaluate conditions.
            config: Suite configuration with variables, hints and areas.
            max_combinations: Search cap per branch outcome.
        """
        self.functions = functions
        self.config = config or SuiteConfig()
        self.max_combinations = max_combinations

    def enumerate(self, interface: 'ModuleInterface') -> Enumeration:
        """Enumerate the scenarios of a module.

        Args:
            interface: Extracted module interface.

        Returns:
            Suite variables, ordered scenarios and the branches or
            inputs that could not be exercised.
        """
        locals_ = interface.local_nodes()
        gaps: list[CoverageGap] = []

        variables, baseline = self._baseline(interface, gaps)
        candidates = {
            item.name: self.candidates(interface, item, baseline)
            for item in interface.inputs
        }

        taken: set[str] = set()
        seen: set[str] = set()
        scenarios: list[Scenario] = []

        def add(scenario: Scenario) -> bool:
            fingerprint = _fingerprint(scenario.variables)
            if fingerprint in seen:
                logger.debug('Dropping scenario %s duplicating an earlier assignment', scenario.name)
                return False
            seen.add(fingerprint)
            scenarios.append(scenario.model_copy(update={'name': unique_name(scenario.name, taken)}))
            return True

        add(Scenario(
            name='defaults',
            kind='defaults',
            title='Defaults',
            description='All inputs use their default or suite values.',
        ))

        branch_scenarios: list[tuple[Scenario, list[tuple[Branch, bool]]]] = []
        for branch in interface.branches:
            for outcome in (True, False):
                try:
                    assignment = self.drive(branch, outcome, baseline, candidates, locals_, interface.path)
                except UnsupportedExpression:
                    logger.debug('Branch %s uses unsupported expressions', branch.id)
                    break
                if not assignment:
                    continue
                scenario = Scenario(
                    name=slugify(branch.name, str(outcome).lower()),
                    kind='branch',
                    area=self._area(branch.inputs, branch.name),
                    variables=assignment,
                    focus=branch.inputs,
                    title=f'{branch.name} is {str(outcome).lower()}',
                    description=f'Drives `{branch.expression}` to {str(outcome).lower()}.',
                )
                branch_scenarios.append((scenario, [(branch, outcome)]))

        if self.config.combine:
            branch_scenarios = self._combine(branch_scenarios, baseline, locals_, interface.path)

        for scenario, _ in branch_scenarios:
            add(scenario)

        for scenario in self._edges(interface, baseline):
            add(scenario)

        gaps.extend(self.coverage(interface, scenarios, baseline))

        logger.info('Enumerated %d scenarios with %d gaps for %s', len(scenarios), len(gaps), interface.path)

        return Enumeration(variables=variables, scenarios=tuple(scenarios), gaps=tuple(gaps))

    def candidates(self, interface: 'ModuleInterface', declaration: 'InputDeclaration',
                   baseline: 'Mapping[str, Value]') -> list[Value]:
        """Collect candidate values for an input, most relevant first.

        Args:
            interface: Module interface, for the conditions of branches.
            declaration: Input to collect values for.
            baseline: Values used when the input is not overridden.

        Returns:
            Distinct values valid under the input's evaluable validation
            rules, excluding its baseline value.
        """
        name = declaration.name
        spec = declaration.type
        values: list[Value] = []
        found: set[str] = {_fingerprint(baseline.get(name))}

        def add(value: Value) -> None:
            if value is None and not declaration.nullable:
                return
            if value is not None and not _compatible(spec.kind, value):
                return
            fingerprint = _fingerprint(value)
            if fingerprint not in found:
                found.add(fingerprint)
                values.append(value)

        for value in self.config.hint_values(name):
            add(value)

        if declaration.has_default:
            add(declaration.default)

        conditions: list[Node] = [
            branch.node for branch in interface.branches if name in branch.inputs
        ]
        conditions.extend(
            self._parse(validation.condition)
            for validation in declaration.validations
        )

        for node in conditions:
            if node is None:
                continue
            for op, value in comparands(node, name):
                add(value)
                if op not in ('==', '!=') and is_number(value):
                    add(value - 1)
                    add(value + 1)
                elif op == '!=' and spec.kind in ('string', 'any'):
                    add(spec.sample())

        for validation in declaration.validations:
            if (node := self._parse(validation.condition)) is not None:
                for bound in bounds(node, name):
                    if bound is not None:
                        add(bound)

        if spec.kind != 'unknown':
            add(spec.sample(1))
            add(spec.sample(2))
        if spec.kind == 'bool':
            add(True)
            add(False)
        if spec.is_variable_length:
            add(spec.empty())
            add(spec.populated(POPULATED_SIZE))

        add(None)

        valid = [value for value in values if self.is_valid(declaration, value)]

        return valid[:MAX_CANDIDATES]

    def is_valid(self, declaration: 'InputDeclaration', value: Value) -> bool:
        """Check a value against the evaluable validation rules of an input.

        Rules that can not be evaluated, for instance because they
        reference other inputs, do not reject the value.
        """
        for validation in declaration.validations:
            node = self._parse(validation.condition)
            if node is None:
                continue
            try:
                result = Evaluator(self.functions, {declaration.name: value}).evaluate(node)
            except (ExpressionError, UnsupportedExpression):
                continue
            if result is False:
                return False

        return True

    def drive(self, branch: 'Branch', outcome: bool,  # noqa: FBT001
              baseline: 'Mapping[str, Value]',
              candidates: 'Mapping[str, list[Value]]',
              locals_: 'Mapping[str, Node]',
              module_path: str = '.') -> Assignment | None:
        """Find the smallest assignment driving a branch to an outcome.

        Args:
            branch: Branch to drive.
            outcome: Required value of the branch condition.
            baseline: Values of inputs that are not overridden.
            candidates: Candidate values per input.
            locals_: Local value expressions of the module.
            module_path: Value of `path.module`.

        Returns:
            Overrides driving the branch (empty when the baseline already
            does), or `None` when no assignment within the search cap does.
        """
        tries = 0
        drivers = [name for name in branch.inputs if name in candidates]

        for size in range(len(drivers) + 1):
            for names in combinations(drivers, size):
                for values in product(*(candidates[name] for name in names)):
                    tries += 1
                    if tries > self.max_combinations:
                        logger.debug('Search cap reached for %s = %s', branch.expression, outcome)
                        return None
                    assignment = dict(zip(names, values, strict=True))
                    if self.outcome(branch, {**baseline, **assignment}, locals_, module_path) is outcome:
                        return assignment

        return None

    def outcome(self, branch: 'Branch', values: 'Mapping[str, Value]',
                locals_: 'Mapping[str, Node]', module_path: str = '.') -> bool | None:
        """Evaluate a branch condition under concrete input values.

        Returns:
            The boolean outcome, or `None` when the condition is unknown
            at plan time or fails to evaluate.
        """
        evaluator = Evaluator(self.functions, values, locals_, module_path=module_path)
        try:
            result = evaluator.evaluate(branch.node)
        except ExpressionError:
            return None

        if isinstance(result, bool):
            return result

        return None

    def coverage(self, interface: 'ModuleInterface',
                 scenarios: 'Iterable[Scenario]',
                 baseline: 'Mapping[str, Value]') -> list[CoverageGap]:
        """Report branch outcomes not reached by any scenario.

        Args:
            interface: Module interface.
            scenarios: Final scenario set.
            baseline: Values of inputs that are not overridden.

        Returns:
            One gap per branch outcome left uncovered.
        """
        locals_ = interface.local_nodes()
        scenarios = tuple(scenarios)
        gaps: list[CoverageGap] = []

        for branch in interface.branches:
            try:
                reached = {
                    self.outcome(branch, {**baseline, **scenario.variables}, locals_, interface.path)
                    for scenario in scenarios
                }
            except UnsupportedExpression as base:
                gaps.append(CoverageGap(
                    kind='branch',
                    target=branch.id,
                    reason=f'condition {branch.expression} is outside the supported expressions: {base.message}',
                ))
                continue

            missing = [str(outcome).lower() for outcome in (True, False) if outcome not in reached]
            if missing:
                gaps.append(CoverageGap(
                    kind='branch',
                    target=branch.id,
                    reason=f'condition {branch.expression} is never driven to {" or ".join(missing)}',
                ))

        return gaps

    def _baseline(self, interface: 'ModuleInterface',
                  gaps: list[CoverageGap]) -> tuple[Assignment, Assignment]:
        """Resolve suite variables and the effective value of every input.

        Returns:
            Suite-level variables and the baseline values of all inputs.
        """
        variables: Assignment = {}
        baseline: Assignment = {}

        for item in interface.inputs:
            if item.name in self.config.variables:
                value = normalize(self.config.variables[item.name])
                variables[item.name] = value
            elif item.has_default:
                value = item.default
            elif item.type_unknown:
                gaps.append(CoverageGap(
                    kind='input',
                    target=f'var.{item.name}',
                    reason=f'type {item.type_source} can not be resolved and no value is configured',
                ))
                value = None
            else:
                value = item.type.sample()
                variables[item.name] = value
            baseline[item.name] = value

        for name in self.config.variables:
            if name not in baseline:
                logger.warning('Suite variable %r is not declared by the module', name)

        return variables, baseline

    def _edges(self, interface: 'ModuleInterface',
               baseline: 'Mapping[str, Value]') -> list[Scenario]:
        """Build edge-value scenarios for the inputs the module uses."""
        scenarios: list[Scenario] = []

        for name in interface.referenced_inputs():
            declaration = interface.input(name)
            spec = declaration.type
            current = baseline.get(name)
            edges: list[tuple[str, Value]] = []

            if declaration.nullable and current is not None:
                edges.append(('null', None))

            if spec.is_variable_length:
                if is_collection(current) and len(current) > 0:
                    edges.append(('empty', spec.empty()))
                if current is None or (is_collection(current) and len(current) < POPULATED_SIZE):
                    edges.append(('populated', spec.populated(POPULATED_SIZE)))

            for validation in declaration.validations:
                if (node := self._parse(validation.condition)) is None:
                    continue
                minimum, maximum = bounds(node, name)
                if minimum is not None and minimum != current:
                    edges.append(('minimum', minimum))
                if maximum is not None and maximum != current:
                    edges.append(('maximum', maximum))

            for label, value in edges:
                if not self.is_valid(declaration, value):
                    logger.debug('Skipping %s edge of %s rejected by its validation', label, name)
                    continue
                scenarios.append(Scenario(
                    name=slugify(name, label),
                    kind='edge',
                    area=self._area((name,), name),
                    variables={name: value},
                    focus=(name,),
                    title=f'{name} {label}',
                    description=f'Sets {name} to {describe(value)}.',
                ))

        return scenarios

    def _combine(self, branch_scenarios: list[tuple[Scenario, list[tuple['Branch', bool]]]],
                 baseline: 'Mapping[str, Value]',
                 locals_: 'Mapping[str, Node]',
                 module_path: str) -> list[tuple[Scenario, list[tuple['Branch', bool]]]]:
        """Merge branch scenarios driven by disjoint sets of inputs.

        A merge is kept only if every requirement of the merged scenarios
        still evaluates to its required outcome.
        """
        merged: list[tuple[Scenario, list[tuple[Branch, bool]]]] = []

        for scenario, requirements in branch_scenarios:
            for index, (group, group_requirements) in enumerate(merged):
                if set(group.focus) & set(scenario.focus):
                    continue
                variables = {**group.variables, **scenario.variables}
                values = {**baseline, **variables}
                combined = [*group_requirements, *requirements]
                if all(
                    self.outcome(branch, values, locals_, module_path) is outcome
                    for branch, outcome in combined
                ):
                    merged[index] = (group.model_copy(update={
                        'name': slugify(group.name, 'and', scenario.name),
                        'area': group.area,
                        'variables': variables,
                        'focus': (*group.focus, *scenario.focus),
                        'title': f'{group.title} and {scenario.title}',
                        'description': f'{group.description} {scenario.description}',
                    }), combined)
                    break
            else:
                merged.append((scenario, requirements))

        return merged

    def _area(self, focus: 'Iterable[str]', fallback: str) -> str:
        """Resolve the feature area of a scenario from its inputs."""
        focus = tuple(focus)
        for area, names in self.config.areas.items():
            if any(name in names for name in focus):
                return area

        return slugify(fallback)

    @staticmethod
    def _parse(source: str) -> 'Node | None':
        """Parse a validation condition, ignoring unsupported syntax."""
        try:
            return parse_expression(source)
        except (ExpressionError, UnsupportedExpression):
            logger.debug('Skipping unsupported condition %s', source)
            return None
