"""External evaluation through `terraform test`.

The runner is the only part of tfcases that executes Terraform. It
works on a private copy of the module and exposes two operations:
`initialize`, which prepares the copy, and `evaluate`, which runs one
scenario in plan mode and reports the outcome of each assertion.

Plan mode is a hard contract: a test file with any run block using a
command other than `plan` is refused before Terraform is invoked.
"""

import logging
import subprocess
from json import JSONDecodeError, loads
from pathlib import Path
from re import MULTILINE
from re import compile as regexp
from shutil import copytree, ignore_patterns
from tempfile import TemporaryDirectory
from typing import TYPE_CHECKING, Any, Literal

from pydantic import Field

from tfcases.core.render import render_test_file
from tfcases.errors import ErrorContext, EvaluationError
from tfcases.models import SchemaModel
from tfcases.schema import PLAN, Assertion, Scenario, TestFile

if TYPE_CHECKING:
    from collections.abc import Mapping
    from types import TracebackType
    from typing import Self

    from tfcases.values import Value

#: Directory of the working area receiving generated test files.
TEST_DIRECTORY = 'tfcases'

#: Module content never copied into the working area.
IGNORED = ('.terraform', '.terraform.lock.hcl', '*.tfstate', '*.tfstate.*', '*.tftest.hcl', '.git')

_RUN_BLOCK = regexp(r'^run\s+"(?P<name>[^"]*)"\s*\{', flags=MULTILINE)
_COMMAND = regexp(r'^[ \t]*command\s*=\s*(?P<command>[^\s#]+)')
_QUOTED = regexp(r'"(?:[^"\\]|\\.)*"')

logger = logging.getLogger(__name__)

type RunStatus = Literal['pass', 'fail', 'error', 'skip', 'pending']

RUN_STATUSES = ('pass', 'fail', 'error', 'skip', 'pending')


class AssertionResult(SchemaModel):
    """Outcome of one assertion."""

    assertion: Assertion

    passed: bool

    explanation: str | None = Field(
        default=None,
        title='Explanation',
        description='Failure message reported by Terraform, if any.',
    )


class ScenarioResult(SchemaModel):
    """Outcome of one scenario evaluated in plan mode."""

    scenario: str

    status: RunStatus

    assertions: tuple[AssertionResult, ...] = ()

    diagnostics: tuple[str, ...] = Field(
        default=(),
        title='Diagnostics',
        description='Error diagnostics reported for the run.',
    )

    @property
    def passed(self) -> bool:
        """Whether the scenario and all of its assertions passed."""
        return self.status == 'pass' and all(item.passed for item in self.assertions)

    @property
    def failures(self) -> tuple[AssertionResult, ...]:
        """Assertions that did not pass."""
        return tuple(item for item in self.assertions if not item.passed)


def _attribute_lines(body: str) -> list[str]:
    """Lines of a block body starting at its own nesting level.

    Nested blocks, maps, lists and quoted strings are skipped over, so
    `command` keys of variable values are never taken for attributes.
    """
    lines: list[str] = []
    depth = 0

    for line in body.splitlines():
        if depth == 0:
            lines.append(line)
        bare = _QUOTED.sub('""', line).split('#', 1)[0]
        depth += sum(bare.count(char) for char in '{[(') - sum(bare.count(char) for char in '}])')
        if depth < 0:
            break

    return lines


def check_plan_only(source: str) -> None:
    """Check that every run block of a test document uses plan mode.

    Args:
        source: Rendered `.tftest.hcl` document.

    Raises:
        EvaluationError: If a run block uses another command or none.
    """
    blocks = list(_RUN_BLOCK.finditer(source))
    for index, block in enumerate(blocks):
        end = blocks[index + 1].start() if index + 1 < len(blocks) else len(source)
        commands = [
            match['command']
            for line in _attribute_lines(source[block.end():end])
            if (match := _COMMAND.match(line))
        ]
        if commands != [PLAN]:
            raise EvaluationError(
                f'Run {block["name"]!r} must use `command = {PLAN}`',
                context=ErrorContext(scenario=block['name'], element={'command': commands}),
            )


def parse_events(output: str) -> list[dict[str, Any]]:
    """Parse the JSON event stream of `terraform test -json`.

    Lines that are not JSON objects are ignored.
    """
    events = []
    for line in output.splitlines():
        line = line.strip()  # noqa: PLW2901
        if not line.startswith('{'):
            continue
        try:
            event = loads(line)
        except JSONDecodeError:
            logger.debug('Skipping malformed event %r', line)
            continue
        if isinstance(event, dict):
            events.append(event)

    return events


class TerraformRunner:
    """Evaluates scenarios with `terraform test` in plan mode.

    The runner copies the module into a private working area so that
    neither the module directory nor its state is ever modified.
    """

    def __init__(self, terraform: str = 'terraform', *,
                 timeout: float = 300.0,
                 workdir: Path | str | None = None,
                 env: 'Mapping[str, str] | None' = None) -> None:
        """Initialize the runner.

        Args:
            terraform: Name or path of the Terraform executable.
            timeout: Timeout of a single command, in seconds.
            workdir: Working area; a temporary directory when omitted.
            env: Environment of Terraform processes; inherited when omitted.
        """
        self.terraform = terraform
        self.timeout = timeout
        self.workdir = Path(workdir) if workdir is not None else None
        self.env = dict(env) if env is not None else None

        self._temporary: TemporaryDirectory[str] | None = None
        self._module: Path | None = None
        self._area: Path | None = None

    def __enter__(self) -> 'Self':
        return self

    def __exit__(self, exc_type: type[BaseException] | None,
                 exc_value: BaseException | None,
                 traceback: 'TracebackType | None') -> None:
        self.close()

    @property
    def area(self) -> Path:
        """Initialized working area.

        Raises:
            EvaluationError: If the runner is not initialized.
        """
        if self._area is None:
            raise EvaluationError('Runner is not initialized')
        return self._area

    def initialize(self, module: Path | str) -> Path:
        """Prepare a working area for a module.

        Copies the module and runs `terraform init` without a backend.
        Initializing the same module twice reuses the prepared area.

        Args:
            module: Module directory.

        Returns:
            The working area.

        Raises:
            EvaluationError: If Terraform is missing or `init` fails.
        """
        module = Path(module).resolve()
        if self._area is not None and self._module == module:
            logger.debug('Reusing working area %s', self._area)
            return self._area

        self.close()

        if self.workdir is not None:
            area = self.workdir / module.name
        else:
            self._temporary = TemporaryDirectory(prefix='tfcases-')
            area = Path(self._temporary.name) / module.name

        copytree(module, area, ignore=ignore_patterns(*IGNORED), dirs_exist_ok=True)
        logger.info('Initializing %s in %s', module, area)

        self._run(['init', '-backend=false', '-input=false', '-no-color'], area)

        self._module, self._area = module, area

        return area

    def evaluate(self, scenario: Scenario,
                 variables: 'Mapping[str, Value] | None' = None) -> ScenarioResult:
        """Evaluate one scenario in plan mode.

        Args:
            scenario: Scenario with its assertions.
            variables: Suite-level variable values.

        Returns:
            Outcome of the scenario and of each of its assertions.

        Raises:
            EvaluationError: If the runner is not initialized, the
                scenario is not a plan, or Terraform can not be run.
        """
        test_file = TestFile(
            name=scenario.name,
            variables=dict(variables or {}),
            scenarios=(scenario,),
        )
        source = render_test_file(test_file)
        check_plan_only(source)

        directory = self.area / TEST_DIRECTORY
        directory.mkdir(exist_ok=True)
        path = directory / test_file.filename
        path.write_text(source, encoding='utf-8')

        try:
            completed = self._run([
                'test',
                f'-test-directory={TEST_DIRECTORY}',
                f'-filter={TEST_DIRECTORY}/{test_file.filename}',
                '-json',
                '-no-color',
            ], self.area, check=False)
        finally:
            path.unlink(missing_ok=True)

        result = self._result(scenario, parse_events(completed.stdout))
        if result.status == 'pending' and completed.returncode != 0:
            raise EvaluationError(
                f'terraform test failed without reporting the run: {completed.stderr.strip()}',
                context=ErrorContext(scenario=scenario.name),
            )

        logger.info('Scenario %s: %s', scenario.name, result.status)

        return result

    def close(self) -> None:
        """Release the temporary working area, if any."""
        if self._temporary is not None:
            self._temporary.cleanup()
        self._temporary = None
        self._module = self._area = None

    def _run(self, args: list[str], cwd: Path, *,
             check: bool = True) -> subprocess.CompletedProcess[str]:
        """Run a Terraform command.

        Raises:
            EvaluationError: If the binary is missing, the command times
                out, or it fails while `check` is set.
        """
        command = [self.terraform, *args]
        logger.debug('Running %s in %s', ' '.join(command), cwd)

        try:
            completed = subprocess.run(  # noqa: S603
                command,
                cwd=str(cwd),
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env=self.env,
                check=False,
            )
        except FileNotFoundError as base:
            raise EvaluationError(f'Terraform executable {self.terraform!r} not found') from base
        except subprocess.TimeoutExpired as base:
            raise EvaluationError(f'terraform {args[0]} timed out after {self.timeout:g}s') from base

        if check and completed.returncode != 0:
            raise EvaluationError(f'terraform {args[0]} failed: {completed.stderr.strip()}')

        return completed

    @staticmethod
    def _result(scenario: Scenario, events: list[dict[str, Any]]) -> ScenarioResult:
        """Build the outcome of a scenario from test events."""
        status: RunStatus = 'pending'
        failed: set[str] = set()
        diagnostics: list[str] = []

        for event in events:
            kind = event.get('type')
            if kind == 'test_run':
                run = event.get('test_run') or {}
                if run.get('run') == scenario.name and run.get('progress') == 'complete':
                    if run.get('status') in RUN_STATUSES:
                        status = run['status']
            elif kind == 'diagnostic':
                if event.get('@testrun', scenario.name) != scenario.name:
                    continue
                diagnostic = event.get('diagnostic') or {}
                if diagnostic.get('severity') != 'error':
                    continue
                detail = (diagnostic.get('detail') or '').strip()
                summary = (diagnostic.get('summary') or '').strip()
                if summary == 'Test assertion failed':
                    failed.add(detail)
                else:
                    diagnostics.append(f'{summary}: {detail}' if detail else summary)

        assertions = []
        for assertion in scenario.assertions:
            if status == 'error':
                assertions.append(AssertionResult(
                    assertion=assertion,
                    passed=False,
                    explanation='; '.join(diagnostics) or 'Run failed with an error',
                ))
            elif assertion.message in failed:
                assertions.append(AssertionResult(
                    assertion=assertion,
                    passed=False,
                    explanation=assertion.message,
                ))
            else:
                assertions.append(AssertionResult(assertion=assertion, passed=status in ('pass', 'fail')))

        return ScenarioResult(
            scenario=scenario.name,
            status=status,
            assertions=tuple(assertions),
            diagnostics=tuple(diagnostics),
        )
