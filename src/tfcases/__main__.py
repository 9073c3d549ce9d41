"""Command-line interface of tfcases.

Commands mirror the workflow stages: `extract` prints the interface of
a module, `generate` writes its test suite, `run` evaluates the suite
with `terraform test` in plan mode and `schema` prints the JSON Schema
of suite configuration documents.
"""

import logging
from pathlib import Path
from typing import TYPE_CHECKING
from warnings import catch_warnings, simplefilter

from click import ClickException, argument, echo, group, option, pass_context, secho
from click import Path as PathParam
from yaml import safe_dump

from tfcases.core import Workflow, find_config, load_config, resolve_paths, write_suite
from tfcases.errors import CoverageWarning, TfCasesError
from tfcases.jsonschema import SchemaGenerator
from tfcases.runner import TerraformRunner
from tfcases.schema import SuiteConfig
from tfcases.settings import Settings

if TYPE_CHECKING:
    from click import Context

    from tfcases.schema import Suite

LOG_FORMAT = '%(levelname)s %(name)s: %(message)s'

SourcePath = PathParam(
    exists=True,
    readable=True,
    path_type=Path,
)

OutputDirectory = PathParam(
    file_okay=False,
    writable=True,
    path_type=Path,
)


def _load(path: Path) -> tuple[SuiteConfig, Path, Path]:
    """Resolve a configuration file or module directory.

    Returns:
        The suite configuration, the module directory and the output
        directory of generated test files.
    """
    config_path = path if path.is_file() else find_config(path)
    if config_path is None:
        config = SuiteConfig()
        return config, path, path / config.output

    config = load_config(config_path)
    module, output = resolve_paths(config, config_path)

    return config, module, output


def _generate(path: Path, settings: Settings, *,
              strict: bool | None = None,
              split: bool | None = None,
              combine: bool | None = None) -> tuple['Suite', Path]:
    """Generate the suite of a module, reporting gaps on the console."""
    config, module, output = _load(path)

    overrides = {
        key: value
        for key, value in (('split', split), ('combine', combine))
        if value is not None
    }
    if overrides:
        config = config.model_copy(update=overrides)

    workflow = Workflow(config, strict=settings.strict if strict is None else strict)
    with catch_warnings():
        simplefilter('ignore', CoverageWarning)
        suite = workflow.generate(module)

    for gap in suite.gaps:
        secho(f'gap: {gap}', fg='yellow' if not gap.acknowledged else None, err=True)

    return suite, output


@group(help='Generate and run Terraform test suites from module interfaces.')
@option('-v', '--verbose', count=True, help='Increase logging verbosity.')
@pass_context
def cli(ctx: 'Context', verbose: int) -> None:
    """Root CLI group for tfcases tools."""
    settings = Settings()
    ctx.obj = settings

    level = logging.getLevelName(settings.log_level)
    if verbose:
        level = logging.INFO if verbose == 1 else logging.DEBUG

    logging.basicConfig(level=level, format=LOG_FORMAT)


@cli.command(
    name='extract',
    help='Print the extracted interface of a module as YAML.',
)
@argument('module', type=SourcePath, default='.')
@pass_context
def extract(ctx: 'Context', module: Path) -> None:
    """Extract and print a module interface."""
    settings: Settings = ctx.obj
    _, module, _ = _load(module)

    try:
        interface = Workflow(strict=settings.strict).extract(module)
    except TfCasesError as base:
        raise ClickException(str(base)) from base

    echo(safe_dump(
        interface.model_dump(mode='json', exclude_defaults=True),
        sort_keys=False,
        allow_unicode=True,
    ))


@cli.command(
    name='generate',
    help='Generate `.tftest.hcl` files for a module or suite configuration.',
)
@argument('path', type=SourcePath, default='.')
@option('-o', '--output', type=OutputDirectory, help='Directory receiving the test files.')
@option('--strict/--no-strict', default=None, help='Fail on unacknowledged coverage gaps.')
@option('--split/--no-split', default=None, help='Write one test file per feature area.')
@option('--combine/--no-combine', default=None, help='Merge scenarios of independent branches.')
@pass_context
def generate(ctx: 'Context', path: Path, output: Path | None,
             strict: bool | None, split: bool | None, combine: bool | None) -> None:
    """Generate and write a test suite."""
    try:
        suite, default_output = _generate(path, ctx.obj, strict=strict, split=split, combine=combine)
        written = write_suite(suite, output or default_output)
    except TfCasesError as base:
        raise ClickException(str(base)) from base

    for filename in written:
        echo(filename.as_posix())


@cli.command(
    name='run',
    help='Generate the suite of a module and evaluate it with `terraform test` in plan mode.',
)
@argument('path', type=SourcePath, default='.')
@option('--terraform', help='Terraform executable.')
@option('--timeout', type=float, help='Timeout of one Terraform command, in seconds.')
@pass_context
def run(ctx: 'Context', path: Path, terraform: str | None, timeout: float | None) -> None:
    """Evaluate every scenario of a suite."""
    settings: Settings = ctx.obj
    failures = 0

    try:
        suite, _ = _generate(path, settings)
        with TerraformRunner(
            terraform or settings.terraform,
            timeout=timeout or settings.timeout,
            workdir=settings.workdir,
        ) as runner:
            runner.initialize(suite.interface.path)
            for test_file in suite.test_files:
                for scenario in test_file.scenarios:
                    result = runner.evaluate(scenario, test_file.variables)
                    secho(
                        f'{result.status:<5} {test_file.name}::{scenario.name}',
                        fg='green' if result.passed else 'red',
                    )
                    if result.status == 'error' or not result.failures:
                        explanations = list(result.diagnostics)
                    else:
                        explanations = [item.explanation or item.assertion.message for item in result.failures]
                    for explanation in explanations:
                        echo(f'      {explanation}')
                    failures += not result.passed
    except TfCasesError as base:
        raise ClickException(str(base)) from base

    if failures:
        raise ClickException(f'{failures} scenario(s) failed')


@cli.command(
    name='schema',
    help='Print the JSON Schema of suite configuration documents.',
)
def print_schema() -> None:
    """Generate and print the JSON Schema."""
    echo(SchemaGenerator.make_schema())


if __name__ == '__main__':
    cli()
