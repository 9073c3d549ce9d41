"""Rendering of test files as native Terraform test documents.

A rendered `.tftest.hcl` file holds a file-level `variables` block with
the suite values, then one `run` block per scenario. Every run block is
rendered with `command = plan`.
"""

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from tfcases.schema import PLAN
from tfcases.values import quote, render_key, to_hcl

if TYPE_CHECKING:
    from collections.abc import Mapping

    from tfcases.schema import Scenario, Suite, TestFile
    from tfcases.values import Value

INDENT = '  '

logger = logging.getLogger(__name__)


def _comment(text: str, indent: str = '') -> list[str]:
    return [f'{indent}# {line}'.rstrip() for line in text.splitlines()]


def _variables_block(variables: 'Mapping[str, Value]', indent: str = '') -> list[str]:
    """Render a `variables` block with aligned assignments."""
    if not variables:
        return []

    inner = indent + INDENT
    width = max(len(render_key(name)) for name in variables)
    lines = [f'{indent}variables {{']
    lines.extend(
        f'{inner}{render_key(name).ljust(width)} = {to_hcl(value, len(inner))}'
        for name, value in variables.items()
    )
    lines.append(f'{indent}}}')

    return lines


def render_run(scenario: 'Scenario') -> str:
    """Render one scenario as a `run` block."""
    lines: list[str] = []
    if scenario.description:
        lines.extend(_comment(scenario.description))

    lines.append(f'run {quote(scenario.name)} {{')
    lines.append(f'{INDENT}command = {PLAN}')

    if scenario.variables:
        lines.append('')
        lines.extend(_variables_block(scenario.variables, INDENT))

    for assertion in scenario.assertions:
        lines.append('')
        lines.append(f'{INDENT}assert {{')
        lines.append(f'{INDENT * 2}condition     = {assertion.condition}')
        lines.append(f'{INDENT * 2}error_message = {quote(assertion.message)}')
        lines.append(f'{INDENT}}}')

    lines.append('}')

    return '\n'.join(lines)


def render_test_file(test_file: 'TestFile', header: str | None = None) -> str:
    """Render a test file as a `.tftest.hcl` document.

    Args:
        test_file: Test file to render.
        header: Optional comment placed at the top of the document.

    Returns:
        Document text, ending with a newline.
    """
    blocks: list[str] = []
    if header:
        blocks.append('\n'.join(_comment(header)))
    if test_file.variables:
        blocks.append('\n'.join(_variables_block(test_file.variables)))

    blocks.extend(render_run(scenario) for scenario in test_file.scenarios)

    return '\n\n'.join(blocks) + '\n'


def write_suite(suite: 'Suite', directory: Path | str) -> list[Path]:
    """Write every test file of a suite into a directory.

    Args:
        suite: Generated suite.
        directory: Target directory, created when missing.

    Returns:
        Paths of the written files, in suite order.
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    header = f'Generated by tfcases from module {suite.interface.path}.'
    written: list[Path] = []

    for test_file in suite.test_files:
        path = directory / test_file.filename
        path.write_text(render_test_file(test_file, header), encoding='utf-8')
        logger.info('Wrote %d scenarios to %s', len(test_file.scenarios), path)
        written.append(path)

    return written
