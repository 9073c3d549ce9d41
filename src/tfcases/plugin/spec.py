"""Pytest collector for suite configuration files.

Each collected `tfcases.yaml` is loaded, the suite of its module is
generated, and the resulting scenarios and coverage gaps are emitted
as pytest items. The collector owns the Terraform runner shared by its
scenarios: the module is initialized once, when the first item runs.
"""

from collections import Counter
from typing import TYPE_CHECKING
from warnings import catch_warnings, simplefilter

import pytest

from tfcases.core import Workflow, load_config, resolve_paths
from tfcases.errors import CoverageWarning
from tfcases.runner import TerraformRunner

from .case import GapCase, ScenarioCase

if TYPE_CHECKING:
    from collections.abc import Iterable

    from _pytest.nodes import Item

    from tfcases.settings import Settings


class SuiteSpec(pytest.File):
    """Pytest file collector for suite configurations."""

    __test__ = False

    runner: TerraformRunner | None = None

    def collect(self) -> 'Iterable[Item]':
        """Generate the suite and collect its items.

        Returns:
            Iterable of scenario items followed by gap items.

        Raises:
            ConfigError: If the configuration is invalid.
            InterfaceError: If the module can not be read.
            CoverageGapError: In strict mode, if unacknowledged gaps remain.
        """
        settings: Settings = self.config.tfcases_settings  # type: ignore[attr-defined]

        config = load_config(self.path)
        self.module, _ = resolve_paths(config, self.path)

        workflow = Workflow(
            config,
            strict=settings.strict,
            functions=self.config.tfcases_functions,  # type: ignore[attr-defined]
        )
        with catch_warnings():
            simplefilter('ignore', CoverageWarning)
            suite = workflow.generate(self.module)

        for test_file in suite.test_files:
            for scenario in test_file.scenarios:
                yield ScenarioCase.from_parent(
                    self,
                    name=f'{test_file.name}::{scenario.name}',
                    scenario=scenario,
                    variables=test_file.variables,
                )

        shared = Counter(gap.target for gap in suite.gaps)
        seen: Counter[str] = Counter()
        for gap in suite.gaps:
            name = f'gap::{gap.target}'
            if shared[gap.target] > 1:
                seen[gap.target] += 1
                name += f'::{seen[gap.target]}'
            yield GapCase.from_parent(
                self,
                name=name,
                gap=gap,
            )

    def get_runner(self) -> TerraformRunner:
        """Return the runner of this suite, initializing the module once."""
        if self.runner is None:
            settings: Settings = self.config.tfcases_settings  # type: ignore[attr-defined]
            runner = TerraformRunner(
                settings.terraform,
                timeout=settings.timeout,
                workdir=settings.workdir,
            )
            runner.initialize(self.module)
            self.runner = runner

        return self.runner

    def teardown(self) -> None:
        """Release the working area of the runner."""
        if self.runner is not None:
            self.runner.close()
            self.runner = None
