"""End-to-end suite generation workflow.

The workflow chains the three stages over one module:

    module sources -> InterfaceExtractor -> ScenarioEnumerator
                   -> AssertionSynthesizer -> Suite

Each stage is a pure function of its inputs; the workflow only groups
scenarios into test files and decides how unacknowledged coverage gaps
are surfaced: as a `CoverageWarning` each, or as a `CoverageGapError`
in strict mode.
"""

import logging
from typing import TYPE_CHECKING
from warnings import warn

from tfcases.errors import CoverageGapError, CoverageWarning
from tfcases.names import slugify
from tfcases.schema import Suite, SuiteConfig, TestFile

from .enumerator import ScenarioEnumerator
from .extractor import InterfaceExtractor
from .registry import FunctionRegistry
from .synthesizer import AssertionSynthesizer, acknowledge

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from tfcases.schema import CoverageGap, ModuleInterface, Scenario
    from tfcases.values import Value

logger = logging.getLogger(__name__)


class Workflow:
    """Suite generation workflow for one module.

    Attributes:
        config: Suite configuration.
        strict_mode: Whether unacknowledged gaps and plugin issues are errors.
        functions: Function registry shared by all stages.
    """

    def __init__(self, config: SuiteConfig | None = None, *,
                 strict: bool = False,
                 functions: FunctionRegistry | None = None) -> None:
        """Initialize the workflow.

        Args:
            config: Suite configuration; defaults apply when omitted.
            strict: Whether to raise on unacknowledged coverage gaps.
            functions: Function registry, built with plugins when omitted.
        """
        self.config = config or SuiteConfig()
        self.strict_mode = strict
        self.functions = functions if functions is not None else FunctionRegistry(strict=strict)

    def extract(self, path: 'Path | str') -> 'ModuleInterface':
        """Extract the interface of a module directory."""
        return InterfaceExtractor(self.functions).extract(path)

    def generate(self, path: 'Path | str') -> Suite:
        """Generate the test suite of a module directory.

        Raises:
            InterfaceError: If the module can not be read.
            CoverageGapError: In strict mode, if unacknowledged gaps remain.
        """
        return self.build(self.extract(path))

    def build(self, interface: 'ModuleInterface') -> Suite:
        """Generate the test suite of an extracted interface.

        Raises:
            CoverageGapError: In strict mode, if unacknowledged gaps remain.
        """
        enumeration = ScenarioEnumerator(self.functions, self.config).enumerate(interface)
        scenarios, output_gaps = AssertionSynthesizer(
            self.functions,
            self.config.acknowledged,
        ).synthesize(interface, enumeration.scenarios, enumeration.variables)

        gaps = self._gaps((*interface.gaps, *enumeration.gaps, *output_gaps))

        suite = Suite(
            interface=interface,
            test_files=self._group(scenarios, enumeration.variables),
            gaps=gaps,
        )

        self.report(suite)

        return suite

    def report(self, suite: Suite) -> None:
        """Surface the unacknowledged coverage gaps of a suite.

        Raises:
            CoverageGapError: In strict mode, if unacknowledged gaps remain.
        """
        for gap in suite.gaps:
            if gap.acknowledged:
                logger.info('Acknowledged coverage gap %s', gap)

        if not suite.unacknowledged:
            return

        if self.strict_mode:
            raise CoverageGapError(suite.unacknowledged)

        for gap in suite.unacknowledged:
            warn(f'Coverage gap {gap}', category=CoverageWarning, stacklevel=2)

    def _gaps(self, gaps: 'Iterable[CoverageGap]') -> tuple['CoverageGap', ...]:
        """Deduplicate and acknowledge gaps, keeping their order."""
        unique: dict[tuple[str, str, str], CoverageGap] = {}
        for gap in gaps:
            unique.setdefault((gap.kind, gap.target, gap.reason), gap)

        targets = {gap.target for gap in unique.values()} | {gap.origin for gap in unique.values()}
        for target in self.config.acknowledged:
            if target not in targets:
                logger.warning('Acknowledged gap %r does not match any coverage gap', target)

        return acknowledge(unique.values(), self.config.acknowledged)

    def _group(self, scenarios: 'Iterable[Scenario]',
               variables: 'dict[str, Value]') -> tuple[TestFile, ...]:
        """Group scenarios into test files, by feature area when splitting."""
        if not self.config.split:
            return (TestFile(name=self.config.name, variables=variables, scenarios=tuple(scenarios)),)

        areas: dict[str, list[Scenario]] = {}
        for scenario in scenarios:
            areas.setdefault(slugify(scenario.area), []).append(scenario)

        return tuple(
            TestFile(name=area, variables=variables, scenarios=tuple(items))
            for area, items in areas.items()
        )
