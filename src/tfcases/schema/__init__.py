"""Records exchanged between the workflow stages.

Defines immutable Pydantic models for module interfaces, scenarios,
assertions, coverage gaps, test files and suite configuration.
"""

from .config import CONFIG_NAMES, Hint, SuiteConfig
from .gaps import CoverageGap
from .interface import (
    Branch,
    Dependent,
    InputDeclaration,
    LocalDeclaration,
    ModuleInterface,
    OutputDeclaration,
    ResourceDeclaration,
    Validation,
)
from .scenarios import PLAN, Assertion, Scenario, Suite, TestFile
from .types import TypeSpec, infer_type, parse_type

__all__ = (
    'CONFIG_NAMES',
    'PLAN',
    'Assertion',
    'Branch',
    'CoverageGap',
    'Dependent',
    'Hint',
    'InputDeclaration',
    'LocalDeclaration',
    'ModuleInterface',
    'OutputDeclaration',
    'ResourceDeclaration',
    'Scenario',
    'Suite',
    'SuiteConfig',
    'TestFile',
    'TypeSpec',
    'Validation',
    'infer_type',
    'parse_type',
)
