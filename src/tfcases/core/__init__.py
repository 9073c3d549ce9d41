"""Workflow stages and their infrastructure.

This package defines the three workflow stages and the glue around
them:
- `InterfaceExtractor` reads module sources into a `ModuleInterface`;
- `ScenarioEnumerator` derives scenarios covering branches and edges;
- `AssertionSynthesizer` attaches plan-time assertions to scenarios;
- `Workflow` chains the stages and surfaces coverage gaps.

Functions available to the expression evaluator are collected by
`FunctionRegistry` from built-ins and plugins.
"""

from .config import find_config, load_config, resolve_paths
from .enumerator import MAX_COMBINATIONS, Enumeration, ScenarioEnumerator
from .extractor import InterfaceExtractor
from .pipeline import Workflow
from .registry import FunctionRegistry
from .render import render_run, render_test_file, write_suite
from .synthesizer import AssertionSynthesizer

__all__ = (
    'MAX_COMBINATIONS',
    'AssertionSynthesizer',
    'Enumeration',
    'FunctionRegistry',
    'InterfaceExtractor',
    'ScenarioEnumerator',
    'Workflow',
    'find_config',
    'load_config',
    'render_run',
    'render_test_file',
    'resolve_paths',
    'write_suite',
)
