"""Terraform expression subset.

Parsing, static analysis and plan-time evaluation of the Terraform
expressions found in module locals, outputs and resource arguments.
Anything outside the supported subset raises `UnsupportedExpression`
and is reported by the workflow as a coverage gap.
"""

from .analysis import bounds, comparands, conditions, is_boolean, references, traversal, walk
from .evaluator import Evaluator
from .nodes import Node
from .parser import parse_expression

__all__ = (
    'Evaluator',
    'Node',
    'bounds',
    'comparands',
    'conditions',
    'is_boolean',
    'parse_expression',
    'references',
    'traversal',
    'walk',
)
