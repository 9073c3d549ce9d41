"""Function registry shared by the workflow stages."""

from collections.abc import Mapping
from typing import TYPE_CHECKING

from tfcases.builtins.functions import BUILTINS

from .loader import ExtensionsLoaderMixin

if TYPE_CHECKING:
    from collections.abc import Iterator

if TYPE_CHECKING:
    from tfcases.extensions import Function


class FunctionRegistry(ExtensionsLoaderMixin, Mapping[str, 'Function']):
    """Read-only mapping of function names to definitions.

    The registry is populated with built-in functions first, then with
    functions contributed by plugins.
    """

    def __init__(self, strict: bool = False, load_plugins: bool = True) -> None:
        """Initialize the registry.

        Args:
            strict: Whether to raise errors on plugin loading failures
                and shadowing instead of emitting warnings.
            load_plugins: Whether to discover plugins via entry points.
        """
        self.strict_mode = strict

        self.clear_plugins()

        for function in BUILTINS:
            self.add_function(function)

        if load_plugins:
            self.load_plugins()

    def __getitem__(self, name: str) -> 'Function':
        return self.functions[name]

    def __iter__(self) -> 'Iterator[str]':
        return iter(self.functions)

    def __len__(self) -> int:
        return len(self.functions)
