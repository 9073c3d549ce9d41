"""Extensions discovery and loading infrastructure.

This module defines a mixin responsible for discovering, loading, and
registering evaluator plugins exposed via Python entry points.

Plugins are loaded tolerantly: individual failures do not interrupt
the loading process unless strict mode is enabled.
"""

import logging
from typing import TYPE_CHECKING
from warnings import warn

from pydantic import ValidationError

from tfcases.errors import PluginError, PluginWarning
from tfcases.extensions import Plugin

if TYPE_CHECKING:
    from importlib.metadata import EntryPoint

if TYPE_CHECKING:
    from tfcases.extensions import Function

#: Entry point group scanned for plugins.
PLUGINS_GROUP = 'tfcases_plugins'

logger = logging.getLogger(__name__)


class ExtensionsLoaderMixin:
    """Mixin defining plugin extension loading behavior.

    Attributes:
        strict_mode: If True, any plugin loading issue raises an error.
            If False, issues are emitted as warnings and loading continues.
    """

    strict_mode: bool = False

    functions: dict[str, 'Function']

    def add_function(self, function: 'Function',
                     entrypoint: 'EntryPoint | None' = None) -> None:
        """Register a function definition.

        Args:
            function: Declarative function definition.
            entrypoint: Entry point from which the function was loaded,
                if applicable. Used for diagnostics and warnings.

        Raises:
            PluginError: If the function shadows another one in strict mode.
        """
        module = entrypoint.value if entrypoint else function.function.__module__

        if function.name in self.functions and (error := self.emit_plugin_issue(
            f'Function {function.name!r} from {module!r} is shadowing an existing',
            entrypoint,
        )):
            raise error

        self.functions[function.name] = function

    def emit_plugin_issue(self, message: str,
                          entrypoint: 'EntryPoint | None' = None) -> Exception | None:
        """Emit a plugin warning or return the exception.

        Args:
            message: Warning message to emit.
            entrypoint: Entry point associated with the issue, if applicable.

        Returns:
            PluginError in strict mode, otherwise `None` after
                emitting a PluginWarning.
        """
        if self.strict_mode:
            return PluginError(message, entrypoint=entrypoint)

        warn(message, category=PluginWarning, stacklevel=2)

        return None

    def _load_plugin(self, entrypoint: 'EntryPoint') -> None:
        """Load and register a single plugin entry point.

        Args:
            entrypoint: Entry point describing the plugin to load.

        Raises:
            PluginError: If any loading issues occur in strict mode.
        """
        try:
            plugin = entrypoint.load()

        except ValidationError as base:
            if error := self.emit_plugin_issue(
                f'Failed to validate entrypoint {entrypoint.name!r}',
                entrypoint,
            ):
                raise error from base
            return

        except Exception as base:
            if error := self.emit_plugin_issue(
                f'Failed to load entrypoint {entrypoint.name!r}',
                entrypoint,
            ):
                raise error from base
            return

        if not isinstance(plugin, Plugin):
            if error := self.emit_plugin_issue(
                f'Loaded from entrypoint {entrypoint.name!r} object is not a plugin',
                entrypoint,
            ):
                raise error
            return

        logger.debug('Loading plugin %r from %r', plugin.name, entrypoint.value)

        for function in plugin.functions:
            self.add_function(function, entrypoint)

    def clear_plugins(self) -> None:
        """Clear all registered functions."""
        self.functions = {}

    def load_plugins(self) -> None:
        """Load plugins via entry points and register their extensions.

        Raises:
            PluginError: If any loading issues occur in strict mode.
        """
        from importlib.metadata import entry_points  # noqa: PLC0415

        for entrypoint in entry_points().select(group=PLUGINS_GROUP):
            self._load_plugin(entrypoint)
