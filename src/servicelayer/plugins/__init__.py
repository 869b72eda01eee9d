"""Extension layer — plugin system via pluggy.

Discovery: entry_points (pip-installed) via pluggy setuptools entrypoints.
INVARIANT: Plugin failures are warnings, never errors.
"""

from servicelayer.plugins.hookspecs import hookspec
from servicelayer.plugins.manager import PROJECT_NAME, PluginManager, hookimpl

__all__ = ["PROJECT_NAME", "PluginManager", "hookimpl", "hookspec"]
