"""
Error types raised by the ADPA plugin runtime.

Every failure surfaced by the registry, the dependency orderer or the hook
dispatcher is a ``PluginError`` so callers can catch one type and inspect the
offending plugin and hook names.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


class PluginError(Exception):
    """Base error for the plugin system."""

    code = "PLUGIN_ERROR"

    def __init__(
        self,
        message: str,
        plugin_name: Optional[str] = None,
        plugin_version: Optional[str] = None,
        hook_name: Optional[str] = None,
        cause: Optional[BaseException] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.plugin_name = plugin_name
        self.plugin_version = plugin_version
        self.hook_name = hook_name
        self.cause = cause
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the error for logging and API responses."""
        return {
            "name": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "plugin_name": self.plugin_name,
            "plugin_version": self.plugin_version,
            "hook_name": self.hook_name,
            "cause": str(self.cause) if self.cause else None,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


class PluginValidationError(PluginError):
    """A plugin descriptor does not satisfy the descriptor schema."""

    code = "PLUGIN_VALIDATION_ERROR"

    def __init__(self, message: str, violations: List[Any], **kwargs):
        super().__init__(message, **kwargs)
        self.violations = list(violations)
        self.details.setdefault(
            "violations", [f"{v.field}: {v.message}" for v in self.violations]
        )


class PluginDependencyError(PluginError):
    """A dependency is missing, or the dependency graph contains a cycle."""

    code = "PLUGIN_DEPENDENCY_ERROR"

    def __init__(
        self,
        message: str,
        missing: Optional[List[str]] = None,
        cycle_at: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.missing = list(missing or [])
        self.cycle_at = cycle_at


class DuplicatePluginError(PluginError):
    """A plugin with the same name is already registered."""

    code = "PLUGIN_DUPLICATE_ERROR"


class PluginNotFoundError(PluginError):
    """An operation referenced a plugin name that is not registered."""

    code = "PLUGIN_NOT_FOUND"


class PluginLoadError(PluginError):
    """A plugin definition could not be imported or resolved."""

    code = "PLUGIN_LOAD_ERROR"


class PluginInitializationError(PluginError):
    """The plugin's initializer raised."""

    code = "PLUGIN_INIT_ERROR"


class PluginCleanupError(PluginError):
    """The plugin instance's cleanup routine raised."""

    code = "PLUGIN_CLEANUP_ERROR"


class HookExecutionError(PluginError):
    """A hook handler raised a critical error and dispatch was halted."""

    code = "PLUGIN_HOOK_ERROR"


class CriticalHookError(Exception):
    """
    Raised by hook handlers to stop dispatch of the remaining handlers.

    Any exception with a truthy ``critical`` attribute is treated the same way.
    """

    critical = True


def is_critical(error: BaseException) -> bool:
    """Return True if a handler error must halt hook dispatch."""
    return bool(getattr(error, "critical", False))
