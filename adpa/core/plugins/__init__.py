"""
ADPA Plugin System

Plugin registration, dependency ordering and lifecycle hook dispatch for the
document generation pipeline.
"""

from .descriptor import BasePlugin, LifecycleHook, PluginDescriptor
from .dependency_order import resolve_load_order
from .errors import (
    CriticalHookError,
    DuplicatePluginError,
    HookExecutionError,
    PluginCleanupError,
    PluginDependencyError,
    PluginError,
    PluginInitializationError,
    PluginLoadError,
    PluginNotFoundError,
    PluginValidationError,
)
from .event_hooks import HookDispatcher, HookRegistration
from .notifications import PluginEvent, PluginNotifier
from .plugin_manager import PluginManager
from .plugin_registry import PluginRecord, PluginRegistry
from .sources import (
    DirectoryPluginSource,
    EntryPointPluginSource,
    PluginSource,
    StaticPluginSource,
)
from .validation import Violation, ensure_valid, validate_descriptor

__all__ = [
    "BasePlugin",
    "LifecycleHook",
    "PluginDescriptor",
    "resolve_load_order",
    "CriticalHookError",
    "DuplicatePluginError",
    "HookExecutionError",
    "PluginCleanupError",
    "PluginDependencyError",
    "PluginError",
    "PluginInitializationError",
    "PluginLoadError",
    "PluginNotFoundError",
    "PluginValidationError",
    "HookDispatcher",
    "HookRegistration",
    "PluginEvent",
    "PluginNotifier",
    "PluginManager",
    "PluginRecord",
    "PluginRegistry",
    "DirectoryPluginSource",
    "EntryPointPluginSource",
    "PluginSource",
    "StaticPluginSource",
    "Violation",
    "ensure_valid",
    "validate_descriptor",
]
