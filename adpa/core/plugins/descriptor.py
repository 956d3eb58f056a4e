"""
Plugin descriptors and the runtime base class for the ADPA plugin system.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set


class LifecycleHook(str, Enum):
    """Lifecycle events plugins may attach handlers to."""

    BEFORE_DOCUMENT_GENERATION = "before_document_generation"
    AFTER_DOCUMENT_GENERATION = "after_document_generation"
    BEFORE_VALIDATION = "before_validation"
    AFTER_VALIDATION = "after_validation"
    BEFORE_PUBLISH = "before_publish"
    AFTER_PUBLISH = "after_publish"

    @classmethod
    def names(cls) -> Set[str]:
        """Return the set of recognised hook names."""
        return {hook.value for hook in cls}


@dataclass
class PluginDescriptor:
    """
    Static description of a plugin.

    ``hooks`` maps lifecycle hook names to handlers. ``initializer`` is called
    with the plugin configuration and returns the plugin's runtime instance;
    it may be a coroutine function. An instance exposing ``cleanup()`` has it
    called when the plugin is disabled, uninstalled or torn down.
    """

    name: str
    version: str
    description: str = ""
    author: str = ""
    dependencies: List[str] = field(default_factory=list)
    hooks: Dict[str, Callable] = field(default_factory=dict)
    config: Dict[str, Any] = field(default_factory=dict)
    initializer: Optional[Callable[[Dict[str, Any]], Any]] = None

    @property
    def hook_names(self) -> List[str]:
        return list(self.hooks.keys()) if isinstance(self.hooks, dict) else []


class BasePlugin:
    """
    Base class for runtime instances returned by plugin initializers.

    Instances are owned by the plugin registry. Subclasses override
    ``_cleanup()`` to release resources when the plugin is disabled.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize the plugin instance with configuration.

        Args:
            config: Plugin configuration dictionary
        """
        self.config = config or {}
        self._initialized = True

    async def cleanup(self) -> None:
        """
        Cleanup plugin resources.

        Called by the plugin manager before the instance reference is dropped.
        """
        if not self._initialized:
            return

        await self._cleanup()
        self._initialized = False

    async def _cleanup(self) -> None:
        """Plugin-specific cleanup logic."""
        pass

    def get_config(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Args:
            key: Configuration key
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        return self.config.get(key, default)

    @property
    def is_initialized(self) -> bool:
        """Check if the instance has not been cleaned up yet."""
        return self._initialized
