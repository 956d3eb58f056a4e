"""
Plugin registry for tracking installed plugins and their live instances.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .descriptor import PluginDescriptor
from .errors import DuplicatePluginError, PluginNotFoundError
from adpa.utils.logger import logger


@dataclass
class PluginRecord:
    """Information about a registered plugin."""

    descriptor: PluginDescriptor
    instance: Any = None
    enabled: bool = False
    installed_at: Optional[datetime] = None
    enabled_at: Optional[datetime] = None
    error_message: Optional[str] = None

    @property
    def name(self) -> str:
        return self.descriptor.name


class PluginRegistry:
    """
    Registry for installed plugin descriptors and their runtime instances.

    Keeps insertion order, which is the order plugins were installed or
    loaded. Lifecycle policy lives in the plugin manager.
    """

    def __init__(self):
        """Initialize the plugin registry."""
        self._plugins: Dict[str, PluginRecord] = {}

    def register(self, descriptor: PluginDescriptor) -> PluginRecord:
        """
        Register a plugin descriptor in the registry.

        Args:
            descriptor: Plugin descriptor to register

        Returns:
            The new registry record

        Raises:
            DuplicatePluginError: If a plugin with the same name is registered
        """
        if descriptor.name in self._plugins:
            raise DuplicatePluginError(
                f"Plugin '{descriptor.name}' is already registered",
                plugin_name=descriptor.name,
                plugin_version=descriptor.version,
            )

        record = PluginRecord(
            descriptor=descriptor,
            installed_at=datetime.now(timezone.utc),
        )
        self._plugins[descriptor.name] = record

        logger.info(f"Registered plugin: {descriptor.name} v{descriptor.version}")
        return record

    def unregister(self, plugin_name: str) -> PluginRecord:
        """
        Unregister a plugin from the registry.

        Args:
            plugin_name: Name of the plugin to unregister

        Returns:
            The removed record

        Raises:
            PluginNotFoundError: If the plugin is not registered
        """
        record = self.get(plugin_name)

        dependents = self.get_dependents(plugin_name)
        if dependents:
            logger.warning(
                f"Unregistering plugin '{plugin_name}' which has dependents: {', '.join(dependents)}"
            )

        del self._plugins[plugin_name]
        logger.info(f"Unregistered plugin: {plugin_name}")
        return record

    def get(self, plugin_name: str) -> PluginRecord:
        """
        Get the record for a plugin.

        Raises:
            PluginNotFoundError: If the plugin is not registered
        """
        record = self._plugins.get(plugin_name)
        if record is None:
            raise PluginNotFoundError(
                f"Plugin {plugin_name} not found", plugin_name=plugin_name
            )
        return record

    def get_descriptor(self, plugin_name: str) -> Optional[PluginDescriptor]:
        record = self._plugins.get(plugin_name)
        return record.descriptor if record else None

    def get_instance(self, plugin_name: str) -> Any:
        record = self._plugins.get(plugin_name)
        return record.instance if record else None

    def has(self, plugin_name: str) -> bool:
        """Check if a plugin is registered."""
        return plugin_name in self._plugins

    def names(self) -> List[str]:
        return list(self._plugins.keys())

    def descriptors(self) -> List[PluginDescriptor]:
        return [record.descriptor for record in self._plugins.values()]

    def records(self) -> List[PluginRecord]:
        return list(self._plugins.values())

    def get_dependents(self, plugin_name: str) -> List[str]:
        """Names of registered plugins that declare a dependency on plugin_name."""
        return [
            name
            for name, record in self._plugins.items()
            if plugin_name in (record.descriptor.dependencies or [])
        ]

    def set_instance(self, plugin_name: str, instance: Any):
        """Mark a plugin enabled with its live instance."""
        record = self.get(plugin_name)
        record.instance = instance
        record.enabled = True
        record.enabled_at = datetime.now(timezone.utc)
        record.error_message = None
        logger.debug(f"Plugin {plugin_name} enabled")

    def clear_instance(self, plugin_name: str):
        """Drop a plugin's live instance and mark it disabled."""
        record = self.get(plugin_name)
        record.instance = None
        record.enabled = False
        record.enabled_at = None
        logger.debug(f"Plugin {plugin_name} disabled")

    def set_error(self, plugin_name: str, error_message: Optional[str]):
        if plugin_name in self._plugins:
            self._plugins[plugin_name].error_message = error_message

    def count(self) -> int:
        """Get total number of registered plugins."""
        return len(self._plugins)

    def clear(self):
        """Clear all registered plugins."""
        self._plugins.clear()
        logger.info("Cleared plugin registry")
