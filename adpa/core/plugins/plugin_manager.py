"""
Plugin manager for discovering, installing and managing plugin lifecycle.
"""

import inspect
from typing import Any, Dict, List, Optional, Sequence, Union

from .dependency_order import resolve_load_order
from .descriptor import PluginDescriptor
from .errors import (
    DuplicatePluginError,
    PluginCleanupError,
    PluginDependencyError,
    PluginError,
    PluginInitializationError,
    PluginLoadError,
    PluginValidationError,
)
from .event_hooks import HookDispatcher
from .notifications import PluginEvent, PluginNotifier
from .plugin_registry import PluginRegistry
from .sources import PluginSource, load_descriptor_from_module
from .validation import ensure_valid
from adpa.utils.logger import logger


class PluginManager:
    """
    Manages plugin discovery, installation and lifecycle.

    Coordinates the plugin sources, the registry, the dependency orderer and
    the hook dispatcher. Calls are expected to be made sequentially by a
    single caller; the manager does no locking of its own.
    """

    def __init__(
        self,
        sources: Optional[Sequence[PluginSource]] = None,
        registry: Optional[PluginRegistry] = None,
        dispatcher: Optional[HookDispatcher] = None,
        notifier: Optional[PluginNotifier] = None,
    ):
        """
        Initialize the plugin manager.

        Args:
            sources: Plugin sources queried by load_plugins, in order
            registry: Plugin registry (a new one if None)
            dispatcher: Hook dispatcher (a new one if None)
            notifier: Notification channel shared with the dispatcher
        """
        if notifier is None:
            notifier = dispatcher.notifier if dispatcher else PluginNotifier()
        self.notifier = notifier
        self.registry = registry or PluginRegistry()
        self.dispatcher = dispatcher or HookDispatcher(notifier)
        self.sources: List[PluginSource] = list(sources or [])
        self._plugin_configs: Dict[str, Dict[str, Any]] = {}
        self._enabled_order: List[str] = []

    def add_source(self, source: PluginSource):
        """Add a source to query during load_plugins."""
        self.sources.append(source)
        logger.info(f"Added plugin source: {source.name}")

    def set_plugin_config(self, plugin_name: str, config: Dict[str, Any]):
        """
        Set configuration for a plugin.

        Used when the plugin is initialized without an explicit config.

        Args:
            plugin_name: Name of the plugin
            config: Configuration dictionary
        """
        self._plugin_configs[plugin_name] = config
        logger.debug(f"Set config for plugin {plugin_name}: {list(config.keys())}")

    async def load_plugins(self) -> List[str]:
        """
        Discover, order and initialize plugins from every source.

        Individual plugin failures are reported as notifications and do not
        stop the remaining plugins from loading.

        Returns:
            Names of the plugins enabled by this call, in initialization order

        Raises:
            PluginDependencyError: If the discovered plugins form a dependency
                cycle; no plugin from the batch is registered in that case
        """
        candidates = await self._discover_candidates()
        batch: List[PluginDescriptor] = []
        seen = set()

        for descriptor in candidates:
            try:
                ensure_valid(descriptor)
            except PluginValidationError as e:
                self._report_load_error(getattr(descriptor, "name", None), e)
                continue

            if descriptor.name in seen or self.registry.has(descriptor.name):
                self._report_load_error(
                    descriptor.name,
                    DuplicatePluginError(
                        f"Duplicate plugin '{descriptor.name}', skipping (first-found wins)",
                        plugin_name=descriptor.name,
                        plugin_version=descriptor.version,
                    ),
                )
                continue

            seen.add(descriptor.name)
            batch.append(descriptor)

        loading_order = resolve_load_order(batch)
        logger.info(
            f"Initializing plugins in order: {[d.name for d in loading_order]}"
        )

        loaded: List[str] = []
        failed: List[str] = []

        for descriptor in loading_order:
            plugin_name = descriptor.name
            self.registry.register(descriptor)

            failed_deps = [dep for dep in descriptor.dependencies or [] if dep in failed]
            if failed_deps:
                error = PluginDependencyError(
                    f"Dependencies not initialized: {failed_deps}",
                    missing=failed_deps,
                    plugin_name=plugin_name,
                    plugin_version=descriptor.version,
                )
                logger.error(f"Plugin {plugin_name} initialization skipped: {error}")
                self.registry.set_error(plugin_name, str(error))
                self.notifier.notify(
                    PluginEvent.INIT_ERROR, {"plugin_name": plugin_name, "error": error}
                )
                failed.append(plugin_name)
                continue

            try:
                await self._activate(descriptor)
                loaded.append(plugin_name)
            except PluginInitializationError:
                failed.append(plugin_name)

        logger.info(f"Initialized {len(loaded)}/{len(loading_order)} plugins successfully")
        self.notifier.notify(
            PluginEvent.PLUGINS_LOADED, {"loaded": list(loaded), "failed": list(failed)}
        )
        return loaded

    async def install_plugin(
        self,
        plugin: Union[str, PluginDescriptor],
        config: Optional[Dict[str, Any]] = None,
    ) -> PluginDescriptor:
        """
        Install and initialize a single plugin.

        Every declared dependency must already be registered. On failure the
        registry is left as it was.

        Args:
            plugin: Descriptor, or a plugin name to resolve through the
                sources and then as an importable module
            config: Configuration passed to the initializer

        Returns:
            The installed descriptor

        Raises:
            PluginError: Identifying the plugin, on any failure
        """
        plugin_name = plugin.name if isinstance(plugin, PluginDescriptor) else plugin

        try:
            descriptor = (
                plugin
                if isinstance(plugin, PluginDescriptor)
                else await self._resolve_descriptor(plugin)
            )
            plugin_name = descriptor.name or plugin_name

            ensure_valid(descriptor)

            if self.registry.has(descriptor.name):
                raise DuplicatePluginError(
                    f"Plugin '{descriptor.name}' already exists",
                    plugin_name=descriptor.name,
                    plugin_version=descriptor.version,
                )

            missing = [
                dep for dep in descriptor.dependencies or [] if not self.registry.has(dep)
            ]
            if missing:
                raise PluginDependencyError(
                    f"Plugin dependency not found: {', '.join(missing)}",
                    missing=missing,
                    plugin_name=descriptor.name,
                    plugin_version=descriptor.version,
                )

            self.registry.register(descriptor)
            try:
                await self._activate(descriptor, config)
            except PluginError:
                self.registry.unregister(descriptor.name)
                raise

        except PluginError as e:
            logger.error(f"Failed to install plugin {plugin_name}: {e}")
            raise

        logger.info(f"Installed plugin: {descriptor.name} v{descriptor.version}")
        self.notifier.notify(
            PluginEvent.INSTALLED,
            {"plugin_name": descriptor.name, "version": descriptor.version},
        )
        return descriptor

    async def uninstall_plugin(self, plugin_name: str) -> None:
        """
        Clean up a plugin, drop its hooks and remove it from the registry.

        Raises:
            PluginNotFoundError: If the plugin is not registered
            PluginCleanupError: If the instance cleanup raises; the plugin
                stays installed in that case
        """
        record = self.registry.get(plugin_name)

        if record.enabled:
            await self._deactivate(plugin_name)

        self.registry.unregister(plugin_name)
        self._plugin_configs.pop(plugin_name, None)

        logger.info(f"Uninstalled plugin: {plugin_name}")
        self.notifier.notify(
            PluginEvent.UNINSTALLED,
            {"plugin_name": plugin_name, "version": record.descriptor.version},
        )

    async def enable_plugin(self, plugin_name: str) -> None:
        """
        Re-initialize a disabled plugin and register its hooks.

        Raises:
            PluginNotFoundError: If the plugin is not registered
            PluginInitializationError: If the initializer raises
        """
        record = self.registry.get(plugin_name)
        if record.enabled:
            logger.debug(f"Plugin {plugin_name} is already enabled")
            return

        await self._activate(record.descriptor)

        logger.info(f"Enabled plugin: {plugin_name}")
        self.notifier.notify(PluginEvent.ENABLED, {"plugin_name": plugin_name})

    async def disable_plugin(self, plugin_name: str) -> None:
        """
        Clean up a plugin's instance and drop its hooks, keeping it installed.

        Raises:
            PluginNotFoundError: If the plugin is not registered
            PluginCleanupError: If the instance cleanup raises
        """
        record = self.registry.get(plugin_name)
        if not record.enabled:
            logger.debug(f"Plugin {plugin_name} is already disabled")
            return

        await self._deactivate(plugin_name)

        logger.info(f"Disabled plugin: {plugin_name}")
        self.notifier.notify(PluginEvent.DISABLED, {"plugin_name": plugin_name})

    def get_installed_plugins(self) -> List[PluginDescriptor]:
        """Get all installed plugin descriptors in installation order."""
        return self.registry.descriptors()

    def get_plugin(self, plugin_name: str) -> Optional[PluginDescriptor]:
        """Get a plugin descriptor by name."""
        return self.registry.get_descriptor(plugin_name)

    def get_plugin_instance(self, plugin_name: str) -> Any:
        """Get a plugin's live instance, or None if it is disabled or unknown."""
        return self.registry.get_instance(plugin_name)

    def get_plugin_status(self) -> Dict[str, Dict[str, Any]]:
        """
        Get the status of every installed plugin.

        Returns:
            Dictionary mapping plugin names to their status
        """
        status = {}

        for record in self.registry.records():
            descriptor = record.descriptor
            status[descriptor.name] = {
                "name": descriptor.name,
                "version": descriptor.version,
                "description": descriptor.description,
                "author": descriptor.author,
                "enabled": record.enabled,
                "hooks": list(descriptor.hook_names),
                "dependencies": list(descriptor.dependencies or []),
                "error_message": record.error_message,
            }

        return status

    def get_plugin_status_summary(self) -> Dict[str, Any]:
        """
        Get a summary of plugin states.

        Returns:
            Dictionary with plugin counts and hook metrics
        """
        records = self.registry.records()
        enabled = sum(1 for record in records if record.enabled)

        return {
            "total_plugins": len(records),
            "enabled_plugins": enabled,
            "disabled_plugins": len(records) - enabled,
            "registered_handlers": self.dispatcher.handler_count(),
            "available_hooks": self.dispatcher.get_available_hooks(),
        }

    async def execute_hook(self, hook_name: str, *args, **kwargs) -> List[Any]:
        """Run every handler registered for a hook. See HookDispatcher.execute_hook."""
        return await self.dispatcher.execute_hook(hook_name, *args, **kwargs)

    def has_hook(self, hook_name: str) -> bool:
        return self.dispatcher.has_hook(hook_name)

    def get_available_hooks(self) -> List[str]:
        return self.dispatcher.get_available_hooks()

    async def cleanup(self) -> Dict[str, bool]:
        """
        Tear down every plugin and clear all state.

        Enabled plugins are cleaned up in reverse initialization order. A
        failing cleanup is reported and the remaining plugins still run theirs.

        Returns:
            Dictionary mapping enabled plugin names to cleanup success
        """
        results = {}

        for plugin_name in reversed(list(self._enabled_order)):
            try:
                await self._deactivate(plugin_name)
                results[plugin_name] = True
            except PluginCleanupError:
                results[plugin_name] = False

        self.registry.clear()
        self.dispatcher.clear()
        self._enabled_order.clear()

        successful = sum(1 for success in results.values() if success)
        logger.info(f"Cleaned up {successful}/{len(results)} plugins successfully")
        return results

    async def _discover_candidates(self) -> List[PluginDescriptor]:
        """Collect candidates from every source, tolerating source failures."""
        candidates: List[PluginDescriptor] = []

        for source in self.sources:
            try:
                found = await source.list_candidates(on_error=self._on_candidate_error)
            except Exception as e:
                logger.error(f"Plugin source {source.name} failed: {e}", exc_info=True)
                self.notifier.notify(
                    PluginEvent.SOURCE_ERROR, {"source": source.name, "error": e}
                )
                continue
            candidates.extend(found)

        logger.info(f"Discovered {len(candidates)} plugins")
        return candidates

    def _on_candidate_error(self, location: str, error: Exception):
        self.notifier.notify(
            PluginEvent.LOAD_ERROR, {"plugin_name": None, "path": location, "error": error}
        )

    def _report_load_error(self, plugin_name: Optional[str], error: PluginError):
        logger.error(f"Plugin {plugin_name} was not loaded: {error}")
        self.notifier.notify(
            PluginEvent.LOAD_ERROR, {"plugin_name": plugin_name, "error": error}
        )

    async def _resolve_descriptor(self, plugin_name: str) -> PluginDescriptor:
        """
        Find a plugin definition by name.

        Sources are asked first; otherwise the name is imported as a module.

        Raises:
            PluginLoadError: If no definition can be loaded
        """
        try:
            for source in self.sources:
                descriptor = await source.resolve(plugin_name)
                if descriptor is not None:
                    return descriptor
            return load_descriptor_from_module(plugin_name)
        except PluginError:
            raise
        except Exception as e:
            raise PluginLoadError(
                f"Failed to load plugin {plugin_name}: {e}",
                plugin_name=plugin_name,
                cause=e,
            ) from e

    def _resolve_config(
        self, descriptor: PluginDescriptor, config: Optional[Dict[str, Any]]
    ) -> Dict[str, Any]:
        if config is not None:
            return config
        if descriptor.name in self._plugin_configs:
            return self._plugin_configs[descriptor.name]
        return dict(descriptor.config or {})

    async def _activate(
        self, descriptor: PluginDescriptor, config: Optional[Dict[str, Any]] = None
    ):
        """
        Run the initializer, then register the plugin's hooks.

        Raises:
            PluginInitializationError: If the initializer raises
        """
        plugin_name = descriptor.name
        instance = None

        try:
            if descriptor.initializer is not None:
                instance = descriptor.initializer(
                    self._resolve_config(descriptor, config)
                )
                if inspect.isawaitable(instance):
                    instance = await instance
        except Exception as e:
            error = PluginInitializationError(
                f"Failed to initialize plugin {plugin_name}: {e}",
                plugin_name=plugin_name,
                plugin_version=descriptor.version,
                cause=e,
            )
            logger.error(f"Plugin {plugin_name} initialization failed: {e}", exc_info=True)
            self.registry.set_error(plugin_name, str(error))
            self.notifier.notify(
                PluginEvent.INIT_ERROR, {"plugin_name": plugin_name, "error": error}
            )
            raise error from e

        self.registry.set_instance(plugin_name, instance)
        self.dispatcher.register_plugin_hooks(plugin_name, descriptor.hooks)
        self._enabled_order.append(plugin_name)

        logger.info(f"Initialized plugin: {plugin_name}")
        self.notifier.notify(PluginEvent.INITIALIZED, {"plugin_name": plugin_name})

    async def _deactivate(self, plugin_name: str):
        """
        Run the instance cleanup, then drop the instance and its hooks.

        Raises:
            PluginCleanupError: If the cleanup raises; state is left unchanged
        """
        record = self.registry.get(plugin_name)
        cleanup = getattr(record.instance, "cleanup", None)

        try:
            if callable(cleanup):
                result = cleanup()
                if inspect.isawaitable(result):
                    await result
        except Exception as e:
            error = PluginCleanupError(
                f"Failed to cleanup plugin {plugin_name}: {e}",
                plugin_name=plugin_name,
                plugin_version=record.descriptor.version,
                cause=e,
            )
            logger.error(f"Plugin {plugin_name} cleanup failed: {e}", exc_info=True)
            self.registry.set_error(plugin_name, str(error))
            self.notifier.notify(
                PluginEvent.CLEANUP_ERROR, {"plugin_name": plugin_name, "error": error}
            )
            raise error from e

        self.registry.clear_instance(plugin_name)
        self.dispatcher.unregister_plugin_hooks(plugin_name)
        if plugin_name in self._enabled_order:
            self._enabled_order.remove(plugin_name)

        logger.info(f"Cleaned up plugin: {plugin_name}")
        self.notifier.notify(PluginEvent.CLEANED_UP, {"plugin_name": plugin_name})
