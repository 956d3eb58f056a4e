"""
Hook dispatch for the ADPA plugin system.

Handlers registered for a lifecycle hook run in the order their plugins were
initialized. Ordinary handler errors are isolated and reported; critical errors
stop dispatch.
"""

import inspect
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .errors import HookExecutionError, is_critical
from .notifications import PluginEvent, PluginNotifier
from adpa.utils.logger import logger


@dataclass
class HookRegistration:
    """Hook registration information."""

    plugin_name: str
    callback: Callable


class HookDispatcher:
    """
    Maps hook names to ordered handler lists and executes them.
    """

    def __init__(self, notifier: Optional[PluginNotifier] = None):
        """
        Initialize the hook dispatcher.

        Args:
            notifier: Receives hook_executed and hook_error notifications
        """
        self.notifier = notifier or PluginNotifier()
        self._hooks: Dict[str, List[HookRegistration]] = {}
        self._hook_stats: Dict[str, Dict[str, int]] = {}

    def register_hook(self, hook_name: str, callback: Callable, plugin_name: str):
        """
        Register a hook callback after any existing ones.

        Args:
            hook_name: Name of the hook point
            callback: Callback function to execute
            plugin_name: Name of the plugin registering the hook
        """
        self._hooks.setdefault(hook_name, []).append(
            HookRegistration(plugin_name=plugin_name, callback=callback)
        )
        logger.info(f"Registered {hook_name} hook for plugin {plugin_name}")

    def register_plugin_hooks(
        self, plugin_name: str, hooks: Dict[str, Callable]
    ) -> int:
        """
        Register every handler a plugin declares.

        Returns:
            Number of handlers registered
        """
        for hook_name, callback in (hooks or {}).items():
            self.register_hook(hook_name, callback, plugin_name)
        return len(hooks or {})

    def unregister_plugin_hooks(self, plugin_name: str) -> int:
        """
        Unregister all hooks for a plugin.

        Args:
            plugin_name: Name of the plugin

        Returns:
            Total number of hooks removed
        """
        total_removed = 0

        for hook_name in list(self._hooks):
            hooks_list = self._hooks[hook_name]
            remaining = [hook for hook in hooks_list if hook.plugin_name != plugin_name]
            total_removed += len(hooks_list) - len(remaining)

            if remaining:
                self._hooks[hook_name] = remaining
            else:
                del self._hooks[hook_name]

        if total_removed > 0:
            logger.info(
                f"Unregistered {total_removed} total hooks for plugin {plugin_name}"
            )

        return total_removed

    async def execute_hook(self, hook_name: str, *args, **kwargs) -> List[Any]:
        """
        Execute all registered hooks for a hook point.

        Args:
            hook_name: Name of the hook point
            *args: Positional arguments passed to every handler
            **kwargs: Keyword arguments passed to every handler

        Returns:
            Results of the handlers that succeeded, in registration order

        Raises:
            HookExecutionError: If a handler raises a critical error
        """
        # Snapshot so handlers that (un)register plugins do not affect this run
        hooks_list = list(self._hooks.get(hook_name, []))
        if not hooks_list:
            return []

        logger.debug(f"Executing {len(hooks_list)} hooks for {hook_name}")

        stats = self._hook_stats.setdefault(hook_name, {"executed": 0, "errors": 0})
        results = []

        for hook in hooks_list:
            try:
                result = hook.callback(*args, **kwargs)
                if inspect.isawaitable(result):
                    result = await result

                results.append(result)
                stats["executed"] += 1

                self.notifier.notify(
                    PluginEvent.HOOK_EXECUTED,
                    {
                        "hook_name": hook_name,
                        "plugin_name": hook.plugin_name,
                        "result": result,
                    },
                )

            except Exception as e:
                stats["errors"] += 1
                critical = is_critical(e)
                logger.error(
                    f"Error executing {hook_name} hook for plugin {hook.plugin_name}: {e}",
                    exc_info=True,
                )
                self.notifier.notify(
                    PluginEvent.HOOK_ERROR,
                    {
                        "hook_name": hook_name,
                        "plugin_name": hook.plugin_name,
                        "error": e,
                        "critical": critical,
                    },
                )

                if critical:
                    raise HookExecutionError(
                        f"Critical error in plugin {hook.plugin_name} hook {hook_name}: {e}",
                        plugin_name=hook.plugin_name,
                        hook_name=hook_name,
                        cause=e,
                    ) from e

        return results

    def has_hook(self, hook_name: str) -> bool:
        """Check if a hook has at least one handler."""
        return bool(self._hooks.get(hook_name))

    def get_available_hooks(self) -> List[str]:
        """Get the hook names that currently have handlers."""
        return [name for name, hooks in self._hooks.items() if hooks]

    def get_hooks(self, hook_name: str) -> List[HookRegistration]:
        """
        Get all registered hooks for a hook point.

        Args:
            hook_name: Name of the hook point

        Returns:
            List of hook registrations
        """
        return list(self._hooks.get(hook_name, []))

    def get_plugin_hooks(self, plugin_name: str) -> Dict[str, List[HookRegistration]]:
        """
        Get all hooks registered by a specific plugin.

        Args:
            plugin_name: Name of the plugin

        Returns:
            Dictionary mapping hook names to registrations
        """
        plugin_hooks = {}

        for hook_name, hooks_list in self._hooks.items():
            plugin_hooks_for_point = [
                hook for hook in hooks_list if hook.plugin_name == plugin_name
            ]
            if plugin_hooks_for_point:
                plugin_hooks[hook_name] = plugin_hooks_for_point

        return plugin_hooks

    def handler_count(self) -> int:
        return sum(len(hooks) for hooks in self._hooks.values())

    def get_statistics(self) -> Dict[str, Dict[str, int]]:
        """
        Get hook execution statistics.

        Returns:
            Dictionary containing execution and error counts per hook
        """
        return {name: dict(stats) for name, stats in self._hook_stats.items()}

    def clear_statistics(self):
        """Clear hook execution statistics."""
        self._hook_stats.clear()

    def clear(self):
        """Drop every registration."""
        self._hooks.clear()
