"""
Notification channel for plugin runtime state transitions.

Host applications subscribe callbacks to be told when plugins are installed,
enabled, fail to initialize, or when hook handlers run.
"""

import itertools
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from adpa.utils.logger import logger


class PluginEvent(str, Enum):
    """Notifications emitted by the plugin runtime."""

    INSTALLED = "installed"
    UNINSTALLED = "uninstalled"
    ENABLED = "enabled"
    DISABLED = "disabled"
    INITIALIZED = "initialized"
    CLEANED_UP = "cleaned_up"
    PLUGINS_LOADED = "plugins_loaded"
    LOAD_ERROR = "load_error"
    SOURCE_ERROR = "source_error"
    INIT_ERROR = "init_error"
    CLEANUP_ERROR = "cleanup_error"
    HOOK_EXECUTED = "hook_executed"
    HOOK_ERROR = "hook_error"


Listener = Callable[[PluginEvent, Dict[str, Any]], None]


@dataclass
class Subscription:
    token: int
    callback: Listener
    event_types: Optional[Set[PluginEvent]]

    def accepts(self, event: PluginEvent) -> bool:
        return self.event_types is None or event in self.event_types


class PluginNotifier:
    """
    Fan-out of runtime notifications to subscribed callbacks.

    Callbacks run synchronously in subscription order. A failing callback is
    logged and never interrupts the runtime or the remaining callbacks.
    """

    def __init__(self):
        self._subscriptions: List[Subscription] = []
        self._tokens = itertools.count(1)

    def subscribe(
        self,
        callback: Listener,
        event_types: Optional[Iterable[PluginEvent]] = None,
    ) -> int:
        """
        Subscribe a callback to runtime notifications.

        Args:
            callback: Called as ``callback(event, payload)``
            event_types: Events to receive; all events if None

        Returns:
            Token to pass to ``unsubscribe``
        """
        subscription = Subscription(
            token=next(self._tokens),
            callback=callback,
            event_types=(
                {PluginEvent(e) for e in event_types}
                if event_types is not None
                else None
            ),
        )
        self._subscriptions.append(subscription)
        return subscription.token

    def unsubscribe(self, token: int) -> bool:
        before = len(self._subscriptions)
        self._subscriptions = [s for s in self._subscriptions if s.token != token]
        return len(self._subscriptions) < before

    def notify(self, event: PluginEvent, payload: Optional[Dict[str, Any]] = None):
        """Deliver a notification to every matching subscriber."""
        payload = payload or {}
        logger.debug(f"Plugin event {event.value}: {sorted(payload.keys())}")

        for subscription in list(self._subscriptions):
            if not subscription.accepts(event):
                continue
            try:
                subscription.callback(event, payload)
            except Exception as e:
                logger.error(
                    f"Error in plugin event subscriber for {event.value}: {e}",
                    exc_info=True,
                )

    def __len__(self) -> int:
        return len(self._subscriptions)
