from typing import Any, Callable, Dict, List, Optional, Tuple

from adpa.core.plugins import PluginDescriptor, PluginEvent, PluginNotifier


def make_descriptor(
    name: str,
    dependencies: Optional[List[str]] = None,
    hooks: Optional[Dict[str, Callable]] = None,
    initializer: Optional[Callable] = None,
    version: str = "1.0.0",
    config: Optional[Dict[str, Any]] = None,
) -> PluginDescriptor:
    """Build a descriptor with test-friendly defaults."""
    return PluginDescriptor(
        name=name,
        version=version,
        description=f"{name} test plugin",
        author="tests",
        dependencies=list(dependencies or []),
        hooks=dict(hooks or {}),
        config=dict(config or {}),
        initializer=initializer,
    )


class Instance:
    """Plugin instance that records its config and cleanup calls."""

    def __init__(self, config, fail_cleanup: bool = False):
        self.config = config
        self.fail_cleanup = fail_cleanup
        self.cleaned_up = 0

    async def cleanup(self):
        self.cleaned_up += 1
        if self.fail_cleanup:
            raise RuntimeError("cleanup exploded")


class EventRecorder:
    """Subscribes to a notifier and keeps every notification it receives."""

    def __init__(self, notifier: PluginNotifier):
        self.events: List[Tuple[PluginEvent, Dict[str, Any]]] = []
        notifier.subscribe(self)

    def __call__(self, event: PluginEvent, payload: Dict[str, Any]):
        self.events.append((event, payload))

    def of(self, event: PluginEvent) -> List[Dict[str, Any]]:
        return [payload for e, payload in self.events if e == event]

    def names(self) -> List[PluginEvent]:
        return [e for e, _ in self.events]
