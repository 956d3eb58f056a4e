import pytest

from adpa.core.plugins import PluginManager, PluginNotifier, StaticPluginSource


@pytest.fixture
def notifier():
    return PluginNotifier()


@pytest.fixture
def static_source():
    return StaticPluginSource()


@pytest.fixture
def manager(notifier, static_source):
    """A manager with an empty static source, isolated from any global state."""
    return PluginManager(sources=[static_source], notifier=notifier)
