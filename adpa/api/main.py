from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from adpa.api.handlers.exception_handlers import (
    plugin_exception_handler,
    unprocessable_entity_exception_handler,
)
from adpa.api.routes import app as app_endpoints
from adpa.api.routes import plugins as plugin_endpoints
from adpa.config import settings
from adpa.core.plugins import (
    DirectoryPluginSource,
    EntryPointPluginSource,
    PluginError,
    PluginManager,
)
from adpa.utils.logger import logger, setup_logger

setup_logger()


def build_directory_source(path: Path) -> DirectoryPluginSource:
    """Import bundled plugins by their package path, anything else privately."""
    if Path(path).resolve() == settings.BUILTIN_PLUGINS_DIR:
        return DirectoryPluginSource(path, package=settings.BUILTIN_PLUGINS_PACKAGE)
    return DirectoryPluginSource(path)


def build_plugin_manager() -> PluginManager:
    """Create a plugin manager wired to the configured plugin sources."""
    sources = [build_directory_source(path) for path in settings.PLUGIN_DIRECTORIES]
    if settings.PLUGIN_ENTRYPOINT_GROUP:
        sources.append(EntryPointPluginSource(settings.PLUGIN_ENTRYPOINT_GROUP))

    manager = PluginManager(sources=sources)
    for plugin_name, config in settings.load_plugin_configs(
        settings.PLUGIN_CONFIG_FILE
    ).items():
        manager.set_plugin_config(plugin_name, config)
    return manager


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    On startup, discovers and initializes plugins. On shutdown, tears every
    plugin down so instances can release their resources.
    """
    logger.info("Starting up...")
    manager = build_plugin_manager()
    app.state.plugin_manager = manager
    await manager.load_plugins()

    yield

    logger.info("Shutting down...")
    await manager.cleanup()


app = FastAPI(
    title="ADPA Plugin Runtime",
    description="Plugin registry and lifecycle hooks for document generation",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_exception_handler(RequestValidationError, unprocessable_entity_exception_handler)
app.add_exception_handler(PluginError, plugin_exception_handler)

app.include_router(app_endpoints.router, tags=["general"])
app.include_router(plugin_endpoints.router, prefix="/api/plugins", tags=["plugins"])
