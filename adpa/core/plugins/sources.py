"""
Plugin sources: where candidate plugin descriptors come from.

A source lists candidate descriptors and resolves a single plugin by name.
The plugin manager queries each configured source independently, so one
failing source never prevents the others from being used.
"""

import hashlib
import importlib
import importlib.util
import re
import sys
import types
from abc import ABC, abstractmethod
from importlib.metadata import entry_points
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional

from .descriptor import PluginDescriptor
from .errors import PluginLoadError
from adpa.utils.logger import logger

ErrorCallback = Callable[[str, Exception], None]

PLUGIN_ATTRIBUTE = "plugin"


def coerce_descriptor(obj: Any, origin: str) -> PluginDescriptor:
    """
    Turn a module's ``plugin`` attribute into a descriptor.

    The attribute is either a PluginDescriptor or a zero-argument factory
    returning one.

    Raises:
        PluginLoadError: If no descriptor can be produced
    """
    if callable(obj) and not isinstance(obj, PluginDescriptor):
        obj = obj()

    if not isinstance(obj, PluginDescriptor):
        raise PluginLoadError(
            f"{origin} must expose a '{PLUGIN_ATTRIBUTE}' PluginDescriptor, "
            f"got {type(obj).__name__}"
        )
    return obj


def load_descriptor_from_module(module_name: str) -> PluginDescriptor:
    """
    Import a module by dotted name and read its plugin descriptor.

    Raises:
        PluginLoadError: If the module cannot be imported or has no descriptor
    """
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise PluginLoadError(
            f"Failed to load plugin {module_name}: {e}",
            plugin_name=module_name,
            cause=e,
        ) from e

    if not hasattr(module, PLUGIN_ATTRIBUTE):
        raise PluginLoadError(
            f"Plugin module {module_name} must export a '{PLUGIN_ATTRIBUTE}' object",
            plugin_name=module_name,
        )
    return coerce_descriptor(getattr(module, PLUGIN_ATTRIBUTE), module_name)


class PluginSource(ABC):
    """A place plugins are discovered from."""

    name = "source"

    @abstractmethod
    async def list_candidates(
        self, on_error: Optional[ErrorCallback] = None
    ) -> List[PluginDescriptor]:
        """
        List candidate descriptors in discovery order.

        Args:
            on_error: Called with (location, exception) for each candidate
                that could not be loaded; the scan continues afterwards

        Returns:
            Candidate descriptors
        """

    async def resolve(self, plugin_name: str) -> Optional[PluginDescriptor]:
        """Find a single plugin by name, or None if this source lacks it."""
        for descriptor in await self.list_candidates():
            if descriptor.name == plugin_name:
                return descriptor
        return None


class StaticPluginSource(PluginSource):
    """Serves a fixed list of descriptors."""

    name = "static"

    def __init__(self, descriptors: Optional[Iterable[PluginDescriptor]] = None):
        self.descriptors = list(descriptors or [])

    def add(self, descriptor: PluginDescriptor):
        self.descriptors.append(descriptor)

    async def list_candidates(
        self, on_error: Optional[ErrorCallback] = None
    ) -> List[PluginDescriptor]:
        return list(self.descriptors)


class DirectoryPluginSource(PluginSource):
    """
    Discovers plugin packages in a directory.

    Each sub-directory holding a ``plugin.py`` (or an ``__init__.py``) whose
    module exposes a ``plugin`` attribute is a candidate. A ``builtin``
    sub-directory is scanned recursively.

    Candidates are imported under a private module name keyed on their
    resolved directory, so same-named packages from different directories, or
    packages named like an installed module, never share a ``sys.modules``
    entry. When ``package`` names the dotted package the directory is
    importable as, candidates are imported by their real dotted path instead.
    """

    name = "directory"
    module_prefix = "_adpa_plugin"

    def __init__(self, directory: Path, package: Optional[str] = None):
        self.directory = Path(directory)
        self.package = package

    async def list_candidates(
        self, on_error: Optional[ErrorCallback] = None
    ) -> List[PluginDescriptor]:
        if not self.directory.is_dir():
            logger.warning(f"Plugin directory does not exist: {self.directory}")
            return []

        logger.info(f"Discovering plugins in: {self.directory}")
        candidates: List[PluginDescriptor] = []
        self._discover_in_directory(self.directory, self.package, candidates, on_error)
        return candidates

    def _discover_in_directory(
        self,
        directory: Path,
        package: Optional[str],
        candidates: List[PluginDescriptor],
        on_error: Optional[ErrorCallback],
    ):
        """
        Discover plugins in a specific directory.

        Args:
            directory: Directory to scan
            package: Dotted package the directory is importable as, if any
            candidates: List to populate with discoveries
            on_error: Error callback for candidates that fail to load
        """
        for item in sorted(directory.iterdir()):
            if not item.is_dir() or item.name.startswith("_"):
                continue

            # For 'builtin' directory, recurse into it
            if item.name == "builtin":
                self._discover_in_directory(
                    item, f"{package}.builtin" if package else None, candidates, on_error
                )
                continue

            plugin_file = item / "plugin.py"
            init_file = item / "__init__.py"

            if plugin_file.exists():
                plugin_path = plugin_file
            elif init_file.exists():
                plugin_path = init_file
            else:
                continue

            try:
                if package:
                    module = self._import_module(f"{package}.{item.name}", plugin_path)
                else:
                    module = self._load_module(plugin_path)

                if not hasattr(module, PLUGIN_ATTRIBUTE):
                    logger.debug(f"No plugin descriptor in {plugin_path}, skipping")
                    continue

                descriptor = coerce_descriptor(
                    getattr(module, PLUGIN_ATTRIBUTE), str(plugin_path)
                )
                candidates.append(descriptor)
                logger.debug(f"Discovered plugin: {descriptor.name} in {plugin_path}")

            except Exception as e:
                logger.warning(f"Error discovering plugin in {plugin_path}: {e}")
                if on_error:
                    on_error(str(plugin_path), e)

    @staticmethod
    def _import_module(package_name: str, plugin_path: Path):
        """
        Import a candidate by its real dotted path.

        Raises:
            PluginLoadError: If the dotted path resolves to another file
        """
        if plugin_path.name == "__init__.py":
            module_name = package_name
        else:
            module_name = f"{package_name}.{plugin_path.stem}"

        module = importlib.import_module(module_name)
        module_file = getattr(module, "__file__", None)
        if module_file is None or Path(module_file).resolve() != plugin_path.resolve():
            raise PluginLoadError(
                f"Module {module_name} does not come from {plugin_path}",
                plugin_name=module_name,
            )
        return module

    @classmethod
    def private_package_name(cls, package_dir: Path) -> str:
        """Module name a plugin directory is imported under when it is not on sys.path."""
        resolved = Path(package_dir).resolve()
        digest = hashlib.sha256(str(resolved).encode("utf-8")).hexdigest()[:12]
        safe_name = re.sub(r"\W", "_", resolved.name)
        return f"{cls.module_prefix}_{safe_name}_{digest}"

    def _load_module(self, plugin_path: Path):
        """
        Import a plugin module from its file path under a private name.

        The enclosing package is registered in sys.modules first so plugin
        modules can use relative imports.

        Raises:
            PluginLoadError: If the module cannot be imported
        """
        package_dir = plugin_path.parent
        package_name = self.private_package_name(package_dir)
        init_file = package_dir / "__init__.py"

        package = sys.modules.get(package_name)
        if package is None:
            if init_file.exists():
                pkg_spec = importlib.util.spec_from_file_location(
                    package_name,
                    init_file,
                    submodule_search_locations=[str(package_dir)],
                )
                if pkg_spec is None or pkg_spec.loader is None:
                    raise PluginLoadError(f"Cannot import plugin package at {package_dir}")
                package = importlib.util.module_from_spec(pkg_spec)
                sys.modules[package_name] = package
                try:
                    pkg_spec.loader.exec_module(package)
                except Exception:
                    sys.modules.pop(package_name, None)
                    raise
            else:
                package = types.ModuleType(package_name)
                package.__path__ = [str(package_dir)]
                sys.modules[package_name] = package

        if plugin_path.name == "__init__.py":
            return package

        qualified_name = f"{package_name}.{plugin_path.stem}"
        if qualified_name in sys.modules:
            return sys.modules[qualified_name]

        spec = importlib.util.spec_from_file_location(qualified_name, plugin_path)
        if spec is None or spec.loader is None:
            raise PluginLoadError(f"Cannot import plugin module at {plugin_path}")

        module = importlib.util.module_from_spec(spec)
        module.__package__ = package_name
        sys.modules[qualified_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception:
            sys.modules.pop(qualified_name, None)
            raise
        return module


class EntryPointPluginSource(PluginSource):
    """
    Discovers pip-installed plugins declaring an entry point in ``group``.

    Each entry point loads to a PluginDescriptor or a factory returning one.
    """

    name = "entrypoint"

    def __init__(self, group: str = "adpa.plugins"):
        self.group = group

    async def list_candidates(
        self, on_error: Optional[ErrorCallback] = None
    ) -> List[PluginDescriptor]:
        candidates = []

        for ep in entry_points(group=self.group):
            try:
                descriptor = coerce_descriptor(ep.load(), f"entry point {ep.name}")
                candidates.append(descriptor)
                logger.debug(f"Discovered entrypoint plugin: {ep.name}")
            except Exception as e:
                logger.warning(f"Error loading entrypoint plugin {ep.name}: {e}")
                if on_error:
                    on_error(f"{self.group}:{ep.name}", e)

        return candidates

    async def resolve(self, plugin_name: str) -> Optional[PluginDescriptor]:
        for ep in entry_points(group=self.group):
            if ep.name == plugin_name:
                return coerce_descriptor(ep.load(), f"entry point {ep.name}")
        return None
