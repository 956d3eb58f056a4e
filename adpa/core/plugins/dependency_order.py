"""
Dependency ordering for batches of plugin descriptors.
"""

from typing import Dict, Iterator, List, Sequence, Set, Tuple

from .descriptor import PluginDescriptor
from .errors import PluginDependencyError
from adpa.utils.logger import logger


def resolve_load_order(
    descriptors: Sequence[PluginDescriptor],
) -> List[PluginDescriptor]:
    """
    Get the order in which plugins should be initialized based on dependencies.

    Every plugin is placed after all of its dependencies that are part of the
    same batch. Dependencies outside the batch are skipped.

    Args:
        descriptors: Plugin descriptors in discovery order

    Returns:
        Descriptors in initialization order

    Raises:
        PluginDependencyError: If circular dependencies are detected
    """
    by_name: Dict[str, PluginDescriptor] = {d.name: d for d in descriptors}
    visited: Set[str] = set()
    visiting: Set[str] = set()
    result: List[PluginDescriptor] = []

    # Depth-first topological sort on an explicit stack
    for root in descriptors:
        if root.name in visited:
            continue

        visiting.add(root.name)
        stack: List[Tuple[PluginDescriptor, Iterator[str]]] = [
            (root, iter(root.dependencies or []))
        ]

        while stack:
            descriptor, pending = stack[-1]

            for dep_name in pending:
                dependency = by_name.get(dep_name)
                if dependency is None:
                    logger.debug(
                        f"Plugin {descriptor.name} depends on {dep_name}, which is not in this batch"
                    )
                    continue

                if dep_name in visiting:
                    raise PluginDependencyError(
                        f"Circular dependency detected involving plugin: {dep_name}",
                        plugin_name=dep_name,
                        cycle_at=dep_name,
                    )

                if dep_name in visited:
                    continue

                visiting.add(dep_name)
                stack.append((dependency, iter(dependency.dependencies or [])))
                break
            else:
                stack.pop()
                visiting.remove(descriptor.name)
                visited.add(descriptor.name)
                result.append(descriptor)

    return result
