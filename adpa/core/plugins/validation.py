"""
Descriptor validation for the plugin system.

Validation collects every violation in one pass so callers (and tests) can
see the complete list instead of only the first problem.
"""

from dataclasses import dataclass
from typing import Any, List

from .descriptor import LifecycleHook
from .errors import PluginValidationError


@dataclass(frozen=True)
class Violation:
    """A single descriptor schema violation."""

    field: str
    message: str


def _is_blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


def validate_descriptor(descriptor: Any) -> List[Violation]:
    """
    Validate a plugin descriptor against the descriptor schema.

    Args:
        descriptor: Object exposing the PluginDescriptor attributes

    Returns:
        List of violations, empty if the descriptor is valid
    """
    violations: List[Violation] = []

    name = getattr(descriptor, "name", None)
    if _is_blank(name):
        violations.append(Violation("name", "Plugin must have a name"))

    if _is_blank(getattr(descriptor, "version", None)):
        violations.append(Violation("version", "Plugin must have a version"))

    dependencies = getattr(descriptor, "dependencies", None) or []
    if not isinstance(dependencies, (list, tuple, set)):
        violations.append(
            Violation("dependencies", "Dependencies must be a list of plugin names")
        )
    else:
        for dep_name in dependencies:
            if _is_blank(dep_name):
                violations.append(
                    Violation("dependencies", f"Invalid dependency name: {dep_name!r}")
                )
            elif dep_name == name:
                violations.append(
                    Violation("dependencies", f"Plugin {name} cannot depend on itself")
                )

    hooks = getattr(descriptor, "hooks", None) or {}
    if not isinstance(hooks, dict):
        violations.append(
            Violation("hooks", "Hooks must be a mapping of hook name to handler")
        )
    else:
        valid_hooks = LifecycleHook.names()
        for hook_name, handler in hooks.items():
            if hook_name not in valid_hooks:
                violations.append(
                    Violation(f"hooks.{hook_name}", f"Invalid hook name: {hook_name}")
                )
            elif not callable(handler):
                violations.append(
                    Violation(f"hooks.{hook_name}", f"Hook {hook_name} must be a function")
                )

    initializer = getattr(descriptor, "initializer", None)
    if initializer is not None and not callable(initializer):
        violations.append(Violation("initializer", "Initializer must be callable"))

    return violations


def ensure_valid(descriptor: Any) -> None:
    """
    Raise if the descriptor has any violations.

    Raises:
        PluginValidationError: Carrying the full violation list
    """
    violations = validate_descriptor(descriptor)
    if violations:
        name = getattr(descriptor, "name", None) or None
        summary = "; ".join(v.message for v in violations)
        raise PluginValidationError(
            f"Invalid plugin {name or '<unnamed>'}: {summary}",
            violations,
            plugin_name=name if isinstance(name, str) else None,
            plugin_version=getattr(descriptor, "version", None),
        )
