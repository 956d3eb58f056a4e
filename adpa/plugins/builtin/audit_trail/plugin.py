"""
Audit Trail Plugin for ADPA.

Records document generation, validation and publish outcomes into an
in-memory audit trail owned by the plugin instance.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from adpa.core.plugins import BasePlugin, LifecycleHook, PluginDescriptor
from adpa.utils.logger import logger

DEFAULT_MAX_ENTRIES = 1000

_active_trail: Optional["AuditTrailPlugin"] = None


class AuditTrailPlugin(BasePlugin):
    """Bounded, append-only audit trail of document lifecycle events."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)
        self.max_entries = int(self.get_config("max_entries", DEFAULT_MAX_ENTRIES))
        self.entries: List[Dict[str, Any]] = []

    def record(self, action: str, result: Any) -> Dict[str, Any]:
        """Append an entry, dropping the oldest once max_entries is reached."""
        if isinstance(result, dict):
            document_id = result.get("document_id") or result.get("id")
            status = result.get("status")
        else:
            document_id = getattr(result, "document_id", None)
            status = getattr(result, "status", None)

        entry = {
            "action": action,
            "document_id": document_id,
            "status": status,
            "recorded_at": datetime.now(timezone.utc).isoformat(),
        }
        self.entries.append(entry)
        if len(self.entries) > self.max_entries:
            del self.entries[: len(self.entries) - self.max_entries]
        return entry

    async def _cleanup(self) -> None:
        logger.info(f"Clearing {len(self.entries)} audit trail entries")
        self.entries.clear()


def get_active_trail() -> Optional[AuditTrailPlugin]:
    """The audit trail of the enabled audit_trail plugin, or None."""
    if _active_trail is not None and _active_trail.is_initialized:
        return _active_trail
    return None


def build_plugin() -> PluginDescriptor:
    """Create the audit trail descriptor; hooks write to the active trail."""

    def initialize(config: Dict[str, Any]) -> AuditTrailPlugin:
        global _active_trail
        _active_trail = AuditTrailPlugin(config)
        return _active_trail

    def recorder(action: str):
        async def handler(result: Any, *args, **kwargs) -> Optional[Dict[str, Any]]:
            trail = get_active_trail()
            if trail is None:
                return None
            return trail.record(action, result)

        return handler

    return PluginDescriptor(
        name="audit_trail",
        version="1.0.0",
        description="Audit trail of document generation, validation and publishing",
        author="ADPA Team",
        hooks={
            LifecycleHook.AFTER_DOCUMENT_GENERATION.value: recorder("generated"),
            LifecycleHook.AFTER_VALIDATION.value: recorder("validated"),
            LifecycleHook.AFTER_PUBLISH.value: recorder("published"),
        },
        config={"max_entries": DEFAULT_MAX_ENTRIES},
        initializer=initialize,
    )


plugin = build_plugin
