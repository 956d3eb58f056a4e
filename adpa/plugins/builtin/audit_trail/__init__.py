"""
Audit Trail Plugin for ADPA.

Keeps an audit trail of document lifecycle events.
"""

from .plugin import AuditTrailPlugin, build_plugin, get_active_trail

__all__ = ["AuditTrailPlugin", "build_plugin", "get_active_trail"]
