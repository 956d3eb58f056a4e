"""
Section Checker Plugin for ADPA.

Before a generated document is validated, checks that the sections expected
for its document type are present. Findings are returned to the caller and
each check is also recorded in the active audit trail, so this plugin
depends on audit_trail and is initialized after it.
"""

import re
from typing import Any, Dict, List, Optional

from adpa.core.plugins import BasePlugin, LifecycleHook, PluginDescriptor
from adpa.plugins.builtin.audit_trail.plugin import get_active_trail

REQUIRED_SECTIONS: Dict[str, List[str]] = {
    "project-charter": [
        "Project Purpose",
        "Objectives",
        "Stakeholders",
        "Success Criteria",
        "High-Level Requirements",
    ],
    "stakeholder-register": [
        "Stakeholder Information",
        "Contact Details",
        "Roles and Responsibilities",
        "Influence Assessment",
    ],
    "risk-management-plan": [
        "Risk Identification",
        "Risk Assessment",
        "Risk Response",
        "Risk Monitoring",
    ],
}


def has_section(content: str, section_name: str) -> bool:
    """Markdown heading, a line of its own, or a bold label."""
    name = re.escape(section_name)
    patterns = [
        rf"^#+\s*{name}",
        rf"^{name}\s*$",
        rf"\*\*{name}\*\*",
    ]
    return any(
        re.search(pattern, content, re.IGNORECASE | re.MULTILINE)
        for pattern in patterns
    )


def find_missing_sections(content: str, required: List[str]) -> List[str]:
    return [section for section in required if not has_section(content, section)]


class SectionCheckerPlugin(BasePlugin):
    def required_sections(self, options: Optional[Dict[str, Any]]) -> List[str]:
        options = options or {}
        if options.get("required_sections"):
            return list(options["required_sections"])

        sections = dict(REQUIRED_SECTIONS)
        sections.update(self.get_config("required_sections", {}))
        return sections.get(options.get("document_type", ""), [])

    def check(self, content: str, options: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        required = self.required_sections(options)
        missing = find_missing_sections(content or "", required)
        return {
            "checked_sections": required,
            "missing_sections": missing,
            "valid": not missing,
        }


def build_plugin() -> PluginDescriptor:
    state: Dict[str, Optional[SectionCheckerPlugin]] = {"instance": None}

    def initialize(config: Dict[str, Any]) -> SectionCheckerPlugin:
        state["instance"] = SectionCheckerPlugin(config)
        return state["instance"]

    def before_validation(content: str, options: Optional[Dict[str, Any]] = None):
        instance = state["instance"] or SectionCheckerPlugin()
        findings = instance.check(content, options)

        trail = get_active_trail()
        if trail is not None:
            trail.record(
                "sections_checked",
                {
                    "document_id": (options or {}).get("document_id"),
                    "status": "complete" if findings["valid"] else "missing_sections",
                },
            )
        return findings

    return PluginDescriptor(
        name="section_checker",
        version="1.0.0",
        description="Checks generated documents for required sections",
        author="ADPA Team",
        dependencies=["audit_trail"],
        hooks={LifecycleHook.BEFORE_VALIDATION.value: before_validation},
        initializer=initialize,
    )


plugin = build_plugin
