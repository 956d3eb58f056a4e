"""
Section Checker Plugin for ADPA.

Flags generated documents that are missing required sections.
"""

from .plugin import SectionCheckerPlugin, build_plugin

__all__ = ["SectionCheckerPlugin", "build_plugin"]
