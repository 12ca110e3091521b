"""
Output formatters for module dependency data.

This module contains classes for formatting dependency closures, module
name lists and live module records as plain text or JSON.
"""

import json
from typing import Dict, Iterable, List, Set

from .models import LiveModule, ModuleInfo


def format_size(size_bytes: int) -> str:
    """Convert bytes to human readable format."""
    for unit in ['B', 'KB', 'MB', 'GB']:
        if size_bytes < 1024.0:
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024.0
    return f"{size_bytes:.1f} TB"


class BaseFormatter:
    """Base class for all formatters."""

    def format_closure(self, closure: Dict[str, Set[str]]) -> str:
        """
        Format a dependency closure.

        Args:
            closure: Module key -> its transitive dependencies

        Returns:
            str: Formatted output
        """
        raise NotImplementedError

    def format_names(self, names: Iterable[str]) -> str:
        raise NotImplementedError

    def format_resolved(self, resolved: Dict[str, str]) -> str:
        raise NotImplementedError

    def format_live_modules(self, modules: List[LiveModule]) -> str:
        raise NotImplementedError

    def format_module_info(self, info: ModuleInfo) -> str:
        raise NotImplementedError


class JSONFormatter(BaseFormatter):
    """Formatter for JSON output. Sets are written as sorted lists."""

    def format_closure(self, closure: Dict[str, Set[str]]) -> str:
        data = {module: sorted(deps) for module, deps in sorted(closure.items())}
        return json.dumps(data, indent=2)

    def format_names(self, names: Iterable[str]) -> str:
        return json.dumps(list(names), indent=2)

    def format_resolved(self, resolved: Dict[str, str]) -> str:
        return json.dumps(resolved, indent=2)

    def format_live_modules(self, modules: List[LiveModule]) -> str:
        return json.dumps([module.to_dict() for module in modules], indent=2)

    def format_module_info(self, info: ModuleInfo) -> str:
        return json.dumps(info.to_dict(), indent=2)


class TextFormatter(BaseFormatter):
    """Formatter for human readable output."""

    def format_closure(self, closure: Dict[str, Set[str]]) -> str:
        lines = []
        for module, deps in sorted(closure.items()):
            lines.append(f"{module}:")
            if deps:
                lines.extend(f"  {dep}" for dep in sorted(deps))
            else:
                lines.append("  (no dependencies)")
        return "\n".join(lines)

    def format_names(self, names: Iterable[str]) -> str:
        return "\n".join(names)

    def format_resolved(self, resolved: Dict[str, str]) -> str:
        return "\n".join(f"{name}: {key}" for name, key in resolved.items())

    def format_live_modules(self, modules: List[LiveModule]) -> str:
        lines = [f"| {'Module Name':<25} | {'Size':<10} | {'Ref Count':<10} | {'Used By':<40} |",
                 "|" + "-" * 27 + "|" + "-" * 12 + "|" + "-" * 12 + "|" + "-" * 42 + "|"]
        for module in modules:
            used_by = ",".join(module.dependents) or "-"
            lines.append(f"| {module.name:<25} | {format_size(module.size):<10} | "
                         f"{module.ref_count:<10} | {used_by:<40} |")
        return "\n".join(lines)

    def format_module_info(self, info: ModuleInfo) -> str:
        return str(info).rstrip("\n")
