"""
Data models for kernel modules.

This module contains the records built from the live module table and
from the metadata embedded in on-disk module files.
"""

from typing import Dict, List


class LiveModule:
    """Represents a currently loaded kernel module as seen in /proc/modules."""

    def __init__(self, name: str, size: int, ref_count: int,
                 dependents: List[str], state: str, offset: int):
        """
        Initialize a LiveModule instance.

        Args:
            name: Module name
            size: Resident size in bytes
            ref_count: Reference (instance) count
            dependents: Names of modules currently using this one
            state: Module state as reported by the kernel (Live, Loading, Unloading)
            offset: Memory offset; zero unless read with elevated privilege
        """
        self.name = name
        self.size = size
        self.ref_count = ref_count
        self.dependents = dependents
        self.state = state
        self.offset = offset

    def __str__(self) -> str:
        """Return string representation of the module."""
        deps_str = ", ".join(self.dependents) if self.dependents else "None"
        return (f"Module: {self.name}\n"
                f"  Size: {self.size} bytes\n"
                f"  Reference Count: {self.ref_count}\n"
                f"  Used By: {deps_str}\n"
                f"  State: {self.state}\n"
                f"  Offset: {self.offset:#x}\n")

    def __repr__(self) -> str:
        return (f"LiveModule(name='{self.name}', size={self.size}, "
                f"ref_count={self.ref_count}, offset={self.offset:#x})")

    def __eq__(self, other) -> bool:
        if not isinstance(other, LiveModule):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def to_dict(self) -> dict:
        """Convert module to dictionary representation."""
        return {
            'name': self.name,
            'size': self.size,
            'ref_count': self.ref_count,
            'dependents': self.dependents,
            'state': self.state,
            'offset': self.offset
        }


class ModuleInfo:
    """Metadata read from the .modinfo section of a module file."""

    def __init__(self, filename: str, fields: Dict[str, List[str]]):
        """
        Initialize a ModuleInfo instance.

        Args:
            filename: Absolute path of the module file
            fields: Every key=value pair of .modinfo; repeated keys accumulate
        """
        self.filename = filename
        self.fields = fields

    def _first(self, key: str) -> str:
        values = self.fields.get(key)
        return values[0] if values else ""

    @property
    def name(self) -> str:
        return self._first('name')

    @property
    def description(self) -> str:
        return self._first('description')

    @property
    def license(self) -> str:
        return self._first('license')

    @property
    def depends(self) -> List[str]:
        """Short names of the modules this one declares as dependencies."""
        return [dep for dep in self._first('depends').split(',') if dep]

    @property
    def aliases(self) -> List[str]:
        return list(self.fields.get('alias', []))

    def __str__(self) -> str:
        depends_str = ", ".join(self.depends) if self.depends else "None"
        return (f"Module: {self.name or 'N/A'}\n"
                f"  File: {self.filename}\n"
                f"  Description: {self.description or 'N/A'}\n"
                f"  License: {self.license or 'N/A'}\n"
                f"  Depends: {depends_str}\n")

    def __repr__(self) -> str:
        return f"ModuleInfo(filename='{self.filename}')"

    def to_dict(self) -> dict:
        """Convert metadata to dictionary representation."""
        return {
            'filename': self.filename,
            'name': self.name,
            'description': self.description,
            'license': self.license,
            'depends': self.depends,
            'fields': self.fields
        }
