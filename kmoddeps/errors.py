"""
Exceptions raised by the kmoddeps package.

An invalid kernel directory is not an error: it is reported through
KernelContext.is_valid() so callers can filter stale version directories.
"""


class ModuleDepsError(Exception):
    """Base class for all kmoddeps errors."""


class DescriptorUnreadable(ModuleDepsError):
    """The kernel directory is valid but modules.dep cannot be read."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot read dependency descriptor {path}: {reason}")


class UnknownModuleReference(ModuleDepsError):
    """A dependency listed in modules.dep has no entry of its own."""

    def __init__(self, dependency: str, referenced_by: str):
        self.dependency = dependency
        self.referenced_by = referenced_by
        super().__init__(f"{referenced_by} depends on {dependency}, "
                         f"which has no entry in the descriptor")


class LiveTableUnreadable(ModuleDepsError):
    """The live module table could not be read."""


class LiveTableMalformed(ModuleDepsError):
    """A line of the live module table does not have the expected format."""

    def __init__(self, line_number: int, line: str, reason: str):
        self.line_number = line_number
        self.line = line
        self.reason = reason
        super().__init__(f"Malformed live module table line {line_number}: "
                         f"{reason}: {line!r}")


class ExternalLookupFailed(ModuleDepsError):
    """The external module metadata tool could not be run or understood."""


class ModuleInfoUnavailable(ModuleDepsError):
    """The .modinfo section of a module file could not be read."""
