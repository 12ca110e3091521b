"""
Kernel module dependency database.

This module parses the modules.dep descriptor of one kernel version into
an in-memory index and provides helpers to enumerate installed kernels.
"""

import os
import sys
from typing import Dict, Iterable, List, Optional, Set

from .constants import DEFAULT_EXTENSION, DEP_FILE, KERNEL_SUBDIR, MODULES_DIR
from .errors import DescriptorUnreadable, UnknownModuleReference


def short_module_name(path: str) -> str:
    """Return the bare module name of a path: directory and suffixes stripped."""
    return os.path.basename(path).split('.', 1)[0]


class KernelContext:
    """
    Dependency data of one kernel version.

    The descriptor is read once, at construction time. The object is
    read-only afterwards and does not see later changes to modules.dep.
    """

    def __init__(self, root_path: str, version: str, strict: bool = False):
        """
        Load the dependency data for a kernel version.

        Args:
            root_path: Root of the inspected filesystem ("/" for the host)
            version: Kernel version, i.e. the directory name under lib/modules
            strict: Reject descriptors listing dependencies without an entry

        Raises:
            DescriptorUnreadable: If the kernel directory is valid but
                modules.dep cannot be read
            UnknownModuleReference: In strict mode, if a dependency has no
                entry of its own
        """
        self.version = version
        self.root_path = root_path or "/"
        self.module_root_path = os.path.join(self.root_path, MODULES_DIR, version)
        self.descriptor_path = os.path.join(self.module_root_path, DEP_FILE)
        self.module_extension = DEFAULT_EXTENSION
        self.dependency_index: Dict[str, List[str]] = {}
        self.dependent_names: Set[str] = set()

        self._valid = os.path.isdir(os.path.join(self.module_root_path, KERNEL_SUBDIR))
        if self._valid:
            self._load(strict)

    def _load(self, strict: bool):
        try:
            with open(self.descriptor_path, 'r', encoding='utf-8') as f:
                content = f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise DescriptorUnreadable(self.descriptor_path, str(e)) from e

        index, extension, dependent_names = self.parse_descriptor(content.splitlines())

        dangling = [(dep, key) for key, deps in index.items() for dep in deps if dep not in index]
        if dangling:
            if strict:
                dep, key = dangling[0]
                raise UnknownModuleReference(dep, key)
            print(f"Warning: {len(dangling)} dependencies in {self.descriptor_path} "
                  f"have no entry of their own; treating them as leaves", file=sys.stderr)

        self.dependency_index = index
        self.dependent_names = dependent_names
        if extension:
            self.module_extension = extension

    @staticmethod
    def parse_descriptor(lines: Iterable[str]):
        """
        Parse modules.dep records.

        Each record reads ``<module-path>: <dependency paths>``; lines without
        a colon are ignored.

        Returns:
            tuple: (index, extension, dependent_names) where extension is the
            suffix of the first module path containing ".ko", or None
        """
        index: Dict[str, List[str]] = {}
        dependent_names: Set[str] = set()
        extension: Optional[str] = None

        for line in lines:
            if ':' not in line:
                continue
            module_path, deps_str = line.split(':', 1)
            module_path = module_path.strip()
            if not module_path:
                continue
            deps = deps_str.split()

            if extension is None:
                basename = os.path.basename(module_path)
                pos = basename.find('.ko')
                if pos >= 0:
                    extension = basename[pos:]

            for dep in deps:
                dependent_names.add(short_module_name(dep))
            index[module_path] = deps

        return index, extension, dependent_names

    def is_valid(self) -> bool:
        """
        True if the kernel has a module tree on disk.

        Version directories are often left behind after a kernel was not
        completely purged; those are invalid and carry no dependency data.
        """
        return self._valid

    def is_dependency(self, name: str) -> bool:
        """Return True if some module of this kernel depends on `name`."""
        short_name = short_module_name(name)
        return (short_name in self.dependent_names
                or short_name.replace('_', '-') in self.dependent_names)

    def disk_modules(self) -> List[str]:
        """Return every module named by the descriptor, sorted."""
        modules = set(self.dependency_index)
        for deps in self.dependency_index.values():
            modules.update(deps)
        return sorted(modules)

    def module_path(self, key: str) -> str:
        """Return the absolute on-disk path of a canonical module key."""
        return os.path.join(self.module_root_path, key)

    def __contains__(self, key: str) -> bool:
        return key in self.dependency_index

    def __repr__(self) -> str:
        return (f"KernelContext(version='{self.version}', valid={self._valid}, "
                f"modules={len(self.dependency_index)})")


def open_kernel_context(root_path: str, version: str, strict: bool = False) -> KernelContext:
    """Build the KernelContext for `version` below `root_path`."""
    return KernelContext(root_path, version, strict=strict)


def installed_kernels(root_path: str = "/", strict: bool = False) -> List[KernelContext]:
    """
    Get the kernels installed below `root_path`.

    Every directory under <root>/lib/modules is loaded; only kernels with a
    module tree on disk are returned, ordered by version string.

    Args:
        root_path: Root of the inspected filesystem
        strict: Passed through to every KernelContext

    Returns:
        List[KernelContext]: Valid kernel contexts
    """
    modules_dir = os.path.join(root_path or "/", MODULES_DIR)
    if not os.path.isdir(modules_dir):
        return []

    kernels = []
    for version in sorted(os.listdir(modules_dir)):
        if not os.path.isdir(os.path.join(modules_dir, version)):
            continue
        context = open_kernel_context(root_path, version, strict=strict)
        if context.is_valid():
            kernels.append(context)

    return kernels
