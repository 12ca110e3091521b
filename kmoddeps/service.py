"""
Dependency queries against the modules of a running system.
"""

from typing import Callable, Dict, List, Optional, Sequence, Set

from .database import KernelContext
from .errors import ModuleInfoUnavailable
from .models import LiveModule, ModuleInfo
from .parsers import LiveModuleParser, ModinfoReader
from .resolvers import DependencyResolver, Lookup, ModuleNameResolver


class ModuleTreeService:
    """Resolves module dependency trees for one kernel."""

    def __init__(self, context: KernelContext, lookup: Optional[Lookup] = None,
                 live_reader: Optional[Callable[[], str]] = None):
        """
        Args:
            context: Dependency data of the kernel
            lookup: External module lookup used as last resolution resort
            live_reader: Callable returning the raw live module table;
                defaults to reading /proc/modules
        """
        self.context = context
        self.live_reader = live_reader
        self.name_resolver = ModuleNameResolver(context, lookup)
        self.resolver = DependencyResolver(context, self.name_resolver)

    def loaded_modules(self) -> List[LiveModule]:
        return LiveModuleParser.read(self.live_reader)

    def loaded_module_names(self) -> List[str]:
        """Names of the currently loaded modules (lsmod)."""
        return [module.name for module in self.loaded_modules()]

    def dependencies_for(self, names: Optional[Sequence[str]] = None) -> Dict[str, Set[str]]:
        """
        Get all dependencies for the specified modules.

        An empty or missing list means the currently loaded modules.
        """
        if not names:
            names = self.loaded_module_names()
        return self.resolver.closure_for(names)

    def merged_dependencies_for(self, names: Optional[Sequence[str]] = None) -> Set[str]:
        """
        Same as dependencies_for(), except it merges the modules and all
        their dependencies into one set for actual operations.
        """
        if not names:
            names = self.loaded_module_names()
        return self.resolver.flatten(names)

    def loaded_dependencies(self) -> Dict[str, Set[str]]:
        """Snapshot of the currently loaded modules and their dependencies."""
        return self.dependencies_for(self.loaded_module_names())

    def merged_loaded_dependencies(self) -> Set[str]:
        return self.merged_dependencies_for(self.loaded_module_names())

    def resolve(self, name: str) -> str:
        return self.name_resolver.resolve(name)

    def missing_from_disk(self) -> List[str]:
        """Names of loaded modules that have no module file for this kernel."""
        return [name for name in self.loaded_module_names()
                if not self.name_resolver.is_resolved(self.name_resolver.resolve(name))]

    def module_info(self, name: str) -> ModuleInfo:
        """
        Read the .modinfo metadata of a module file.

        Raises:
            ModuleInfoUnavailable: If the name does not resolve or the file
                cannot be read
        """
        key = self.name_resolver.resolve(name)
        if not self.name_resolver.is_resolved(key):
            raise ModuleInfoUnavailable(f"Module {name} not found for kernel {self.context.version}")
        return ModinfoReader.read(self.context.module_path(key))
