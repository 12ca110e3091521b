"""
Kernel Module Dependencies Package

Resolves the dependency closure of Linux kernel modules from the kernel's
modules.dep descriptor, optionally against the modules currently loaded.
"""

__version__ = "1.0.0"

from .database import KernelContext, open_kernel_context, installed_kernels
from .errors import (ModuleDepsError, DescriptorUnreadable, UnknownModuleReference,
                     LiveTableUnreadable, LiveTableMalformed, ExternalLookupFailed,
                     ModuleInfoUnavailable)
from .models import LiveModule, ModuleInfo
from .parsers import LiveModuleParser, ModinfoLookup, ModinfoReader, parse_modinfo_output
from .resolvers import ModuleNameResolver, DependencyResolver
from .service import ModuleTreeService
from .formatters import JSONFormatter, TextFormatter

__all__ = [
    "KernelContext",
    "open_kernel_context",
    "installed_kernels",
    "ModuleDepsError",
    "DescriptorUnreadable",
    "UnknownModuleReference",
    "LiveTableUnreadable",
    "LiveTableMalformed",
    "ExternalLookupFailed",
    "ModuleInfoUnavailable",
    "LiveModule",
    "ModuleInfo",
    "LiveModuleParser",
    "ModinfoLookup",
    "ModinfoReader",
    "parse_modinfo_output",
    "ModuleNameResolver",
    "DependencyResolver",
    "ModuleTreeService",
    "JSONFormatter",
    "TextFormatter"
]
