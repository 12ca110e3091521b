"""
Module name and dependency resolution.

Loose module identifiers are mapped onto the canonical keys of a
KernelContext, then expanded into their transitive dependencies.
"""

import subprocess
import sys
from typing import Callable, Dict, Iterable, List, Optional, Set

from .database import KernelContext
from .errors import ExternalLookupFailed
from .parsers import parse_modinfo_output

Lookup = Callable[[str], str]


class ModuleNameResolver:
    """
    Maps a loosely specified module name onto a canonical key.

    Resolution tries, in order: the name as a key, a suffix match against
    all keys, the same with underscores replaced by dashes, and finally the
    external lookup. Names mixing underscores and dashes can match neither
    variant; those are left to the external lookup.
    """

    def __init__(self, context: KernelContext, lookup: Optional[Lookup] = None):
        self.context = context
        self.lookup = lookup

    def normalize(self, name: str) -> str:
        """
        Give `name` the module extension of the kernel and anchor bare names.

        "sunrpc" becomes "/sunrpc.ko" (or "/sunrpc.ko.zst", depending on the
        kernel), "net/sunrpc/sunrpc" becomes "net/sunrpc/sunrpc.ko".
        """
        extension = self.context.module_extension
        if not name.endswith(extension):
            if name.endswith('.ko'):
                name = name[:-len('.ko')]
            name += extension
        if '/' not in name:
            name = '/' + name
        return name

    def _match_suffix(self, suffix: str) -> Optional[str]:
        for key in self.context.dependency_index:
            if key.endswith(suffix):
                return key
        return None

    def _lookup_key(self, name: str) -> Optional[str]:
        try:
            output = self.lookup(name)
        except (ExternalLookupFailed, OSError, subprocess.SubprocessError, UnicodeDecodeError) as e:
            print(f"Warning: module lookup for {name} failed: {e}", file=sys.stderr)
            return None

        for filename in parse_modinfo_output(output).get('filename', []):
            if not filename.startswith('/'):
                continue
            # Both the root prefix and the module path may hold "kernel" directories
            parts = filename.split('/kernel/')
            for i in range(1, len(parts)):
                candidate = 'kernel/' + '/kernel/'.join(parts[i:])
                if candidate in self.context.dependency_index:
                    return candidate
        return None

    def resolve(self, name: str) -> str:
        """
        Resolve `name` to a canonical key.

        Example: "sunrpc" is resolved as "kernel/net/sunrpc/sunrpc.ko".

        Returns:
            str: The canonical key, or `name` unchanged if it cannot be
            resolved. Only resolved keys contain a "/".
        """
        normalized = self.normalize(name)
        if normalized.lstrip('/') in self.context.dependency_index:
            return normalized.lstrip('/')

        key = self._match_suffix(normalized)
        if key is None:
            key = self._match_suffix(normalized.replace('_', '-'))
        if key is None and self.lookup is not None:
            key = self._lookup_key(name)

        return key if key is not None else name

    @staticmethod
    def is_resolved(key: str) -> bool:
        return '/' in key


class DependencyResolver:
    """Computes transitive dependency closures over a KernelContext."""

    def __init__(self, context: KernelContext, name_resolver: Optional[ModuleNameResolver] = None):
        self.context = context
        self.name_resolver = name_resolver or ModuleNameResolver(context)

    def dependencies_of(self, key: str) -> Set[str]:
        """
        Return every module `key` needs, directly or indirectly.

        Each module is expanded once, so shared dependencies and cycles in
        the descriptor cost no extra work. Modules without an entry of their
        own are leaves.
        """
        index = self.context.dependency_index
        deps: Set[str] = set()
        visited = {key}
        pending: List[str] = list(index.get(key, []))

        while pending:
            dep = pending.pop()
            if dep in visited:
                continue
            visited.add(dep)
            deps.add(dep)
            pending.extend(index.get(dep, []))

        return deps

    def resolve_names(self, names: Iterable[str]) -> List[str]:
        """Resolve `names`, dropping those that do not map onto a key."""
        keys = []
        for name in names:
            key = self.name_resolver.resolve(name)
            if self.name_resolver.is_resolved(key) and key not in keys:
                keys.append(key)
        return keys

    def closure_for(self, names: Iterable[str]) -> Dict[str, Set[str]]:
        """
        Resolve all module dependencies.

        Args:
            names: Canonical keys or loose module names; unresolvable names
                are skipped

        Returns:
            Dict[str, Set[str]]: Resolved key -> its transitive dependencies
        """
        return {key: self.dependencies_of(key) for key in self.resolve_names(names)}

    def flatten(self, names: Iterable[str]) -> Set[str]:
        """Same as closure_for(), merged with the requested keys into one set."""
        merged: Set[str] = set()
        for key, deps in self.closure_for(names).items():
            merged.add(key)
            merged.update(deps)
        return merged
