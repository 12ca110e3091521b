"""
Command line interface for kmoddeps.
"""

import argparse
import fnmatch
import os
import sys
from typing import List, Optional

from . import __version__
from .constants import LOOKUP_TIMEOUT, MODINFO_EXE
from .database import installed_kernels, open_kernel_context
from .errors import ModuleDepsError
from .formatters import JSONFormatter, TextFormatter
from .parsers import ModinfoLookup
from .service import ModuleTreeService


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='kmoddeps',
        description="Resolve kernel module dependencies from modules.dep",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  kmoddeps kernels                      # Installed kernels with a module tree
  kmoddeps deps                         # Dependencies of all loaded modules
  kmoddeps deps nfsd sunrpc             # Dependencies of specific modules
  kmoddeps deps --merged nfsd           # One flat list for an image builder
  kmoddeps resolve sun_rpc              # Canonical module path
  kmoddeps disk --filter "*/net/*"      # Module files of the kernel
  kmoddeps --root /mnt --kernel 6.1.0 deps ext4
        """
    )

    parser.add_argument('--root', default='/', metavar='DIR',
                        help='Root filesystem to inspect (default: /)')
    parser.add_argument('--kernel', '-k', default=os.uname().release, metavar='VERSION',
                        help='Kernel version (default: running kernel)')
    parser.add_argument('--strict', action='store_true',
                        help='Reject modules.dep files listing dependencies without an entry')
    parser.add_argument('--modinfo', default=MODINFO_EXE, metavar='PATH',
                        help=f'modinfo executable (default: {MODINFO_EXE})')
    parser.add_argument('--no-modinfo', action='store_true',
                        help='Never fall back to modinfo for name resolution')
    parser.add_argument('--timeout', type=float, default=LOOKUP_TIMEOUT, metavar='SECONDS',
                        help=f'modinfo timeout (default: {LOOKUP_TIMEOUT})')
    parser.add_argument('--json', action='store_true',
                        help='Output in JSON format')
    parser.add_argument('--output', '-o', type=str, metavar='FILE',
                        help='Write output to specified file instead of stdout')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Enable verbose output with additional debugging information')

    subparsers = parser.add_subparsers(dest='command', required=True)

    subparsers.add_parser('kernels', help='List installed kernels')

    deps = subparsers.add_parser('deps', help='Show module dependencies')
    deps.add_argument('modules', nargs='*', metavar='MODULE',
                      help='Modules to resolve (default: loaded modules)')
    deps.add_argument('--merged', '-m', action='store_true',
                      help='Merge modules and dependencies into one list')

    resolve = subparsers.add_parser('resolve', help='Resolve module names to module paths')
    resolve.add_argument('modules', nargs='+', metavar='MODULE')

    disk = subparsers.add_parser('disk', help='List module files known to modules.dep')
    disk.add_argument('--filter', '-f', type=str, metavar='PATTERN',
                      help='Filter modules by path pattern (supports wildcards)')

    subparsers.add_parser('loaded', help='List loaded modules')
    subparsers.add_parser('missing', help='List loaded modules without a module file on disk')

    info = subparsers.add_parser('info', help='Show .modinfo metadata of a module file')
    info.add_argument('module', metavar='MODULE')

    return parser


def run(args: argparse.Namespace) -> str:
    """Execute the selected command and return its output."""
    formatter = JSONFormatter() if args.json else TextFormatter()

    if args.command == 'kernels':
        return formatter.format_names(k.version for k in installed_kernels(args.root, args.strict))

    context = open_kernel_context(args.root, args.kernel, strict=args.strict)
    if not context.is_valid():
        raise ModuleDepsError(f"No module tree for kernel {args.kernel} in {context.module_root_path}")
    if args.verbose:
        print(f"Loaded {len(context.dependency_index)} modules from {context.descriptor_path} "
              f"(extension {context.module_extension})", file=sys.stderr)

    lookup = None
    if not args.no_modinfo:
        lookup = ModinfoLookup(args.root, args.kernel, executable=args.modinfo, timeout=args.timeout)
    service = ModuleTreeService(context, lookup=lookup)

    if args.command == 'deps':
        if args.merged:
            return formatter.format_names(sorted(service.merged_dependencies_for(args.modules)))
        return formatter.format_closure(service.dependencies_for(args.modules))
    if args.command == 'resolve':
        return formatter.format_resolved({name: service.resolve(name) for name in args.modules})
    if args.command == 'disk':
        modules = context.disk_modules()
        if args.filter:
            modules = [m for m in modules if fnmatch.fnmatch(m, args.filter)]
        return formatter.format_names(modules)
    if args.command == 'loaded':
        return formatter.format_live_modules(service.loaded_modules())
    if args.command == 'missing':
        return formatter.format_names(service.missing_from_disk())
    return formatter.format_module_info(service.module_info(args.module))


def main(argv: Optional[List[str]] = None):
    """Main function to run the dependency resolver."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        if args.verbose:
            print(f"Arguments: {args}", file=sys.stderr)

        output_content = run(args)

        if args.output:
            try:
                with open(args.output, 'w', encoding='utf-8') as f:
                    f.write(output_content + "\n")
                if args.verbose:
                    print(f"Output written to {args.output}", file=sys.stderr)
            except OSError as e:
                print(f"Error writing to file {args.output}: {e}", file=sys.stderr)
                sys.exit(1)
        elif output_content:
            print(output_content)

    except KeyboardInterrupt:
        print("\nOperation cancelled by user", file=sys.stderr)
        sys.exit(1)
    except ModuleDepsError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
