"""
Parsers for kernel module information.

This module contains classes for reading the live module table, running
the external modinfo tool and reading the .modinfo section of module files.
"""

import gzip
import io
import lzma
import os
import re
import shutil
import subprocess
from typing import Callable, Dict, List, Optional

import zstandard as zstd
from elftools.common.exceptions import ELFError
from elftools.elf.elffile import ELFFile

from .constants import LOOKUP_TIMEOUT, MODINFO_EXE, PROC_MODULES
from .errors import (ExternalLookupFailed, LiveTableMalformed, LiveTableUnreadable,
                     ModuleInfoUnavailable)
from .models import LiveModule, ModuleInfo

_DECIMAL_RE = re.compile(r'^[0-9]+$')
_OFFSET_RE = re.compile(r'^0x([0-9a-fA-F]+)$')


class LiveModuleParser:
    """Parser for the live module table (/proc/modules)."""

    FIELD_COUNT = 6

    @staticmethod
    def read_proc_modules() -> str:
        """
        Read the raw live module table.

        Returns:
            str: Content of /proc/modules

        Raises:
            LiveTableUnreadable: If the table cannot be read
        """
        try:
            with open(PROC_MODULES, 'r') as f:
                return f.read()
        except FileNotFoundError as e:
            raise LiveTableUnreadable(f"{PROC_MODULES} not found. Are you running on a Linux system?") from e
        except PermissionError as e:
            raise LiveTableUnreadable(f"Permission denied reading {PROC_MODULES}") from e
        except (OSError, UnicodeDecodeError) as e:
            raise LiveTableUnreadable(f"Error reading {PROC_MODULES}: {e}") from e

    @classmethod
    def read(cls, reader: Optional[Callable[[], str]] = None) -> List[LiveModule]:
        """
        Read and parse the live module table.

        Args:
            reader: Callable returning the raw table; defaults to reading /proc/modules

        Returns:
            List[LiveModule]: Loaded modules in table order
        """
        if reader is None:
            reader = cls.read_proc_modules
        try:
            text = reader()
        except (OSError, UnicodeDecodeError) as e:
            raise LiveTableUnreadable(f"Error reading live module table: {e}") from e
        return cls.parse(text)

    @classmethod
    def parse(cls, text: str) -> List[LiveModule]:
        """
        Parse the live module table.

        Every line holds six fields:
        name size ref_count dependents state offset
        where dependents is a comma-terminated list or "-".

        Raises:
            LiveTableMalformed: On the first line that does not match; no
                partial result is returned
        """
        modules = []

        for line_number, line in enumerate(text.splitlines(), 1):
            if not line.strip():
                continue
            modules.append(cls._parse_line(line_number, line))

        return modules

    @classmethod
    def _parse_line(cls, line_number: int, line: str) -> LiveModule:
        parts = line.split()
        if len(parts) != cls.FIELD_COUNT:
            raise LiveTableMalformed(line_number, line,
                                     f"expected {cls.FIELD_COUNT} fields, got {len(parts)}")

        name, size_str, refs_str, deps_str, state, offset_str = parts

        if not _DECIMAL_RE.match(size_str):
            raise LiveTableMalformed(line_number, line, f"invalid size {size_str!r}")
        if not _DECIMAL_RE.match(refs_str):
            raise LiveTableMalformed(line_number, line, f"invalid reference count {refs_str!r}")

        offset_match = _OFFSET_RE.match(offset_str)
        if not offset_match:
            raise LiveTableMalformed(line_number, line, f"invalid offset {offset_str!r}")

        if deps_str == '-':
            dependents = []
        elif deps_str.endswith(','):
            deps = deps_str[:-1].split(',')
            if not all(deps):
                raise LiveTableMalformed(line_number, line, f"invalid dependents list {deps_str!r}")
            # Status markers like [permanent] are not module names
            dependents = [dep for dep in deps if not dep.startswith('[')]
        else:
            raise LiveTableMalformed(line_number, line, f"invalid dependents list {deps_str!r}")

        return LiveModule(name, int(size_str), int(refs_str), dependents, state,
                          int(offset_match.group(1), 16))


class ModinfoLookup:
    """
    Runs the external modinfo tool for a module name.

    Instances are callables mapping a module name to modinfo's raw standard
    output, which is what the name resolver expects as its lookup.
    """

    def __init__(self, root_path: Optional[str] = None, version: Optional[str] = None,
                 executable: str = MODINFO_EXE, timeout: float = LOOKUP_TIMEOUT):
        self.root_path = root_path
        self.version = version
        self.executable = executable
        self.timeout = timeout

    def command(self, name: str) -> List[str]:
        executable = self.executable
        if not os.path.exists(executable):
            # /usr/sbin might not be in the path on every distribution
            executable = shutil.which(os.path.basename(executable)) or executable

        args = [executable]
        if self.root_path and self.root_path != "/":
            args += ['-b', self.root_path]
        if self.version:
            args += ['-k', self.version]
        args += ['--', name]
        return args

    def __call__(self, name: str) -> str:
        """
        Run modinfo for `name`.

        Raises:
            ExternalLookupFailed: If modinfo cannot be run, times out, fails
                or writes output that is not valid text
        """
        try:
            result = subprocess.run(self.command(name), capture_output=True, text=True,
                                    check=True, timeout=self.timeout)
        except subprocess.CalledProcessError as e:
            raise ExternalLookupFailed(f"modinfo {name} exited with status {e.returncode}: "
                                       f"{(e.stderr or '').strip()}") from e
        except subprocess.TimeoutExpired as e:
            raise ExternalLookupFailed(f"modinfo {name} timed out after {self.timeout}s") from e
        except (OSError, UnicodeDecodeError) as e:
            raise ExternalLookupFailed(f"Error running modinfo {name}: {e}") from e

        return result.stdout


def parse_modinfo_output(text: str) -> Dict[str, List[str]]:
    """
    Parse modinfo's ``key: value`` output.

    Repeated keys (alias, parm, ...) accumulate in order.
    """
    fields: Dict[str, List[str]] = {}
    for line in text.splitlines():
        if ':' not in line:
            continue
        key, value = line.split(':', 1)
        fields.setdefault(key.strip(), []).append(value.strip())
    return fields


class ModinfoReader:
    """Reads the .modinfo section of on-disk module files."""

    @staticmethod
    def load_image(file_path: str) -> bytes:
        """Return the ELF image of a module file, decompressing it if needed."""
        with open(file_path, 'rb') as f:
            if file_path.endswith('.zst'):
                dctx = zstd.ZstdDecompressor()
                with dctx.stream_reader(f) as reader:
                    return reader.read()
            data = f.read()

        if file_path.endswith('.xz'):
            return lzma.decompress(data)
        if file_path.endswith('.gz'):
            return gzip.decompress(data)
        return data

    @classmethod
    def read(cls, file_path: str) -> ModuleInfo:
        """
        Read module metadata from a .ko, .ko.zst, .ko.xz or .ko.gz file.

        Args:
            file_path: Path to the module file

        Returns:
            ModuleInfo: Parsed .modinfo fields

        Raises:
            ModuleInfoUnavailable: If the file cannot be read, decompressed
                or parsed, or has no .modinfo section
        """
        try:
            image = cls.load_image(file_path)
            elf = ELFFile(io.BytesIO(image))
            modinfo_section = elf.get_section_by_name('.modinfo')
            if modinfo_section is None:
                raise ModuleInfoUnavailable(f"{file_path} has no .modinfo section")
            modinfo_data = modinfo_section.data()
        except (OSError, EOFError, lzma.LZMAError, zstd.ZstdError, ELFError) as e:
            raise ModuleInfoUnavailable(f"Error reading {file_path}: {e}") from e

        fields: Dict[str, List[str]] = {}
        for entry in modinfo_data.split(b'\x00'):
            if b'=' not in entry:
                continue
            key, value = entry.split(b'=', 1)
            fields.setdefault(key.decode('utf-8', errors='ignore'), []).append(
                value.decode('utf-8', errors='ignore'))

        return ModuleInfo(file_path, fields)
