"""
Well-known locations and defaults used across the package.
"""

# Relative to the inspected root filesystem
MODULES_DIR = "lib/modules"
DEP_FILE = "modules.dep"
KERNEL_SUBDIR = "kernel"

PROC_MODULES = "/proc/modules"

MODINFO_EXE = "/usr/sbin/modinfo"

DEFAULT_EXTENSION = ".ko"

# Seconds to wait for a single modinfo invocation
LOOKUP_TIMEOUT = 10.0
