"""
appshell: an interactive scripting shell kernel.

Hosts a restricted Python dialect, keeps a session of named globals across
evaluations, echoes expression and assignment results, and checkpoints the
session to a JSON snapshot.

Script-visible modules:
- math, text, times, rand, json, base64, hex (always available)
- fmt (printing to the evaluation's stdout)
- jsonrpc (JSON-RPC 2.0 client, when enabled)
- .py files from the configured imports directory
"""

__version__ = "0.1.0"

from .config import JSONRPCConfig, ShellConfig, default_config
from .context import Context
from .errors import (
    CancelledError,
    CompilationError,
    EvalError,
    ImportNotAllowedError,
    InvalidArgumentTypeError,
    JSONRPCError,
    ParseError,
    ShellBusyError,
    ShellError,
    SnapshotError,
    StringLimitError,
    WrongNumArgumentsError,
)
from .kernel import Shell
from .snapshot import Snapshot, SnapshotDocument
from .stdlib import SAFE_MODULES

__all__ = [
    # Kernel
    "Shell",
    "Context",
    "SAFE_MODULES",
    # Configuration
    "ShellConfig",
    "JSONRPCConfig",
    "default_config",
    # Snapshots
    "Snapshot",
    "SnapshotDocument",
    # Errors
    "ShellError",
    "ParseError",
    "CompilationError",
    "EvalError",
    "ShellBusyError",
    "CancelledError",
    "SnapshotError",
    "ImportNotAllowedError",
    "WrongNumArgumentsError",
    "InvalidArgumentTypeError",
    "StringLimitError",
    "JSONRPCError",
]
