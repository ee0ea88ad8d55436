"""
Configuration management for the appshell kernel and terminal front-end.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path

# Largest string a built-in may produce, shared by fmt and text.
MAX_STRING_LEN = 2147483647

# Number of global symbol slots available to a session.
GLOBALS_SIZE = 1024


@dataclass
class JSONRPCConfig:
    """Configuration for the jsonrpc script module."""

    enabled: bool = False
    timeout: float = 30.0  # seconds, used when the context has no deadline


@dataclass
class ShellConfig:
    """
    Complete shell configuration.

    imports_dir enables file imports rooted at that directory when set.
    snapshot_path is only consumed by front-ends.
    """

    max_string_len: int = MAX_STRING_LEN
    max_globals: int = GLOBALS_SIZE
    imports_dir: str | None = None
    snapshot_path: str = "./snapshot.json"
    jsonrpc: JSONRPCConfig = field(default_factory=JSONRPCConfig)

    @classmethod
    def load(cls, path: Path | None = None) -> "ShellConfig":
        """Load configuration from file."""
        if path is None:
            path = Path.home() / ".appshell" / "config.json"

        if not path.exists():
            return cls()

        with open(path) as f:
            data = json.load(f)

        return cls(
            max_string_len=data.get("max_string_len", MAX_STRING_LEN),
            max_globals=data.get("max_globals", GLOBALS_SIZE),
            imports_dir=data.get("imports_dir"),
            snapshot_path=data.get("snapshot_path", "./snapshot.json"),
            jsonrpc=JSONRPCConfig(**data.get("jsonrpc", {})),
        )

    def save(self, path: Path | None = None) -> None:
        """Save configuration to file."""
        if path is None:
            path = Path.home() / ".appshell" / "config.json"

        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            json.dump(
                {
                    "max_string_len": self.max_string_len,
                    "max_globals": self.max_globals,
                    "imports_dir": self.imports_dir,
                    "snapshot_path": self.snapshot_path,
                    "jsonrpc": self.jsonrpc.__dict__,
                },
                f,
                indent=2,
            )


# Default configuration instance
default_config = ShellConfig()
