"""
Terminal front-end for the shell kernel.

Reads fragments from stdin, evaluates them and prints results. A fragment is
submitted once it parses and does not open a block, or at the first blank
line. Lines starting with ":" are front-end commands:

    :snapshot   write the session to the snapshot file
    :reload     restore the session from the snapshot file
    :quit       leave

The jsonrpc module is available to scripts unless --no-jsonrpc is given.
Shell objects embedded elsewhere keep it off until enable_jsonrpc_client()
is called or the config enables it.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from .config import ShellConfig
from .context import Context
from .errors import ParseError, ShellError
from .kernel import Shell

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="appshell", description="Interactive scripting shell")
    parser.add_argument("--config", type=Path, help="Path to a JSON config file")
    parser.add_argument("--imports-dir", help="Directory scripts may import .py files from")
    parser.add_argument(
        "--jsonrpc",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Offer the jsonrpc module to scripts",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser


def load_config(args: argparse.Namespace) -> ShellConfig:
    path = args.config
    if path is None and os.environ.get("APPSHELL_CONFIG"):
        path = Path(os.environ["APPSHELL_CONFIG"])
    config = ShellConfig.load(path)
    if args.imports_dir:
        config.imports_dir = args.imports_dir
    config.jsonrpc.enabled = args.jsonrpc
    return config


def snapshot(shell: Shell, path: Path) -> None:
    with open(path, "w") as f:
        shell.snapshot(f)
    print(f"snapshot written to {path}", file=sys.stderr)


def reload_snapshot(shell: Shell, path: Path) -> None:
    with open(path) as f:
        shell.restore_snapshot(f)
    print(f"snapshot restored from {path}", file=sys.stderr)


def is_complete(shell: Shell, buffer: list[str]) -> bool:
    last = buffer[-1]
    if not last.strip():
        return True
    if last.rstrip().endswith(":") or last[:1].isspace():
        return False
    try:
        shell.parse("\n".join(buffer))
    except ParseError:
        return False
    return True


def run(shell: Shell, snapshot_path: Path) -> int:
    ctx = Context.background()
    buffer: list[str] = []
    while True:
        try:
            line = input("... " if buffer else ">>> ")
        except EOFError:
            return 0
        except KeyboardInterrupt:
            buffer = []
            print(file=sys.stderr)
            continue

        if not buffer and line.startswith(":"):
            command = line.strip()
            try:
                if command == ":quit":
                    return 0
                elif command == ":snapshot":
                    snapshot(shell, snapshot_path)
                elif command == ":reload":
                    reload_snapshot(shell, snapshot_path)
                else:
                    print(f"unknown command {command}", file=sys.stderr)
            except (OSError, ShellError) as e:
                print(e, file=sys.stderr)
            continue

        buffer.append(line)
        if not is_complete(shell, buffer):
            continue

        source = "\n".join(buffer)
        buffer = []
        try:
            code = shell.parse(source, ctx)
            if code:
                shell.eval(code, stdout=sys.stdout, stderr=sys.stderr, stdin=sys.stdin, context=ctx)
        except ShellError as e:
            print(e, file=sys.stderr)


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    config = load_config(args)
    with Shell(config) as shell:
        if shell.imports_dir is None:
            shell.allow_import_from(Path.cwd())
        logger.debug("imports from %s, jsonrpc=%s", shell.imports_dir, config.jsonrpc.enabled)
        return run(shell, Path(config.snapshot_path))


__all__ = ["main", "run"]
