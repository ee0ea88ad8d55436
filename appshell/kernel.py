"""
The shell kernel: a persistent, restricted Python session.

Each call to eval parses one fragment, rewrites it so top-level expressions
and assignments echo their values, compiles it against the session's
compilation tables and runs it in the shared global namespace. The global
namespace can be written to and restored from a JSON snapshot.

Usage:
    shell = Shell()
    shell.eval("x = 40 + 2", stdout=sys.stdout)
    shell.snapshot(open("snapshot.json", "w"))
"""

from __future__ import annotations

import ast
import keyword
import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from types import ModuleType
from typing import Any, TextIO

import httpx

from .compiler import compile_module, parse_source
from .config import ShellConfig
from .context import Context
from .errors import CompilationError, EvalError, ImportNotAllowedError, ShellBusyError, SnapshotError
from .jsonrpc import JSONRPCClient
from .registry import ModuleRegistry
from .rewrite import AUTO_PRINT_NAME, add_prints, collect_bindings
from .safefmt import safe_fmt
from .sandbox import build_namespace, build_safe_builtins
from .snapshot import read_snapshot, write_snapshot
from .stdlib import SAFE_MODULES, get_module_map
from .streams import DiscardWriter, EmptyReader, ProxyReader, ProxyWriter, Reader, Writer
from .symbols import ConstantPool, SourceFile, SourceFileSet, SymbolTable
from .values import to_string

logger = logging.getLogger(__name__)

REPL_FILENAME = "(repl)"


class Shell:
    """
    Interactive scripting kernel.

    The kernel is single threaded: one eval at a time. Front-ends pass the
    writers and reader for each evaluation; built-in modules see them through
    stream proxies that are swapped back when the evaluation ends.

    Script errors are raised, never logged:
    - ParseError: the fragment is not valid syntax
    - CompilationError: policy violation, unknown import, globals limit
    - EvalError: the fragment raised while running
    """

    def __init__(self, config: ShellConfig | None = None):
        self.config = config or ShellConfig()
        self._ctx = Context.background()

        self.stdout = ProxyWriter()
        self.stderr = ProxyWriter()
        self.stdin = ProxyReader()

        self._imports_dir: str | None = None
        if self.config.imports_dir:
            self.allow_import_from(self.config.imports_dir)

        self._fmt_mod = safe_fmt(self.stdout, self.config.max_string_len)
        self._safe_mods = get_module_map(*SAFE_MODULES, max_len=self.config.max_string_len)
        self._jsonrpc: JSONRPCClient | None = None
        if self.config.jsonrpc.enabled:
            self.enable_jsonrpc_client()

        self._lock = threading.Lock()
        self._ready = False
        self._registry: ModuleRegistry | None = None

        # REPL state, allocated on first use
        self._builtins: dict[str, Any] = {}
        self._namespace: dict[str, Any] = {}
        self._reserved: frozenset[str] = frozenset()
        self.symbols = SymbolTable(self.config.max_globals)
        self.constants = ConstantPool()
        self.file_set = SourceFileSet()

    # -- configuration ---------------------------------------------------

    def allow_import_from(self, directory: str | Path | None) -> None:
        """Enable file imports rooted at directory; a falsy value disables them."""
        self._imports_dir = str(Path(directory).resolve()) if directory else None

    def enable_jsonrpc_client(self, client: httpx.Client | None = None) -> None:
        """
        Register the jsonrpc module, optionally with a preconfigured HTTP client.

        Without a client the shell creates one and closes it when the module is
        replaced or the shell is closed. A caller-supplied client stays open.
        """
        previous = self._jsonrpc
        self._jsonrpc = JSONRPCClient(lambda: self._ctx, client, self.config.jsonrpc.timeout)
        if previous is not None:
            previous.close()

    def close(self) -> None:
        """Release the jsonrpc worker pool and any HTTP client the shell created."""
        if self._jsonrpc is not None:
            self._jsonrpc.close()

    def __enter__(self) -> Shell:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @property
    def imports_dir(self) -> str | None:
        return self._imports_dir

    @property
    def context(self) -> Context:
        """Context installed by the running evaluation (background otherwise)."""
        return self._ctx

    @property
    def globals_env(self) -> dict[str, Any]:
        """Copy of the session's user-visible global bindings."""
        return {k: v for k, v in self._namespace.items() if self._is_user_name(k)}

    # -- kernel surface --------------------------------------------------

    def parse(self, code: str, context: Context | None = None) -> str:
        """
        Trim code and check that it parses, without touching session state.

        Returns:
            The whitespace-trimmed code

        Raises:
            ParseError: If the trimmed code is not valid syntax; its source
                attribute holds the trimmed code
        """
        code = code.strip()
        self._parse_ast(SourceFileSet(), code)
        return code

    def eval(
        self,
        code: str,
        stdout: Writer | None = None,
        stderr: Writer | None = None,
        stdin: Reader | None = None,
        context: Context | None = None,
    ) -> None:
        """
        Evaluate one fragment against the session.

        Args:
            code: Fragment to run
            stdout: Receives auto-printed values, print() and fmt output
            stderr: Error stream visible to scripts
            stdin: Source for input()
            context: Cancellation context observed by blocking built-ins

        Raises:
            ParseError, CompilationError, EvalError, ShellBusyError
        """
        with self._exclusive():
            self._ensure_ready()
            with self._redirect(context, stdout, stderr, stdin):
                self._run(code)

    def snapshot(self, out: TextIO, context: Context | None = None) -> None:
        """Write the serializable globals to out as one JSON object."""
        with self._exclusive():
            self._ensure_ready()
            write_snapshot(self.globals_env, out)

    def restore_snapshot(self, inp: TextIO | None, context: Context | None = None) -> None:
        """
        Install the values of a snapshot document into the session.

        Raises:
            SnapshotError: If the document is invalid or names a value that
                cannot be installed
        """
        with self._exclusive():
            self._ensure_ready()
            values = read_snapshot(inp)
            for name in values:
                if not name.isidentifier() or keyword.iskeyword(name) or name.startswith("_"):
                    raise SnapshotError(f"cannot restore {name!r}: not a public identifier")
            defined = set(self.symbols.names())
            added = [name for name in values if name not in defined]
            if len(self.symbols) + len(added) > self.symbols.max_globals:
                raise SnapshotError(
                    f"cannot restore {len(added)} new globals: "
                    f"globals limit exceeded ({self.symbols.max_globals})"
                )

            for name, value in values.items():
                self.symbols.define(name)
                self._namespace[name] = value

    # -- internals -------------------------------------------------------

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        if not self._lock.acquire(blocking=False):
            raise ShellBusyError("shell is already evaluating")
        try:
            yield
        finally:
            self._lock.release()

    @contextmanager
    def _redirect(
        self,
        context: Context | None,
        stdout: Writer | None,
        stderr: Writer | None,
        stdin: Reader | None,
    ) -> Iterator[None]:
        """Install the caller's context and streams, restoring the previous ones on exit."""
        old_ctx = self._ctx
        old_stdout = self.stdout.target
        old_stderr = self.stderr.target
        old_stdin = self.stdin.target

        self._ctx = context or Context.background()
        self.stdout.target = stdout if stdout is not None else DiscardWriter()
        self.stderr.target = stderr if stderr is not None else DiscardWriter()
        self.stdin.target = stdin if stdin is not None else EmptyReader()
        try:
            yield
        finally:
            self._ctx = old_ctx
            self.stdout.target = old_stdout
            self.stderr.target = old_stderr
            self.stdin.target = old_stdin

    def _ensure_ready(self) -> None:
        if not self._ready:
            self._prepare_repl()
            self._ready = True

    def _prepare_repl(self) -> None:
        builtins = build_safe_builtins(self.stdout, self.stdin, self._import)
        for idx, name in enumerate(builtins):
            self.symbols.define_builtin(idx, name)

        # embed println function
        self.symbols.define(AUTO_PRINT_NAME)
        namespace = build_namespace(builtins, self.stdout)
        namespace[AUTO_PRINT_NAME] = self._auto_print

        self._builtins = builtins
        self._namespace = namespace
        self._reserved = frozenset(namespace)
        logger.debug("repl ready: %d builtins", len(builtins))

    def _auto_print(self, *args: Any) -> None:
        # undefined (None) values are not echoed
        parts = [to_string(arg) for arg in args if arg is not None]
        self.stdout.write(" ".join(parts) + "\n")

    def _parse_ast(self, file_set: SourceFileSet, code: str) -> tuple[SourceFile, ast.Module]:
        src_file = file_set.add_file(REPL_FILENAME, code)
        return src_file, parse_source(code, src_file.name)

    def _modules(self) -> ModuleRegistry:
        registry = ModuleRegistry(self._safe_mods, self._imports_dir, self._file_namespace)
        registry.add_builtin_module("fmt", self._fmt_mod)
        if self._jsonrpc is not None:
            registry.add_builtin_module("jsonrpc", self._jsonrpc.module())
        return registry

    def _file_namespace(self, name: str) -> dict[str, Any]:
        return build_namespace(self._builtins, self.stdout, name=name)

    def _import(self, name: str, globals: Any = None, locals: Any = None, fromlist: Any = (), level: int = 0) -> ModuleType:
        if self._registry is None:
            raise ImportNotAllowedError(f"cannot import '{name}' outside an evaluation", name=name)
        return self._registry.importer(name, globals, locals, fromlist, level)

    def _run(self, code: str) -> None:
        src_file, tree = self._parse_ast(self.file_set, code)
        tree = add_prints(tree)

        # collected before compiling, which rewrites the tree in place
        bindings = collect_bindings(tree)
        registry = self._modules()
        bytecode = compile_module(tree, src_file.name, registry)
        for name in bindings:
            self.symbols.define(name)
        constants = self.constants.extended(bytecode)

        self._registry = registry
        try:
            exec(bytecode, self._namespace)
        except Exception as e:
            raise EvalError(e) from e
        finally:
            self._registry = None
            self._sync_symbols()
        self.constants = constants
        logger.debug(
            "eval ok: %d globals, %d symbols, %d constants",
            len(self.globals_env),
            len(self.symbols),
            len(self.constants),
        )

    def _is_user_name(self, name: str) -> bool:
        # guard helpers such as _print are injected by the compiler
        return name not in self._reserved and not name.startswith("_")

    def _sync_symbols(self) -> None:
        for name in self._namespace:
            if self._is_user_name(name):
                self.symbols.define(name, enforce_limit=False)


__all__ = ["REPL_FILENAME", "Shell"]
