"""
Compilation tables kept for the lifetime of a shell session.

- SymbolTable: stable slot indices for top-level names and builtins
- ConstantPool: append-only record of literal constants
- SourceFileSet: one virtual source file per submission
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import CodeType
from typing import Any, Iterator

from .config import GLOBALS_SIZE
from .errors import CompilationError


class SymbolScope(str, Enum):
    """Where a symbol lives."""

    BUILTIN = "BUILTIN"
    GLOBAL = "GLOBAL"


@dataclass(frozen=True)
class Symbol:
    name: str
    scope: SymbolScope
    index: int


class SymbolTable:
    """
    Maps names to slot indices.

    Slots are handed out in definition order and never change once assigned.
    Builtins live in their own scope and do not count against max_globals.
    """

    def __init__(self, max_globals: int = GLOBALS_SIZE):
        self.max_globals = max_globals
        self._store: dict[str, Symbol] = {}
        self._builtins: dict[str, Symbol] = {}

    def define_builtin(self, index: int, name: str) -> Symbol:
        symbol = Symbol(name=name, scope=SymbolScope.BUILTIN, index=index)
        self._builtins[name] = symbol
        return symbol

    def define(self, name: str, enforce_limit: bool = True) -> Symbol:
        """
        Define a global name, returning the existing symbol if already defined.

        Raises:
            CompilationError: If a new slot would exceed max_globals
        """
        existing = self._store.get(name)
        if existing is not None:
            return existing
        if enforce_limit and len(self._store) >= self.max_globals:
            raise CompilationError(f"globals limit exceeded ({self.max_globals}) defining {name!r}")
        symbol = Symbol(name=name, scope=SymbolScope.GLOBAL, index=len(self._store))
        self._store[name] = symbol
        return symbol

    def resolve(self, name: str) -> Symbol | None:
        return self._store.get(name) or self._builtins.get(name)

    def names(self) -> list[str]:
        """Global names in slot order."""
        return list(self._store)

    def builtin_names(self) -> list[str]:
        return list(self._builtins)

    def __contains__(self, name: object) -> bool:
        return name in self._store or name in self._builtins

    def __len__(self) -> int:
        return len(self._store)


class ConstantPool:
    """Immutable, append-only sequence of constants from compiled fragments."""

    def __init__(self, constants: tuple[Any, ...] = ()):
        self._constants = tuple(constants)

    def extended(self, code: CodeType) -> ConstantPool:
        """Return a new pool with code's constants appended."""
        return ConstantPool(self._constants + tuple(_code_constants(code)))

    def __getitem__(self, index: int) -> Any:
        return self._constants[index]

    def __iter__(self) -> Iterator[Any]:
        return iter(self._constants)

    def __len__(self) -> int:
        return len(self._constants)


def _code_constants(code: CodeType) -> Iterator[Any]:
    for const in code.co_consts:
        if isinstance(const, CodeType):
            yield from _code_constants(const)
        else:
            yield const


@dataclass
class SourceFile:
    """One submission. base is the offset of its first byte within the set."""

    name: str
    base: int
    size: int
    source: str = field(repr=False)

    def line_col(self, offset: int) -> tuple[int, int]:
        """1-based line and column for an offset relative to this file."""
        prefix = self.source.encode()[:offset].decode(errors="replace")
        line = prefix.count("\n") + 1
        column = len(prefix) - (prefix.rfind("\n") + 1) + 1
        return line, column


class SourceFileSet:
    """Ordered registry of submitted source files."""

    def __init__(self) -> None:
        self.files: list[SourceFile] = []
        self._base = 1

    def add_file(self, name: str, source: str) -> SourceFile:
        size = len(source.encode())
        src_file = SourceFile(name=name, base=self._base, size=size, source=source)
        self.files.append(src_file)
        # one extra byte so an end-of-file position stays inside the file
        self._base += size + 1
        return src_file

    def file(self, offset: int) -> SourceFile | None:
        for src_file in reversed(self.files):
            if src_file.base <= offset <= src_file.base + src_file.size:
                return src_file
        return None

    def position(self, offset: int) -> tuple[SourceFile, int, int] | None:
        """Resolve an absolute offset to (file, line, column)."""
        src_file = self.file(offset)
        if src_file is None:
            return None
        line, column = src_file.line_col(offset - src_file.base)
        return src_file, line, column

    def __len__(self) -> int:
        return len(self.files)


__all__ = [
    "ConstantPool",
    "SourceFile",
    "SourceFileSet",
    "Symbol",
    "SymbolScope",
    "SymbolTable",
]
