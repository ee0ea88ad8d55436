"""
Module registry: the only modules script code can import.

A registry is assembled for every evaluation. It holds the built-in modules
by name and, when an imports directory is configured, resolves other names
to `<dir>/<name>.py` files compiled with the same restricted policy.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from pathlib import Path
from types import CodeType, ModuleType
from typing import Any

from .compiler import compile_module, parse_source
from .errors import CompilationError, ImportNotAllowedError, ParseError

logger = logging.getLogger(__name__)

NamespaceFactory = Callable[[str], dict[str, Any]]


class ModuleRegistry:
    """Name to module mapping with optional file imports."""

    def __init__(
        self,
        modules: Mapping[str, ModuleType],
        imports_dir: str | Path | None = None,
        namespace_factory: NamespaceFactory | None = None,
    ):
        self._modules: dict[str, ModuleType] = dict(modules)
        self.imports_dir = Path(imports_dir).resolve() if imports_dir else None
        self._namespace_factory = namespace_factory
        self._compiled: dict[str, CodeType | None] = {}
        self._loaded: dict[str, ModuleType] = {}

    def add_builtin_module(self, name: str, module: ModuleType) -> None:
        self._modules[name] = module

    def names(self) -> list[str]:
        return list(self._modules)

    def file_path(self, name: str) -> Path | None:
        """Path of the importable file for name, or None."""
        if self.imports_dir is None or not name.isidentifier():
            return None
        path = (self.imports_dir / f"{name}.py").resolve()
        if self.imports_dir not in path.parents or not path.is_file():
            return None
        return path

    def resolve(self, name: str) -> None:
        """
        Check that name can be imported, compiling file modules on first use.

        Raises:
            CompilationError: If the module is unknown or its file fails to compile
        """
        if name in self._modules or name in self._compiled:
            return
        path = self.file_path(name)
        if path is None:
            raise CompilationError(f"module '{name}' not found")
        if self._namespace_factory is None:
            raise CompilationError(f"file imports are disabled for '{name}'")

        # placeholder so import cycles between files terminate
        self._compiled[name] = None
        try:
            tree = parse_source(path.read_text(), str(path))
            self._compiled[name] = compile_module(tree, str(path), self)
        except ParseError as e:
            del self._compiled[name]
            raise CompilationError(f"{name}: {e}") from e
        except CompilationError:
            del self._compiled[name]
            raise
        logger.debug("compiled file module %s from %s", name, path)

    def import_module(self, name: str) -> ModuleType:
        """Return the module for name, executing file modules once per registry."""
        if name in self._modules:
            return self._modules[name]
        if name in self._loaded:
            return self._loaded[name]

        try:
            self.resolve(name)
        except CompilationError as e:
            raise ImportNotAllowedError(str(e), name=name) from e
        code = self._compiled.get(name)
        if code is None or self._namespace_factory is None:
            raise ImportNotAllowedError(f"module '{name}' is not ready", name=name)

        module = ModuleType(name)
        namespace = self._namespace_factory(name)
        self._loaded[name] = module
        try:
            exec(code, namespace)
        except Exception:
            del self._loaded[name]
            raise
        for key, value in namespace.items():
            if not key.startswith("_"):
                setattr(module, key, value)
        return module

    def importer(self, name: str, globals: Any = None, locals: Any = None, fromlist: Any = (), level: int = 0) -> ModuleType:
        """Replacement for __import__ backed by this registry."""
        if level:
            raise ImportNotAllowedError("relative imports are not allowed")
        return self.import_module(name)


__all__ = ["ModuleRegistry"]
