"""
Parsing and restricted compilation of script source.
"""

from __future__ import annotations

import ast
import logging
from types import CodeType
from typing import Any, Protocol

from RestrictedPython import RestrictingNodeTransformer, compile_restricted_exec

from .errors import CompilationError, ParseError
from .rewrite import AUTO_PRINT_NAME, collect_imports

logger = logging.getLogger(__name__)


class ModuleResolver(Protocol):
    def resolve(self, name: str) -> None: ...


class ReplPolicy(RestrictingNodeTransformer):
    """
    RestrictedPython policy that also admits the reserved auto-print name.

    The name may only be read. Binding or deleting it falls through to the
    base policy, which rejects names starting with an underscore.
    """

    def check_name(self, node: ast.AST, name: str, allow_magic_methods: bool = False) -> Any:
        if name == AUTO_PRINT_NAME and isinstance(node, ast.Name) and isinstance(node.ctx, ast.Load):
            return None
        return super().check_name(node, name, allow_magic_methods=allow_magic_methods)


def parse_source(source: str, filename: str) -> ast.Module:
    """
    Parse source into a module AST.

    Raises:
        ParseError: With the position of the first syntax error
    """
    try:
        return ast.parse(source, filename=filename, mode="exec")
    except SyntaxError as e:
        raise ParseError(
            e.msg or "invalid syntax",
            filename=filename,
            line=e.lineno or 0,
            column=e.offset or 0,
            source=source,
        ) from e
    except ValueError as e:
        # null bytes in source
        raise ParseError(str(e), filename=filename, source=source) from e


def check_imports(module: ast.Module, resolver: ModuleResolver) -> None:
    """Fail at compile time for any import the resolver cannot satisfy."""
    for name, level, line in collect_imports(module):
        if level:
            raise CompilationError(f"line {line}: relative imports are not allowed")
        try:
            resolver.resolve(name)
        except CompilationError as e:
            raise CompilationError([f"line {line}: {err}" for err in e.errors]) from e


def compile_module(module: ast.Module, filename: str, resolver: ModuleResolver) -> CodeType:
    """
    Compile a module AST with the restricted policy.

    Raises:
        CompilationError: For unresolved imports or policy violations
    """
    check_imports(module, resolver)
    result = compile_restricted_exec(module, filename=filename, policy=ReplPolicy)
    if result.errors:
        raise CompilationError(result.errors)
    for warning in result.warnings:
        logger.debug("%s: %s", filename, warning)
    return result.code


__all__ = ["ReplPolicy", "check_imports", "compile_module", "parse_source"]
