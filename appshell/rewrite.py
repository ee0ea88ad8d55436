"""
AST passes over a parsed fragment.

add_prints injects the auto-print call around top-level expressions and after
top-level assignments. collect_bindings and collect_imports feed the symbol
table and the import gate.
"""

from __future__ import annotations

import ast
import copy
from typing import Iterator

AUTO_PRINT_NAME = "__repl_println__"

ASSIGNMENTS = (ast.Assign, ast.AugAssign, ast.AnnAssign)


def add_prints(module: ast.Module) -> ast.Module:
    """
    Rewrite top-level statements so results reach the output.

    - `expr` becomes `__repl_println__(expr)`
    - `a, b = ...` is kept and followed by `__repl_println__(a, b)`
    - anything else is kept as is
    """
    body: list[ast.stmt] = []
    for stmt in module.body:
        if isinstance(stmt, ast.Expr):
            body.append(ast.copy_location(ast.Expr(value=_println_call([stmt.value], stmt)), stmt))
        elif isinstance(stmt, ASSIGNMENTS):
            body.append(stmt)
            targets = assigned_targets(stmt)
            if targets:
                args = [_as_load(target) for target in targets]
                body.append(ast.copy_location(ast.Expr(value=_println_call(args, stmt)), stmt))
        else:
            body.append(stmt)
    return ast.fix_missing_locations(ast.Module(body=body, type_ignores=module.type_ignores))


def assigned_targets(stmt: ast.stmt) -> list[ast.expr]:
    """Left-hand sides of an assignment, with tuple and list targets flattened."""
    if isinstance(stmt, ast.Assign):
        out: list[ast.expr] = []
        for target in stmt.targets:
            out.extend(_flatten(target))
        return out
    if isinstance(stmt, ast.AugAssign):
        return [stmt.target]
    if isinstance(stmt, ast.AnnAssign) and stmt.value is not None:
        return [stmt.target]
    return []


def _flatten(target: ast.expr) -> list[ast.expr]:
    if isinstance(target, (ast.Tuple, ast.List)):
        out: list[ast.expr] = []
        for elt in target.elts:
            out.extend(_flatten(elt))
        return out
    if isinstance(target, ast.Starred):
        return _flatten(target.value)
    return [target]


def _as_load(target: ast.expr) -> ast.expr:
    node = copy.deepcopy(target)
    for child in ast.walk(node):
        if hasattr(child, "ctx"):
            child.ctx = ast.Load()
    return node


def _println_call(args: list[ast.expr], at: ast.AST) -> ast.Call:
    func = ast.copy_location(ast.Name(id=AUTO_PRINT_NAME, ctx=ast.Load()), at)
    return ast.copy_location(ast.Call(func=func, args=args, keywords=[]), at)


class _BindingCollector(ast.NodeVisitor):
    """Collects names bound at module scope, in source order."""

    def __init__(self) -> None:
        self.names: dict[str, None] = {}

    def _bind(self, name: str) -> None:
        self.names.setdefault(name, None)

    def visit_Name(self, node: ast.Name) -> None:
        if isinstance(node.ctx, ast.Store):
            self._bind(node.id)

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        self._bind(node.name)
        for decorator in node.decorator_list:
            self.visit(decorator)

    visit_AsyncFunctionDef = visit_FunctionDef

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        self._bind(node.name)
        for expr in [*node.bases, *node.decorator_list]:
            self.visit(expr)

    def visit_Lambda(self, node: ast.Lambda) -> None:
        pass

    def visit_ListComp(self, node: ast.AST) -> None:
        pass

    visit_SetComp = visit_DictComp = visit_GeneratorExp = visit_ListComp

    def visit_Import(self, node: ast.Import) -> None:
        for alias in node.names:
            self._bind(alias.asname or alias.name.split(".")[0])

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        for alias in node.names:
            if alias.name != "*":
                self._bind(alias.asname or alias.name)


def collect_bindings(module: ast.Module) -> list[str]:
    collector = _BindingCollector()
    collector.visit(module)
    return list(collector.names)


def collect_imports(module: ast.AST) -> Iterator[tuple[str, int, int]]:
    """Yield (module name, level, line) for every import statement."""
    for node in ast.walk(module):
        if isinstance(node, ast.Import):
            for alias in node.names:
                yield alias.name, 0, node.lineno
        elif isinstance(node, ast.ImportFrom):
            yield node.module or "", node.level, node.lineno


__all__ = [
    "AUTO_PRINT_NAME",
    "add_prints",
    "assigned_targets",
    "collect_bindings",
    "collect_imports",
]
