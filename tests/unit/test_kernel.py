"""
Unit tests for the shell kernel.

Covers parse, eval with auto-print, error reporting, stream redirection,
symbol bookkeeping and snapshot round trips through the kernel surface.
"""

import io
import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from appshell.config import ShellConfig
from appshell.context import Context
from appshell.errors import (
    CompilationError,
    EvalError,
    ParseError,
    ShellBusyError,
    SnapshotError,
    WrongNumArgumentsError,
)
from appshell.kernel import Shell
from appshell.rewrite import AUTO_PRINT_NAME
from appshell.streams import DiscardWriter, EmptyReader


class TestParse:
    """Tests for Shell.parse."""

    def test_trims_whitespace(self, shell):
        """Returned code is the trimmed input."""
        assert shell.parse("  1 + 1  \n") == "1 + 1"

    def test_empty_code_is_valid(self, shell):
        """Whitespace-only input parses to the empty string."""
        assert shell.parse("   \n\t") == ""

    def test_syntax_error(self, shell):
        """Invalid code raises ParseError carrying the trimmed source."""
        with pytest.raises(ParseError) as exc_info:
            shell.parse("  x = (  ")

        assert exc_info.value.source == "x = ("
        assert exc_info.value.line >= 1
        assert exc_info.value.filename == "(repl)"

    def test_no_side_effects(self, shell):
        """Parse does not touch the session."""
        shell.parse("x = 1")

        assert len(shell.file_set) == 0
        assert len(shell.symbols) == 0
        assert shell.globals_env == {}


class TestAutoPrint:
    """Tests for values echoed by eval."""

    def test_expression(self, shell, evaluate):
        """A top-level expression prints its value."""
        assert evaluate(shell, "1+1") == "2\n"
        assert shell.globals_env == {}

    def test_assignment(self, shell, evaluate):
        """An assignment prints the assigned value and binds it."""
        assert evaluate(shell, "x = 40 + 2") == "42\n"
        assert shell.globals_env == {"x": 42}

    def test_values_persist_between_evals(self, shell, evaluate):
        """Globals carry over from one eval to the next."""
        assert evaluate(shell, "x = 1") == "1\n"
        assert evaluate(shell, "x = x + 5") == "6\n"
        assert evaluate(shell, "x") == "6\n"
        assert shell.globals_env["x"] == 6

    def test_augmented_assignment(self, shell, evaluate):
        """In-place operators echo the new value."""
        evaluate(shell, "n = 10")

        assert evaluate(shell, "n += 5") == "15\n"

    def test_tuple_assignment_prints_space_separated(self, shell, evaluate):
        """Each unpacked target is printed on one line."""
        assert evaluate(shell, "a, b = 1, 2") == "1 2\n"
        assert shell.globals_env == {"a": 1, "b": 2}

    def test_strings_print_raw(self, shell, evaluate):
        """Strings are echoed without quotes, containers via repr."""
        assert evaluate(shell, "'hello'") == "hello\n"
        assert evaluate(shell, "['a', 1]") == "['a', 1]\n"

    def test_none_is_skipped(self, shell, evaluate):
        """An expression evaluating to None prints only a newline."""
        assert evaluate(shell, "None") == "\n"

    def test_print_builtin(self, shell, evaluate):
        """print() writes to the eval stdout; its None result echoes a blank line."""
        assert evaluate(shell, "print('x')") == "x\n\n"

    def test_fmt_printf(self, shell, evaluate):
        """fmt.printf writes without a newline; auto-print adds one."""
        assert evaluate(shell, 'import fmt\nfmt.printf("hi %d", 7)') == "hi 7\n"

    def test_statements_do_not_print(self, shell, evaluate):
        """Definitions and loops produce no output of their own."""
        code = "def double(v):\n    return v * 2\nfor i in range(3):\n    pass"

        assert evaluate(shell, code) == ""
        assert evaluate(shell, "double(21)") == "42\n"

    def test_multiple_statements(self, shell, evaluate):
        """Every top-level statement that yields a value prints a line."""
        assert evaluate(shell, "a = 1\nb = a + 1\na + b") == "1\n2\n3\n"

    def test_script_classes(self, shell, evaluate):
        """Classes defined by scripts can set instance attributes."""
        code = (
            "class Point:\n"
            "    def __init__(self, x):\n"
            "        self.x = x\n"
            "p = Point(3)\n"
            "p.x"
        )

        assert evaluate(shell, code).endswith("3\n")


class TestEvalErrors:
    """Tests for errors raised by eval."""

    def test_parse_error(self, shell):
        """Syntax errors raise ParseError."""
        with pytest.raises(ParseError):
            shell.eval("x = (")

    def test_runtime_error(self, shell):
        """Exceptions raised by the script are wrapped in EvalError."""
        with pytest.raises(EvalError) as exc_info:
            shell.eval("1/0")

        assert isinstance(exc_info.value.error, ZeroDivisionError)
        assert str(exc_info.value).startswith("appshell: eval error: ZeroDivisionError")

    def test_unknown_import(self, shell):
        """Importing an unregistered module fails at compile time."""
        with pytest.raises(CompilationError) as exc_info:
            shell.eval("import os")

        assert "module 'os' not found" in str(exc_info.value)
        assert str(exc_info.value).startswith("appshell: compilation error")

    def test_private_names_rejected(self, shell):
        """Names starting with an underscore do not compile."""
        with pytest.raises(CompilationError):
            shell.eval("_hidden = 1")

    def test_no_rollback_on_runtime_error(self, shell):
        """Bindings made before the failure stay in place."""
        with pytest.raises(EvalError):
            shell.eval("y = 1\nz = 1/0")

        assert shell.globals_env == {"y": 1}
        assert "y" in shell.symbols

    def test_constants_only_extended_on_success(self, shell):
        """The constant pool is untouched by a failed eval."""
        shell.eval("a = 'first'")
        before = len(shell.constants)

        with pytest.raises(EvalError):
            shell.eval("b = 'second'\n1/0")
        assert len(shell.constants) == before

        shell.eval("c = 'third'")
        assert len(shell.constants) > before
        assert "third" in list(shell.constants)

    def test_compile_error_leaves_session_untouched(self, shell):
        """A fragment that fails to compile binds nothing."""
        with pytest.raises(CompilationError):
            shell.eval("w = 1\nimport os")

        assert "w" not in shell.globals_env
        assert "w" not in shell.symbols

    def test_builtin_argument_error(self, shell):
        """Argument errors from built-in modules surface as the EvalError cause."""
        with pytest.raises(EvalError) as exc_info:
            shell.eval("import fmt\nfmt.printf()")

        assert isinstance(exc_info.value.error, WrongNumArgumentsError)


class TestStreams:
    """Tests for per-eval stream redirection."""

    def test_streams_restored_after_eval(self, shell):
        """Proxies point back at their previous targets after eval."""
        out = io.StringIO()
        shell.eval("1", stdout=out)

        assert isinstance(shell.stdout.target, DiscardWriter)
        assert isinstance(shell.stderr.target, DiscardWriter)
        assert isinstance(shell.stdin.target, EmptyReader)

    def test_streams_restored_after_error(self, shell):
        """Proxies are restored when the script raises."""
        out = io.StringIO()
        with pytest.raises(EvalError):
            shell.eval("1/0", stdout=out)

        assert shell.stdout.target is not out

    def test_missing_stdout_discards(self, shell):
        """Output without a stdout is dropped."""
        shell.eval("'dropped'")

    def test_input_reads_stdin(self, shell, evaluate):
        """input() reads one line from the eval stdin."""
        assert evaluate(shell, "name = input()", stdin="bob\nalice\n") == "bob\n"

    def test_input_without_stdin(self, shell):
        """input() at end of stream raises EOFError inside the script."""
        with pytest.raises(EvalError) as exc_info:
            shell.eval("input()")

        assert isinstance(exc_info.value.error, EOFError)

    def test_context_installed_during_eval(self, shell):
        """The caller's context is visible while evaluating, background after."""
        ctx = Context.background().with_cancel()
        seen = []
        shell._fmt_mod.seen = lambda: seen.append(shell.context)

        shell.eval("import fmt\nfmt.seen()", context=ctx)

        assert seen == [ctx]
        assert shell.context is not ctx


class TestSymbols:
    """Tests for symbol table bookkeeping."""

    def test_auto_print_has_first_slot(self, shell):
        """The auto-print function is defined before any user global."""
        shell.eval("x = 1")

        assert shell.symbols.resolve(AUTO_PRINT_NAME).index == 0
        assert shell.symbols.resolve("x").index == 1

    def test_indices_are_stable(self, shell):
        """Re-assigning a name keeps its slot."""
        shell.eval("a = 1")
        shell.eval("b = 2")
        index = shell.symbols.resolve("a").index

        shell.eval("a = 3\nc = 4")

        assert shell.symbols.resolve("a").index == index
        assert shell.symbols.names()[1:] == ["a", "b", "c"]

    def test_builtins_resolve(self, shell):
        """Builtins live in their own scope."""
        shell.eval("1")

        assert "len" in shell.symbols.builtin_names()
        assert "open" not in shell.symbols.builtin_names()

    def test_globals_limit(self):
        """Defining more globals than allowed fails at compile time."""
        shell = Shell(ShellConfig(max_globals=3))
        shell.eval("a = 1\nb = 2")

        with pytest.raises(CompilationError) as exc_info:
            shell.eval("c = 3")

        assert "globals limit exceeded" in str(exc_info.value)
        assert "c" not in shell.globals_env

    def test_file_set_grows(self, shell):
        """Each eval adds a source file."""
        shell.eval("1")
        shell.eval("2")

        assert len(shell.file_set) == 2
        assert shell.file_set.files[1].base == shell.file_set.files[0].base + 2


class TestBusy:
    """Tests for the single-evaluation guard."""

    def test_eval_while_busy(self, shell):
        """Entering eval while another call holds the kernel fails fast."""
        shell._lock.acquire()
        try:
            with pytest.raises(ShellBusyError):
                shell.eval("1")
            with pytest.raises(ShellBusyError):
                shell.snapshot(io.StringIO())
        finally:
            shell._lock.release()

        shell.eval("1")


class TestShellSnapshot:
    """Tests for snapshot and restore through the kernel."""

    def test_round_trip(self, shell, evaluate):
        """A restored session sees the saved values."""
        evaluate(shell, "x = 1")
        evaluate(shell, "x = x + 5")
        buf = io.StringIO()
        shell.snapshot(buf)

        restored = Shell()
        restored.restore_snapshot(io.StringIO(buf.getvalue()))

        assert evaluate(restored, "x") == "6\n"
        assert "x" in restored.symbols

    def test_containers(self, shell, evaluate):
        """Lists and dicts survive the round trip."""
        evaluate(shell, "items = [1, 2.5, 'x', True]\nconf = {'k': [None, {'n': 1}]}")
        buf = io.StringIO()
        shell.snapshot(buf)

        restored = Shell()
        restored.restore_snapshot(io.StringIO(buf.getvalue()))

        assert restored.globals_env == {
            "items": [1, 2.5, "x", True],
            "conf": {"k": [None, {"n": 1}]},
        }

    def test_opaque_values_listed_as_failed(self, shell):
        """Functions and modules are recorded under failed."""
        shell.eval("import fmt\ndef f():\n    return 1\nn = 1")
        buf = io.StringIO()
        shell.snapshot(buf)

        doc = json.loads(buf.getvalue())
        assert doc["data"] == {"n": 1}
        assert set(doc["failed"]) == {"fmt", "f"}

    def test_snapshot_of_fresh_shell(self, shell):
        """An empty session writes an empty document."""
        buf = io.StringIO()
        shell.snapshot(buf)

        assert json.loads(buf.getvalue()) == {"data": {}, "failed": {}}
        assert buf.getvalue().endswith("\n")

    def test_restore_none(self, shell):
        """Restoring from no input fails."""
        with pytest.raises(SnapshotError):
            shell.restore_snapshot(None)

    def test_restore_rejects_private_names(self, shell):
        """Names scripts could not bind themselves are refused."""
        with pytest.raises(SnapshotError):
            shell.restore_snapshot(io.StringIO('{"data": {"_x": 1}}'))
        with pytest.raises(SnapshotError):
            shell.restore_snapshot(io.StringIO('{"data": {"class": 1}}'))

    def test_restore_respects_globals_limit(self):
        """Restoring past the globals limit fails."""
        shell = Shell(ShellConfig(max_globals=2))

        with pytest.raises(SnapshotError):
            shell.restore_snapshot(io.StringIO('{"data": {"a": 1, "b": 2}}'))

        assert shell.globals_env == {}
        assert "a" not in shell.symbols.names()

    def test_restore_is_all_or_nothing(self, shell, evaluate):
        """A rejected name leaves the names before it uninstalled."""
        evaluate(shell, "keep = 1")

        with pytest.raises(SnapshotError):
            shell.restore_snapshot(io.StringIO('{"data": {"a": 1, "keep": 2, "_b": 3}}'))

        assert shell.globals_env == {"keep": 1}
        assert "a" not in shell.symbols.names()

    def test_restore_existing_names_within_limit(self):
        """Rebinding names already in the session does not count as new slots."""
        shell = Shell(ShellConfig(max_globals=3))
        shell.restore_snapshot(io.StringIO('{"data": {"a": 1, "b": 2}}'))

        shell.restore_snapshot(io.StringIO('{"data": {"a": 3, "b": 4}}'))

        assert shell.globals_env == {"a": 3, "b": 4}

    def test_restore_overwrites(self, shell, evaluate):
        """Restored values replace existing bindings."""
        evaluate(shell, "x = 'old'")
        shell.restore_snapshot(io.StringIO('{"data": {"x": "new"}, "failed": {}}'))

        assert evaluate(shell, "x") == "new\n"
