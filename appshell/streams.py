"""
Stream proxies standing in for the script's stdin, stdout and stderr.

Built-in modules capture a proxy once; the kernel swaps the proxy target for
the duration of each evaluation.
"""

from __future__ import annotations

from typing import Any, Protocol


class Writer(Protocol):
    def write(self, text: str) -> Any: ...


class Reader(Protocol):
    def read(self, size: int = -1) -> str: ...

    def readline(self, size: int = -1) -> str: ...


class DiscardWriter:
    """Writer that drops everything."""

    def write(self, text: str) -> int:
        return len(text)

    def flush(self) -> None:
        pass


class EmptyReader:
    """Reader that is always at end of stream."""

    def read(self, size: int = -1) -> str:
        return ""

    def readline(self, size: int = -1) -> str:
        return ""


class ProxyWriter:
    """Forwards writes to a swappable target writer."""

    def __init__(self, target: Writer | None = None):
        self.target: Writer = target if target is not None else DiscardWriter()

    def write(self, text: str) -> int:
        self.target.write(text)
        return len(text)

    def flush(self) -> None:
        flush = getattr(self.target, "flush", None)
        if flush is not None:
            flush()


class ProxyReader:
    """Forwards reads to a swappable target reader."""

    def __init__(self, target: Reader | None = None):
        self.target: Reader = target if target is not None else EmptyReader()

    def read(self, size: int = -1) -> str:
        return self.target.read(size)

    def readline(self, size: int = -1) -> str:
        return self.target.readline(size)


__all__ = ["DiscardWriter", "EmptyReader", "ProxyReader", "ProxyWriter", "Reader", "Writer"]
