"""
Pytest configuration and fixtures for appshell tests.
"""

import io
import json
import sys
from pathlib import Path

import httpx
import pytest

# Add project root to path so we can import the appshell package
sys.path.insert(0, str(Path(__file__).parent.parent))

from appshell.config import ShellConfig
from appshell.kernel import Shell


@pytest.fixture
def shell():
    """Provide a fresh shell."""
    return Shell()


@pytest.fixture
def evaluate():
    """Evaluate code in a shell and return what it wrote to stdout."""

    def _evaluate(sh: Shell, code: str, stdin: str | None = None) -> str:
        out = io.StringIO()
        sh.eval(code, stdout=out, stdin=io.StringIO(stdin) if stdin is not None else None)
        return out.getvalue()

    return _evaluate


@pytest.fixture
def mock_config():
    """Provide a basic config."""
    return ShellConfig()


class EchoServer:
    """Fake JSON-RPC endpoint that returns params as the result."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        body = json.loads(request.content)
        return httpx.Response(
            200, json={"jsonrpc": body["jsonrpc"], "result": body["params"], "id": body["id"]}
        )

    @property
    def bodies(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests]


@pytest.fixture
def echo_server():
    return EchoServer()


@pytest.fixture
def echo_client(echo_server):
    """HTTP client wired to the echo server."""
    with httpx.Client(transport=httpx.MockTransport(echo_server)) as client:
        yield client


# Markers
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "hypothesis: property-based tests"
    )
    config.addinivalue_line(
        "markers", "slow: tests that take >1s"
    )
    config.addinivalue_line(
        "markers", "security: security-related tests"
    )
