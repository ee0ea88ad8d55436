"""
The jsonrpc script module: a JSON-RPC 2.0 client over HTTP.

Scripts call jsonrpc.call(endpoint, method, params). Request ids come from a
counter owned by the client instance and are rendered in base 36.
"""

from __future__ import annotations

import itertools
import json
import logging
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from types import ModuleType
from typing import Any

import httpx
from pydantic import BaseModel

from .context import Context
from .errors import (
    CancelledError,
    InvalidArgumentTypeError,
    JSONRPCError,
    WrongNumArgumentsError,
)
from .stdlib import make_module
from .values import UnconvertibleValue, from_interface, to_interface, type_name

logger = logging.getLogger(__name__)

INTERNAL_RPC_ERROR_CODE = -32603

_DIGITS36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def format_base36(n: int) -> str:
    """Render a non-negative integer in base 36 using lowercase digits."""
    if n == 0:
        return "0"
    out = ""
    while n:
        n, r = divmod(n, 36)
        out = _DIGITS36[r] + out
    return out


class JSONRPCRequest(BaseModel):
    jsonrpc: str = "2.0"
    method: str
    params: Any = None
    id: str


class JSONRPCErrorBody(BaseModel):
    code: int = 0
    message: str = ""


class JSONRPCReply(BaseModel):
    jsonrpc: str = ""
    result: Any = None
    error: JSONRPCErrorBody | None = None
    id: str | int | None = None


class JSONRPCClient:
    """
    JSON-RPC 2.0 client backing the jsonrpc script module.

    Posts run on a worker thread so that cancelling the evaluation context
    returns control to the script without waiting for the server.
    """

    def __init__(
        self,
        get_context: Callable[[], Context],
        client: httpx.Client | None = None,
        timeout: float = 30.0,
    ):
        """
        Args:
            get_context: Returns the context installed by the running evaluation
            client: HTTP client to use; one owned by this instance is created otherwise
            timeout: HTTP timeout in seconds when the context has no deadline
        """
        self.get_context = get_context
        self.timeout = timeout
        self.owns_http = client is None
        self.http = client if client is not None else httpx.Client()
        self._counter = itertools.count(1)
        self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="jsonrpc")
        self._module: ModuleType | None = None

    def close(self) -> None:
        """Stop the worker pool and close the HTTP client if this instance created it."""
        self._executor.shutdown(wait=False, cancel_futures=True)
        if self.owns_http:
            self.http.close()

    def module(self) -> ModuleType:
        if self._module is None:
            self._module = make_module("jsonrpc", "JSON-RPC 2.0 client.", {"call": self.call})
        return self._module

    def call(self, *args: Any) -> Any:
        if len(args) != 3:
            raise WrongNumArgumentsError()
        endpoint, method, params = args
        if not isinstance(endpoint, str):
            raise InvalidArgumentTypeError("endpoint", "str", type_name(endpoint))
        if not isinstance(method, str):
            raise InvalidArgumentTypeError("method", "str", type_name(method))
        try:
            plain_params = to_interface(params)
            json.dumps(plain_params, allow_nan=False)
        except (UnconvertibleValue, ValueError) as e:
            raise InvalidArgumentTypeError(
                "params", "any (json serializable)", type_name(params)
            ) from e

        ctx = self.get_context()
        ctx.check()

        request = JSONRPCRequest(method=method, params=plain_params, id=format_base36(next(self._counter)))
        logger.debug("jsonrpc call %s id=%s -> %s", method, request.id, endpoint)
        response = self._post(ctx, endpoint, request)

        if response.status_code != 200:
            reply = JSONRPCReply(
                id=request.id,
                error=JSONRPCErrorBody(
                    code=INTERNAL_RPC_ERROR_CODE,
                    message=f"unexpected status code from server: {response.status_code}",
                ),
            )
        else:
            try:
                reply = JSONRPCReply.model_validate(response.json())
            except ValueError:
                # undecodable bodies behave like a reply without a result
                reply = JSONRPCReply()

        if reply.error is not None and reply.error.code != 0:
            raise JSONRPCError(reply.error.code, reply.error.message)
        if reply.result is None:
            raise JSONRPCError(INTERNAL_RPC_ERROR_CODE, "empty result")
        try:
            return from_interface(reply.result)
        except UnconvertibleValue as e:
            raise JSONRPCError(INTERNAL_RPC_ERROR_CODE, f"decoding error: {e}") from e

    def _post(self, ctx: Context, endpoint: str, request: JSONRPCRequest) -> httpx.Response:
        """Send the request on a worker and wait for the reply or for ctx to be done."""
        future = self._executor.submit(
            self.http.post,
            endpoint,
            content=request.model_dump_json(),
            headers={"Content-Type": "application/json"},
            timeout=ctx.timeout() or self.timeout,
        )
        waiter = ctx.with_cancel()
        future.add_done_callback(lambda _: waiter.cancel())
        waiter.wait()

        if ctx.cancelled:
            logger.debug("jsonrpc call id=%s abandoned: context cancelled", request.id)
            if not future.cancel():
                future.add_done_callback(_discard_response)
            raise CancelledError("context cancelled")
        try:
            return future.result()
        except httpx.HTTPError as e:
            raise JSONRPCError(INTERNAL_RPC_ERROR_CODE, str(e)) from e


def _discard_response(future: Future) -> None:
    if not future.cancelled() and future.exception() is None:
        future.result().close()


def jsonrpc_module(
    get_context: Callable[[], Context],
    client: httpx.Client | None = None,
    timeout: float = 30.0,
) -> ModuleType:
    """
    Build the jsonrpc module.

    Returns:
        Module exposing call(endpoint, method, params)
    """
    return JSONRPCClient(get_context, client, timeout).module()


__all__ = [
    "INTERNAL_RPC_ERROR_CODE",
    "JSONRPCClient",
    "JSONRPCReply",
    "JSONRPCRequest",
    "format_base36",
    "jsonrpc_module",
]
