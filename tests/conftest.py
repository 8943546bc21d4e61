"""
Shared fixtures: an in-memory contract binding whose submissions are driven
by the test, and a fake JSON-RPC node served through httpx.MockTransport.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import httpx
import pytest

from contract_handle.binding.events import Submission


# ============ In-memory binding ============


@dataclass
class SentRequest:
    kind: str
    name: Optional[str]
    args: list
    params: dict
    callback: Callable[..., Any]
    submission: Submission


class FakeOptions:
    def __init__(self) -> None:
        self.address: Optional[str] = None


class FakeInvocation:
    def __init__(self, contract: "FakeContract", kind: str, name: Optional[str], args: list):
        self.contract = contract
        self.kind = kind
        self.name = name
        self.args = list(args)

    def send(self, params: dict, callback: Callable[..., Any]) -> Submission:
        submission = Submission()
        self.contract.sent.append(
            SentRequest(self.kind, self.name, self.args, dict(params), callback, submission)
        )
        return submission

    async def call(self, params: dict) -> Any:
        self.contract.calls.append((self.name, self.args, dict(params)))
        result = self.contract.call_results[self.name]
        if isinstance(result, Exception):
            raise result
        return result

    def encode_abi(self) -> str:
        return "0x" + json.dumps([self.name, self.args]).encode("utf-8").hex()


class FakeMethods:
    def __init__(self, contract: "FakeContract", names: list[str]):
        self._contract = contract
        self._names = names

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def __getitem__(self, name: str) -> Callable[..., FakeInvocation]:
        if name not in self._names:
            raise KeyError(name)
        return lambda *args: FakeInvocation(self._contract, "method", name, list(args))


class FakeContract:
    def __init__(self, abi: list[dict[str, Any]]):
        self.abi = abi
        self.options = FakeOptions()
        self.methods = FakeMethods(self, [e["name"] for e in abi if e.get("type") == "function"])
        self.sent: list[SentRequest] = []
        self.calls: list[tuple] = []
        self.call_results: dict[str, Any] = {}

    def deploy(self, bytecode: str, args: list) -> FakeInvocation:
        invocation = FakeInvocation(self, "deploy", None, args)
        invocation.bytecode = bytecode
        self.deployed_bytecode = bytecode
        return invocation


class FakeBinder:
    def __init__(self) -> None:
        self.bound: list[FakeContract] = []

    def bind_abi(self, abi: list[dict[str, Any]]) -> FakeContract:
        contract = FakeContract(abi)
        self.bound.append(contract)
        return contract


STORE_ABI = [
    {"type": "constructor", "inputs": [], "stateMutability": "nonpayable"},
    {
        "type": "function",
        "name": "get",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
    },
    {
        "type": "function",
        "name": "store",
        "inputs": [{"name": "value", "type": "uint256"}],
        "outputs": [],
        "stateMutability": "nonpayable",
    },
]


@pytest.fixture()
def binder() -> FakeBinder:
    return FakeBinder()


# ============ Fake JSON-RPC node ============


@dataclass
class FakeNode:
    """Answers JSON-RPC methods from ``results`` (values, callables or raw responses)."""

    results: dict[str, Any] = field(default_factory=dict)
    requests: list[dict[str, Any]] = field(default_factory=list)

    def methods(self) -> list[str]:
        return [r["method"] for r in self.requests]

    def params_of(self, method: str) -> list:
        for request in self.requests:
            if request["method"] == method:
                return request["params"]
        raise AssertionError(f"{method} was never called")

    def handler(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.requests.append(payload)
        method = payload["method"]
        if method not in self.results:
            return httpx.Response(
                200,
                json={"jsonrpc": "2.0", "id": payload["id"], "error": {"code": -32601, "message": f"no {method}"}},
            )
        result = self.results[method]
        if callable(result):
            result = result(payload["params"])
        if isinstance(result, httpx.Response):
            return result
        if isinstance(result, dict) and "__error__" in result:
            return httpx.Response(
                200, json={"jsonrpc": "2.0", "id": payload["id"], "error": result["__error__"]}
            )
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], "result": result})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture()
def node() -> FakeNode:
    return FakeNode()


@pytest.fixture()
def store_abi() -> list[dict[str, Any]]:
    return [dict(entry) for entry in STORE_ABI]
