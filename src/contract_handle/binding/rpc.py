"""
JSON-RPC contract binding.

Lightweight alternative to web3.py: httpx for transport, eth-abi for
encoding, eth-account for local signing. ``RpcProvider.bind_abi`` returns an
``RpcContract`` exposing ``options.address``, ``methods[name](*args)`` and
``deploy(bytecode, args)``; every ``send`` returns a ``Submission`` whose
events are driven by a background task polling for the receipt.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

import httpx
from eth_utils import to_checksum_address

from ..config import (
    DEFAULT_HTTP_TIMEOUT,
    get_chain_id,
    get_confirmation_blocks,
    get_poll_interval,
    get_receipt_timeout,
    get_rpc_url,
)
from ..errors import (
    CallError,
    ConfirmationError,
    EncodingError,
    RpcError,
    SubmissionError,
)
from ..keys import get_account
from .abi import MethodTable, encode_deployment
from .events import Submission

logger = logging.getLogger(__name__)

SendCallback = Callable[[Optional[BaseException], Optional[str]], Any]

_QUANTITY_FIELDS = (
    "value",
    "gas",
    "gasPrice",
    "maxFeePerGas",
    "maxPriorityFeePerGas",
    "nonce",
    "chainId",
)


def _to_rpc_tx(tx: dict[str, Any]) -> dict[str, Any]:
    """Hex-encode integer quantities for the JSON-RPC wire format."""
    out = dict(tx)
    for key in _QUANTITY_FIELDS:
        if isinstance(out.get(key), int):
            out[key] = hex(out[key])
    return out


def _quantity(value: Any) -> int:
    if isinstance(value, int):
        return value
    return int(value, 16)


def _notify(callback: Optional[SendCallback], error: Optional[BaseException], tx_hash: Optional[str]) -> None:
    if callback is None:
        return
    try:
        callback(error, tx_hash)
    except Exception:
        logger.exception("Send callback raised")


class RpcProvider:
    """
    Connection to a JSON-RPC node; binds ABIs to contracts.

    Args:
        rpc_url: Endpoint URL (default: RPC_URL env or local node)
        chain_id: Chain ID used when signing locally
        private_key: Key for local signing; without it transactions are
                     sent with eth_sendTransaction from node-managed accounts
        confirmation_blocks: Blocks required before ``confirmation`` fires
        poll_interval: Seconds between receipt polls
        timeout: Seconds to wait for confirmation
        transport: Optional httpx transport (tests use httpx.MockTransport)
    """

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        chain_id: Optional[int] = None,
        private_key: Optional[str] = None,
        confirmation_blocks: Optional[int] = None,
        poll_interval: Optional[float] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.rpc_url = rpc_url or get_rpc_url()
        self.chain_id = chain_id if chain_id is not None else get_chain_id()
        self.account = get_account(private_key) if private_key else None
        self.confirmation_blocks = (
            confirmation_blocks if confirmation_blocks is not None else get_confirmation_blocks()
        )
        self.poll_interval = poll_interval if poll_interval is not None else get_poll_interval()
        self.timeout = timeout if timeout is not None else get_receipt_timeout()
        self._transport = transport
        self._ids = itertools.count(1)
        self._tasks: set[asyncio.Task] = set()

    def bind_abi(self, abi: Sequence[dict[str, Any]]) -> "RpcContract":
        return RpcContract(self, abi)

    async def request(self, method: str, params: list) -> Any:
        """
        Make a JSON-RPC call.

        Returns:
            Result field from the RPC response

        Raises:
            RpcError: If the node answers with an error object
            httpx.HTTPError: On transport failure
        """
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": next(self._ids),
        }
        logger.debug("RPC %s %s", method, params)

        async with httpx.AsyncClient(timeout=DEFAULT_HTTP_TIMEOUT, transport=self._transport) as client:
            response = await client.post(self.rpc_url, json=payload)
            response.raise_for_status()
            data = response.json()

        if "error" in data:
            raise RpcError(data["error"])

        return data.get("result")

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    def send_transaction(
        self,
        build: Callable[[], dict[str, Any]],
        callback: Optional[SendCallback] = None,
    ) -> Submission:
        """
        Start submitting a transaction in the background.

        ``build`` produces the transaction fields; it runs inside the task so
        that encoding failures are reported like any other submission error.
        Must be called from a running event loop.
        """
        submission = Submission()
        task = asyncio.get_running_loop().create_task(self._submit(build, submission, callback))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return submission

    async def _submit(
        self,
        build: Callable[[], dict[str, Any]],
        submission: Submission,
        callback: Optional[SendCallback],
    ) -> None:
        try:
            tx = build()
            tx_hash = await self._broadcast(tx)
        except SubmissionError as exc:
            self._fail(submission, callback, exc)
            return
        except Exception as exc:
            error = SubmissionError(str(exc))
            error.__cause__ = exc
            self._fail(submission, callback, error)
            return

        logger.debug("Submitted transaction %s", tx_hash)
        _notify(callback, None, tx_hash)
        submission.emit("transactionHash", tx_hash)

        try:
            receipt, confirmations = await self._wait_for_confirmation(tx_hash)
        except ConfirmationError as exc:
            submission.emit("error", exc)
            return
        except Exception as exc:
            error = ConfirmationError(f"Lost track of transaction {tx_hash}: {exc}")
            error.__cause__ = exc
            submission.emit("error", error)
            return

        logger.debug("Transaction %s confirmed (%d block(s))", tx_hash, confirmations)
        submission.emit("receipt", receipt)
        submission.emit("confirmation", confirmations, receipt)

    @staticmethod
    def _fail(submission: Submission, callback: Optional[SendCallback], error: SubmissionError) -> None:
        logger.debug("Submission failed: %s", error)
        _notify(callback, error, None)
        submission.emit("error", error)

    def _signs_for(self, sender: Optional[str]) -> bool:
        return (
            self.account is not None
            and sender is not None
            and sender.lower() == self.account.address.lower()
        )

    async def _broadcast(self, tx: dict[str, Any]) -> str:
        if self._signs_for(tx.get("from")):
            filled = await self._fill_transaction(tx)
            signed = self.account.sign_transaction(filled)
            raw_tx = "0x" + bytes(signed.raw_transaction).hex()
            return await self.request("eth_sendRawTransaction", [raw_tx])
        return await self.request("eth_sendTransaction", [_to_rpc_tx(tx)])

    async def _fill_transaction(self, tx: dict[str, Any]) -> dict[str, Any]:
        """Complete a transaction for local signing (nonce, gas, price, chain)."""
        sender = tx["from"]
        filled = {k: v for k, v in tx.items() if k != "from"}
        if filled.get("to"):
            filled["to"] = to_checksum_address(filled["to"])
        filled.setdefault("value", 0)
        filled.setdefault("chainId", self.chain_id)

        if "nonce" not in filled:
            filled["nonce"] = _quantity(
                await self.request("eth_getTransactionCount", [sender, "pending"])
            )
        if "gas" not in filled:
            filled["gas"] = _quantity(await self.request("eth_estimateGas", [_to_rpc_tx(tx)]))
        if "gasPrice" not in filled and "maxFeePerGas" not in filled:
            filled["gasPrice"] = _quantity(await self.request("eth_gasPrice", []))

        return filled

    async def _wait_for_confirmation(self, tx_hash: str) -> tuple[dict[str, Any], int]:
        """
        Poll until the receipt exists and enough blocks are on top of it.

        Raises:
            ConfirmationError: On revert (status 0) or timeout
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout
        receipt = None

        while True:
            if receipt is None:
                receipt = await self.request("eth_getTransactionReceipt", [tx_hash])
                if receipt is not None and _quantity(receipt.get("status", "0x1")) == 0:
                    raise ConfirmationError(f"Transaction {tx_hash} reverted", receipt)

            if receipt is not None:
                if self.confirmation_blocks <= 1:
                    return receipt, 1
                head = _quantity(await self.request("eth_blockNumber", []))
                confirmations = head - _quantity(receipt["blockNumber"]) + 1
                if confirmations >= self.confirmation_blocks:
                    return receipt, confirmations

            if loop.time() >= deadline:
                raise ConfirmationError(
                    f"Transaction {tx_hash} not confirmed within {self.timeout}s", receipt
                )
            await asyncio.sleep(self.poll_interval)


# ----------------------------------------------------------------------
# Contract binding
# ----------------------------------------------------------------------


@dataclass
class ContractOptions:
    address: Optional[str] = None


class ContractFunction:
    """A declared function bound to concrete arguments."""

    def __init__(self, contract: "RpcContract", name: str, args: Sequence[Any]):
        self.contract = contract
        self.name = name
        self.args = list(args)

    def _address(self, error_cls: type) -> str:
        address = self.contract.options.address
        if not address:
            raise error_cls(f"Cannot use {self.name}: contract address is not set")
        return address

    def encode_abi(self) -> str:
        spec = self.contract.methods.table.resolve(self.name, self.args)
        return spec.encode_call(self.args)

    async def call(self, params: Optional[dict[str, Any]] = None) -> Any:
        """eth_call against the latest block; decoded return value."""
        try:
            spec = self.contract.methods.table.resolve(self.name, self.args)
            data = spec.encode_call(self.args)
        except EncodingError as exc:
            raise CallError(str(exc)) from exc

        tx: dict[str, Any] = {"to": self._address(CallError), "data": data}
        if params and params.get("from"):
            tx["from"] = params["from"]

        try:
            result = await self.contract.provider.request("eth_call", [tx, "latest"])
        except (RpcError, httpx.HTTPError) as exc:
            raise CallError(f"Call to {spec.signature} failed: {exc}") from exc

        try:
            return spec.decode_output(result)
        except EncodingError as exc:
            raise CallError(str(exc)) from exc

    def send(self, params: dict[str, Any], callback: Optional[SendCallback] = None) -> Submission:
        def build() -> dict[str, Any]:
            return {**params, "to": self._address(SubmissionError), "data": self.encode_abi()}

        return self.contract.provider.send_transaction(build, callback)


class DeployInvocation:
    """Contract creation with constructor arguments."""

    def __init__(self, contract: "RpcContract", bytecode: str, args: Sequence[Any]):
        self.contract = contract
        self.bytecode = bytecode
        self.args = list(args or [])

    def encode_abi(self) -> str:
        return encode_deployment(self.contract.methods.table, self.bytecode, self.args)

    def send(self, params: dict[str, Any], callback: Optional[SendCallback] = None) -> Submission:
        def build() -> dict[str, Any]:
            return {**params, "data": self.encode_abi()}

        return self.contract.provider.send_transaction(build, callback)


class ContractMethods:
    """``methods[name](*args)`` access over a bound ``MethodTable``."""

    def __init__(self, contract: "RpcContract", table: MethodTable):
        self._contract = contract
        self.table = table

    def __contains__(self, name: object) -> bool:
        return name in self.table

    def __getitem__(self, name: str) -> Callable[..., ContractFunction]:
        if name not in self.table:
            raise KeyError(name)

        def invoke(*args: Any) -> ContractFunction:
            return ContractFunction(self._contract, name, args)

        return invoke

    def __iter__(self):
        return iter(self.table.names())


class RpcContract:
    """An ABI bound to a provider and (optionally) an address."""

    def __init__(self, provider: RpcProvider, abi: Sequence[dict[str, Any]]):
        self.provider = provider
        self.abi = list(abi)
        self.options = ContractOptions()
        self.methods = ContractMethods(self, MethodTable(self.abi))

    def deploy(self, bytecode: str, args: Optional[Sequence[Any]] = None) -> DeployInvocation:
        return DeployInvocation(self, bytecode, args or [])
