"""
ContractHandle - deploy, call and encode against one contract.

Wraps a contract binding (anything returned by ``binder.bind_abi(abi)``) and
turns its event-emitting submissions into awaitable results:

- deploy():      resolves with the binding, now pointed at the new address
- set():         resolves with the confirmation receipt
- get():         resolves with the decoded return value of a read-only call
- get_encoded(): calldata for a function call, nothing is sent
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Any, Callable, Optional, Protocol, Sequence

from .errors import CallError, EncodingError, OperationInProgressError, SubmissionError

logger = logging.getLogger(__name__)


class ContractBinding(Protocol):
    """What the handle needs from a bound contract."""

    options: Any
    methods: Any

    def deploy(self, bytecode: str, args: Sequence[Any]) -> Any: ...


class AbiBinder(Protocol):
    def bind_abi(self, abi: Sequence[dict[str, Any]]) -> ContractBinding: ...


class OperationState(str, enum.Enum):
    IDLE = "idle"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"


def build_send_params(
    sender: str,
    value: Optional[int] = None,
    options: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """
    Submission parameters for deploy/send.

    ``options`` are copied verbatim; ``value`` is only included when it is
    strictly positive.
    """
    params: dict[str, Any] = {"from": sender}
    for key, option in (options or {}).items():
        params[key] = option
    if value is not None and value > 0:
        params["value"] = value
    return params


class ContractHandle:
    """
    A contract ABI + bytecode pair, optionally bound to a deployed address.

    Args:
        binder: Object whose ``bind_abi(abi)`` returns a contract binding
        abi: Contract ABI
        code: Deployment bytecode
        is_alternate_encoding: Prefix ``code`` with ``0x`` (Quorum-style
            toolchains emit bytecode without it)
        exclusive: Refuse a deploy/send while another one is in flight
            instead of letting them race on the shared fields

    Only the most recent receipt and deployment transaction hash are kept.
    Without ``exclusive``, overlapping operations all write those fields and
    the last one to confirm wins.
    """

    def __init__(
        self,
        binder: AbiBinder,
        abi: Sequence[dict[str, Any]],
        code: str,
        is_alternate_encoding: bool = False,
        exclusive: bool = False,
    ):
        self.binder = binder
        self.instance = binder.bind_abi(abi)
        self.code = ("0x" + code) if is_alternate_encoding else code
        self.receipt: Optional[Any] = None
        self.transaction_hash: Optional[str] = None
        self.exclusive = exclusive
        self.state = OperationState.IDLE
        self._in_flight = 0

    def get_code(self) -> str:
        return self.code

    def get_instance(self) -> ContractBinding:
        return self.instance

    def get_receipt(self) -> Optional[Any]:
        """Receipt of the most recently confirmed deploy or send."""
        return self.receipt

    def get_transaction_hash(self) -> Optional[str]:
        """Hash of the most recent deployment transaction."""
        return self.transaction_hash

    @property
    def address(self) -> Optional[str]:
        return self.instance.options.address

    def set_address(self, address: str) -> None:
        """Point the current binding at an already deployed contract."""
        self.instance.options.address = address

    def set_abi(self, abi: Sequence[dict[str, Any]]) -> None:
        """Rebind to a new ABI. The previous address is dropped."""
        self.instance = self.binder.bind_abi(abi)

    # ------------------------------------------------------------------
    # Submissions
    # ------------------------------------------------------------------

    def _begin(self) -> None:
        if self.exclusive and self._in_flight:
            raise OperationInProgressError("Another deploy or send is still pending on this handle")
        self._in_flight += 1
        self.state = OperationState.SUBMITTED

    async def _settle(
        self,
        start: Callable[[Callable[..., None]], Any],
        on_hash: Callable[[Optional[str]], None],
        on_confirmed: Callable[[Any], Any],
    ) -> Any:
        """
        Drive one submission to a single result.

        ``start`` receives the submission callback and returns the emitter.
        The first of callback error, ``error`` event or ``confirmation``
        event settles the future; listeners are removed afterwards.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()

        def reject(error: BaseException) -> None:
            if not future.done():
                future.set_exception(error)

        def on_submitted(error: Optional[BaseException], tx_hash: Optional[str] = None) -> None:
            on_hash(tx_hash)
            if error is not None:
                reject(error)

        def on_confirmation(confirmation_number: int, receipt: Any) -> None:
            if future.done():
                return
            try:
                result = on_confirmed(receipt)
            except Exception as exc:
                future.set_exception(exc)
            else:
                future.set_result(result)

        self._begin()
        try:
            try:
                submission = start(on_submitted)
            except Exception as exc:
                reject(exc)
                submission = None

            if submission is not None:
                submission.on("error", reject)
                submission.on("confirmation", on_confirmation)
            try:
                result = await future
            finally:
                if submission is not None:
                    submission.off("error", reject)
                    submission.off("confirmation", on_confirmation)
        except BaseException:
            self._finish(OperationState.FAILED)
            raise

        self._finish(OperationState.CONFIRMED)
        return result

    def _finish(self, outcome: OperationState) -> None:
        # stays SUBMITTED while any other deploy/send is still pending
        self._in_flight -= 1
        if not self._in_flight:
            self.state = outcome

    async def deploy(
        self,
        args: Sequence[Any],
        sender: str,
        value: Optional[int] = None,
        options: Optional[dict[str, Any]] = None,
    ) -> ContractBinding:
        """
        Deploy the contract.

        Args:
            args: Constructor arguments
            sender: Deploying account
            value: Wei to send to a payable constructor (ignored unless > 0)
            options: Extra submission parameters (gas, gasPrice, ...)

        Returns:
            The contract binding, with ``options.address`` set to the new
            contract

        Raises:
            SubmissionError / ConfirmationError: As raised by the binding
        """
        params = build_send_params(sender, value, options)
        logger.debug("Deploying contract from %s", sender)

        def on_hash(tx_hash: Optional[str]) -> None:
            self.transaction_hash = tx_hash

        def on_confirmed(receipt: Any) -> ContractBinding:
            self.receipt = receipt
            self.instance.options.address = receipt["contractAddress"]
            logger.debug("Contract deployed at %s", receipt["contractAddress"])
            return self.instance

        instance = self.instance
        return await self._settle(
            lambda callback: instance.deploy(self.code, list(args or [])).send(params, callback),
            on_hash,
            on_confirmed,
        )

    async def set(
        self,
        function_name: str,
        args: Sequence[Any],
        sender: str,
        value: Optional[int] = None,
        options: Optional[dict[str, Any]] = None,
    ) -> Any:
        """
        Send a state-changing call and wait for its confirmation.

        Returns:
            The confirmation receipt
        """
        if function_name not in self.instance.methods:
            raise SubmissionError(f"Function {function_name} not found in ABI")
        params = build_send_params(sender, value, options)
        logger.debug("Sending %s from %s", function_name, sender)

        def on_confirmed(receipt: Any) -> Any:
            self.receipt = receipt
            return receipt

        method = self.instance.methods[function_name]
        return await self._settle(
            lambda callback: method(*(args or [])).send(params, callback),
            lambda tx_hash: None,
            on_confirmed,
        )

    # ------------------------------------------------------------------
    # Reads and encoding
    # ------------------------------------------------------------------

    async def get(self, function_name: str, args: Sequence[Any], sender: Optional[str] = None) -> Any:
        """
        Call a read-only function (or public variable getter).

        Raises:
            CallError: If the function is not declared or the call fails
        """
        if function_name not in self.instance.methods:
            raise CallError(f"Function {function_name} not found in ABI")
        params = {"from": sender}
        return await self.instance.methods[function_name](*(args or [])).call(params)

    def get_encoded(self, function_name: str, args: Sequence[Any]) -> str:
        """
        ABI-encode a call without sending it.

        Raises:
            EncodingError: If the function is not declared
        """
        if function_name not in self.instance.methods:
            raise EncodingError(f"Function {function_name} not found in ABI")
        return self.instance.methods[function_name](*(args or [])).encode_abi()
