"""
Error taxonomy for contract handles.

Errors raised by a contract binding reach the caller unchanged; the handle
itself only raises for names missing from the bound ABI and for the
exclusive-mode guard.
"""

from __future__ import annotations

from typing import Any, Optional


class ContractHandleError(RuntimeError):
    """Base class for all contract handle errors."""


class SubmissionError(ContractHandleError):
    """The request was rejected before broadcast (bad nonce, no funds, ...)."""


class ConfirmationError(ContractHandleError):
    """An error was reported after the transaction was broadcast."""

    def __init__(self, message: str, receipt: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.receipt = receipt


class CallError(ContractHandleError):
    """A read-only call reverted or named an undeclared function."""


class EncodingError(ContractHandleError):
    """Calldata could not be produced for the requested function."""


class OperationInProgressError(ContractHandleError):
    """An exclusive handle already has a deploy or send in flight."""


class RpcError(ContractHandleError):
    """The JSON-RPC endpoint answered with an error object."""

    def __init__(self, error: Any):
        if isinstance(error, dict):
            message = error.get("message", str(error))
            self.code = error.get("code")
            self.data = error.get("data")
        else:
            message = str(error)
            self.code = None
            self.data = None
        super().__init__(f"RPC error: {message}")
