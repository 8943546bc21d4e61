__all__ = [
    # Handle
    "ContractHandle",
    "OperationState",
    "build_send_params",
    # Errors
    "ContractHandleError",
    "SubmissionError",
    "ConfirmationError",
    "CallError",
    "EncodingError",
    "OperationInProgressError",
    "RpcError",
    # Bindings
    "RpcProvider",
    "RpcContract",
    "Submission",
    "MethodTable",
    "FunctionSpec",
    # Artifacts
    "Artifact",
    "load_artifact",
    "load_abi",
    "load_bytecode",
]

__version__ = "1.0.0"

from .handle import ContractHandle, OperationState, build_send_params
from .errors import (
    CallError,
    ConfirmationError,
    ContractHandleError,
    EncodingError,
    OperationInProgressError,
    RpcError,
    SubmissionError,
)
from .binding.abi import Artifact, FunctionSpec, MethodTable, load_abi, load_artifact, load_bytecode
from .binding.events import Submission
from .binding.rpc import RpcContract, RpcProvider
