"""
ABI tables and compiled-artifact loading.

Function lookup is resolved once, when an ABI is bound: every declared
function is parsed into a ``FunctionSpec`` and indexed by name and by full
signature. Encoding and decoding go through eth-abi; selectors use eth-hash.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence, Union

from eth_abi import decode, encode, is_encodable
from eth_abi.exceptions import DecodingError, EncodingError as AbiEncodingError, ParseError
from eth_abi.grammar import parse
from eth_hash.auto import keccak

from ..errors import EncodingError


def _collapse_type(param: dict[str, Any]) -> str:
    """Turn a (possibly tuple) ABI parameter into its canonical type string."""
    typ = param["type"]
    if not typ.startswith("tuple"):
        return typ
    inner = ",".join(_collapse_type(c) for c in param.get("components", []))
    return f"({inner}){typ[len('tuple'):]}"


def _validate_types(types: Iterable[str], where: str) -> None:
    for typ in types:
        try:
            parse(typ).validate()
        except (ParseError, ValueError) as exc:
            raise ValueError(f"Invalid ABI type {typ!r} in {where}: {exc}") from exc


def _strip_hex(data: str) -> bytes:
    return bytes.fromhex(data[2:] if data.startswith("0x") else data)


@dataclass(frozen=True)
class FunctionSpec:
    """One declared function (or the constructor) of a contract ABI."""

    name: str
    inputs: tuple[str, ...]
    outputs: tuple[str, ...] = ()
    state_mutability: str = "nonpayable"

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(self.inputs)})"

    @property
    def selector(self) -> bytes:
        # Keccak-256, not NIST SHA3-256
        return keccak(self.signature.encode("utf-8"))[:4]

    @property
    def is_read_only(self) -> bool:
        return self.state_mutability in ("view", "pure")

    def accepts(self, args: Sequence[Any]) -> bool:
        if len(args) != len(self.inputs):
            return False
        return all(is_encodable(typ, arg) for typ, arg in zip(self.inputs, args))

    def encode_args(self, args: Sequence[Any]) -> bytes:
        if not self.inputs:
            return b""
        try:
            return encode(list(self.inputs), list(args))
        except (AbiEncodingError, TypeError, ValueError) as exc:
            raise EncodingError(f"Cannot encode arguments for {self.signature}: {exc}") from exc

    def encode_call(self, args: Sequence[Any]) -> str:
        """Return 0x-prefixed calldata: selector followed by encoded args."""
        return "0x" + self.selector.hex() + self.encode_args(args).hex()

    def decode_output(self, data: str) -> Any:
        """
        Decode return data.

        Returns:
            None when the function declares no outputs or the data is empty,
            the bare value for a single output, a tuple otherwise.
        """
        if not self.outputs or data in (None, "", "0x"):
            return None
        try:
            decoded = decode(list(self.outputs), _strip_hex(data))
        except DecodingError as exc:
            raise EncodingError(f"Cannot decode output of {self.signature}: {exc}") from exc
        if len(decoded) == 1:
            return decoded[0]
        return decoded

    @classmethod
    def from_abi_entry(cls, entry: dict[str, Any]) -> "FunctionSpec":
        name = entry.get("name") or entry.get("type", "")
        inputs = tuple(_collapse_type(p) for p in entry.get("inputs", []))
        outputs = tuple(_collapse_type(p) for p in entry.get("outputs", []))
        mutability = entry.get("stateMutability")
        if mutability is None:
            # pre-0.4.16 compiler output
            if entry.get("constant"):
                mutability = "view"
            elif entry.get("payable"):
                mutability = "payable"
            else:
                mutability = "nonpayable"
        spec = cls(name=name, inputs=inputs, outputs=outputs, state_mutability=mutability)
        _validate_types(inputs + outputs, spec.signature)
        return spec


class MethodTable:
    """
    Functions declared by an ABI, indexed by name and by signature.

    Overloaded names are resolved per call by argument count and then by
    whether eth-abi can encode the arguments for the candidate's types.
    """

    def __init__(self, abi: Sequence[dict[str, Any]]):
        self.abi = list(abi)
        self._by_name: dict[str, list[FunctionSpec]] = {}
        self._by_signature: dict[str, FunctionSpec] = {}
        self.constructor: Optional[FunctionSpec] = None

        for entry in self.abi:
            kind = entry.get("type", "function")
            if kind == "constructor":
                self.constructor = FunctionSpec.from_abi_entry(
                    {**entry, "name": "constructor"}
                )
            elif kind == "function":
                if not entry.get("name"):
                    raise ValueError("ABI function entry without a name")
                spec = FunctionSpec.from_abi_entry(entry)
                self._by_name.setdefault(spec.name, []).append(spec)
                self._by_signature[spec.signature] = spec

    def __contains__(self, name: object) -> bool:
        return name in self._by_name or name in self._by_signature

    def __len__(self) -> int:
        return len(self._by_signature)

    def names(self) -> list[str]:
        return sorted(self._by_name)

    def candidates(self, name: str) -> list[FunctionSpec]:
        if name in self._by_signature:
            return [self._by_signature[name]]
        return list(self._by_name.get(name, []))

    def resolve(self, name: str, args: Sequence[Any]) -> FunctionSpec:
        """
        Pick the declared function matching ``name`` and ``args``.

        Raises:
            EncodingError: If no declared function matches
        """
        candidates = self.candidates(name)
        if not candidates:
            raise EncodingError(f"Function {name} not found in ABI")

        by_arity = [c for c in candidates if len(c.inputs) == len(args)]
        if not by_arity:
            arities = sorted({len(c.inputs) for c in candidates})
            raise EncodingError(
                f"Function {name} expects {' or '.join(map(str, arities))} "
                f"argument(s), got {len(args)}"
            )
        if len(by_arity) == 1:
            return by_arity[0]

        matching = [c for c in by_arity if c.accepts(args)]
        if len(matching) != 1:
            signatures = ", ".join(c.signature for c in (matching or by_arity))
            raise EncodingError(f"Ambiguous call to {name}; candidates: {signatures}")
        return matching[0]


def encode_deployment(table: MethodTable, bytecode: str, args: Sequence[Any]) -> str:
    """
    Build deployment data: bytecode followed by encoded constructor args.

    Returns:
        0x-prefixed hex string
    """
    data = bytecode[2:] if bytecode.startswith("0x") else bytecode
    args = list(args or [])
    if table.constructor is not None:
        constructor = table.constructor
        if len(args) != len(constructor.inputs):
            raise EncodingError(
                f"Constructor expects {len(constructor.inputs)} argument(s), got {len(args)}"
            )
        data += constructor.encode_args(args).hex()
    elif args:
        raise EncodingError("Constructor not found in ABI, but constructor args were provided.")
    return "0x" + data


# ---------------------------------------------------------------------------
# Compiled artifacts (Foundry, Hardhat, Truffle)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Artifact:
    abi: list[dict[str, Any]]
    bytecode: str


def _read_json(path: Path) -> Any:
    if not path.exists():
        raise FileNotFoundError(f"Artifact not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def load_artifact(path: Union[str, Path]) -> Artifact:
    """
    Load ABI and bytecode from a compiled artifact.

    Accepts Foundry output (``bytecode.object``), Hardhat/Truffle output
    (``bytecode`` string), or a bare ABI list (bytecode left empty).
    """
    path = Path(path)
    data = _read_json(path)

    if isinstance(data, list):
        return Artifact(abi=data, bytecode="")
    if not isinstance(data, dict) or "abi" not in data:
        raise ValueError(f"No ABI in artifact {path}")

    bytecode = data.get("bytecode", "")
    if isinstance(bytecode, dict):
        bytecode = bytecode.get("object", "")
    return Artifact(abi=data["abi"], bytecode=bytecode or "")


@lru_cache(maxsize=16)
def load_abi(path: str) -> list[dict[str, Any]]:
    """Load (and cache) the ABI of a compiled artifact."""
    return load_artifact(path).abi


@lru_cache(maxsize=16)
def load_bytecode(path: str) -> str:
    """
    Load (and cache) the deployment bytecode of a compiled artifact.

    Raises:
        ValueError: If the artifact carries no bytecode
    """
    bytecode = load_artifact(path).bytecode
    if not bytecode:
        raise ValueError(f"No bytecode in artifact {path}")
    return bytecode
