"""
contract-handle CLI

Thin command-line layer over ContractHandle + RpcProvider. ABI and bytecode
are read from a compiled artifact (Foundry, Hardhat or Truffle JSON).

Commands:
  encode  - Print calldata for a function call (offline)
  call    - Call a read-only function
  send    - Send a state-changing transaction and wait for confirmation
  deploy  - Deploy the artifact's bytecode
  whoami  - Show the signing address
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any, Optional

import click

from . import __version__
from .binding.abi import load_artifact
from .binding.rpc import RpcProvider
from .config import DEFAULT_RPC_URL
from .errors import ContractHandleError
from .handle import ContractHandle
from .keys import get_address, load_private_key


# ============ Helpers ============


def _parse_args(args_json: str) -> list:
    try:
        args = json.loads(args_json)
        if not isinstance(args, list):
            raise ValueError("Args must be a JSON array")
    except (json.JSONDecodeError, ValueError) as exc:
        click.secho(f"ERROR: Invalid args: {exc}", fg="red")
        sys.exit(1)
    return args


def _json_default(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, tuple):
        return list(value)
    return str(value)


def _echo_json(value: Any) -> None:
    click.echo(json.dumps(value, indent=2, default=_json_default))


def _optional_key() -> Optional[str]:
    try:
        return load_private_key()
    except ValueError:
        return None


def _build_handle(artifact: str, rpc_url: str, alt_encoding: bool, private_key: Optional[str]) -> ContractHandle:
    try:
        loaded = load_artifact(artifact)
    except (FileNotFoundError, ValueError) as exc:
        click.secho(f"ERROR: {exc}", fg="red")
        sys.exit(1)
    provider = RpcProvider(rpc_url=rpc_url, private_key=private_key)
    return ContractHandle(provider, loaded.abi, loaded.bytecode, alt_encoding)


def _resolve_sender(sender: Optional[str], private_key: Optional[str]) -> str:
    if sender:
        return sender
    if private_key:
        return get_address(private_key)
    click.secho("ERROR: No sender. Pass --from or set PRIVATE_KEY.", fg="red")
    sys.exit(1)


def _send_options(gas: Optional[int], gas_price: Optional[int]) -> dict[str, int]:
    options = {}
    if gas is not None:
        options["gas"] = gas
    if gas_price is not None:
        options["gasPrice"] = gas_price
    return options


def _run(coro: Any) -> Any:
    try:
        return asyncio.run(coro)
    except ContractHandleError as exc:
        click.secho(f"FAILED: {exc}", fg="red")
        sys.exit(1)


artifact_option = click.option(
    "--artifact", required=True, type=click.Path(dir_okay=False), help="Compiled contract JSON"
)
rpc_option = click.option(
    "--rpc-url", envvar="RPC_URL", default=DEFAULT_RPC_URL, show_default=True, help="JSON-RPC endpoint"
)
alt_encoding_option = click.option(
    "--alt-encoding", is_flag=True, help="Bytecode lacks the 0x prefix (Quorum toolchains)"
)
args_option = click.option("--args", "args_json", default="[]", help="Arguments as a JSON array")


# ============ Main CLI Group ============


@click.group()
@click.version_option(version=__version__, prog_name="contract-handle")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Deploy, call and encode smart-contract functions."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@artifact_option
@click.option("--function", "func_name", required=True, help="Function name or signature")
@args_option
def encode(artifact: str, func_name: str, args_json: str) -> None:
    """Print ABI-encoded calldata without sending anything."""
    handle = _build_handle(artifact, DEFAULT_RPC_URL, False, None)
    args = _parse_args(args_json)
    try:
        click.echo(handle.get_encoded(func_name, args))
    except ContractHandleError as exc:
        click.secho(f"ERROR: {exc}", fg="red")
        sys.exit(1)


@cli.command()
@artifact_option
@rpc_option
@click.option("--address", required=True, help="Deployed contract address")
@click.option("--function", "func_name", required=True, help="Function name or signature")
@args_option
@click.option("--from", "sender", default=None, help="Calling address")
def call(artifact: str, rpc_url: str, address: str, func_name: str, args_json: str, sender: Optional[str]) -> None:
    """Call a read-only function and print the result."""
    handle = _build_handle(artifact, rpc_url, False, None)
    handle.set_address(address)
    args = _parse_args(args_json)
    _echo_json(_run(handle.get(func_name, args, sender)))


@cli.command()
@artifact_option
@rpc_option
@click.option("--address", required=True, help="Deployed contract address")
@click.option("--function", "func_name", required=True, help="Function name or signature")
@args_option
@click.option("--from", "sender", default=None, help="Sender (default: PRIVATE_KEY address)")
@click.option("--value", default=0, type=int, help="ETH value in wei")
@click.option("--gas", default=None, type=int, help="Gas limit (default: estimate)")
@click.option("--gas-price", default=None, type=int, help="Gas price in wei")
def send(
    artifact: str,
    rpc_url: str,
    address: str,
    func_name: str,
    args_json: str,
    sender: Optional[str],
    value: int,
    gas: Optional[int],
    gas_price: Optional[int],
) -> None:
    """Send a transaction and wait for its confirmation."""
    private_key = _optional_key()
    handle = _build_handle(artifact, rpc_url, False, private_key)
    handle.set_address(address)
    args = _parse_args(args_json)
    sender = _resolve_sender(sender, private_key)

    click.echo(f"  Sender: {sender}")
    click.echo(f"  Target: {address}")
    click.echo(f"  Function: {func_name}")
    if value > 0:
        click.echo(f"  Value: {value} wei")

    receipt = _run(handle.set(func_name, args, sender, value, _send_options(gas, gas_price)))
    click.secho("SUCCESS: Transaction confirmed!", fg="green")
    click.echo(f"  TX: {receipt.get('transactionHash')}")


@cli.command()
@artifact_option
@rpc_option
@alt_encoding_option
@args_option
@click.option("--from", "sender", default=None, help="Deployer (default: PRIVATE_KEY address)")
@click.option("--value", default=0, type=int, help="ETH value in wei for a payable constructor")
@click.option("--gas", default=None, type=int, help="Gas limit (default: estimate)")
@click.option("--gas-price", default=None, type=int, help="Gas price in wei")
def deploy(
    artifact: str,
    rpc_url: str,
    alt_encoding: bool,
    args_json: str,
    sender: Optional[str],
    value: int,
    gas: Optional[int],
    gas_price: Optional[int],
) -> None:
    """Deploy the artifact's bytecode."""
    private_key = _optional_key()
    handle = _build_handle(artifact, rpc_url, alt_encoding, private_key)
    args = _parse_args(args_json)
    sender = _resolve_sender(sender, private_key)

    click.echo(f"  Deployer: {sender}")
    _run(handle.deploy(args, sender, value, _send_options(gas, gas_price)))
    click.secho("SUCCESS: Contract deployed!", fg="green")
    click.echo(f"  Address: {handle.address}")
    click.echo(f"  TX: {handle.get_transaction_hash()}")


@cli.command()
def whoami() -> None:
    """Show the address of the configured signing key."""
    try:
        click.echo(f"Address: {get_address(load_private_key())}")
    except ValueError:
        click.echo("No signing key found.")
        click.echo("Set PRIVATE_KEY or add it to ~/.contract_handle/.env")
        sys.exit(1)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
