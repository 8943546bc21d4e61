"""
CLI integration tests using Click's test runner.

Commands that talk to a node run against the fake JSON-RPC node from
conftest, swapped in by patching the CLI's RpcProvider.
"""

from __future__ import annotations

import json
import os
import secrets
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner
from eth_abi import encode
from eth_account import Account

from contract_handle import __version__
from contract_handle.binding.rpc import RpcProvider
from contract_handle.cli import cli

SENDER = "0x" + "aa" * 20
CONTRACT = "0x" + "bb" * 20
TX_HASH = "0x" + "cd" * 32

STORE_ARTIFACT = {
    "abi": [
        {
            "type": "function",
            "name": "get",
            "inputs": [],
            "outputs": [{"name": "", "type": "uint256"}],
            "stateMutability": "view",
        },
        {
            "type": "function",
            "name": "digest",
            "inputs": [],
            "outputs": [{"name": "", "type": "bytes32"}],
            "stateMutability": "view",
        },
        {
            "type": "function",
            "name": "store",
            "inputs": [{"name": "value", "type": "uint256"}],
            "outputs": [],
            "stateMutability": "nonpayable",
        }
    ],
    "bytecode": {"object": "0x6001"},
}


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def artifact(tmp_path: Path) -> Path:
    path = tmp_path / "Store.json"
    path.write_text(json.dumps(STORE_ARTIFACT), encoding="utf-8")
    return path


@pytest.fixture()
def node_provider(node):
    """Route the CLI's RpcProvider to the fake node."""

    def factory(**kwargs) -> RpcProvider:
        return RpcProvider(
            chain_id=1337,
            confirmation_blocks=1,
            poll_interval=0,
            timeout=5,
            transport=node.transport,
            **kwargs,
        )

    with patch("contract_handle.cli.RpcProvider", factory):
        yield node


@pytest.fixture()
def no_key(tmp_path: Path):
    env = {k: v for k, v in os.environ.items() if k != "PRIVATE_KEY"}
    with patch.dict(os.environ, env, clear=True):
        with patch("contract_handle.keys.CONFIG_ENV", tmp_path / "missing.env"):
            yield


class TestVersion:
    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestEncode:
    def test_encode_store(self, runner: CliRunner, artifact: Path) -> None:
        result = runner.invoke(
            cli, ["encode", "--artifact", str(artifact), "--function", "store", "--args", "[5]"]
        )
        assert result.exit_code == 0
        assert result.output.strip() == "0x6057361d" + "00" * 31 + "05"

    def test_encode_unknown_function(self, runner: CliRunner, artifact: Path) -> None:
        result = runner.invoke(cli, ["encode", "--artifact", str(artifact), "--function", "missing"])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_encode_invalid_args(self, runner: CliRunner, artifact: Path) -> None:
        result = runner.invoke(
            cli, ["encode", "--artifact", str(artifact), "--function", "store", "--args", "{}"]
        )
        assert result.exit_code == 1
        assert "Invalid args" in result.output

    def test_missing_artifact(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(
            cli, ["encode", "--artifact", str(tmp_path / "nope.json"), "--function", "store"]
        )
        assert result.exit_code == 1
        assert "not found" in result.output


class TestCall:
    def test_call_prints_result(self, runner: CliRunner, artifact: Path, node_provider) -> None:
        node_provider.results["eth_call"] = "0x" + encode(["uint256"], [42]).hex()
        result = runner.invoke(
            cli,
            ["call", "--artifact", str(artifact), "--address", CONTRACT, "--function", "get", "--from", SENDER],
        )
        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == 42
        tx, block = node_provider.params_of("eth_call")
        assert tx == {"to": CONTRACT, "data": "0x6d4ce63c", "from": SENDER}
        assert block == "latest"

    def test_call_bytes_result_as_hex(self, runner: CliRunner, artifact: Path, node_provider) -> None:
        node_provider.results["eth_call"] = "0x" + "11" * 32
        result = runner.invoke(
            cli, ["call", "--artifact", str(artifact), "--address", CONTRACT, "--function", "digest"]
        )
        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == "0x" + "11" * 32

    def test_call_node_error(self, runner: CliRunner, artifact: Path, node_provider) -> None:
        node_provider.results["eth_call"] = {"__error__": {"code": 3, "message": "execution reverted"}}
        result = runner.invoke(
            cli, ["call", "--artifact", str(artifact), "--address", CONTRACT, "--function", "get"]
        )
        assert result.exit_code == 1
        assert "FAILED" in result.output
        assert "execution reverted" in result.output


class TestSend:
    def test_send_confirmed(self, runner: CliRunner, artifact: Path, node_provider, no_key) -> None:
        node_provider.results["eth_sendTransaction"] = TX_HASH
        node_provider.results["eth_getTransactionReceipt"] = {
            "transactionHash": TX_HASH,
            "status": "0x1",
            "blockNumber": "0x5",
        }
        result = runner.invoke(
            cli,
            [
                "send", "--artifact", str(artifact), "--address", CONTRACT,
                "--function", "store", "--args", "[7]", "--from", SENDER,
                "--value", "3", "--gas", "50000", "--gas-price", "1000",
            ],
        )
        assert result.exit_code == 0, result.output
        assert "SUCCESS: Transaction confirmed!" in result.output
        assert TX_HASH in result.output
        assert "Value: 3 wei" in result.output

        (tx,) = node_provider.params_of("eth_sendTransaction")
        assert tx["from"] == SENDER
        assert tx["to"] == CONTRACT
        assert tx["value"] == "0x3"
        assert tx["gas"] == hex(50000)
        assert tx["gasPrice"] == hex(1000)
        assert tx["data"] == "0x6057361d" + "00" * 31 + "07"

    def test_send_reverted(self, runner: CliRunner, artifact: Path, node_provider, no_key) -> None:
        node_provider.results["eth_sendTransaction"] = TX_HASH
        node_provider.results["eth_getTransactionReceipt"] = {
            "transactionHash": TX_HASH,
            "status": "0x0",
            "blockNumber": "0x5",
        }
        result = runner.invoke(
            cli,
            [
                "send", "--artifact", str(artifact), "--address", CONTRACT,
                "--function", "store", "--args", "[7]", "--from", SENDER,
            ],
        )
        assert result.exit_code == 1
        assert "reverted" in result.output


class TestDeploy:
    def test_deploy_prints_address(self, runner: CliRunner, artifact: Path, node_provider, no_key) -> None:
        node_provider.results["eth_sendTransaction"] = TX_HASH
        node_provider.results["eth_getTransactionReceipt"] = {
            "transactionHash": TX_HASH,
            "contractAddress": CONTRACT,
            "status": "0x1",
            "blockNumber": "0x5",
        }
        result = runner.invoke(
            cli, ["deploy", "--artifact", str(artifact), "--from", SENDER, "--gas", "3000000"]
        )
        assert result.exit_code == 0, result.output
        assert "SUCCESS: Contract deployed!" in result.output
        assert f"Address: {CONTRACT}" in result.output
        assert f"TX: {TX_HASH}" in result.output
        assert node_provider.params_of("eth_sendTransaction") == [
            {"from": SENDER, "gas": hex(3000000), "data": "0x6001"}
        ]


class TestSenderResolution:
    def test_deploy_without_sender(self, runner: CliRunner, artifact: Path, no_key) -> None:
        result = runner.invoke(cli, ["deploy", "--artifact", str(artifact)])
        assert result.exit_code == 1
        assert "No sender" in result.output


class TestWhoami:
    def test_whoami_with_key(self, runner: CliRunner) -> None:
        private_key = "0x" + secrets.token_hex(32)
        with patch.dict(os.environ, {"PRIVATE_KEY": private_key}):
            result = runner.invoke(cli, ["whoami"])
        assert result.exit_code == 0
        assert Account.from_key(private_key).address in result.output

    def test_whoami_without_key(self, runner: CliRunner, no_key) -> None:
        result = runner.invoke(cli, ["whoami"])
        assert result.exit_code != 0
        assert "No signing key found" in result.output
