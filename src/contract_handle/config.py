"""
Runtime configuration read from the environment.

Every setting has a default suited to a local development node, so a bare
``RpcProvider()`` talks to ``http://127.0.0.1:8545``.
"""

from __future__ import annotations

import os

DEFAULT_RPC_URL = "http://127.0.0.1:8545"
DEFAULT_CHAIN_ID = 1337
DEFAULT_CONFIRMATION_BLOCKS = 1
DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_RECEIPT_TIMEOUT = 120.0
DEFAULT_HTTP_TIMEOUT = 30.0


def get_rpc_url() -> str:
    """Get the RPC URL from environment or default."""
    return os.environ.get("RPC_URL", DEFAULT_RPC_URL)


def get_chain_id() -> int:
    """Get the chain ID from environment or default."""
    return int(os.environ.get("CHAIN_ID", str(DEFAULT_CHAIN_ID)))


def get_confirmation_blocks() -> int:
    """Blocks (including the inclusion block) required before confirming."""
    value = int(os.environ.get("CONFIRMATION_BLOCKS", str(DEFAULT_CONFIRMATION_BLOCKS)))
    if value < 1:
        raise ValueError(f"CONFIRMATION_BLOCKS must be >= 1, got {value}")
    return value


def get_poll_interval() -> float:
    return float(os.environ.get("POLL_INTERVAL", str(DEFAULT_POLL_INTERVAL)))


def get_receipt_timeout() -> float:
    return float(os.environ.get("RECEIPT_TIMEOUT", str(DEFAULT_RECEIPT_TIMEOUT)))
