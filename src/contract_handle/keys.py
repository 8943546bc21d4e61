"""
Signing key management.

The key used for locally signed transactions is read from ``PRIVATE_KEY``,
optionally loaded from ``~/.contract_handle/.env``. Without a key, the RPC
binding falls back to node-managed accounts (``eth_sendTransaction``).
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from eth_account import Account
from eth_account.signers.local import LocalAccount


# Default config directory
CONFIG_DIR = Path.home() / ".contract_handle"
CONFIG_ENV = CONFIG_DIR / ".env"


def normalize_private_key(private_key: str) -> str:
    private_key = private_key.strip()
    if not private_key.startswith("0x"):
        private_key = "0x" + private_key
    return private_key


def load_private_key(env_path: Optional[Path] = None) -> str:
    """
    Load private key from .env file or environment.

    Args:
        env_path: Path to .env file (default: ~/.contract_handle/.env)

    Returns:
        0x-prefixed hex private key

    Raises:
        ValueError: If PRIVATE_KEY is not set
    """
    env_path = env_path or CONFIG_ENV

    if env_path.exists():
        load_dotenv(env_path, override=True)

    private_key = os.environ.get("PRIVATE_KEY")
    if not private_key:
        raise ValueError(f"PRIVATE_KEY not found. Set PRIVATE_KEY or add it to {env_path}")

    return normalize_private_key(private_key)


def get_account(private_key: Optional[str] = None) -> LocalAccount:
    """
    Get an eth-account LocalAccount from a private key.

    Args:
        private_key: 0x-prefixed hex private key.
                     If None, loads from .env.
    """
    if private_key is None:
        private_key = load_private_key()
    return Account.from_key(normalize_private_key(private_key))


def get_address(private_key: Optional[str] = None) -> str:
    """Checksummed address for a private key (loaded from .env if None)."""
    return get_account(private_key).address
