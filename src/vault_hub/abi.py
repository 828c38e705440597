from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any

from web3 import Web3

ABIS_DIR = Path(__file__).parent / "abis"

ERC4626_VAULT_ABI_PATH = ABIS_DIR / "ERC4626Vault.json"
ERC20_ABI_PATH = ABIS_DIR / "ERC20.json"


def load_abi(path: str | Path) -> list[dict]:
    """Load an ABI from a JSON file and return its "abi" field.

    Args:
        path: Path to the JSON file containing an "abi" field.

    Returns:
        ABI as a list of dictionaries.

    Raises:
        FileNotFoundError: If the file does not exist.
        json.JSONDecodeError: If the file is not valid JSON.
        KeyError: If the JSON does not contain an "abi" field.
    """
    p = Path(path)
    with p.open() as f:
        data = json.load(f)
    return data["abi"]


@lru_cache(maxsize=None)
def load_vault_abi() -> list[dict]:
    """Load the ERC-4626 vault ABI."""
    return load_abi(ERC4626_VAULT_ABI_PATH)


@lru_cache(maxsize=None)
def load_erc20_abi() -> list[dict]:
    """Load the ERC20 ABI."""
    return load_abi(ERC20_ABI_PATH)


def encode_call(address: str, abi: list[dict], function: str, args: list[Any]) -> bytes:
    """Encode calldata for ``function(*args)`` on the contract at ``address``.

    Encoding is offline; no provider is contacted.
    """
    w3 = Web3()
    contract = w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)
    calldata_hex = contract.encode_abi(abi_element_identifier=function, args=args)
    return bytes.fromhex(calldata_hex.removeprefix("0x"))
