"""
Contract ABI Module

Minimal ABI fragments for the contracts the mint workflow touches: the NFT
contract, the Modular Account (execution + factory) and the v0.6 EntryPoint.

Usage:
    from abis import get_nft_abi, get_account_execute_abi

    contract = Web3().eth.contract(address=nft_address, abi=get_nft_abi())
    data = contract.encode_abi("mintTo", args=[recipient])
"""

from typing import Dict, Any, List


def get_nft_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for the NFT contract's ``mint()`` and ``mintTo(address)``.

    Returns:
        List[Dict[str, Any]]: ABI with both mint entry points.
    """
    return [
        {
            "name": "mint",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [],
            "outputs": [],
        },
        {
            "name": "mintTo",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [{"internalType": "address", "name": "to", "type": "address"}],
            "outputs": [],
        },
    ]


def get_account_execute_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for the smart account's ``execute`` and ``executeBatch``.

    ``executeBatch`` takes ``Call = { address target; uint256 value; bytes data }``.
    """
    return [
        {
            "name": "execute",
            "type": "function",
            "stateMutability": "payable",
            "inputs": [
                {"name": "target", "type": "address"},
                {"name": "value", "type": "uint256"},
                {"name": "data", "type": "bytes"},
            ],
            "outputs": [{"name": "result", "type": "bytes"}],
        },
        {
            "name": "executeBatch",
            "type": "function",
            "stateMutability": "payable",
            "inputs": [
                {
                    "name": "calls",
                    "type": "tuple[]",
                    "components": [
                        {"name": "target", "type": "address"},
                        {"name": "value", "type": "uint256"},
                        {"name": "data", "type": "bytes"},
                    ],
                },
            ],
            "outputs": [{"name": "results", "type": "bytes[]"}],
        },
    ]


def get_account_factory_abi() -> List[Dict[str, Any]]:
    """Get ABI for the multi-owner Modular Account factory."""
    return [
        {
            "name": "createAccount",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [
                {"name": "salt", "type": "uint256"},
                {"name": "owners", "type": "address[]"},
            ],
            "outputs": [{"name": "addr", "type": "address"}],
        },
        {
            "name": "getAddress",
            "type": "function",
            "stateMutability": "view",
            "inputs": [
                {"name": "salt", "type": "uint256"},
                {"name": "owners", "type": "address[]"},
            ],
            "outputs": [{"name": "", "type": "address"}],
        },
    ]


def get_entry_point_abi() -> List[Dict[str, Any]]:
    """Get ABI for EntryPoint v0.6 ``getNonce(address,uint192)``."""
    return [
        {
            "name": "getNonce",
            "type": "function",
            "stateMutability": "view",
            "inputs": [
                {"name": "sender", "type": "address"},
                {"name": "key", "type": "uint192"},
            ],
            "outputs": [{"name": "nonce", "type": "uint256"}],
        },
    ]
