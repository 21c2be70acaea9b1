"""
EVM Chain Configuration

Static configuration of the target chain (Base Sepolia), the ERC-4337
contracts the relay talks to, and the NFT contract minted against.
"""

from typing import Dict, Optional

from pydantic import BaseModel, Field


class EvmChainConfig(BaseModel):
    """EVM network configuration."""
    caip2: str
    chain_id: int
    name: str
    rpc_url: str = Field(..., description="Alchemy JSON-RPC endpoint template")
    public_rpc_url: str = Field(..., description="Public RPC endpoint")
    explorer_url: str = Field(..., description="Block explorer URL")


_EVM_CHAINS_DATA: Dict[str, Dict] = {
    "eip155:84532": {
        "chain_id": 84532,
        "name": "Base Sepolia",
        "rpc_url": "https://base-sepolia.g.alchemy.com/v2/{RPC_KEYS}",
        "public_rpc_url": "https://sepolia.base.org",
        "explorer_url": "https://sepolia.basescan.org",
    },
}

TARGET_CHAIN = "eip155:84532"

#: ERC-4337 EntryPoint v0.6 singleton (same address on every EVM network).
ENTRY_POINT_ADDRESS: str = "0x5FF137D4b0FDCD49DcA30c7CF57E578a026d2789"

#: Multi-owner Modular Account factory used to derive smart account addresses.
MODULAR_ACCOUNT_FACTORY_ADDRESS: str = "0x000000e92D78D90000007F0082006FDA09BD5f11"

#: Account salt; one smart account per owner.
DEFAULT_ACCOUNT_SALT: int = 0

#: Placeholder signature sent to the gas manager before the real one exists.
DUMMY_SIGNATURE: str = "0x" + "ff" * 64 + "1c"

NFT_CONTRACT_ADDRESS: str = "0xb8db917bd55DEAec469236Ace6058f2fa76791E6"

DEFAULT_TIMEOUT: float = 30.0


def get_chain_config(caip2: str = TARGET_CHAIN) -> EvmChainConfig:
    try:
        data = _EVM_CHAINS_DATA[caip2]
    except KeyError:
        raise ValueError(f"Unsupported chain: {caip2}")
    return EvmChainConfig(caip2=caip2, **data)


def get_alchemy_rpc_url(api_key: Optional[str], caip2: str = TARGET_CHAIN) -> Optional[str]:
    """Alchemy endpoint for the chain, or ``None`` without an API key."""
    if not api_key:
        return None
    return get_chain_config(caip2).rpc_url.replace("{RPC_KEYS}", api_key)
