"""Known vault deployments and network defaults."""

from typing import Optional, TypedDict


class VaultPreset(TypedDict):
    address: str
    name: str
    protocol: str
    asset_symbol: str
    decimals: int
    accounting: str
    share_symbol: Optional[str]
    color: Optional[str]
    donating: bool
    apy: Optional[float]


DEFAULT_MAINNET_RPC_URL = "https://eth.drpc.org"

# Spark savings vaults on mainnet (plain ERC-4626, share price via convertToAssets)
SPARK_VAULTS: list[VaultPreset] = [
    {
        "address": "0x83F20F44975D03b1b09e64809B757c47f942BEeA",
        "name": "Spark DAI Savings",
        "protocol": "Spark",
        "asset_symbol": "DAI",
        "decimals": 18,
        "accounting": "convert_to_assets",
        "share_symbol": "sDAI",
        "color": "#f59e0b",
        "donating": False,
        "apy": 7.2,
    },
    {
        "address": "0xa3931d71877C0E7a3148CB7Eb4463524FEc27fbD",
        "name": "Spark USDS Savings",
        "protocol": "Spark",
        "asset_symbol": "USDS",
        "decimals": 18,
        "accounting": "convert_to_assets",
        "share_symbol": "sUSDS",
        "color": "#8b5cf6",
        "donating": False,
        "apy": 8.5,
    },
]

# Octant v2 yield-donating strategies (tokenized strategies, 1:1 share issuance).
# No historical APY source yet; both carry the dashboard's placeholder 8.5%.
OCTANT_STRATEGIES: list[VaultPreset] = [
    {
        "address": "0x8ea3Fa89931d7fC9A401E31329BA378A1BE95664",
        "name": "Morpho USDC Public Goods",
        "protocol": "Morpho Blue",
        "asset_symbol": "USDC",
        "decimals": 6,
        "accounting": "supply",
        "share_symbol": None,
        "color": None,
        "donating": True,
        "apy": 8.5,
    },
    {
        "address": "0x213D250f688b699a5b42B7D27cA2db03CC29e5d4",
        "name": "Sky USDC Public Goods",
        "protocol": "Sky Protocol",
        "asset_symbol": "USDC",
        "decimals": 6,
        "accounting": "supply",
        "share_symbol": None,
        "color": None,
        "donating": True,
        "apy": 8.5,
    },
]

REGISTRY_PRESETS: dict[str, list[VaultPreset]] = {
    "spark": SPARK_VAULTS,
    "octant": OCTANT_STRATEGIES,
}

DAYS_PER_YEAR = 365
