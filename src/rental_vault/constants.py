"""Network and protocol constants."""

from typing import TypedDict


class NativeCurrency(TypedDict):
    name: str
    symbol: str
    decimals: int


class NetworkInfo(TypedDict):
    chain_id: int
    chain_name: str
    native_currency: NativeCurrency
    block_explorer_urls: list[str]
    index_network: str
    is_custom: bool


ETH_NATIVE_CURRENCY: NativeCurrency = {"name": "ETH", "symbol": "ETH", "decimals": 18}
MATIC_NATIVE_CURRENCY: NativeCurrency = {
    "name": "MATIC",
    "symbol": "MATIC",
    "decimals": 18,
}

MAINNET_INFO: NetworkInfo = {
    "chain_id": 1,
    "chain_name": "Ethereum",
    "native_currency": ETH_NATIVE_CURRENCY,
    "block_explorer_urls": ["https://etherscan.io/"],
    "index_network": "eth-mainnet",
    "is_custom": False,
}

GOERLI_INFO: NetworkInfo = {
    "chain_id": 5,
    "chain_name": "Goerli",
    "native_currency": ETH_NATIVE_CURRENCY,
    "block_explorer_urls": ["https://goerli.etherscan.io/"],
    "index_network": "eth-goerli",
    "is_custom": False,
}

POLYGON_INFO: NetworkInfo = {
    "chain_id": 137,
    "chain_name": "Polygon",
    "native_currency": MATIC_NATIVE_CURRENCY,
    "block_explorer_urls": ["https://polygonscan.com"],
    "index_network": "polygon-mainnet",
    "is_custom": True,
}

MUMBAI_INFO: NetworkInfo = {
    "chain_id": 80001,
    "chain_name": "Mumbai",
    "native_currency": MATIC_NATIVE_CURRENCY,
    "block_explorer_urls": ["https://mumbai.polygonscan.com"],
    "index_network": "polygon-mumbai",
    "is_custom": True,
}

DEFAULT_MAINNET_RPC_URL = "https://eth.drpc.org"
DEFAULT_GOERLI_RPC_URL = "https://goerli.drpc.org"
DEFAULT_POLYGON_RPC_URL = "https://polygon-rpc.com"
DEFAULT_MUMBAI_RPC_URL = "https://rpc-mumbai.maticvigil.com"

# Alchemy NFT API v3; "{network}" is NetworkInfo.index_network
DEFAULT_INDEX_URL = "https://{network}.g.alchemy.com/nft/v3"
INDEX_REQUEST_PAGE_SIZE = 100
INDEX_REQUEST_TIMEOUT = 15

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

IPFS_PREFIX = "ipfs://"
DEFAULT_IPFS_GATEWAY = "https://ipfs.io/ipfs/"

DEFAULT_PAGE_SIZE = 12

# Per-call retry (resilient call executor)
CALL_MAX_ATTEMPTS = 5
CALL_BASE_DELAY_SECONDS = 0.25

# Whole-walk retry for counting
COUNT_MAX_ATTEMPTS = 5
COUNT_BASE_DELAY_SECONDS = 1.0
