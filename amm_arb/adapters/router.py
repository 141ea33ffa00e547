"""
Live quote provider backed by a Uniswap V2 style router.

Wraps the router's read-only getAmountsOut(amountIn, path) call. Web3 calls
are synchronous, so they run in the event loop's default executor and many
evaluations can wait on the RPC endpoint at once.
"""

import asyncio
from typing import List, Optional, Sequence

from web3 import Web3

from ..abi import ERC20_METADATA_ABI, UNISWAP_V2_ROUTER_ABI
from ..exceptions import QuoteUnavailable
from ..types import Token
from ..utils import get_logger

logger = get_logger(__name__)

CHAIN_NAMES = {
    1: "Ethereum Mainnet",
    11155111: "Sepolia",
    8453: "Base",
    42161: "Arbitrum",
    10: "Optimism",
    137: "Polygon",
    56: "BSC",
    31337: "Hardhat",
}


def connect(rpc_url: str, fallback_rpcs: Sequence[str] = (), timeout: int = 10) -> Web3:
    """
    Connect to the first responsive RPC endpoint.

    Tries the configured RPC URL first, then each fallback in order.

    Args:
        rpc_url: Primary HTTP(S) RPC endpoint
        fallback_rpcs: Endpoints to try if the primary fails
        timeout: HTTP request timeout in seconds

    Returns:
        Connected Web3 instance

    Raises:
        ConnectionError: If every endpoint fails
    """
    candidates = [rpc_url, *fallback_rpcs]
    last_error = None

    for url in candidates:
        if not url or not isinstance(url, str) or not url.strip():
            logger.debug(f"Skipping invalid RPC URL: {url!r}")
            continue

        try:
            logger.info(f"Connecting to RPC: {url}")
            if not url.startswith(("http://", "https://")):
                raise ValueError(f"Invalid RPC URL format: {url}")

            web3 = Web3(Web3.HTTPProvider(url, request_kwargs={"timeout": timeout}))

            # Verify we can query the chain (is_connected() is unreliable)
            chain_id = web3.eth.chain_id
            block = web3.eth.block_number

            chain_name = CHAIN_NAMES.get(chain_id, f"Chain {chain_id}")
            logger.info(f"Connected to {chain_name} (block #{block:,})")
            return web3
        except Exception as e:
            last_error = e
            logger.warning(f"RPC connection failed: {e}")

    raise ConnectionError(
        f"Failed to connect to any of {len(candidates)} RPC endpoints. "
        f"Last error: {last_error}"
    )


def fetch_token(web3: Web3, address: str, symbol: Optional[str] = None) -> Token:
    """
    Read an ERC-20 token's decimals (and symbol, unless given) from chain.

    Raises:
        ValueError: If the address is not a checksum address
    """
    if not Web3.is_checksum_address(address):
        raise ValueError(f"Invalid token address: {address}")

    contract = web3.eth.contract(address=address, abi=ERC20_METADATA_ABI)
    decimals = contract.functions.decimals().call()
    if symbol is None:
        symbol = contract.functions.symbol().call()
    return Token(symbol=symbol, address=address, decimals=int(decimals))


class RouterQuoteSource:
    """Quote source calling getAmountsOut on a live router contract."""

    def __init__(self, web3: Web3, router_address: str):
        if not Web3.is_checksum_address(router_address):
            raise ValueError(f"Invalid router address: {router_address}")
        self.web3 = web3
        self.router_address = router_address
        self.router = web3.eth.contract(
            address=router_address, abi=UNISWAP_V2_ROUTER_ABI
        )

    def get_amounts_out(self, amount_in: int, addresses: List[str]) -> List[int]:
        """
        Call getAmountsOut synchronously.

        Raises:
            QuoteUnavailable: On any RPC failure, revert or malformed response
        """
        try:
            amounts = self.router.functions.getAmountsOut(amount_in, addresses).call()
        except Exception as e:
            # Nonexistent pair, insufficient liquidity and transport errors
            # all surface here as reverts or provider exceptions
            raise QuoteUnavailable(
                f"getAmountsOut failed for {len(addresses) - 1} hop(s): {e}",
                details={"path": addresses, "amount_in": amount_in},
            ) from e

        if len(amounts) != len(addresses):
            raise QuoteUnavailable(
                f"getAmountsOut returned {len(amounts)} amounts for "
                f"{len(addresses)} path elements",
                details={"path": addresses, "amounts": list(amounts)},
            )
        return [int(a) for a in amounts]

    async def quote(self, token_in: Token, token_out: Token, amount_in: int) -> int:
        loop = asyncio.get_running_loop()
        try:
            amounts = await loop.run_in_executor(
                None,
                self.get_amounts_out,
                amount_in,
                [token_in.address, token_out.address],
            )
        except QuoteUnavailable as e:
            e.token_in = token_in.symbol
            e.token_out = token_out.symbol
            raise
        return amounts[-1]
