"""Thin async wrapper over the Solana JSON-RPC client.

Every call is bounded by the configured timeout.  Timeouts and RPC failures
are logged here and surface to the handlers as :class:`UpstreamError`, so
callers never see transport exceptions.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, TypeVar

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solana.rpc.types import TokenAccountOpts
from solders.hash import Hash
from solders.pubkey import Pubkey

from .errors import UpstreamError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class BlockReference:
    """Recent blockhash and the last block height at which it is valid."""

    blockhash: Hash
    last_valid_block_height: int


class LedgerClient:
    def __init__(self, rpc_url: str, timeout: float = 10.0, client: AsyncClient = None):
        self.rpc_url = rpc_url
        self.timeout = timeout
        self._client = client or AsyncClient(rpc_url, commitment=Confirmed, timeout=timeout)

    async def _call(self, method: str, call: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(call, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error("RPC %s timed out after %.1fs (%s)", method, self.timeout, self.rpc_url)
            raise UpstreamError()
        except Exception as e:
            logger.error("RPC %s failed: %s", method, e)
            raise UpstreamError() from e

    async def get_balance(self, account: Pubkey) -> int:
        resp = await self._call("getBalance", self._client.get_balance(account))
        return resp.value

    async def get_minimum_balance_for_rent_exemption(self, size: int) -> int:
        resp = await self._call(
            "getMinimumBalanceForRentExemption",
            self._client.get_minimum_balance_for_rent_exemption(size),
        )
        return resp.value

    async def get_latest_blockhash(self) -> BlockReference:
        resp = await self._call("getLatestBlockhash", self._client.get_latest_blockhash())
        return BlockReference(
            blockhash=resp.value.blockhash,
            last_valid_block_height=resp.value.last_valid_block_height,
        )

    async def get_token_balance(self, owner: Pubkey, mint: Pubkey) -> int:
        """Total raw amount of ``mint`` held across the owner's token accounts."""
        resp = await self._call(
            "getTokenAccountsByOwner",
            self._client.get_token_accounts_by_owner_json_parsed(owner, TokenAccountOpts(mint=mint)),
        )
        total = 0
        for keyed in resp.value:
            info = keyed.account.data.parsed["info"]
            total += int(info["tokenAmount"]["amount"])
        return total

    async def close(self) -> None:
        await self._client.close()


async def gather_reads(*calls: Awaitable):
    """Run independent reads concurrently.

    When one read fails the others are cancelled and awaited before the
    error propagates, so no request leaves RPC calls running behind it.
    """
    tasks = [asyncio.ensure_future(call) for call in calls]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
