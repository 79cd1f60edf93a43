"""
Per-account nonce tracking.

``sync()`` overwrites the local nonce with the network's value; ``next()``
hands out the current value and increments it in memory.  There is no
rollback: a nonce consumed by a transaction that later fails to broadcast
leaves a gap until the next ``sync()``.

One tracker serves one account and must have a single writer.  The
``lock`` attribute is held by the pipeline around build → sign → next →
broadcast so that concurrent submits cannot interleave.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from warpkit_core.account import Account
from warpkit_core.address import Address

if TYPE_CHECKING:
    from warpkit_core.network import NetworkProvider

logger = logging.getLogger("warpkit_nonce")


class AccountNonceTracker:

    def __init__(self, address: Address, provider: NetworkProvider):
        self.address = address
        self.provider = provider
        self.lock = asyncio.Lock()
        self._account: Account | None = None

    @property
    def synced(self) -> bool:
        return self._account is not None

    @property
    def account(self) -> Account:
        if self._account is None:
            raise RuntimeError(f"nonce tracker for {self.address} has not been synced")
        return self._account

    @property
    def current(self) -> int:
        return self.account.nonce

    async def sync(self) -> int:
        """Fetch the authoritative nonce from the network."""
        account = await self.provider.get_account(self.address)
        if self._account is not None and account.nonce != self._account.nonce:
            logger.info(
                f"Nonce for {self.address} resynced: local {self._account.nonce} -> network {account.nonce}"
            )
        self._account = account
        return account.nonce

    def next(self) -> int:
        """Return the current nonce and advance the local copy."""
        account = self.account
        nonce = account.nonce
        account.nonce = nonce + 1
        return nonce

    def __repr__(self) -> str:
        nonce = self._account.nonce if self._account else None
        return f"AccountNonceTracker({self.address}, nonce={nonce})"
