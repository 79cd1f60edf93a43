"""
On-chain account state as mirrored locally.

The network is authoritative for ``nonce`` and ``balance``; the local copy
is refreshed by :meth:`AccountNonceTracker.sync` and advanced optimistically
by :meth:`AccountNonceTracker.next`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from warpkit_core.address import Address
from warpkit_core.errors import MalformedResponse


@dataclass
class Account:
    address: Address
    nonce: int = 0
    balance: int = 0

    @classmethod
    def from_api(cls, data: dict[str, Any], phase: str = "sync") -> Account:
        """Parse a ``GET /accounts/{address}`` response body."""
        if not isinstance(data, dict):
            raise MalformedResponse("account response must be an object", phase=phase)
        try:
            address = Address.from_bech32(data["address"])
            nonce = data.get("nonce", 0)
            if isinstance(nonce, bool) or not isinstance(nonce, int) or nonce < 0:
                raise MalformedResponse(f"account nonce is not a non-negative integer: {nonce!r}", phase=phase)
            balance = int(data.get("balance", "0"))
        except KeyError as exc:
            raise MalformedResponse(f"account response is missing {exc}", phase=phase) from exc
        except (TypeError, ValueError) as exc:
            raise MalformedResponse(f"account response is invalid: {exc}", phase=phase) from exc
        return cls(address=address, nonce=nonce, balance=balance)

    def to_dict(self) -> dict:
        return {
            "address": self.address.to_bech32(),
            "nonce": self.nonce,
            "balance": str(self.balance),
        }

    def __repr__(self) -> str:
        return f"Account({self.address}, nonce={self.nonce})"
