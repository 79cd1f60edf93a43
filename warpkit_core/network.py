"""
Network access: the RPC provider interface, its aiohttp REST
implementation, and the broadcaster that submits signed transactions and
polls for their outcome.

REST endpoints consumed (MultiversX API shape):

    GET  /accounts/{address}            → {address, nonce, balance, ...}
    POST /transactions                  → {txHash}
    GET  /transactions/{hash}           → {status, logs, results, ...}

Rejections are never retried here: resubmitting needs a fresh nonce sync,
which is the caller's decision.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional, Protocol

import aiohttp

from warpkit_core.account import Account
from warpkit_core.address import Address
from warpkit_core.errors import (
    MalformedResponse,
    NetworkUnavailable,
    NonceConflict,
    SigningError,
    TransactionRejected,
)
from warpkit_core.outcome import TransactionOutcome, parse_outcome, timeout_outcome
from warpkit_core.transaction import Transaction

logger = logging.getLogger("warpkit_network")

DEFAULT_POLL_INTERVAL = 6.0
DEFAULT_CONFIRM_TIMEOUT = 120.0


class NetworkProvider(Protocol):
    """What the pipeline needs from the network."""

    async def get_account(self, address: Address) -> Account: ...

    async def send_transaction(self, transaction: Transaction) -> str: ...

    async def get_transaction(self, tx_hash: str) -> Optional[dict]: ...


def rejection_for(reason: str) -> TransactionRejected:
    """Map a server rejection reason onto the right error class."""
    if "nonce" in reason.lower():
        return NonceConflict(reason)
    return TransactionRejected(reason)


# =====================================================================
# REST provider
# =====================================================================

class ApiNetworkProvider:
    """aiohttp client for the public REST API."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        session: aiohttp.ClientSession | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> ApiNetworkProvider:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def _request(
        self, method: str, path: str, phase: str, payload: dict | None = None,
    ) -> tuple[int, Any]:
        url = f"{self.base_url}{path}"
        try:
            async with self._get_session().request(method, url, json=payload) as resp:
                text = await resp.text()
                status = resp.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise NetworkUnavailable(f"{method} {url} failed: {exc!r}", phase=phase) from exc

        if not text:
            return status, None
        try:
            return status, json.loads(text)
        except json.JSONDecodeError:
            if status >= 400:
                return status, {"message": text}
            raise MalformedResponse(f"{method} {url} returned non-JSON body", phase=phase) from None

    @staticmethod
    def _error_text(body: Any) -> str:
        if isinstance(body, dict):
            return str(body.get("message") or body.get("error") or body)
        return str(body)

    async def get_account(self, address: Address) -> Account:
        status, body = await self._request("GET", f"/accounts/{address.to_bech32()}", "sync")
        if status == 404:
            # Never-used accounts are unknown to the API; they start at nonce 0.
            return Account(address=address)
        if status >= 400:
            raise NetworkUnavailable(
                f"account lookup failed with HTTP {status}: {self._error_text(body)}", phase="sync"
            )
        return Account.from_api(body, phase="sync")

    async def send_transaction(self, transaction: Transaction) -> str:
        status, body = await self._request("POST", "/transactions", "broadcast", transaction.to_dict())
        if 400 <= status < 500:
            raise rejection_for(self._error_text(body))
        if status >= 500:
            raise NetworkUnavailable(
                f"broadcast failed with HTTP {status}: {self._error_text(body)}", phase="broadcast"
            )
        if not isinstance(body, dict) or not isinstance(body.get("txHash"), str):
            raise MalformedResponse(f"broadcast response has no txHash: {body!r}", phase="broadcast")
        return body["txHash"]

    async def get_transaction(self, tx_hash: str) -> dict | None:
        status, body = await self._request(
            "GET", f"/transactions/{tx_hash}?withResults=true", "confirm"
        )
        if status == 404:
            return None
        if status >= 400:
            raise NetworkUnavailable(
                f"transaction lookup failed with HTTP {status}: {self._error_text(body)}", phase="confirm"
            )
        if not isinstance(body, dict):
            raise MalformedResponse("transaction record must be an object", phase="confirm")
        return body


# =====================================================================
# Broadcaster
# =====================================================================

class NetworkBroadcaster:
    """Submit signed transactions and wait for their outcome."""

    def __init__(
        self,
        provider: NetworkProvider,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        default_timeout: float = DEFAULT_CONFIRM_TIMEOUT,
    ):
        self.provider = provider
        self.poll_interval = poll_interval
        self.default_timeout = default_timeout

    async def broadcast(self, transaction: Transaction) -> str:
        if not transaction.is_signed:
            raise SigningError("refusing to broadcast an unsigned transaction", phase="broadcast")
        tx_hash = await self.provider.send_transaction(transaction)
        logger.info(f"Broadcast tx {tx_hash} (nonce {transaction.nonce})", extra={"phase": "broadcast"})
        return tx_hash

    async def await_outcome(self, tx_hash: str, timeout: float | None = None) -> TransactionOutcome:
        """
        Poll until the transaction reaches a terminal status.

        Returns an outcome with status ``timeout`` when *timeout* seconds
        elapse first; the transaction may still finalize later.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + (self.default_timeout if timeout is None else timeout)
        last: TransactionOutcome | None = None

        while True:
            try:
                record = await self.provider.get_transaction(tx_hash)
            except NetworkUnavailable as exc:
                logger.warning(f"Polling {tx_hash} failed, will retry: {exc}", extra={"phase": "confirm"})
                record = None
            if record is not None:
                last = parse_outcome(tx_hash, record)
                if last.is_terminal:
                    logger.info(f"Tx {tx_hash} finished with status {last.status.value}")
                    return last

            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.warning(f"Tx {tx_hash} still pending after timeout", extra={"phase": "confirm"})
                return timeout_outcome(tx_hash, last)
            await asyncio.sleep(min(self.poll_interval, remaining))
