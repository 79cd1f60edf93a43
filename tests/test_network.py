"""
Tests for the REST provider and the broadcaster.

The provider tests run against a small in-process aiohttp app that mimics
the public API's responses.
"""

from __future__ import annotations

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from conftest import ALICE_BECH32, ALICE_PUBKEY, ALICE_SECRET, CONTRACT_BECH32, FakeProvider
from warpkit_core.address import Address
from warpkit_core.errors import (
    MalformedResponse,
    NetworkUnavailable,
    NonceConflict,
    SigningError,
    TransactionRejected,
)
from warpkit_core.network import ApiNetworkProvider, NetworkBroadcaster, rejection_for
from warpkit_core.outcome import TransactionStatus
from warpkit_core.signer import TransactionSigner
from warpkit_core.transaction import TransactionBuilder

TX_HASH = "ab" * 32


def _signed_tx(nonce=7):
    tx = TransactionBuilder(chain_id="D").build(
        Address(ALICE_PUBKEY), nonce, CONTRACT_BECH32, "createProposal", ["x"]
    )
    return TransactionSigner().sign(tx, ALICE_SECRET)


def _fake_api(send_response=None):
    """aiohttp app standing in for the public REST API."""
    received: list[dict] = []

    async def get_account(request):
        addr = request.match_info["address"]
        if addr == ALICE_BECH32:
            return web.json_response({"address": addr, "nonce": 42, "balance": "1000000000000000000"})
        if addr == CONTRACT_BECH32:
            return web.json_response({"error": "boom"}, status=500)
        return web.json_response({"message": "Account not found"}, status=404)

    async def post_tx(request):
        received.append(await request.json())
        status, body = send_response or (200, {"txHash": TX_HASH})
        return web.json_response(body, status=status)

    async def get_tx(request):
        if request.match_info["hash"] != TX_HASH:
            return web.json_response({"message": "Transaction not found"}, status=404)
        assert request.query.get("withResults") == "true"
        return web.json_response({"txHash": TX_HASH, "status": "success"})

    app = web.Application()
    app.router.add_get("/accounts/{address}", get_account)
    app.router.add_post("/transactions", post_tx)
    app.router.add_get("/transactions/{hash}", get_tx)
    return app, received


class TestRejectionMapping:

    def test_nonce_reason(self):
        assert isinstance(rejection_for("lowerNonceInTx: true"), NonceConflict)

    def test_other_reason(self):
        err = rejection_for("insufficient funds")
        assert type(err) is TransactionRejected
        assert err.reason == "insufficient funds"
        assert err.phase == "broadcast"


class TestApiNetworkProvider:

    @pytest.mark.asyncio
    async def test_get_account(self):
        app, _ = _fake_api()
        async with TestServer(app) as server:
            async with ApiNetworkProvider(str(server.make_url(""))) as provider:
                account = await provider.get_account(Address.from_bech32(ALICE_BECH32))
        assert account.nonce == 42
        assert account.balance == 10**18

    @pytest.mark.asyncio
    async def test_unknown_account_starts_at_zero(self):
        app, _ = _fake_api()
        fresh = Address(b"\x09" * 32)
        async with TestServer(app) as server:
            async with ApiNetworkProvider(str(server.make_url(""))) as provider:
                account = await provider.get_account(fresh)
        assert account.nonce == 0
        assert account.address == fresh

    @pytest.mark.asyncio
    async def test_account_server_error(self):
        app, _ = _fake_api()
        async with TestServer(app) as server:
            async with ApiNetworkProvider(str(server.make_url(""))) as provider:
                with pytest.raises(NetworkUnavailable) as exc:
                    await provider.get_account(Address.from_bech32(CONTRACT_BECH32))
        assert exc.value.phase == "sync"

    @pytest.mark.asyncio
    async def test_send_transaction(self):
        app, received = _fake_api()
        tx = _signed_tx()
        async with TestServer(app) as server:
            async with ApiNetworkProvider(str(server.make_url(""))) as provider:
                assert await provider.send_transaction(tx) == TX_HASH
        assert received[0]["nonce"] == 7
        assert received[0]["signature"] == tx.signature.hex()
        assert received[0]["chainID"] == "D"

    @pytest.mark.asyncio
    async def test_send_nonce_rejection(self):
        app, _ = _fake_api((400, {"error": "transaction generation failed: lowerNonceInTx"}))
        async with TestServer(app) as server:
            async with ApiNetworkProvider(str(server.make_url(""))) as provider:
                with pytest.raises(NonceConflict):
                    await provider.send_transaction(_signed_tx())

    @pytest.mark.asyncio
    async def test_send_other_rejection(self):
        app, _ = _fake_api((400, {"message": "insufficient funds"}))
        async with TestServer(app) as server:
            async with ApiNetworkProvider(str(server.make_url(""))) as provider:
                with pytest.raises(TransactionRejected) as exc:
                    await provider.send_transaction(_signed_tx())
        assert not isinstance(exc.value, NonceConflict)
        assert "insufficient funds" in exc.value.reason

    @pytest.mark.asyncio
    async def test_send_server_error(self):
        app, _ = _fake_api((503, {"message": "overloaded"}))
        async with TestServer(app) as server:
            async with ApiNetworkProvider(str(server.make_url(""))) as provider:
                with pytest.raises(NetworkUnavailable) as exc:
                    await provider.send_transaction(_signed_tx())
        assert exc.value.phase == "broadcast"

    @pytest.mark.asyncio
    async def test_send_without_hash(self):
        app, _ = _fake_api((200, {"ok": True}))
        async with TestServer(app) as server:
            async with ApiNetworkProvider(str(server.make_url(""))) as provider:
                with pytest.raises(MalformedResponse):
                    await provider.send_transaction(_signed_tx())

    @pytest.mark.asyncio
    async def test_get_transaction(self):
        app, _ = _fake_api()
        async with TestServer(app) as server:
            async with ApiNetworkProvider(str(server.make_url(""))) as provider:
                assert (await provider.get_transaction(TX_HASH))["status"] == "success"
                assert await provider.get_transaction("cd" * 32) is None

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        async with ApiNetworkProvider("http://127.0.0.1:1", timeout=2.0) as provider:
            with pytest.raises(NetworkUnavailable) as exc:
                await provider.get_account(Address.from_bech32(ALICE_BECH32))
        assert exc.value.phase == "sync"


class TestNetworkBroadcaster:

    @pytest.mark.asyncio
    async def test_refuses_unsigned(self):
        tx = TransactionBuilder(chain_id="D").build(Address(ALICE_PUBKEY), 0, CONTRACT_BECH32, "f")
        provider = FakeProvider()
        with pytest.raises(SigningError):
            await NetworkBroadcaster(provider).broadcast(tx)
        assert provider.sent == []

    @pytest.mark.asyncio
    async def test_broadcast_returns_hash(self):
        provider = FakeProvider()
        provider.send_results = [TX_HASH]
        assert await NetworkBroadcaster(provider).broadcast(_signed_tx()) == TX_HASH

    @pytest.mark.asyncio
    async def test_rejection_propagates_without_retry(self):
        provider = FakeProvider()
        provider.send_results = [NonceConflict("lowerNonceInTx")]
        with pytest.raises(NonceConflict):
            await NetworkBroadcaster(provider).broadcast(_signed_tx())
        assert len(provider.sent) == 1

    @pytest.mark.asyncio
    async def test_await_outcome_polls_until_terminal(self):
        provider = FakeProvider(records={TX_HASH: [
            {"status": "pending"},
            {"status": "success", "pendingResults": True},
            {"status": "success"},
        ]})
        outcome = await NetworkBroadcaster(provider, poll_interval=0.001).await_outcome(TX_HASH, 5.0)
        assert outcome.status is TransactionStatus.SUCCESS
        assert provider.events.count("get_transaction") == 3

    @pytest.mark.asyncio
    async def test_await_outcome_timeout_is_a_status(self):
        provider = FakeProvider(records={TX_HASH: {"status": "pending"}})
        outcome = await NetworkBroadcaster(provider, poll_interval=0.01).await_outcome(TX_HASH, 0.05)
        assert outcome.status is TransactionStatus.TIMEOUT
        assert outcome.hash == TX_HASH

    @pytest.mark.asyncio
    async def test_await_outcome_tolerates_poll_errors(self):
        class Flaky(FakeProvider):
            calls = 0

            async def get_transaction(self, tx_hash):
                self.calls += 1
                if self.calls == 1:
                    raise NetworkUnavailable("reset", phase="confirm")
                return {"status": "fail"}

        outcome = await NetworkBroadcaster(Flaky(), poll_interval=0.001).await_outcome(TX_HASH, 5.0)
        assert outcome.status is TransactionStatus.FAILED

    @pytest.mark.asyncio
    async def test_unknown_hash_times_out(self):
        outcome = await NetworkBroadcaster(FakeProvider(), poll_interval=0.01).await_outcome("ff" * 32, 0.03)
        assert outcome.status is TransactionStatus.TIMEOUT
