"""
Transaction pipeline: keystore → signed transaction → broadcast → outcome.

One logical user operation runs inside a :class:`PipelineSession`:

    load keystore → decrypt → sync nonce → build → sign → broadcast
                  → (optionally) await outcome

The session owns the decrypted identity and the account's nonce tracker.
Its first transaction syncs the nonce from the network; later ones take
``tracker.next()`` and are preceded by ``inter_tx_delay`` seconds of
waiting so the network has observed the previous transaction.

Cryptographic failures (missing file, bad format, wrong password) are
raised before any network call is made.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Awaitable, Callable, Iterable, Optional, Union

from warpkit_core.account import Account
from warpkit_core.address import Address
from warpkit_core.codec import TypedArgument
from warpkit_core.config import NetworkConfig, PipelineConfig
from warpkit_core.errors import NetworkUnavailable, TransactionRejected, WarpkitError
from warpkit_core.keystore import (
    DecryptedIdentity,
    Keystore,
    KeystoreDecryptor,
    load_keystore,
    load_pem,
    parse_keystore,
)
from warpkit_core.links import alias_url, explorer_tx_url, tipping_links, warp_url
from warpkit_core.network import NetworkBroadcaster, NetworkProvider
from warpkit_core.nonce import AccountNonceTracker
from warpkit_core.outcome import TransactionOutcome
from warpkit_core.signer import TransactionSigner
from warpkit_core.transaction import CodeMetadata, Transaction, TransactionBuilder

logger = logging.getLogger("warpkit_pipeline")

KeystoreSource = Union[str, Path, Keystore, dict, DecryptedIdentity]
BuildFn = Callable[[Account, int], Transaction]
ArtifactSink = Callable[[str, str, str], Optional[Awaitable[None]]]


# ===================================================================
#  Results
# ===================================================================

@dataclass
class PipelineResult:
    tx_hash: str
    nonce: int
    explorer_url: str
    outcome: TransactionOutcome | None = None

    @property
    def contract_address(self) -> Address | None:
        return self.outcome.contract_address if self.outcome else None


@dataclass
class PublishResult:
    tx_hash: str
    warp_url: str
    alias: str | None = None
    alias_url: str | None = None
    alias_tx_hash: str | None = None
    recipient_links: dict[str, str] = field(default_factory=dict)


@dataclass
class BatchEntry:
    description: str
    status: str
    tx_hash: str | None = None
    error: str | None = None
    phase: str | None = None


@dataclass
class BatchReport:
    contract: str
    network: str
    entries: list[BatchEntry] = field(default_factory=list)

    @property
    def succeeded(self) -> list[BatchEntry]:
        return [e for e in self.entries if e.status == "success"]

    @property
    def failed(self) -> list[BatchEntry]:
        return [e for e in self.entries if e.status == "failed"]

    def to_dict(self) -> dict:
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "contract": self.contract,
            "network": self.network,
            "total": len(self.entries),
            "succeeded": len(self.succeeded),
            "failed": len(self.failed),
            "results": [
                {k: v for k, v in vars(e).items() if v is not None} for e in self.entries
            ],
        }


def parse_proposal_file(text: str) -> list[str]:
    """One proposal per line; blank lines and ``#`` comments are skipped."""
    lines = (line.strip() for line in text.splitlines())
    return [line for line in lines if line and not line.startswith("#")]


# ===================================================================
#  Session
# ===================================================================

class PipelineSession:
    """
    A single user operation against one account.

    Not safe to share between concurrent flows; the tracker lock only
    serializes submits issued from within this session.
    """

    def __init__(self, pipeline: TransactionPipeline, identity: DecryptedIdentity):
        self.pipeline = pipeline
        self.identity = identity
        self.tracker = AccountNonceTracker(identity.address, pipeline.provider)
        self.submitted = 0
        self._needs_sync = False

    @property
    def address(self) -> Address:
        return self.identity.address

    async def submit(
        self,
        build: BuildFn,
        *,
        wait: bool = False,
        timeout: float | None = None,
        delay: float | None = None,
    ) -> PipelineResult:
        """
        Build with *build(account, nonce)*, sign, broadcast.

        The nonce is consumed only once the transaction is built and
        signed.  *delay* replaces ``inter_tx_delay`` as the wait before a
        non-first transaction.
        """
        p = self.pipeline
        wait_for = p.config.inter_tx_delay if delay is None else delay
        async with self.tracker.lock:
            if self.submitted and wait_for > 0:
                logger.info(f"Waiting {wait_for}s before next transaction")
                await p.sleep(wait_for)

            if not self.tracker.synced or self._needs_sync:
                await self.tracker.sync()
                self._needs_sync = False
                logger.info(f"Synced {self.address}: nonce {self.tracker.current}", extra={"phase": "sync"})

            nonce = self.tracker.current
            tx = build(self.tracker.account, nonce)
            signed = p.signer.sign(tx, self.identity.private_key)
            self.tracker.next()
            self.submitted += 1

            try:
                tx_hash = await p.broadcaster.broadcast(signed)
            except (TransactionRejected, NetworkUnavailable) as exc:
                logger.error(f"Broadcast of nonce {nonce} failed: {exc}", extra={"phase": exc.phase})
                if p.config.resync_on_failure:
                    self._needs_sync = True
                raise

        result = PipelineResult(
            tx_hash=tx_hash,
            nonce=nonce,
            explorer_url=explorer_tx_url(tx_hash, p.network.name, p.network.explorer_url or None),
        )
        if wait:
            result.outcome = await p.broadcaster.await_outcome(
                tx_hash, p.config.confirm_timeout if timeout is None else timeout
            )
        return result

    # ---- operation helpers ----

    async def call(
        self,
        contract: Address | str,
        function: str,
        arguments: Iterable[Any] = (),
        gas_limit: int | None = None,
        value: int = 0,
        wait: bool = False,
        delay: float | None = None,
    ) -> PipelineResult:
        args = tuple(arguments)
        gas = gas_limit or self.pipeline.config.proposal_gas_limit
        return await self.submit(
            lambda account, nonce: self.pipeline.builder.build(
                account, nonce, contract, function, args, gas_limit=gas, value=value
            ),
            wait=wait,
            delay=delay,
        )

    async def transfer(self, receiver: Address | str, value: int, wait: bool = False) -> PipelineResult:
        return await self.submit(
            lambda account, nonce: self.pipeline.builder.build_transfer(account, nonce, receiver, value),
            wait=wait,
        )

    async def deploy(
        self,
        code: bytes,
        metadata: CodeMetadata | None = None,
        arguments: Iterable[Any] = (),
        gas_limit: int | None = None,
        wait: bool = True,
    ) -> PipelineResult:
        args = tuple(arguments)
        gas = gas_limit or self.pipeline.config.deploy_gas_limit
        return await self.submit(
            lambda account, nonce: self.pipeline.builder.build_deploy(
                account, nonce, code, metadata, args, gas_limit=gas
            ),
            wait=wait,
        )

    async def inscribe(self, payload: str, wait: bool = False) -> PipelineResult:
        return await self.submit(
            lambda account, nonce: self.pipeline.builder.build_inscription(account, nonce, payload),
            wait=wait,
        )


# ===================================================================
#  Pipeline
# ===================================================================

class TransactionPipeline:
    """Entry point used by CLI scripts and web handlers."""

    def __init__(
        self,
        provider: NetworkProvider,
        network: NetworkConfig,
        config: PipelineConfig | None = None,
        decryptor: KeystoreDecryptor | None = None,
        signer: TransactionSigner | None = None,
        broadcaster: NetworkBroadcaster | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        artifact_sink: ArtifactSink | None = None,
    ):
        self.provider = provider
        self.network = network
        self.config = config or PipelineConfig()
        self.decryptor = decryptor or KeystoreDecryptor()
        self.signer = signer or TransactionSigner()
        self.broadcaster = broadcaster or NetworkBroadcaster(
            provider,
            poll_interval=self.config.poll_interval,
            default_timeout=self.config.confirm_timeout,
        )
        self.builder = TransactionBuilder(chain_id=network.chain_id, gas_price=self.config.gas_price)
        self.sleep = sleep
        self.artifact_sink = artifact_sink

    # ---- keystore ----

    @staticmethod
    def load(source: KeystoreSource) -> Keystore:
        if isinstance(source, Keystore):
            return source
        if isinstance(source, dict):
            return parse_keystore(source)
        return load_keystore(source)

    async def unlock(self, source: KeystoreSource, password: str) -> DecryptedIdentity:
        """
        Load and decrypt; the caller owns (and must wipe) the identity.

        An already decrypted identity is handed through and a ``.pem``
        path is read as an unencrypted wallet; *password* is unused for
        both.
        """
        if isinstance(source, DecryptedIdentity):
            return source
        if isinstance(source, (str, Path)) and Path(source).suffix.lower() == ".pem":
            return load_pem(source, self.decryptor.hrp)
        return await self.decryptor.decrypt(self.load(source), password)

    @asynccontextmanager
    async def session(self, source: KeystoreSource, password: str) -> AsyncIterator[PipelineSession]:
        identity = await self.unlock(source, password)
        try:
            yield PipelineSession(self, identity)
        finally:
            identity.wipe()

    # ---- single operations ----

    async def call_contract(
        self,
        source: KeystoreSource,
        password: str,
        contract: Address | str,
        function: str,
        arguments: Iterable[Any] = (),
        gas_limit: int | None = None,
        value: int = 0,
        wait: bool = False,
    ) -> PipelineResult:
        async with self.session(source, password) as s:
            return await s.call(contract, function, arguments, gas_limit, value, wait)

    async def create_proposal(
        self,
        description: str,
        contract: Address | str,
        source: KeystoreSource,
        password: str,
        wait: bool = False,
    ) -> PipelineResult:
        logger.info(f"Creating proposal on {self.network.name} at {contract}")
        return await self.call_contract(
            source, password, contract, "createProposal",
            [TypedArgument("utf-8 string", description)],
            gas_limit=self.config.proposal_gas_limit,
            wait=wait,
        )

    async def deploy_contract(
        self,
        code: bytes,
        source: KeystoreSource,
        password: str,
        metadata: CodeMetadata | None = None,
        arguments: Iterable[Any] = (),
        gas_limit: int | None = None,
    ) -> PipelineResult:
        """Deploy *code* and wait for the outcome to learn the contract address."""
        async with self.session(source, password) as s:
            result = await s.deploy(code, metadata, arguments, gas_limit, wait=True)
        if result.contract_address is not None:
            logger.info(f"Contract deployed at {result.contract_address}")
        else:
            status = result.outcome.status.value if result.outcome else "unknown"
            logger.warning(f"Deploy {result.tx_hash} finished without a contract address ({status})")
        return result

    async def transfer(
        self,
        receiver: Address | str,
        value: int,
        source: KeystoreSource,
        password: str,
        wait: bool = False,
    ) -> PipelineResult:
        async with self.session(source, password) as s:
            return await s.transfer(receiver, value, wait)

    # ---- multi-transaction operations ----

    async def create_proposals(
        self,
        descriptions: Iterable[str],
        contract: Address | str,
        source: KeystoreSource,
        password: str,
    ) -> BatchReport:
        """
        Create proposals strictly one after another within one session.

        A failed entry is recorded and the batch moves on.  An entry that
        fails before it is signed leaves the nonce untouched; one that fails
        to broadcast keeps its nonce unless ``resync_on_failure`` is set.
        """
        items = list(descriptions)
        report = BatchReport(contract=str(contract), network=self.network.name)
        logger.info(f"Creating {len(items)} proposals")

        async with self.session(source, password) as s:
            for i, description in enumerate(items, 1):
                logger.info(f"Proposal {i}/{len(items)}: {description[:40]}")
                try:
                    result = await s.call(
                        contract, "createProposal",
                        [TypedArgument("utf-8 string", description)],
                        gas_limit=self.config.proposal_gas_limit,
                    )
                except WarpkitError as exc:
                    logger.error(f"Proposal {i} failed: {exc}", extra={"phase": exc.phase})
                    report.entries.append(BatchEntry(
                        description=description, status="failed",
                        error=exc.message, phase=exc.phase,
                    ))
                    continue
                report.entries.append(BatchEntry(
                    description=description, status="success", tx_hash=result.tx_hash,
                ))

        logger.info(f"Batch done: {len(report.succeeded)} succeeded, {len(report.failed)} failed")
        return report

    async def publish_warp(
        self,
        payload: str,
        source: KeystoreSource,
        password: str,
        alias: str | None = None,
        recipients: Iterable[str] = (),
    ) -> PublishResult:
        """
        Inscribe a warp and, if *alias* is given, register it.

        Alias registration is best effort: a failure is logged and the
        result simply carries no alias.
        """
        async with self.session(source, password) as s:
            published = await s.inscribe(payload)
            result = PublishResult(
                tx_hash=published.tx_hash,
                warp_url=warp_url(published.tx_hash, self.network.name),
                recipient_links=tipping_links(published.tx_hash, list(recipients), self.network.name),
            )
            logger.info(f"Warp published: {result.warp_url}")
            await self._emit_artifact(published.tx_hash, payload, s.address)

            if alias:
                await self._register_alias(s, result, alias)
        return result

    async def _register_alias(self, session: PipelineSession, result: PublishResult, alias: str) -> None:
        registry = self.config.registry_address
        if not registry:
            logger.warning("No registry_address configured; skipping alias registration")
            return
        # The inscription must propagate first; alias_delay stands in for inter_tx_delay.
        try:
            registered = await session.call(
                registry, self.config.alias_function,
                [TypedArgument("utf-8 string", alias), TypedArgument("H256", bytes.fromhex(result.tx_hash))],
                gas_limit=self.config.alias_gas_limit,
                delay=self.config.alias_delay,
            )
        except (WarpkitError, ValueError) as exc:
            phase = exc.phase if isinstance(exc, WarpkitError) else "build"
            logger.error(f"Alias registration failed, continuing without alias: {exc}", extra={"phase": phase})
            return
        result.alias = alias
        result.alias_tx_hash = registered.tx_hash
        result.alias_url = alias_url(alias, self.network.name)
        logger.info(f"Alias registered: {result.alias_url}")

    async def _emit_artifact(self, tx_hash: str, payload: str, address: Address) -> None:
        if self.artifact_sink is None:
            return
        res = self.artifact_sink(tx_hash, payload, address.to_bech32())
        if inspect.isawaitable(res):
            await res
