"""
Shared pytest fixtures for the warpkit test suite.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import os

import pytest
from Crypto.Cipher import AES
from Crypto.Protocol.KDF import scrypt
from nacl.signing import SigningKey

from warpkit_core.account import Account
from warpkit_core.address import Address
from warpkit_core.config import NetworkConfig, PipelineConfig

# Well-known devnet test wallet.
ALICE_SECRET = bytes.fromhex("413f42575f7f26fad3317a778771212fdb80245850981e48b58a4f25e344e8f9")
ALICE_PUBKEY = bytes.fromhex("0139472eff6886771a982f3083da5d421f24c29181e63888228dc81ca60d69e1")
ALICE_BECH32 = "erd1qyu5wthldzr8wx5c9ucg8kjagg0jfs53s8nr3zpz3hypefsdd8ssycr6th"

BOB_SECRET = bytes(range(1, 33))

CONTRACT_BECH32 = Address(b"\x00" * 8 + b"\x05\x00" + b"\x11" * 22).to_bech32()

PASSWORD = "correct horse battery staple"


def make_keystore(
    secret: bytes = ALICE_SECRET,
    password: str = PASSWORD,
    *,
    n: int = 16,
    r: int = 8,
    p: int = 1,
    version: int = 4,
    kind: str | None = "secretKey",
    with_pubkey: bool = True,
    with_address: bool = True,
    salt: bytes | None = None,
    iv: bytes | None = None,
) -> dict:
    """Encrypt *secret* the way wallet software does, with cheap scrypt params."""
    salt = salt if salt is not None else os.urandom(32)
    iv = iv if iv is not None else os.urandom(16)
    derived = scrypt(password.encode("utf-8"), salt, 32, N=n, r=r, p=p)
    pubkey = bytes(SigningKey(secret).verify_key)
    plaintext = secret + pubkey if with_pubkey else secret
    ciphertext = AES.new(derived[0:16], AES.MODE_CTR, nonce=b"", initial_value=iv).encrypt(plaintext)
    mac = hmac.new(derived[16:32], ciphertext, hashlib.sha256).digest()

    data = {
        "version": version,
        "id": "0dc10c02-b59b-4bac-9710-6b2cfa4284ba",
        "crypto": {
            "ciphertext": ciphertext.hex(),
            "cipherparams": {"iv": iv.hex()},
            "cipher": "aes-128-ctr",
            "kdf": "scrypt",
            "kdfparams": {"dklen": 32, "salt": salt.hex(), "n": n, "r": r, "p": p},
            "mac": mac.hex(),
        },
    }
    if kind is not None:
        data["kind"] = kind
    if with_address:
        address = Address(pubkey)
        data["address"] = address.to_hex()
        data["bech32"] = address.to_bech32()
    return data


class FakeProvider:
    """
    In-memory NetworkProvider.

    ``send_results`` is consumed in order; each item is a tx hash or an
    exception to raise.  When it runs out, hashes are generated.
    """

    def __init__(self, nonce: int = 0, records: dict | None = None):
        self.nonce = nonce
        self.records: dict[str, object] = dict(records or {})
        self.send_results: list = []
        self.sent: list = []
        self.account_calls = 0
        self.events: list[str] = []

    async def get_account(self, address: Address) -> Account:
        self.account_calls += 1
        self.events.append("get_account")
        return Account(address=address, nonce=self.nonce, balance=10**18)

    async def send_transaction(self, transaction) -> str:
        self.events.append("send")
        self.sent.append(transaction)
        if self.send_results:
            result = self.send_results.pop(0)
            if isinstance(result, Exception):
                raise result
            return result
        return hashlib.sha256(transaction.serialize_for_signing()).hexdigest()

    async def get_transaction(self, tx_hash: str):
        self.events.append("get_transaction")
        record = self.records.get(tx_hash)
        if isinstance(record, list):
            return record.pop(0) if len(record) > 1 else record[0]
        return record


class RecordingSleep:
    """Drop-in for asyncio.sleep that returns immediately and remembers delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def alice_keystore() -> dict:
    return make_keystore()


@pytest.fixture
def alice_wallet_file(tmp_path, alice_keystore):
    path = tmp_path / "alice.json"
    path.write_text(json.dumps(alice_keystore), encoding="utf-8")
    return path


@pytest.fixture
def alice_address() -> Address:
    return Address.from_bech32(ALICE_BECH32)


@pytest.fixture
def contract_address() -> Address:
    return Address.from_bech32(CONTRACT_BECH32)


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider(nonce=7)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def devnet() -> NetworkConfig:
    cfg = NetworkConfig(name="devnet")
    cfg.resolve()
    return cfg


@pytest.fixture
def fast_pipeline_config() -> PipelineConfig:
    return PipelineConfig(
        inter_tx_delay=5.0,
        alias_delay=30.0,
        poll_interval=0.01,
        confirm_timeout=1.0,
        registry_address=CONTRACT_BECH32,
    )
