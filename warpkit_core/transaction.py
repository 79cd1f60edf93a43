"""
Transaction model and canonical serialization.

A Transaction is built once, signed once, and immutable afterwards.
``replace()`` returns a modified copy *without* a signature, so any field
change forces a resign.

The signing payload is a compact JSON object whose keys are emitted in a
fixed order (never dict order):

    nonce, value, receiver, sender, gasPrice, gasLimit, [data], chainID,
    version, [options]

``value`` is a decimal string, ``data`` is base64 and omitted when empty,
``options`` is omitted when zero.
"""

from __future__ import annotations

import base64
import dataclasses
import json
from dataclasses import dataclass, field
from typing import Any, Iterable

from warpkit_core.account import Account
from warpkit_core.address import Address
from warpkit_core.codec import encode_arguments, encode_call_data
from warpkit_core.errors import ArgumentEncodingError

DEFAULT_GAS_PRICE = 1_000_000_000
DEFAULT_VERSION = 2
MIN_GAS_LIMIT = 50_000
GAS_PER_DATA_BYTE = 1_500

VM_TYPE_WASM = bytes.fromhex("0500")


@dataclass(frozen=True)
class Transaction:
    sender: Address
    receiver: Address
    nonce: int
    gas_limit: int
    chain_id: str
    value: int = 0
    gas_price: int = DEFAULT_GAS_PRICE
    data: bytes = b""
    version: int = DEFAULT_VERSION
    options: int = 0
    function_name: str | None = None
    arguments: tuple = ()
    signature: bytes = b""

    def __post_init__(self):
        for name in ("nonce", "gas_limit", "value", "gas_price", "version", "options"):
            v = getattr(self, name)
            if isinstance(v, bool) or not isinstance(v, int) or v < 0:
                raise ValueError(f"Transaction.{name} must be a non-negative int, got {v!r}")
        if not self.chain_id:
            raise ValueError("Transaction.chain_id must not be empty")

    @property
    def is_signed(self) -> bool:
        return bool(self.signature)

    def replace(self, **changes: Any) -> Transaction:
        """Copy with *changes* applied; the signature is always dropped."""
        changes["signature"] = b""
        return dataclasses.replace(self, **changes)

    def with_signature(self, signature: bytes) -> Transaction:
        return dataclasses.replace(self, signature=bytes(signature))

    # ---- serialization ----

    def _ordered_fields(self) -> list[tuple[str, Any]]:
        fields: list[tuple[str, Any]] = [
            ("nonce", self.nonce),
            ("value", str(self.value)),
            ("receiver", self.receiver.to_bech32()),
            ("sender", self.sender.to_bech32()),
            ("gasPrice", self.gas_price),
            ("gasLimit", self.gas_limit),
        ]
        if self.data:
            fields.append(("data", base64.b64encode(self.data).decode("ascii")))
        fields.append(("chainID", self.chain_id))
        fields.append(("version", self.version))
        if self.options:
            fields.append(("options", self.options))
        return fields

    def serialize_for_signing(self) -> bytes:
        """Canonical bytes that the signature covers (signature excluded)."""
        body = ",".join(
            f"{json.dumps(key)}:{json.dumps(value, ensure_ascii=False)}"
            for key, value in self._ordered_fields()
        )
        return ("{" + body + "}").encode("utf-8")

    def to_dict(self) -> dict:
        """JSON body for ``POST /transactions``."""
        d = dict(self._ordered_fields())
        d["signature"] = self.signature.hex()
        return d

    def __repr__(self) -> str:
        state = "signed" if self.is_signed else "unsigned"
        return f"Transaction({self.sender} -> {self.receiver}, nonce={self.nonce}, {state})"


@dataclass(frozen=True)
class CodeMetadata:
    """Contract deployment flags, two bytes on the wire."""
    upgradeable: bool = True
    readable: bool = True
    payable: bool = False
    payable_by_sc: bool = False

    def to_bytes(self) -> bytes:
        first = (0x01 if self.upgradeable else 0) | (0x04 if self.readable else 0)
        second = (0x02 if self.payable else 0) | (0x04 if self.payable_by_sc else 0)
        return bytes([first, second])


def _sender_of(account: Account | Address) -> Address:
    return account.address if isinstance(account, Account) else account


def gas_for_data(data: bytes) -> int:
    return MIN_GAS_LIMIT + GAS_PER_DATA_BYTE * len(data)


def parse_address(value: Address | str, what: str = "address") -> Address:
    """``Address.parse`` with failures reported as build errors."""
    try:
        return Address.parse(value)
    except (TypeError, ValueError) as exc:
        raise ArgumentEncodingError(f"invalid {what} {value!r}: {exc}") from exc


def _new_transaction(**fields: Any) -> Transaction:
    try:
        return Transaction(**fields)
    except ValueError as exc:
        raise ArgumentEncodingError(str(exc)) from exc


@dataclass
class TransactionBuilder:
    """Assembles unsigned transactions for one chain."""

    chain_id: str
    gas_price: int = DEFAULT_GAS_PRICE
    version: int = DEFAULT_VERSION
    hrp: str = field(default="erd")

    def build(
        self,
        account: Account | Address,
        nonce: int,
        contract_address: Address | str,
        function_name: str,
        arguments: Iterable[Any] = (),
        gas_limit: int = 10_000_000,
        chain_id: str | None = None,
        value: int = 0,
    ) -> Transaction:
        """Build a smart-contract call."""
        args = tuple(arguments)
        return _new_transaction(
            sender=_sender_of(account),
            receiver=parse_address(contract_address, "contract address"),
            nonce=nonce,
            gas_limit=gas_limit,
            chain_id=chain_id or self.chain_id,
            value=value,
            gas_price=self.gas_price,
            data=encode_call_data(function_name, args),
            version=self.version,
            function_name=function_name,
            arguments=args,
        )

    def build_deploy(
        self,
        account: Account | Address,
        nonce: int,
        code: bytes,
        code_metadata: CodeMetadata | None = None,
        arguments: Iterable[Any] = (),
        gas_limit: int = 50_000_000,
        chain_id: str | None = None,
        value: int = 0,
    ) -> Transaction:
        """Build a contract deployment: ``<code>@0500@<metadata>@args``."""
        metadata = code_metadata or CodeMetadata()
        args = tuple(arguments)
        parts = [code.hex(), VM_TYPE_WASM.hex(), metadata.to_bytes().hex(), *encode_arguments(args)]
        return _new_transaction(
            sender=_sender_of(account),
            receiver=Address.zero(self.hrp),
            nonce=nonce,
            gas_limit=gas_limit,
            chain_id=chain_id or self.chain_id,
            value=value,
            gas_price=self.gas_price,
            data="@".join(parts).encode("ascii"),
            version=self.version,
            arguments=args,
        )

    def build_inscription(
        self,
        account: Account | Address,
        nonce: int,
        payload: str | bytes,
        chain_id: str | None = None,
        gas_limit: int | None = None,
    ) -> Transaction:
        """Self-addressed transaction carrying *payload* (e.g. warp JSON) as data."""
        data = payload.encode("utf-8") if isinstance(payload, str) else bytes(payload)
        sender = _sender_of(account)
        return _new_transaction(
            sender=sender,
            receiver=sender,
            nonce=nonce,
            gas_limit=gas_limit or gas_for_data(data),
            chain_id=chain_id or self.chain_id,
            gas_price=self.gas_price,
            data=data,
            version=self.version,
        )

    def build_transfer(
        self,
        account: Account | Address,
        nonce: int,
        receiver: Address | str,
        value: int,
        data: bytes = b"",
        chain_id: str | None = None,
    ) -> Transaction:
        return _new_transaction(
            sender=_sender_of(account),
            receiver=parse_address(receiver, "receiver address"),
            nonce=nonce,
            gas_limit=gas_for_data(data),
            chain_id=chain_id or self.chain_id,
            value=value,
            gas_price=self.gas_price,
            data=data,
            version=self.version,
        )
