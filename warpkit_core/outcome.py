"""
Transaction outcomes as observed by polling the network.

``parse_outcome`` turns a ``GET /transactions/{hash}`` record into a
:class:`TransactionOutcome`:

  - ``SCDeploy`` events     → deployed contract addresses
  - ``@6f6b@...`` results   → values returned by a contract call
  - ``signalError`` events  → ``failed`` with the contract's error message

A ``success`` record that still has ``pendingResults`` is not terminal:
cross-shard smart-contract results may not have landed yet.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from warpkit_core.address import Address
from warpkit_core.errors import MalformedResponse

_OK_PREFIX = "@6f6b"   # hex("ok")
_ERROR_EVENTS = ("signalError", "internalVMErrors")


class TransactionStatus(Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    INVALID = "invalid"
    TIMEOUT = "timeout"

    @property
    def is_terminal(self) -> bool:
        return self in (TransactionStatus.SUCCESS, TransactionStatus.FAILED, TransactionStatus.INVALID)


_STATUS_MAP = {
    "pending": TransactionStatus.PENDING,
    "received": TransactionStatus.PENDING,
    "partially-executed": TransactionStatus.PENDING,
    "success": TransactionStatus.SUCCESS,
    "successful": TransactionStatus.SUCCESS,
    "executed": TransactionStatus.SUCCESS,
    "fail": TransactionStatus.FAILED,
    "failed": TransactionStatus.FAILED,
    "reward-reverted": TransactionStatus.FAILED,
    "invalid": TransactionStatus.INVALID,
}


@dataclass
class TransactionOutcome:
    hash: str
    status: TransactionStatus
    events: list[dict] = field(default_factory=list)
    contract_addresses: list[Address] = field(default_factory=list)
    returned_values: list[bytes] = field(default_factory=list)
    raw_error: str | None = None
    raw: dict | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def is_successful(self) -> bool:
        return self.status is TransactionStatus.SUCCESS

    @property
    def contract_address(self) -> Address | None:
        return self.contract_addresses[0] if self.contract_addresses else None

    def to_dict(self) -> dict:
        return {
            "hash": self.hash,
            "status": self.status.value,
            "contract_addresses": [a.to_bech32() for a in self.contract_addresses],
            "returned_values": [v.hex() for v in self.returned_values],
            "raw_error": self.raw_error,
        }


def parse_status(raw_status: Any) -> TransactionStatus:
    if not isinstance(raw_status, str):
        raise MalformedResponse(f"transaction status is not a string: {raw_status!r}")
    try:
        return _STATUS_MAP[raw_status.lower()]
    except KeyError:
        raise MalformedResponse(f"unknown transaction status {raw_status!r}") from None


def _b64(value: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MalformedResponse(f"invalid base64 in event topic: {value!r}") from exc


def _collect_events(record: dict) -> list[dict]:
    events: list[dict] = []
    logs = record.get("logs") or {}
    events.extend(logs.get("events") or [])
    for result in record.get("results") or []:
        result_logs = result.get("logs") or {}
        events.extend(result_logs.get("events") or [])
    return events


def _deployed_address(event: dict) -> Address:
    addr = event.get("address")
    try:
        if addr:
            return Address.from_bech32(addr)
        topics = event.get("topics") or []
        return Address(_b64(topics[0]))
    except (IndexError, ValueError) as exc:
        raise MalformedResponse(f"SCDeploy event has no usable address: {event!r}") from exc


def _returned_values(record: dict) -> list[bytes]:
    for result in record.get("results") or []:
        data = result.get("data") or ""
        # API returns data base64-encoded; the gateway returns it plain.
        if not data.startswith("@"):
            try:
                data = base64.b64decode(data).decode("utf-8")
            except (binascii.Error, UnicodeDecodeError, ValueError):
                continue
        if data == _OK_PREFIX or data.startswith(_OK_PREFIX + "@"):
            parts = data.split("@")[2:]
            try:
                return [bytes.fromhex(p) for p in parts]
            except ValueError as exc:
                raise MalformedResponse(f"invalid hex in contract result: {data!r}") from exc
    return []


def parse_outcome(tx_hash: str, record: dict) -> TransactionOutcome:
    """Build a TransactionOutcome from a network transaction record."""
    if not isinstance(record, dict):
        raise MalformedResponse("transaction record must be an object")
    status = parse_status(record.get("status"))
    if status is TransactionStatus.SUCCESS and record.get("pendingResults"):
        status = TransactionStatus.PENDING

    events = _collect_events(record)
    contracts: list[Address] = []
    raw_error: str | None = None
    for event in events:
        identifier = event.get("identifier")
        if identifier == "SCDeploy":
            contracts.append(_deployed_address(event))
        elif identifier in _ERROR_EVENTS and raw_error is None:
            topics = event.get("topics") or []
            if len(topics) > 1 and topics[1]:
                raw_error = _b64(topics[1]).decode("utf-8", errors="replace")
            else:
                raw_error = identifier
            if status is not TransactionStatus.INVALID:
                status = TransactionStatus.FAILED

    if raw_error is None and status in (TransactionStatus.FAILED, TransactionStatus.INVALID):
        receipt = record.get("receipt") or {}
        raw_error = receipt.get("data") or record.get("error")

    return TransactionOutcome(
        hash=tx_hash,
        status=status,
        events=events,
        contract_addresses=contracts,
        returned_values=_returned_values(record) if status is TransactionStatus.SUCCESS else [],
        raw_error=raw_error,
        raw=record,
    )


def timeout_outcome(tx_hash: str, last: TransactionOutcome | None = None) -> TransactionOutcome:
    return TransactionOutcome(
        hash=tx_hash,
        status=TransactionStatus.TIMEOUT,
        events=last.events if last else [],
        raw=last.raw if last else None,
    )
