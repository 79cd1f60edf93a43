"""
Bech32 account addresses.

An address is the 32-byte ed25519 public key of an account, rendered as a
bech32 string with the ``erd`` human-readable part.  Smart-contract
addresses share the same shape; they are recognised by eight leading zero
bytes.
"""

from __future__ import annotations

from bech32 import bech32_decode, bech32_encode, convertbits

DEFAULT_HRP = "erd"
PUBKEY_LENGTH = 32
_CONTRACT_PREFIX = b"\x00" * 8


class Address:
    """Immutable account address (public key + hrp)."""

    __slots__ = ("_pubkey", "_hrp")

    def __init__(self, pubkey: bytes, hrp: str = DEFAULT_HRP):
        if len(pubkey) != PUBKEY_LENGTH:
            raise ValueError(f"Address public key must be {PUBKEY_LENGTH} bytes, got {len(pubkey)}")
        self._pubkey = bytes(pubkey)
        self._hrp = hrp

    @classmethod
    def from_bech32(cls, text: str) -> Address:
        decoded = bech32_decode(text.strip())
        hrp, data = decoded[0], decoded[1]
        if hrp is None or data is None:
            raise ValueError(f"Invalid bech32 address: {text!r}")
        pubkey = convertbits(data, 5, 8, False)
        if pubkey is None or len(pubkey) != PUBKEY_LENGTH:
            raise ValueError(f"Invalid bech32 address payload: {text!r}")
        return cls(bytes(pubkey), hrp)

    @classmethod
    def from_hex(cls, hex_pubkey: str, hrp: str = DEFAULT_HRP) -> Address:
        return cls(bytes.fromhex(hex_pubkey), hrp)

    @classmethod
    def parse(cls, value: str | bytes | Address) -> Address:
        """Accept an Address, a bech32 string, a hex string or raw bytes."""
        if isinstance(value, Address):
            return value
        if isinstance(value, (bytes, bytearray)):
            return cls(bytes(value))
        if len(value) == PUBKEY_LENGTH * 2:
            try:
                return cls.from_hex(value)
            except ValueError:
                pass
        return cls.from_bech32(value)

    @classmethod
    def zero(cls, hrp: str = DEFAULT_HRP) -> Address:
        """The system address that receives contract deployments."""
        return cls(b"\x00" * PUBKEY_LENGTH, hrp)

    @property
    def pubkey(self) -> bytes:
        return self._pubkey

    @property
    def hrp(self) -> str:
        return self._hrp

    def to_bech32(self) -> str:
        data = convertbits(self._pubkey, 8, 5, True)
        return bech32_encode(self._hrp, data)

    def to_hex(self) -> str:
        return self._pubkey.hex()

    def is_smart_contract(self) -> bool:
        return self._pubkey.startswith(_CONTRACT_PREFIX)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Address):
            return NotImplemented
        return self._pubkey == other._pubkey and self._hrp == other._hrp

    def __hash__(self) -> int:
        return hash((self._pubkey, self._hrp))

    def __str__(self) -> str:
        return self.to_bech32()

    def __repr__(self) -> str:
        return f"Address({self.to_bech32()})"
