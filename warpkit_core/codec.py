"""
Smart-contract call data encoding.

Call data is ``function@arg1@arg2...`` where every argument is the
top-level hex encoding of its value:

  - strings / token identifiers  → UTF-8 bytes, hex
  - booleans                     → ``01`` / empty
  - unsigned integers            → minimal big-endian, ``0`` is empty
  - signed integers              → minimal two's complement
  - bytes / H256                 → raw hex
  - addresses                    → 32-byte public key, hex

Plain Python values are encoded by their runtime type; wrap a value in
:class:`TypedArgument` to force a declared ABI type (and range checks).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from warpkit_core.address import Address
from warpkit_core.errors import ArgumentEncodingError

_UNSIGNED_BITS = {"u8": 8, "u16": 16, "u32": 32, "u64": 64}
_SIGNED_BITS = {"i8": 8, "i16": 16, "i32": 32, "i64": 64}
_STRING_TYPES = ("utf-8 string", "TokenIdentifier", "EgldOrEsdtTokenIdentifier")


@dataclass(frozen=True)
class TypedArgument:
    """A call argument with an explicit ABI type name."""
    type_name: str
    value: Any


def encode_unsigned(value: int) -> bytes:
    if value < 0:
        raise ArgumentEncodingError(f"unsigned value must be >= 0, got {value}")
    if value == 0:
        return b""
    return value.to_bytes((value.bit_length() + 7) // 8, "big")


def encode_signed(value: int) -> bytes:
    if value == 0:
        return b""
    length = 1
    while not -(1 << (8 * length - 1)) <= value < (1 << (8 * length - 1)):
        length += 1
    return value.to_bytes(length, "big", signed=True)


def encode_value(arg: Any) -> bytes:
    """Top-level encode a single argument to bytes."""
    if isinstance(arg, TypedArgument):
        return _encode_typed(arg)
    # bool must be checked before int
    if isinstance(arg, bool):
        return b"\x01" if arg else b""
    if isinstance(arg, int):
        return encode_unsigned(arg) if arg >= 0 else encode_signed(arg)
    if isinstance(arg, str):
        return arg.encode("utf-8")
    if isinstance(arg, (bytes, bytearray)):
        return bytes(arg)
    if isinstance(arg, Address):
        return arg.pubkey
    raise ArgumentEncodingError(f"cannot encode argument of type {type(arg).__name__}")


def _encode_typed(arg: TypedArgument) -> bytes:
    t, v = arg.type_name, arg.value
    try:
        if t in _STRING_TYPES:
            if not isinstance(v, str):
                raise ArgumentEncodingError(f"{t} expects str, got {type(v).__name__}")
            return v.encode("utf-8")
        if t == "bool":
            if not isinstance(v, bool):
                raise ArgumentEncodingError(f"bool expects bool, got {type(v).__name__}")
            return b"\x01" if v else b""
        if t in _UNSIGNED_BITS or t == "BigUint":
            v = _require_int(t, v)
            bits = _UNSIGNED_BITS.get(t)
            if bits is not None and v >= 1 << bits:
                raise ArgumentEncodingError(f"{v} does not fit in {t}")
            return encode_unsigned(v)
        if t in _SIGNED_BITS or t == "BigInt":
            v = _require_int(t, v)
            bits = _SIGNED_BITS.get(t)
            if bits is not None and not -(1 << (bits - 1)) <= v < (1 << (bits - 1)):
                raise ArgumentEncodingError(f"{v} does not fit in {t}")
            return encode_signed(v)
        if t in ("bytes", "H256"):
            if isinstance(v, str):
                v = bytes.fromhex(v)
            if not isinstance(v, (bytes, bytearray)):
                raise ArgumentEncodingError(f"{t} expects bytes, got {type(v).__name__}")
            if t == "H256" and len(v) != 32:
                raise ArgumentEncodingError(f"H256 expects 32 bytes, got {len(v)}")
            return bytes(v)
        if t == "Address":
            return Address.parse(v).pubkey
    except ValueError as exc:
        raise ArgumentEncodingError(f"invalid {t} value {v!r}: {exc}") from exc
    raise ArgumentEncodingError(f"unsupported argument type {t!r}")


def _require_int(type_name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ArgumentEncodingError(f"{type_name} expects int, got {type(value).__name__}")
    return value


def encode_arguments(arguments: Iterable[Any]) -> list[str]:
    return [encode_value(a).hex() for a in arguments]


def encode_call_data(function_name: str, arguments: Iterable[Any] = ()) -> bytes:
    """Build ``function@hex1@hex2`` call data."""
    if not function_name or "@" in function_name:
        raise ArgumentEncodingError(f"invalid function name {function_name!r}")
    parts = [function_name, *encode_arguments(arguments)]
    return "@".join(parts).encode("utf-8")


def decode_call_data(data: bytes) -> tuple[str, list[bytes]]:
    """Split call data back into the function name and raw argument bytes."""
    text = data.decode("utf-8")
    function_name, *hex_args = text.split("@")
    return function_name, [bytes.fromhex(h) for h in hex_args]
