"""
Error taxonomy for the warpkit transaction pipeline.

Every error carries the *phase* of the pipeline in which it occurred so
that operators can tell "wrong password" apart from "network unreachable"
and "transaction rejected":

    load      reading the keystore file
    decrypt   key derivation, MAC check, decryption
    sync      fetching the account nonce
    build     encoding arguments / assembling the transaction
    sign      producing the ed25519 signature
    broadcast submitting the signed transaction
    confirm   polling for the outcome

A confirmation timeout is *not* an error: it is reported as the
``timeout`` status of a TransactionOutcome.
"""

from __future__ import annotations


PHASES = ("load", "decrypt", "sync", "build", "sign", "broadcast", "confirm")


class WarpkitError(Exception):
    """Base class for all pipeline errors."""

    phase: str = "build"

    def __init__(self, message: str = "", *, phase: str | None = None):
        super().__init__(message)
        self.message = message
        if phase is not None:
            if phase not in PHASES:
                raise ValueError(f"Unknown pipeline phase: {phase}")
            self.phase = phase

    def __str__(self) -> str:
        return f"[{self.phase}] {self.message}"


# ── keystore ─────────────────────────────────────────────────────

class KeystoreNotFound(WarpkitError):
    phase = "load"


class MalformedKeystore(WarpkitError):
    """Keystore JSON could not be parsed or is internally inconsistent."""
    phase = "load"


class UnsupportedKeystoreFormat(WarpkitError):
    """Version, cipher, KDF or KDF cost parameters are not supported."""
    phase = "decrypt"


class IncorrectPassword(WarpkitError):
    phase = "decrypt"


# ── transaction ──────────────────────────────────────────────────

class ArgumentEncodingError(WarpkitError):
    phase = "build"


class SigningError(WarpkitError):
    phase = "sign"


# ── network ──────────────────────────────────────────────────────

class TransactionRejected(WarpkitError):
    """The network refused the transaction; ``reason`` is the server text."""

    phase = "broadcast"

    def __init__(self, reason: str, *, phase: str | None = None):
        super().__init__(f"transaction rejected: {reason}", phase=phase)
        self.reason = reason


class NonceConflict(TransactionRejected):
    """Rejected because the nonce is stale or out of order."""


class NetworkUnavailable(WarpkitError):
    phase = "broadcast"


class MalformedResponse(WarpkitError):
    """The network answered with a shape we cannot interpret."""
    phase = "confirm"
