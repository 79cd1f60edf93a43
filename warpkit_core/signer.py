"""
Ed25519 transaction signing.

Ed25519 is deterministic: the same key and message always yield the same
64-byte signature, so no external randomness is involved.
"""

from __future__ import annotations

from nacl.exceptions import BadSignatureError, CryptoError
from nacl.signing import SigningKey, VerifyKey

from warpkit_core.errors import SigningError
from warpkit_core.transaction import Transaction

SEED_LENGTH = 32
SIGNATURE_LENGTH = 64


class TransactionSigner:
    """Signs the canonical serialization of a transaction."""

    @staticmethod
    def _signing_key(private_key: bytes) -> SigningKey:
        if not isinstance(private_key, (bytes, bytearray)):
            raise SigningError(f"private key must be bytes, got {type(private_key).__name__}")
        # 64-byte keys are seed || public key; the seed is what signs.
        if len(private_key) == 2 * SEED_LENGTH:
            private_key = private_key[:SEED_LENGTH]
        if len(private_key) != SEED_LENGTH:
            raise SigningError(f"private key must be {SEED_LENGTH} bytes, got {len(private_key)}")
        try:
            return SigningKey(bytes(private_key))
        except (CryptoError, TypeError, ValueError) as exc:
            raise SigningError(f"invalid private key: {exc}") from exc

    def sign(self, transaction: Transaction, private_key: bytes) -> Transaction:
        """Return a copy of *transaction* carrying a signature by *private_key*."""
        sk = self._signing_key(private_key)
        if bytes(sk.verify_key) != transaction.sender.pubkey:
            raise SigningError(
                f"private key does not belong to sender {transaction.sender}"
            )
        signature = sk.sign(transaction.serialize_for_signing()).signature
        return transaction.with_signature(signature)

    @staticmethod
    def verify(transaction: Transaction) -> bool:
        """Check the signature against the sender's public key."""
        if len(transaction.signature) != SIGNATURE_LENGTH:
            return False
        try:
            VerifyKey(transaction.sender.pubkey).verify(
                transaction.serialize_for_signing(), transaction.signature
            )
            return True
        except BadSignatureError:
            return False
