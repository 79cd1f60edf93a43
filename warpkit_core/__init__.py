"""
warpkit - keystore-to-broadcast transaction pipeline for MultiversX.

Key features:
- Encrypted keystore decryption (scrypt + AES-128-CTR, MAC checked first)
- Deterministic ed25519 signing over a canonical transaction encoding
- Per-account nonce tracking with explicit inter-transaction pacing
- Smart-contract call, deploy and inscription (warp) transactions
- Broadcast and outcome polling over the public REST API
"""

__version__ = "0.3.0"
__all__ = [
    "address",
    "account",
    "codec",
    "config",
    "errors",
    "keystore",
    "links",
    "logging_config",
    "network",
    "nonce",
    "outcome",
    "pipeline",
    "signer",
    "transaction",
    "user_input",
]
