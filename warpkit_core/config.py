"""
TOML-based configuration for warpkit.

Loads settings from a TOML file and/or environment variables.
Environment variables take precedence over file values.

Usage:
    from warpkit_core.config import load_config
    cfg = load_config("warpkit.toml")
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from warpkit_core.keystore import ScryptLimits
from warpkit_core.links import EXPLORER_URLS


NETWORK_PRESETS: dict[str, dict[str, str]] = {
    "devnet": {"api_url": "https://devnet-api.multiversx.com", "chain_id": "D"},
    "testnet": {"api_url": "https://testnet-api.multiversx.com", "chain_id": "T"},
    "mainnet": {"api_url": "https://api.multiversx.com", "chain_id": "1"},
}


@dataclass
class NetworkConfig:
    """Which chain to talk to.  Empty fields are filled from the preset for ``name``."""
    name: str = "devnet"
    api_url: str = ""
    chain_id: str = ""
    explorer_url: str = ""
    timeout_seconds: float = 30.0

    def resolve(self) -> None:
        preset = NETWORK_PRESETS.get(self.name)
        if preset is None:
            if not self.api_url or not self.chain_id:
                raise ValueError(
                    f"Unknown network {self.name!r}: set api_url and chain_id explicitly"
                )
            return
        self.api_url = self.api_url or preset["api_url"]
        self.chain_id = self.chain_id or preset["chain_id"]
        self.explorer_url = self.explorer_url or EXPLORER_URLS[self.name]


@dataclass
class PipelineConfig:
    """Gas, pacing and confirmation settings."""
    gas_price: int = 1_000_000_000
    proposal_gas_limit: int = 10_000_000
    deploy_gas_limit: int = 50_000_000
    alias_gas_limit: int = 10_000_000
    # Wait between transactions of one session so the network has seen
    # the previous nonce.
    inter_tx_delay: float = 5.0
    # Wait between publishing a warp and registering its alias.
    alias_delay: float = 30.0
    poll_interval: float = 6.0
    confirm_timeout: float = 120.0
    # Re-query the nonce after a failed broadcast instead of leaving a gap.
    resync_on_failure: bool = False
    registry_address: str = ""
    alias_function: str = "assignAlias"


@dataclass
class KeystoreConfig:
    """Upper bounds on scrypt cost parameters read from keystore files."""
    max_n: int = 1 << 20
    max_r: int = 32
    max_p: int = 16
    max_memory_bytes: int = 256 * 1024 * 1024

    def limits(self) -> ScryptLimits:
        return ScryptLimits(
            max_n=self.max_n,
            max_r=self.max_r,
            max_p=self.max_p,
            max_memory_bytes=self.max_memory_bytes,
        )


@dataclass
class LoggingConfig:
    """Logging settings."""
    level: str = "INFO"
    format: str = "human"   # "human" or "json"
    file: str | None = None


@dataclass
class WarpkitConfig:
    """Top-level configuration container."""
    network: NetworkConfig = field(default_factory=NetworkConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    keystore: KeystoreConfig = field(default_factory=KeystoreConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _merge(dc: Any, raw: dict[str, Any]) -> None:
    """Merge a raw dict into a dataclass instance (in-place)."""
    for key, value in raw.items():
        key_under = key.replace("-", "_")
        if hasattr(dc, key_under):
            setattr(dc, key_under, value)


def load_config(path: str | None = None, network: str | None = None) -> WarpkitConfig:
    """
    Load configuration from a TOML file, then overlay environment variables.

    ``network`` (typically from a CLI flag) beats both file and env.

    Env-var mapping:
        WARPKIT_NETWORK          -> network.name
        WARPKIT_API_URL          -> network.api_url
        WARPKIT_CHAIN_ID         -> network.chain_id
        WARPKIT_CONFIRM_TIMEOUT  -> pipeline.confirm_timeout
        WARPKIT_LOG_LEVEL        -> logging.level
        WARPKIT_LOG_FMT          -> logging.format
    """
    cfg = WarpkitConfig()

    # ── TOML file ────────────────────────────────────────────────
    if path is not None:
        p = Path(path)
        if p.exists():
            with open(p, "rb") as f:
                data = tomllib.load(f)
            for section_name, section_dc in [
                ("network", cfg.network),
                ("pipeline", cfg.pipeline),
                ("keystore", cfg.keystore),
                ("logging", cfg.logging),
            ]:
                if section_name in data:
                    _merge(section_dc, data[section_name])

    # ── Environment variable overrides ───────────────────────────
    if v := os.environ.get("WARPKIT_NETWORK"):
        cfg.network.name = v
    if v := os.environ.get("WARPKIT_API_URL"):
        cfg.network.api_url = v
    if v := os.environ.get("WARPKIT_CHAIN_ID"):
        cfg.network.chain_id = v
    if v := os.environ.get("WARPKIT_CONFIRM_TIMEOUT"):
        cfg.pipeline.confirm_timeout = float(v)
    if v := os.environ.get("WARPKIT_LOG_LEVEL"):
        cfg.logging.level = v.upper()
    if v := os.environ.get("WARPKIT_LOG_FMT"):
        cfg.logging.format = v

    if network:
        cfg.network.name = network

    cfg.network.resolve()
    return cfg
