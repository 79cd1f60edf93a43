"""
Tests for warpkit_core.config: TOML configuration and environment overrides.

Covers:
  - Default values for all dataclass sections
  - Network presets and resolution
  - TOML parsing and section merging
  - Environment variable overrides (precedence over TOML)
  - CLI network argument (precedence over env)
"""

from __future__ import annotations

import os
import textwrap
import unittest
from unittest.mock import patch

from warpkit_core.config import (
    KeystoreConfig,
    LoggingConfig,
    NetworkConfig,
    PipelineConfig,
    WarpkitConfig,
    _merge,
    load_config,
)
from warpkit_core.keystore import ScryptLimits


def _clean_env() -> dict:
    return {k: v for k, v in os.environ.items() if not k.startswith("WARPKIT_")}


# ═══════════════════════════════════════════════════════════════════
#  Defaults
# ═══════════════════════════════════════════════════════════════════

class TestDefaults(unittest.TestCase):

    def test_pipeline_defaults(self):
        p = PipelineConfig()
        self.assertEqual(p.gas_price, 1_000_000_000)
        self.assertEqual(p.proposal_gas_limit, 10_000_000)
        self.assertEqual(p.inter_tx_delay, 5.0)
        self.assertEqual(p.alias_delay, 30.0)
        self.assertFalse(p.resync_on_failure)

    def test_keystore_limits(self):
        self.assertEqual(KeystoreConfig().limits(), ScryptLimits())
        self.assertEqual(KeystoreConfig(max_n=1024).limits().max_n, 1024)

    def test_logging_defaults(self):
        log_cfg = LoggingConfig()
        self.assertEqual(log_cfg.level, "INFO")
        self.assertEqual(log_cfg.format, "human")
        self.assertIsNone(log_cfg.file)

    def test_top_level(self):
        cfg = WarpkitConfig()
        self.assertIsInstance(cfg.network, NetworkConfig)
        self.assertIsInstance(cfg.pipeline, PipelineConfig)


# ═══════════════════════════════════════════════════════════════════
#  Network presets
# ═══════════════════════════════════════════════════════════════════

class TestNetworkResolve(unittest.TestCase):

    def test_presets(self):
        for name, chain in (("devnet", "D"), ("testnet", "T"), ("mainnet", "1")):
            n = NetworkConfig(name=name)
            n.resolve()
            self.assertEqual(n.chain_id, chain)
            self.assertTrue(n.api_url.startswith("https://"))
            self.assertIn("explorer", n.explorer_url)

    def test_explicit_values_kept(self):
        n = NetworkConfig(name="devnet", api_url="http://localhost:7950", chain_id="local")
        n.resolve()
        self.assertEqual(n.api_url, "http://localhost:7950")
        self.assertEqual(n.chain_id, "local")

    def test_unknown_network_needs_explicit_values(self):
        with self.assertRaises(ValueError):
            NetworkConfig(name="localnet").resolve()
        n = NetworkConfig(name="localnet", api_url="http://localhost:7950", chain_id="localnet")
        n.resolve()
        self.assertEqual(n.explorer_url, "")


# ═══════════════════════════════════════════════════════════════════
#  _merge helper
# ═══════════════════════════════════════════════════════════════════

class TestMerge(unittest.TestCase):

    def test_merge_updates_fields(self):
        p = PipelineConfig()
        _merge(p, {"inter_tx_delay": 1.5, "registry_address": "erd1x"})
        self.assertEqual(p.inter_tx_delay, 1.5)
        self.assertEqual(p.registry_address, "erd1x")

    def test_merge_ignores_unknown_keys(self):
        p = PipelineConfig()
        _merge(p, {"unknown_field": 42})
        self.assertFalse(hasattr(p, "unknown_field"))

    def test_merge_hyphenated_keys(self):
        p = PipelineConfig()
        _merge(p, {"confirm-timeout": 60.0})
        self.assertEqual(p.confirm_timeout, 60.0)


# ═══════════════════════════════════════════════════════════════════
#  TOML loading and env overrides
# ═══════════════════════════════════════════════════════════════════

class TestLoadConfig:

    def _write(self, tmp_path):
        path = tmp_path / "warpkit.toml"
        path.write_text(textwrap.dedent("""\
            [network]
            name = "testnet"

            [pipeline]
            inter-tx-delay = 2.0
            resync_on_failure = true

            [keystore]
            max_n = 262144

            [logging]
            level = "DEBUG"
            format = "json"
        """), encoding="utf-8")
        return str(path)

    def test_no_file(self):
        with patch.dict(os.environ, _clean_env(), clear=True):
            cfg = load_config(None)
        assert cfg.network.name == "devnet"
        assert cfg.network.chain_id == "D"

    def test_missing_file(self):
        with patch.dict(os.environ, _clean_env(), clear=True):
            cfg = load_config("/tmp/__nonexistent_warpkit__.toml")
        assert cfg.pipeline.inter_tx_delay == 5.0

    def test_toml_file(self, tmp_path):
        with patch.dict(os.environ, _clean_env(), clear=True):
            cfg = load_config(self._write(tmp_path))
        assert cfg.network.chain_id == "T"
        assert cfg.pipeline.inter_tx_delay == 2.0
        assert cfg.pipeline.resync_on_failure is True
        assert cfg.keystore.max_n == 262144
        assert cfg.logging.format == "json"

    def test_env_beats_file(self, tmp_path):
        env = _clean_env()
        env.update({"WARPKIT_NETWORK": "mainnet", "WARPKIT_LOG_LEVEL": "warning",
                    "WARPKIT_CONFIRM_TIMEOUT": "30"})
        with patch.dict(os.environ, env, clear=True):
            cfg = load_config(self._write(tmp_path))
        assert cfg.network.chain_id == "1"
        assert cfg.logging.level == "WARNING"
        assert cfg.pipeline.confirm_timeout == 30.0

    def test_cli_network_beats_env(self):
        env = _clean_env()
        env["WARPKIT_NETWORK"] = "mainnet"
        with patch.dict(os.environ, env, clear=True):
            cfg = load_config(None, network="testnet")
        assert cfg.network.name == "testnet"
        assert cfg.network.chain_id == "T"

    def test_env_api_url(self):
        env = _clean_env()
        env.update({"WARPKIT_API_URL": "http://localhost:7950", "WARPKIT_CHAIN_ID": "local"})
        with patch.dict(os.environ, env, clear=True):
            cfg = load_config(None)
        assert cfg.network.api_url == "http://localhost:7950"
        assert cfg.network.chain_id == "local"
