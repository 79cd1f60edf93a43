#!/usr/bin/env python3
"""
warpkit runner: decrypt a wallet, then create DAO proposals, deploy a
contract or publish a warp.

Usage:
    python run_warp.py address  --wallet wallet.json
    python run_warp.py proposal --wallet wallet.json --contract erd1qqq... "Increase user limits"
    python run_warp.py batch    --wallet wallet.json --contract erd1qqq... --file proposals.txt
    python run_warp.py deploy   --wallet wallet.json --code dao.wasm
    python run_warp.py publish  --wallet wallet.json --payload warp.json --alias my-warp
    python run_warp.py transfer --pem wallet.pem --to erd1... --value 1000000000000000000
    python run_warp.py interactive --wallet wallet.json

Environment variables (alternative to flags):
    WARPKIT_WALLET, WARPKIT_PASSWORD, WARPKIT_PEM, WARPKIT_SECRET_KEY,
    WARPKIT_NETWORK, WARPKIT_CONTRACT
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import os
import sys
import time
from pathlib import Path

# ---------------------------------------------------------------------------
# Ensure the project root is in sys.path so imports work before pip install
# ---------------------------------------------------------------------------
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from warpkit_core.config import WarpkitConfig, load_config  # noqa: E402
from warpkit_core.errors import WarpkitError  # noqa: E402
from warpkit_core.keystore import DecryptedIdentity, KeystoreDecryptor, load_pem  # noqa: E402
from warpkit_core.links import explorer_account_url  # noqa: E402
from warpkit_core.logging_config import register_secret, setup_logging  # noqa: E402
from warpkit_core.network import ApiNetworkProvider  # noqa: E402
from warpkit_core.pipeline import KeystoreSource, TransactionPipeline, parse_proposal_file  # noqa: E402
from warpkit_core.transaction import CodeMetadata, parse_address  # noqa: E402
from warpkit_core.user_input import (  # noqa: E402
    ConsoleInputSource,
    UserInputSource,
    collect_proposal_request,
)

logger = logging.getLogger("warpkit")


# ===================================================================
#  Argument parsing
# ===================================================================

def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--wallet", default=os.environ.get("WARPKIT_WALLET", ""),
                        help="Path to the encrypted keystore JSON")
    common.add_argument("--password", default=os.environ.get("WARPKIT_PASSWORD"),
                        help="Keystore password (prompted when omitted)")
    common.add_argument("--pem", default=os.environ.get("WARPKIT_PEM", ""),
                        help="Unencrypted PEM wallet, used instead of --wallet")
    common.add_argument("--secret-key", default=os.environ.get("WARPKIT_SECRET_KEY", ""),
                        help="Hex secret key, used instead of --wallet (less secure)")
    common.add_argument("--network", default=os.environ.get("WARPKIT_NETWORK"),
                        help="devnet, testnet or mainnet")
    common.add_argument("--config", default=None, help="Path to warpkit.toml config file")
    common.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING, ERROR")
    common.add_argument("--log-format", default=None, choices=("human", "json"))

    p = argparse.ArgumentParser(description="warpkit transaction runner")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("address", parents=[common], help="Print the wallet address")

    sp = sub.add_parser("proposal", parents=[common], help="Create one DAO proposal")
    sp.add_argument("--contract", default=os.environ.get("WARPKIT_CONTRACT", ""),
                    help="DAO contract address")
    sp.add_argument("--wait", action="store_true", help="Wait for the outcome")
    sp.add_argument("description")

    sp = sub.add_parser("batch", parents=[common], help="Create proposals from a file")
    sp.add_argument("--contract", default=os.environ.get("WARPKIT_CONTRACT", ""),
                    help="DAO contract address")
    sp.add_argument("--file", required=True, help="One proposal description per line")
    sp.add_argument("--output-dir", default=".", help="Where to write the results JSON")

    sp = sub.add_parser("deploy", parents=[common], help="Deploy a contract")
    sp.add_argument("--code", required=True, help="Path to the .wasm file")
    sp.add_argument("--gas-limit", type=int, default=None)
    sp.add_argument("--not-upgradeable", action="store_true")
    sp.add_argument("--not-readable", action="store_true")
    sp.add_argument("--payable", action="store_true")
    sp.add_argument("--payable-by-sc", action="store_true")

    sp = sub.add_parser("transfer", parents=[common], help="Send EGLD to an address")
    sp.add_argument("--to", required=True, help="Receiver address")
    sp.add_argument("--value", type=int, required=True, help="Amount in the smallest unit")
    sp.add_argument("--wait", action="store_true", help="Wait for the outcome")

    sp = sub.add_parser("publish", parents=[common], help="Publish a warp")
    sp.add_argument("--payload", required=True, help="Path to the warp JSON")
    sp.add_argument("--alias", default=None, help="Register this alias afterwards")
    sp.add_argument("--recipient", action="append", default=[],
                    help="Print a tipping link for this address (repeatable)")
    sp.add_argument("--artifact-file", default=None,
                    help="Append published warps to this JSON-lines file")

    sub.add_parser("interactive", parents=[common], help="Prompt for proposals")

    return p.parse_args(argv)


# ===================================================================
#  Helpers
# ===================================================================

def _configure(args: argparse.Namespace) -> WarpkitConfig:
    cfg = load_config(args.config, network=args.network)
    if args.log_level:
        cfg.logging.level = args.log_level.upper()
    if args.log_format:
        cfg.logging.format = args.log_format
    setup_logging(cfg.logging.level, cfg.logging.format, cfg.logging.file)
    return cfg


def _require(value: str, flag: str) -> str:
    if not value:
        raise SystemExit(f"error: {flag} is required")
    return value


def _credentials(args: argparse.Namespace, source: UserInputSource) -> tuple[KeystoreSource, str]:
    """Pick the identity source; only a keystore needs (and prompts for) a password."""
    if args.secret_key:
        register_secret(args.secret_key)
        return DecryptedIdentity.from_secret_hex(args.secret_key), ""
    if args.pem:
        return load_pem(args.pem), ""
    wallet = _require(args.wallet, "--wallet, --pem or --secret-key")
    password = args.password if args.password is not None else source.ask_secret("Keystore password")
    register_secret(password)
    return wallet, password


def _contract(value: str) -> str:
    return parse_address(_require(value, "--contract"), "contract address").to_bech32()


def _jsonl_sink(path: str):
    def sink(tx_hash: str, payload: str, address: str) -> None:
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps({"txHash": tx_hash, "creator": address, "payload": payload}) + "\n")
    return sink


# ===================================================================
#  Commands
# ===================================================================

async def _run(args: argparse.Namespace, cfg: WarpkitConfig, source: UserInputSource) -> int:
    async with ApiNetworkProvider(cfg.network.api_url, cfg.network.timeout_seconds) as provider:
        pipeline = TransactionPipeline(
            provider,
            cfg.network,
            cfg.pipeline,
            decryptor=KeystoreDecryptor(limits=cfg.keystore.limits()),
            artifact_sink=_jsonl_sink(args.artifact_file) if getattr(args, "artifact_file", None) else None,
        )

        if args.command == "address":
            with await pipeline.unlock(*_credentials(args, source)) as identity:
                address = identity.address.to_bech32()
            print(address)
            print(f"Explorer: {explorer_account_url(address, cfg.network.name, cfg.network.explorer_url or None)}")
            return 0

        if args.command == "proposal":
            contract = _contract(args.contract)
            result = await pipeline.create_proposal(
                args.description, contract, *_credentials(args, source), wait=args.wait,
            )
            print(f"Proposal tx: {result.tx_hash}")
            print(f"Explorer:    {result.explorer_url}")
            if result.outcome is not None:
                print(f"Status:      {result.outcome.status.value}")
            return 0

        if args.command in ("batch", "interactive"):
            if args.command == "batch":
                contract = _contract(args.contract)
                descriptions = parse_proposal_file(Path(args.file).read_text(encoding="utf-8"))
                output_dir = Path(args.output_dir)
            else:
                request = collect_proposal_request(source, os.environ.get("WARPKIT_CONTRACT"))
                if request is None:
                    print("Nothing to submit.")
                    return 0
                contract, descriptions = request.contract, request.descriptions
                output_dir = Path(".")

            report = await pipeline.create_proposals(descriptions, contract, *_credentials(args, source))
            out = output_dir / f"proposal-results-{int(time.time() * 1000)}.json"
            out.write_text(json.dumps(report.to_dict(), indent=2), encoding="utf-8")
            print(f"{len(report.succeeded)}/{len(report.entries)} proposals created; results in {out}")
            return 0 if not report.failed else 1

        if args.command == "deploy":
            metadata = CodeMetadata(
                upgradeable=not args.not_upgradeable,
                readable=not args.not_readable,
                payable=args.payable,
                payable_by_sc=args.payable_by_sc,
            )
            code = Path(args.code).read_bytes()
            result = await pipeline.deploy_contract(
                code, *_credentials(args, source), metadata=metadata, gas_limit=args.gas_limit,
            )
            print(f"Deploy tx: {result.tx_hash}")
            if result.contract_address is None:
                status = result.outcome.status.value if result.outcome else "unknown"
                print(f"No contract address (status: {status})")
                return 1
            print(f"Contract:  {result.contract_address}")
            return 0

        if args.command == "transfer":
            receiver = parse_address(args.to, "receiver address")
            result = await pipeline.transfer(receiver, args.value, *_credentials(args, source), wait=args.wait)
            print(f"Transfer tx: {result.tx_hash}")
            print(f"Explorer:    {result.explorer_url}")
            if result.outcome is not None:
                print(f"Status:      {result.outcome.status.value}")
            return 0

        if args.command == "publish":
            payload = Path(args.payload).read_text(encoding="utf-8")
            published = await pipeline.publish_warp(
                payload, *_credentials(args, source),
                alias=args.alias, recipients=args.recipient,
            )
            print(f"Warp tx:  {published.tx_hash}")
            print(f"Warp URL: {published.warp_url}")
            if published.alias_url:
                print(f"Alias:    {published.alias_url}")
            for recipient, link in published.recipient_links.items():
                print(f"Tip {recipient}: {link}")
            return 0

    raise SystemExit(f"error: unknown command {args.command!r}")


# ===================================================================
#  Main entry point
# ===================================================================

async def main(argv: list[str] | None = None, source: UserInputSource | None = None) -> int:
    args = parse_args(argv)
    try:
        cfg = _configure(args)
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    try:
        return await _run(args, cfg, source or ConsoleInputSource())
    except WarpkitError as exc:
        logger.debug("command failed", exc_info=True)
        print(f"error during {exc.phase or 'unknown'}: {exc.message}", file=sys.stderr)
        return 1
    except OSError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    with contextlib.suppress(KeyboardInterrupt):
        sys.exit(asyncio.run(main()))


def main_sync():
    """Synchronous entry point for console_scripts."""
    with contextlib.suppress(KeyboardInterrupt):
        sys.exit(asyncio.run(main()))
