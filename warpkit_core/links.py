"""
Explorer and warp URL helpers.
"""

from __future__ import annotations

from urllib.parse import quote, urlencode

EXPLORER_URLS = {
    "devnet": "https://devnet-explorer.multiversx.com",
    "testnet": "https://testnet-explorer.multiversx.com",
    "mainnet": "https://explorer.multiversx.com",
}

WARP_BASE_URLS = {
    "devnet": "https://devnet.usewarp.to/to?warp=hash%3A",
    "testnet": "https://testnet.warps.tools/warp/",
    "mainnet": "https://warps.tools/warp/",
}

ALIAS_BASE_URLS = {
    "devnet": "https://devnet.warps.tools",
    "testnet": "https://testnet.warps.tools",
    "mainnet": "https://warps.tools",
}


def explorer_tx_url(tx_hash: str, network: str = "devnet", base: str | None = None) -> str:
    base = base or EXPLORER_URLS.get(network, EXPLORER_URLS["mainnet"])
    return f"{base.rstrip('/')}/transactions/{tx_hash}"


def explorer_account_url(address: str, network: str = "devnet", base: str | None = None) -> str:
    base = base or EXPLORER_URLS.get(network, EXPLORER_URLS["mainnet"])
    return f"{base.rstrip('/')}/accounts/{address}"


def warp_url(tx_hash: str, network: str = "devnet", query: dict[str, str] | None = None) -> str:
    """Link to a published warp, optionally with pre-filled query parameters."""
    url = WARP_BASE_URLS.get(network, WARP_BASE_URLS["mainnet"]) + tx_hash
    if query:
        url += ("&" if "?" in url else "?") + urlencode(query, quote_via=quote)
    return url


def alias_url(alias: str, network: str = "devnet") -> str:
    base = ALIAS_BASE_URLS.get(network, ALIAS_BASE_URLS["mainnet"])
    return f"{base}/warp/alias/{quote(alias, safe='')}"


def tipping_link(tx_hash: str, recipient: str, network: str = "devnet") -> str:
    """A warp link that pre-fills the tip recipient."""
    return warp_url(tx_hash, network, {"to": recipient})


def tipping_links(tx_hash: str, recipients: list[str], network: str = "devnet") -> dict[str, str]:
    return {r: tipping_link(tx_hash, r, network) for r in recipients}
