"""Proxy list parsing.

Two on-disk formats are accepted:

- Plain text: one ``ip:port`` per line. Blank lines and ``#`` comments are
  skipped. The scheme is inferred from the port (443 → https, else http).
- YAML (``.yaml`` / ``.yml``): a list of mappings with ``address``, ``port``
  and optional ``scheme``/``metadata``.

Invalid entries are dropped with a debug log; parsing never raises.
"""

from __future__ import annotations

import ipaddress
import logging
from pathlib import Path
from typing import Any

import yaml

from proxy_scraper.proxy.types import ProviderType, ProxyEndpoint

logger = logging.getLogger(__name__)

_ALLOWED_SCHEMES = {"http", "https"}


def _is_valid_ipv4(value: str) -> bool:
    try:
        return isinstance(ipaddress.ip_address(value), ipaddress.IPv4Address)
    except ValueError:
        return False


def _is_valid_port(port: int) -> bool:
    return 0 < port <= 65535


def _scheme_for_port(port: int) -> str:
    return "https" if port == 443 else "http"


def parse_proxies_from_text(
    content: str,
    provider: ProviderType = ProviderType.FREE,
) -> list[ProxyEndpoint]:
    """Parse ``ip:port`` lines into endpoints."""
    proxies: list[ProxyEndpoint] = []

    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue

        parts = line.split(":")
        if len(parts) != 2:
            logger.debug("Skipping malformed proxy line: %r", line)
            continue

        address = parts[0].strip()
        try:
            port = int(parts[1].strip())
        except ValueError:
            logger.debug("Skipping proxy line with non-numeric port: %r", line)
            continue

        if not _is_valid_ipv4(address) or not _is_valid_port(port):
            logger.debug("Skipping invalid proxy: %r", line)
            continue

        proxies.append(
            ProxyEndpoint(
                address=address,
                port=port,
                scheme=_scheme_for_port(port),
                provider=provider,
            )
        )

    return proxies


def parse_proxies_from_yaml(
    content: str,
    provider: ProviderType = ProviderType.FREE,
) -> list[ProxyEndpoint]:
    """Parse a YAML list of ``{address, port, scheme?, metadata?}`` mappings."""
    try:
        raw = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        logger.error("Failed to parse proxy YAML: %s", exc)
        return []

    if not isinstance(raw, list):
        return []

    proxies: list[ProxyEndpoint] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        entry: dict[str, Any] = item
        try:
            address = str(entry["address"])
            port = int(entry["port"])
        except (KeyError, TypeError, ValueError):
            logger.debug("Skipping malformed proxy entry: %r", entry)
            continue

        scheme = str(entry.get("scheme") or _scheme_for_port(port)).lower()
        if not _is_valid_ipv4(address) or not _is_valid_port(port) or scheme not in _ALLOWED_SCHEMES:
            logger.debug("Skipping invalid proxy entry: %r", entry)
            continue

        proxies.append(
            ProxyEndpoint(
                address=address,
                port=port,
                scheme=scheme,
                provider=provider,
                metadata=dict(entry.get("metadata") or {}),
            )
        )

    return proxies


def parse_proxies_from_file(
    path: str | Path,
    provider: ProviderType = ProviderType.FREE,
) -> list[ProxyEndpoint]:
    """Read and parse a proxy list file. Returns ``[]`` if it cannot be read."""
    file_path = Path(path)
    try:
        content = file_path.read_text(encoding="utf-8")
    except OSError as exc:
        logger.error("Error reading proxy file %s: %s", file_path, exc)
        return []

    if file_path.suffix.lower() in (".yaml", ".yml"):
        return parse_proxies_from_yaml(content, provider)
    return parse_proxies_from_text(content, provider)
