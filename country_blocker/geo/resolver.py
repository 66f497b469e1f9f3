"""
Geo Resolver — maps a network address to a country code.

Public addresses are looked up against an ipinfo-compatible service
(GET {base_url}/{address}/json). Every failure, whether transport error,
timeout, bad status, invalid JSON or a missing field, yields UNKNOWN_COUNTRY
so a lookup problem never stops a page from being served. Private,
loopback and malformed addresses resolve to UNKNOWN_COUNTRY without a call.
"""

import ipaddress
import logging
from typing import Dict, Optional, Protocol

import httpx

from country_blocker.models.rules import UNKNOWN_COUNTRY, normalize_country

logger = logging.getLogger(__name__)

DEFAULT_GEO_SERVICE_URL = "https://ipinfo.io"
DEFAULT_TIMEOUT_SECONDS = 5.0


def _is_public_address(address: str) -> bool:
    """False for private, loopback and reserved addresses and for non-IP strings."""
    try:
        return ipaddress.ip_address(address).is_global
    except ValueError:
        return False


class GeoResolver(Protocol):
    """Protocol for address-to-country lookup — pluggable backend."""

    def resolve(self, address: str) -> str: ...


class IpInfoGeoResolver:
    """
    One best-effort lookup per call. No retries, no caching.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_GEO_SERVICE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: Optional[httpx.Client] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)

    def resolve(self, address: str) -> str:
        address = (address or "").strip()
        if not _is_public_address(address):
            return UNKNOWN_COUNTRY

        try:
            response = self._client.get(
                f"{self.base_url}/{address}/json", timeout=self.timeout
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            logger.warning("Geo lookup failed for %s: %s", address, e)
            return UNKNOWN_COUNTRY
        except ValueError as e:
            logger.warning("Geo lookup for %s returned invalid JSON: %s", address, e)
            return UNKNOWN_COUNTRY

        if not isinstance(data, dict):
            logger.warning("Geo lookup for %s returned a non-object body", address)
            return UNKNOWN_COUNTRY

        country = data.get("country")
        if not isinstance(country, str) or not country.strip():
            logger.warning("Geo lookup for %s has no country field", address)
            return UNKNOWN_COUNTRY
        return normalize_country(country)

    def close(self) -> None:
        """Close the HTTP client if this resolver created it."""
        if self._owns_client:
            self._client.close()


class StaticGeoResolver:
    """In-process lookup table, for tests and local development."""

    def __init__(self, mapping: Optional[Dict[str, str]] = None, default: str = UNKNOWN_COUNTRY):
        self.mapping = {ip: normalize_country(c) for ip, c in (mapping or {}).items()}
        self.default = default

    def resolve(self, address: str) -> str:
        return self.mapping.get(address, self.default)
