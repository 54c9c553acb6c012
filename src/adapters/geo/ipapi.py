"""
IP geolocation adapter - Implements Geolocator protocol via ipapi.co.

Loopback and missing addresses resolve to the default country without
a network call. Lookup failures are logged and fall back to the
default country; location only affects which products are shown.
"""

import logging

import requests

logger = logging.getLogger(__name__)

LOCAL_ADDRESSES = frozenset({"127.0.0.1", "::1", "localhost", "testclient"})


class IpApiGeolocator:
    """
    Implements Geolocator protocol with a plain HTTP lookup.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self, url_template: str, timeout: float = 3.0, default_country: str = "US") -> None:
        self._url_template = url_template
        self._timeout = timeout
        self._default_country = default_country

    def detect_country(self, ip: str | None) -> str:
        if not ip or ip in LOCAL_ADDRESSES:
            return self._default_country

        try:
            response = requests.get(self._url_template.format(ip=ip), timeout=self._timeout)
        except requests.exceptions.Timeout:
            logger.error("Geolocation lookup timed out for %s", ip)
            return self._default_country
        except requests.exceptions.RequestException as e:
            logger.error("Geolocation lookup failed for %s: %s", ip, e)
            return self._default_country

        country = response.text.strip().upper()
        if response.status_code != 200 or len(country) != 2 or not country.isalpha():
            logger.warning(
                "Geolocation returned %s %r for %s", response.status_code, country[:20], ip
            )
            return self._default_country
        return country
