"""Regional product availability."""

from dataclasses import dataclass

from .ports import Geolocator

# Gardening tools ship only within India; e-books are global
TOOLS_COUNTRIES = frozenset({"IN"})


@dataclass
class LocationService:
    geolocator: Geolocator

    def available_products(self, ip: str | None) -> dict[str, object]:
        country = self.geolocator.detect_country(ip)
        has_tools = country in TOOLS_COUNTRIES
        return {
            "country": country,
            "region": "India" if has_tools else "International",
            "ebooks": True,
            "gardening_tools": has_tools,
        }
