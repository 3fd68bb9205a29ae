"""
Predefined rink venues, used for event locations and the directions block in emails.
"""

from typing import Dict, Optional
from urllib.parse import quote


def _map_urls(address: str) -> Dict[str, str]:
    encoded = quote(address)
    return {
        "google_maps_url": f"https://www.google.com/maps/search/?api=1&query={encoded}",
        "waze_url": f"https://www.waze.com/ul?q={encoded}",
        "apple_maps_url": f"https://maps.apple.com/?address={encoded}",
    }


def _venue(key: str, name: str, address: str, phone: str) -> Dict[str, str]:
    return {"key": key, "name": name, "address": address, "phone": phone, **_map_urls(address)}


VENUES: Dict[str, Dict[str, str]] = {
    v["key"]: v
    for v in (
        _venue(
            "rink_on_the_beach",
            "Rink on the Beach",
            "4601 N Federal Hwy, Pompano Beach, FL 33064",
            "(954) 943-1437",
        ),
        _venue(
            "ice_plex",
            "Baptist Health IcePlex",
            "800 NE 8th St, Fort Lauderdale, FL 33304",
            "(954) 835-7080",
        ),
        _venue(
            "ice_den",
            "Panthers IceDen",
            "3299 Sportsplex Dr, Coral Springs, FL 33065",
            "(954) 341-9956",
        ),
        _venue(
            "palm_beach_skate_zone",
            "Palm Beach Skate Zone",
            "8125 Lake Worth Rd, Lake Worth, FL 33467",
            "(561) 963-5900",
        ),
        _venue(
            "boca_ice",
            "Boca Ice",
            "TBD",
            "TBD",
        ),
    )
}


def get_venue(venue_key: Optional[str]) -> Optional[Dict[str, str]]:
    """Look up a venue by key; unknown or empty keys return None."""
    if not venue_key:
        return None
    return VENUES.get(venue_key)
