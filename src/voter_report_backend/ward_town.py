"""Ward-to-town lookup for Monroe County absentee ballot data."""

from __future__ import annotations

import re
from typing import Dict, Tuple

UNKNOWN_TOWN = "Unknown Town"

# Ward numbers are looked up without leading zeros.
WARD_TO_TOWN: Dict[str, str] = {
    "16": "Rochester",
    "17": "Rochester",
    "21": "Rochester",
    "22": "Rochester",
    "23": "Rochester",
    "24": "Rochester",
    "25": "Rochester",
    "26": "Rochester",
    "27": "Rochester",
    "28": "Rochester",
    "29": "Rochester",
    "45": "Brighton",
    "46": "Chili",
    "47": "Clarkson",
    "48": "East Rochester",
    "49": "Gates",
    "50": "Greece",
    "51": "Hamlin",
    "52": "Henrietta",
    "53": "Irondequoit",
    "54": "Mendon",
    "55": "Ogden",
    "56": "Parma",
    "57": "Penfield",
    "58": "Perinton",
    "59": "Pittsford",
    "60": "Riga",
    "61": "Rush",
    "62": "Sweden",
    "63": "Webster",
    "64": "Wheatland",
}

_WARD_TOWN_ID = re.compile(r"^(?P<town>.*) \((?P<ward>[^()]*)\)$")


def strip_leading_zeros(ward: str) -> str:
    """``"045"`` -> ``"45"``; a ward of only zeros becomes ``"0"``."""
    return ward.strip().lstrip("0") or "0"


def town_for_ward(ward: str) -> str:
    return WARD_TO_TOWN.get(strip_leading_zeros(ward), UNKNOWN_TOWN)


def ward_town_identifier(ward: str) -> str:
    """Display identifier in the form ``"Town (ward)"``."""
    return f"{town_for_ward(ward)} ({strip_leading_zeros(ward)})"


def parse_ward_town_identifier(identifier: str) -> Tuple[str, str]:
    """Split ``"Town (ward)"`` back into ``(town, ward)``."""
    match = _WARD_TOWN_ID.match(identifier)
    if not match:
        return identifier, ""
    return match.group("town"), match.group("ward")


def ward_sort_key(identifier: str) -> Tuple[int, int, str]:
    """Numeric ward ascending; identifiers without a numeric ward sort last."""
    _, ward = parse_ward_town_identifier(identifier)
    try:
        return (0, int(ward), identifier)
    except ValueError:
        return (1, 0, identifier)
