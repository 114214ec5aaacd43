"""
Field parsers for the Vehicle Listing Scraper.

Every parser is a pure function over free text. They never raise on odd input
and return None when nothing matches.
"""

import re
from typing import Optional, Union

from constants import KNOWN_BRANDS, KNOWN_COLORS

Number = Union[int, float]

# ASCII word boundaries: a Cyrillic letter glued to a token ("2014р") must not
# block the match, so boundary-based patterns are compiled with re.ASCII.
# Digits are spelled [0-9] elsewhere since \d also matches non-ASCII digits.
_WORD = re.ASCII | re.IGNORECASE

NUMBER_RE = re.compile(r"[0-9]+(?:[.][0-9]+)?")
VIN_RE = re.compile(r"\b[A-HJ-NPR-Z0-9]{17}\b", _WORD)
YEAR_RE = re.compile(r"\b(19\d{2}|20\d{2})\b", re.ASCII)
BRAND_RE = re.compile(r"\b(" + "|".join(map(re.escape, KNOWN_BRANDS)) + r")\b", _WORD)
COLOR_RE = re.compile(r"\b(" + "|".join(KNOWN_COLORS) + r")\b", _WORD)
ENGINE_RE = re.compile(r"([0-9](?:[.,][0-9])?)\s*(L|lit(?:er|re)s?)", re.IGNORECASE)
MILEAGE_RE = re.compile(r"([0-9]{2,7})\s*(km|kilometers|mi|miles)", re.IGNORECASE)
PRICE_DOLLAR_RE = re.compile(r"\$\s?([0-9,]+(?:\.[0-9]{1,2})?)")
PRICE_USD_RE = re.compile(r"([0-9,]+(?:\.[0-9]{1,2})?)\s*USD", re.IGNORECASE)


def parse_number(raw: Optional[str]) -> Optional[Number]:
    """
    Parse the first integer or decimal number out of a string.

    Thousands separators (",") are dropped and whitespace runs collapsed
    before matching, so "1,234.5 USD" gives 1234.5.

    Args:
        raw: Text containing a number, may be None or empty

    Returns:
        int when the token has no fraction, float when it does, None otherwise
    """
    if not raw:
        return None
    normalized = re.sub(r"\s+", " ", raw.replace(",", ""))
    match = NUMBER_RE.search(normalized)
    if not match:
        return None
    token = match.group(0)
    return float(token) if "." in token else int(token)


def parse_vin(text: str, fallback: Optional[str] = None) -> Optional[str]:
    """
    Find a 17 character VIN in the text.

    I, O and Q are not part of the VIN alphabet. When the text holds no VIN
    the caller's hint is returned instead.
    """
    match = VIN_RE.search(text)
    if match:
        return match.group(0).upper()
    return fallback or None


def parse_year(text: str) -> Optional[int]:
    """First 4 digit year between 1900 and 2099."""
    match = YEAR_RE.search(text)
    return int(match.group(1)) if match else None


def parse_brand(text: str) -> Optional[str]:
    """Leftmost known brand, returned as written in the text."""
    match = BRAND_RE.search(text)
    return match.group(1) if match else None


def parse_model(title: Optional[str], brand: Optional[str]) -> Optional[str]:
    """
    Guess the model from the listing title.

    E.g., ("Toyota Camry SE | Clean Title", "Toyota") -> "Camry SE"
          ("BMW 3 Series 320i xDrive", "BMW") -> "3 Series 320i"

    Only runs when a brand matched. The brand is removed once (case
    insensitive), the title is cut at the first "|" and the first three
    space separated words are kept.

    Args:
        title: Listing title
        brand: Brand found by parse_brand

    Returns:
        Model guess or None
    """
    if not brand or not title:
        return None

    remainder = re.sub(re.escape(brand), "", title, count=1, flags=re.IGNORECASE)
    words = remainder.split("|")[0].strip().split(" ")
    model = " ".join(words[:3])
    return model or None


def parse_engine_volume(text: str) -> Optional[float]:
    """
    Engine volume in liters, e.g. "2.0L turbo" -> 2.0, "2,0 liter" -> 2.0.
    """
    match = ENGINE_RE.search(text)
    if not match:
        return None
    return float(match.group(1).replace(",", "."))


def parse_mileage(text: str) -> Optional[int]:
    """
    Mileage magnitude in whatever unit the listing uses.

    km and miles are both accepted and the unit is dropped, so 120000 km and
    120000 mi come out the same. Consumers must not assume a unit.
    """
    match = MILEAGE_RE.search(text)
    return int(match.group(1)) if match else None


def parse_color(text: str) -> Optional[str]:
    match = COLOR_RE.search(text)
    return match.group(1).lower() if match else None


def parse_price_usd(text: str) -> Optional[Number]:
    """
    Price in US dollars.

    A "$" price anywhere in the text wins over a "... USD" price, even when
    the USD one comes first. Other currencies are ignored.
    """
    match = PRICE_DOLLAR_RE.search(text) or PRICE_USD_RE.search(text)
    return parse_number(match.group(1)) if match else None
