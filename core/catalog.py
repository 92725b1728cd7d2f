"""
catalog.py -- Static hardware model tables and lookups.

Turns cryptic vendor model identifiers into friendly names, release years and
launch MSRPs:
  "Mac15,13"    -> MacBook Air 15" (M3, 2024), 2024, $1299
  "21HK003MUS"  -> ThinkPad P16s Gen 2, 2023, $1399   (Lenovo machine type prefix)
  "Surface Pro 9" -> Microsoft Surface Pro 9, 2022, $999

Every lookup is pure and total: unknown or empty identifiers produce None,
0 or a readable fallback string, never an exception.
"""

import re
from typing import Optional

from .models import ModelInfo

# ---------------------------------------------------------------------------
# Apple -- exact model identifier
# ---------------------------------------------------------------------------

APPLE_MODEL_MAP: dict[str, ModelInfo] = {
    # MacBook Air
    "Mac16,13": ModelInfo('MacBook Air 15" (M4, 2025)', 2025, 1299),
    "Mac16,12": ModelInfo('MacBook Air 13" (M4, 2025)', 2025, 1099),
    "Mac15,13": ModelInfo('MacBook Air 15" (M3, 2024)', 2024, 1299),
    "Mac15,12": ModelInfo('MacBook Air 13" (M3, 2024)', 2024, 1099),
    "Mac14,15": ModelInfo('MacBook Air 15" (M2, 2023)', 2023, 1299),
    "Mac14,2": ModelInfo('MacBook Air 13" (M2, 2022)', 2022, 1199),
    "MacBookAir10,1": ModelInfo('MacBook Air 13" (M1, 2020)', 2020, 999),
    "MacBookAir9,1": ModelInfo('MacBook Air 13" (Intel, 2020)', 2020, 999),
    # MacBook Pro -- Apple silicon
    "Mac16,1": ModelInfo('MacBook Pro 14" (M4, 2024)', 2024, 1599),
    "Mac16,6": ModelInfo('MacBook Pro 14" (M4 Pro, 2024)', 2024, 1999),
    "Mac16,8": ModelInfo('MacBook Pro 14" (M4 Max, 2024)', 2024, 3199),
    "Mac16,5": ModelInfo('MacBook Pro 16" (M4 Pro, 2024)', 2024, 2499),
    "Mac16,7": ModelInfo('MacBook Pro 16" (M4 Max, 2024)', 2024, 3499),
    "Mac15,3": ModelInfo('MacBook Pro 14" (M3, 2023)', 2023, 1599),
    "Mac15,6": ModelInfo('MacBook Pro 14" (M3 Pro, 2023)', 2023, 1999),
    "Mac15,8": ModelInfo('MacBook Pro 14" (M3 Max, 2023)', 2023, 2999),
    "Mac15,10": ModelInfo('MacBook Pro 14" (M3 Max, 2023)', 2023, 2999),
    "Mac15,7": ModelInfo('MacBook Pro 16" (M3 Pro, 2023)', 2023, 2499),
    "Mac15,9": ModelInfo('MacBook Pro 16" (M3 Max, 2023)', 2023, 3499),
    "Mac15,11": ModelInfo('MacBook Pro 16" (M3 Max, 2023)', 2023, 3499),
    "Mac14,5": ModelInfo('MacBook Pro 14" (M2 Pro, 2023)', 2023, 1999),
    "Mac14,9": ModelInfo('MacBook Pro 14" (M2 Max, 2023)', 2023, 2999),
    "Mac14,6": ModelInfo('MacBook Pro 16" (M2 Pro, 2023)', 2023, 2499),
    "Mac14,10": ModelInfo('MacBook Pro 16" (M2 Max, 2023)', 2023, 3499),
    "Mac14,7": ModelInfo('MacBook Pro 13" (M2, 2022)', 2022, 1299),
    "MacBookPro18,1": ModelInfo('MacBook Pro 16" (M1 Pro, 2021)', 2021, 2499),
    "MacBookPro18,2": ModelInfo('MacBook Pro 16" (M1 Max, 2021)', 2021, 3499),
    "MacBookPro18,3": ModelInfo('MacBook Pro 14" (M1 Pro, 2021)', 2021, 1999),
    "MacBookPro18,4": ModelInfo('MacBook Pro 14" (M1 Max, 2021)', 2021, 2999),
    "MacBookPro17,1": ModelInfo('MacBook Pro 13" (M1, 2020)', 2020, 1299),
    # MacBook Pro -- Intel
    "MacBookPro16,1": ModelInfo('MacBook Pro 16" (Intel, 2019)', 2019, 2399),
    "MacBookPro16,2": ModelInfo('MacBook Pro 13" (Intel, 2020)', 2020, 1799),
    "MacBookPro16,3": ModelInfo('MacBook Pro 13" (Intel, 2020)', 2020, 1299),
    "MacBookPro16,4": ModelInfo('MacBook Pro 16" (Intel, 2020)', 2020, 2399),
    "MacBookPro15,1": ModelInfo('MacBook Pro 15" (Intel, 2019)', 2019, 2399),
    "MacBookPro15,2": ModelInfo('MacBook Pro 13" (Intel, 2019)', 2019, 1799),
    "MacBookPro15,3": ModelInfo('MacBook Pro 15" (Intel, 2019)', 2019, 2799),
    "MacBookPro15,4": ModelInfo('MacBook Pro 13" (Intel, 2019)', 2019, 1299),
    "MacBookPro14,1": ModelInfo('MacBook Pro 13" (Intel, 2017)', 2017, 1299),
    "MacBookPro14,2": ModelInfo('MacBook Pro 13" (Intel, 2017)', 2017, 1799),
    "MacBookPro14,3": ModelInfo('MacBook Pro 15" (Intel, 2017)', 2017, 2399),
    # iMac
    "Mac16,2": ModelInfo('iMac 24" (M4, 2024)', 2024, 1299),
    "Mac16,3": ModelInfo('iMac 24" (M4, 2024)', 2024, 1499),
    "Mac15,4": ModelInfo('iMac 24" (M3, 2023)', 2023, 1299),
    "Mac15,5": ModelInfo('iMac 24" (M3, 2023)', 2023, 1499),
    "iMac21,1": ModelInfo('iMac 24" (M1, 2021)', 2021, 1299),
    "iMac21,2": ModelInfo('iMac 24" (M1, 2021)', 2021, 1499),
    "iMac20,1": ModelInfo('iMac 27" (Intel, 2020)', 2020, 1799),
    "iMac20,2": ModelInfo('iMac 27" (Intel, 2020)', 2020, 1999),
    "iMac19,1": ModelInfo('iMac 27" (Intel, 2019)', 2019, 1799),
    "iMac19,2": ModelInfo('iMac 21.5" (Intel, 2019)', 2019, 1299),
    "iMac18,1": ModelInfo('iMac 21.5" (Intel, 2017)', 2017, 1099),
    "iMac18,2": ModelInfo('iMac 21.5" 4K (Intel, 2017)', 2017, 1299),
    "iMac18,3": ModelInfo('iMac 27" 5K (Intel, 2017)', 2017, 1799),
    "iMac15,1": ModelInfo('iMac 27" 5K (Intel, 2014)', 2014, 2499),
    "iMacPro1,1": ModelInfo('iMac Pro 27" (Intel Xeon, 2017)', 2017, 4999),
    # Mac mini
    "Mac16,10": ModelInfo("Mac mini (M4, 2024)", 2024, 599),
    "Mac16,11": ModelInfo("Mac mini (M4 Pro, 2024)", 2024, 1399),
    "Mac14,3": ModelInfo("Mac mini (M2, 2023)", 2023, 599),
    "Mac14,12": ModelInfo("Mac mini (M2 Pro, 2023)", 2023, 1299),
    "Macmini9,1": ModelInfo("Mac mini (M1, 2020)", 2020, 699),
    "Macmini8,1": ModelInfo("Mac mini (Intel, 2018)", 2018, 799),
    "Macmini7,1": ModelInfo("Mac mini (Intel, 2014)", 2014, 499),
    "Macmini6,1": ModelInfo("Mac mini (Intel, 2012)", 2012, 599),
    "Macmini6,2": ModelInfo("Mac mini (Intel, 2012)", 2012, 799),
    # Mac Studio / Mac Pro
    "Mac16,9": ModelInfo("Mac Studio (M3 Ultra, 2025)", 2025, 3999),
    "Mac15,14": ModelInfo("Mac Studio (M3 Ultra, 2025)", 2025, 3999),
    "Mac14,13": ModelInfo("Mac Studio (M2 Max, 2023)", 2023, 1999),
    "Mac14,14": ModelInfo("Mac Studio (M2 Ultra, 2023)", 2023, 3999),
    "Mac13,1": ModelInfo("Mac Studio (M1 Max, 2022)", 2022, 1999),
    "Mac13,2": ModelInfo("Mac Studio (M1 Ultra, 2022)", 2022, 3999),
    "Mac14,8": ModelInfo("Mac Pro (M2 Ultra, 2023)", 2023, 6999),
}

# ---------------------------------------------------------------------------
# Lenovo -- 4-character machine type prefix
# ---------------------------------------------------------------------------

LENOVO_PREFIX_MAP: dict[str, ModelInfo] = {
    # X1 Carbon
    "21HM": ModelInfo("ThinkPad X1 Carbon Gen 11", 2023, 1649),
    "21HN": ModelInfo("ThinkPad X1 Carbon Gen 11", 2023, 1649),
    "21KC": ModelInfo("ThinkPad X1 Carbon Gen 12", 2024, 1699),
    "21KD": ModelInfo("ThinkPad X1 Carbon Gen 12", 2024, 1699),
    "21CB": ModelInfo("ThinkPad X1 Carbon Gen 10", 2022, 1549),
    "21CC": ModelInfo("ThinkPad X1 Carbon Gen 10", 2022, 1549),
    "20XW": ModelInfo("ThinkPad X1 Carbon Gen 9", 2021, 1429),
    "20XX": ModelInfo("ThinkPad X1 Carbon Gen 9", 2021, 1429),
    "20KH": ModelInfo("ThinkPad X1 Carbon Gen 6", 2018, 1399),
    "20KG": ModelInfo("ThinkPad X1 Carbon Gen 6", 2018, 1399),
    "20FB": ModelInfo("ThinkPad X1 Carbon Gen 4", 2016, 1299),
    "20FC": ModelInfo("ThinkPad X1 Carbon Gen 4", 2016, 1299),
    # X1 Yoga
    "21JR": ModelInfo("ThinkPad X1 Yoga Gen 8", 2023, 1749),
    "21JS": ModelInfo("ThinkPad X1 Yoga Gen 8", 2023, 1749),
    "21CD": ModelInfo("ThinkPad X1 Yoga Gen 7", 2022, 1649),
    "21CE": ModelInfo("ThinkPad X1 Yoga Gen 7", 2022, 1649),
    # P series workstations
    "21HK": ModelInfo("ThinkPad P16s Gen 2", 2023, 1399),
    "21HL": ModelInfo("ThinkPad P16s Gen 2", 2023, 1399),
    "21KS": ModelInfo("ThinkPad P16s Gen 3", 2024, 1499),
    "21KT": ModelInfo("ThinkPad P16s Gen 3", 2024, 1499),
    "21H3": ModelInfo("ThinkPad P1 Gen 6", 2023, 2299),
    "21H4": ModelInfo("ThinkPad P1 Gen 6", 2023, 2299),
    "21NS": ModelInfo("ThinkPad P1 Gen 7", 2024, 2499),
    "21NT": ModelInfo("ThinkPad P1 Gen 7", 2024, 2499),
    # T series
    "21MC": ModelInfo("ThinkPad T14 Gen 5", 2024, 1199),
    "21MD": ModelInfo("ThinkPad T14 Gen 5", 2024, 1199),
    "21DJ": ModelInfo("ThinkPad T14 Gen 4", 2023, 1099),
    "21DK": ModelInfo("ThinkPad T14 Gen 4", 2023, 1099),
    "20UN": ModelInfo("ThinkPad T14 Gen 1", 2020, 899),
    "20UD": ModelInfo("ThinkPad T14 Gen 1", 2020, 899),
    # L / E / X series
    "21H1": ModelInfo("ThinkPad L14 Gen 4", 2023, 799),
    "21H2": ModelInfo("ThinkPad L14 Gen 4", 2023, 799),
    "21JN": ModelInfo("ThinkPad E16 Gen 1", 2023, 749),
    "21JM": ModelInfo("ThinkPad E16 Gen 1", 2023, 749),
    "20W6": ModelInfo("ThinkPad X13 Gen 2", 2021, 1099),
    "20WK": ModelInfo("ThinkPad X13 Gen 2", 2021, 1099),
    # Desktops and consumer
    "30FM": ModelInfo("ThinkStation P360 Ultra", 2022, 1699),
    "30FN": ModelInfo("ThinkStation P360 Ultra", 2022, 1699),
    "83A4": ModelInfo("IdeaPad Slim 5", 2023, 699),
    "83A5": ModelInfo("IdeaPad Slim 5", 2023, 699),
}

# ---------------------------------------------------------------------------
# Dell / Microsoft -- exact marketing string as reported by Intune
# ---------------------------------------------------------------------------

DELL_MODEL_MAP: dict[str, ModelInfo] = {
    "Latitude 5320": ModelInfo("Dell Latitude 5320", 2021, 1199),
    "Latitude 5550": ModelInfo("Dell Latitude 5550", 2024, 1349),
    "Latitude 7320": ModelInfo("Dell Latitude 7320", 2021, 1549),
    "OptiPlex 9020 AIO": ModelInfo("Dell OptiPlex 9020 All-in-One", 2014, 999),
    "OptiPlex 7080": ModelInfo("Dell OptiPlex 7080", 2020, 899),
    "Dell Inc. OptiPlex Micro Plus 7020": ModelInfo("Dell OptiPlex Micro Plus 7020", 2024, 999),
    "Dell Inc. OptiPlex Micro 7010": ModelInfo("Dell OptiPlex Micro 7010", 2023, 849),
    "Inspiron 16 5620": ModelInfo("Dell Inspiron 16 5620", 2022, 799),
}

SURFACE_MODEL_MAP: dict[str, ModelInfo] = {
    "Surface Pro": ModelInfo("Microsoft Surface Pro", 2017, 799),
    "Surface Pro 8": ModelInfo("Microsoft Surface Pro 8", 2021, 1099),
    "Surface Pro 9": ModelInfo("Microsoft Surface Pro 9", 2022, 999),
    "Surface Pro 10": ModelInfo("Microsoft Surface Pro 10", 2024, 1199),
}

# Surface Pro generation -> release year, for strings not in the exact table
_SURFACE_GENERATION_YEAR = {8: 2021, 9: 2022, 10: 2023}

_DELL_KEYWORDS = ("Latitude", "OptiPlex", "Inspiron", "Dell")

_APPLE_CODE_RE = re.compile(r"^(Mac|iMac|MacBook|MacBookPro|MacBookAir|Macmini)\d")
_APPLE_PREFIX_RE = re.compile(r"^(Mac|iMac|MacBook|Macmini)")
_LENOVO_PART_RE = re.compile(r"^2[0-9A-Z]{9}$")
_LENOVO_PREFIX_RE = re.compile(r"^(2[0-9A-Z]|83)")
_SURFACE_GEN_RE = re.compile(r"Pro\s*(\d+)", re.IGNORECASE)
_YEAR_RE = re.compile(r"\b(20[1-2]\d)\b")


def _is_blank(code: Optional[str]) -> bool:
    return not code or not code.strip() or code == "Unknown"


def _is_dell(code: str) -> bool:
    return any(keyword in code for keyword in _DELL_KEYWORDS)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


def lookup_model_info(code: Optional[str]) -> Optional[ModelInfo]:
    """Resolve a raw model identifier to its catalog entry.

    Checked in order, first match wins: exact Apple identifier, Lenovo
    machine-type prefix, exact Dell string, Dell keyword, exact Surface
    string, Surface keyword. Keyword matches carry year 0 (unknown) unless
    a Surface Pro generation can be read from the string, and never an MSRP.
    """
    if _is_blank(code):
        return None

    trimmed = code.strip()

    if trimmed in APPLE_MODEL_MAP:
        return APPLE_MODEL_MAP[trimmed]

    prefix = trimmed[:4].upper()
    if prefix in LENOVO_PREFIX_MAP:
        return LENOVO_PREFIX_MAP[prefix]

    if trimmed in DELL_MODEL_MAP:
        return DELL_MODEL_MAP[trimmed]

    if _is_dell(trimmed):
        return ModelInfo(name=trimmed.replace("Dell Inc. ", "Dell "), year=0)

    if trimmed in SURFACE_MODEL_MAP:
        return SURFACE_MODEL_MAP[trimmed]

    if "Surface" in trimmed:
        year = 0
        gen = _SURFACE_GEN_RE.search(trimmed)
        if gen:
            year = _SURFACE_GENERATION_YEAR.get(int(gen.group(1)), 0)
        return ModelInfo(name=f"Microsoft {trimmed}", year=year)

    return None


def lookup_model_name(code: Optional[str]) -> str:
    """Return a friendly model name; never empty."""
    if _is_blank(code):
        return "Unknown Model"

    info = lookup_model_info(code)
    if info is not None:
        return info.name

    trimmed = code.strip()

    if _APPLE_CODE_RE.match(trimmed):
        if trimmed.startswith("MacBookPro"):
            return f"MacBook Pro ({trimmed})"
        if trimmed.startswith("MacBookAir"):
            return f"MacBook Air ({trimmed})"
        if trimmed.startswith("iMac"):
            return f"iMac ({trimmed})"
        if trimmed.startswith("Macmini"):
            return f"Mac mini ({trimmed})"
        return f"Mac ({trimmed})"

    if _LENOVO_PART_RE.match(trimmed):
        return f"Lenovo ({trimmed})"

    return trimmed


def get_model_release_year(code: Optional[str]) -> int:
    """Return the release year for a model, or 0 when unknown.

    A catalog hit is authoritative even when its year is 0. Otherwise a
    four-digit year token (2010-2029) in the raw string is used.
    """
    if _is_blank(code):
        return 0

    info = lookup_model_info(code)
    if info is not None:
        return info.year

    match = _YEAR_RE.search(code.strip())
    if match:
        return int(match.group(1))
    return 0


def get_model_msrp(code: Optional[str]) -> Optional[int]:
    """Return the catalog launch MSRP in USD, or None."""
    if _is_blank(code):
        return None
    info = lookup_model_info(code)
    return info.msrp if info is not None else None


def get_manufacturer_from_model(code: Optional[str]) -> str:
    """Infer the manufacturer from the shape of a model identifier."""
    if not code or not code.strip():
        return "Unknown"

    trimmed = code.strip()

    if _APPLE_PREFIX_RE.match(trimmed):
        return "Apple"
    if _LENOVO_PREFIX_RE.match(trimmed) or trimmed[:4] in LENOVO_PREFIX_MAP:
        return "Lenovo"
    if _is_dell(trimmed):
        return "Dell"
    if "Surface" in trimmed:
        return "Microsoft"
    return "Unknown"
