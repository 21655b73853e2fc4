from __future__ import annotations

import re
from typing import Any

LITERS_PER_GALLON = 3.78541
KG_PER_POUND = 0.453592
KG_PER_OUNCE = 0.0283495
PPM_CACO3_PER_DH = 17.8

MASH_OUT_TEMP_C = 78.0
STRIKE_OFFSET_C = 3.0
SACCHARIFICATION_MIN_C = 60.0
SACCHARIFICATION_MAX_C = 75.0
DEFAULT_SACCHARIFICATION_C = 68.0

ABV_COEFFICIENT = 131.25

_NUMBER_RE = re.compile(r"-?\d+(?:[.,]\d+)?")
_MASS_RE = re.compile(r"(\d+(?:[.,]\d+)?)\s*(kg|g|lbs?|oz)\b", flags=re.IGNORECASE)
_TEMP_RE = re.compile(r"(-?\d+(?:[.,]\d+)?)\s*°?\s*([CF])?\b", flags=re.IGNORECASE)


def gallons_to_liters(gallons: float) -> float:
    return gallons * LITERS_PER_GALLON


def liters_to_gallons(liters: float) -> float:
    return liters / LITERS_PER_GALLON


def celsius_to_fahrenheit(celsius: float) -> float:
    return celsius * 9 / 5 + 32


def fahrenheit_to_celsius(fahrenheit: float) -> float:
    return (fahrenheit - 32) * 5 / 9


def hardness_dh_to_ppm_caco3(hardness_dh: float) -> float:
    return hardness_dh * PPM_CACO3_PER_DH


def batch_liters(batch_size: float, units: str) -> float:
    if units == "imperial":
        return gallons_to_liters(batch_size)
    return batch_size


def parse_number(value: Any) -> float | None:
    """Return the first number found in ``value`` (accepts comma decimals)."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)

    match = _NUMBER_RE.search(str(value))
    if not match:
        return None
    return float(match.group(0).replace(",", "."))


def parse_mass_kg(value: Any) -> float | None:
    if value is None:
        return None

    match = _MASS_RE.search(str(value))
    if not match:
        return None

    amount = float(match.group(1).replace(",", "."))
    unit = match.group(2).lower()
    if unit == "g":
        return amount / 1000
    if unit.startswith("lb"):
        return amount * KG_PER_POUND
    if unit == "oz":
        return amount * KG_PER_OUNCE
    return amount


def parse_temperature_c(value: Any, default_unit: str = "C") -> float | None:
    """Parse a display temperature into Celsius.

    Strings without an explicit unit are read in ``default_unit``.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number, unit = float(value), default_unit
    else:
        match = _TEMP_RE.search(str(value))
        if not match:
            return None
        number = float(match.group(1).replace(",", "."))
        unit = (match.group(2) or default_unit).upper()

    if unit == "F":
        return fahrenheit_to_celsius(number)
    return number


def _trim(value: float) -> str:
    rounded = round(value, 1)
    if rounded == int(rounded):
        return str(int(rounded))
    return f"{rounded:.1f}"


def format_temperature(celsius: float, temp_unit: str) -> str:
    if temp_unit == "F":
        return f"{_trim(celsius_to_fahrenheit(celsius))}°F"
    return f"{_trim(celsius)}°C"


def format_volume(liters: float, units: str) -> str:
    if units == "imperial":
        return f"{_trim(liters_to_gallons(liters))} gal"
    return f"{round(liters)} L"


def estimate_abv(og: float, fg: float) -> float:
    """Estimate ABV from OG and FG using a standard approximation."""
    return round((og - fg) * ABV_COEFFICIENT, 2)


def attenuation_pct(og: float, fg: float) -> float:
    if og <= 1.0:
        return 0.0
    return round(((og - fg) / (og - 1.0)) * 100, 2)
