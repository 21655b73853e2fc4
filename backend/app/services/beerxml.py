"""BeerXML 1.0 export for sanitized recipes.

All BeerXML quantities are metric: kilograms, liters, degrees Celsius and
minutes. Entries whose amount cannot be read as a mass are skipped rather
than exported as zero.
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from typing import Any
from xml.dom import minidom

from app.schemas.generation import RecipeRequest
from app.schemas.recipe import ExtraEntry, HopEntry, SanitizedRecipe
from app.services.rules import StyleCategory, YeastCategory, derive_constraints
from app.services.units import (
    DEFAULT_SACCHARIFICATION_C,
    attenuation_pct,
    parse_mass_kg,
    parse_number,
    parse_temperature_c,
)

BREWER_NAME = "Craft Beer Wizard"
BOIL_TIME_MIN = 60
BOIL_SIZE_FACTOR = 1.1
DEFAULT_OG = 1.050
DEFAULT_FG = 1.010
DEFAULT_ATTENUATION = 75.0
DEFAULT_DRY_HOP_DAYS = 3
MAX_ENTRY_KG = 100.0
# grams of CO2 per liter for one volume of CO2
CO2_G_PER_L_PER_VOLUME = 1.96

_DURATION_RE = re.compile(r"(\d+(?:[.,]\d+)?)\s*(min|minutes?|h|hours?|days?|weeks?)\b", re.IGNORECASE)
_DAYS_RE = re.compile(r"(\d+(?:[.,]\d+)?)\s*days?|days?\s*(\d+(?:[.,]\d+)?)", re.IGNORECASE)
_FIRST_WORT_RE = re.compile(r"first[\s-]*wort|\bfwh\b", re.IGNORECASE)
_DRY_RE = re.compile(r"\bdry\b", re.IGNORECASE)

_MINUTES_PER_UNIT = {"min": 1, "h": 60, "d": 1440, "w": 10080}

_MISC_TYPES = {
    "water_agent": "Water Agent",
    "fining": "Fining",
    "spice": "Spice",
    "herb": "Herb",
    "fruit": "Flavor",
    "flavor": "Flavor",
}
_MISC_USES = ("Mash", "Boil", "Primary", "Secondary", "Bottling")


def _number(value: float, places: int = 1) -> str:
    return f"{value:.{places}f}"


def _child(parent: ET.Element, tag: str, value: Any = "") -> ET.Element:
    element = ET.SubElement(parent, tag)
    element.text = "" if value is None else str(value)
    return element


def duration_minutes(text: str | None) -> float:
    if not text:
        return 0.0
    match = _DURATION_RE.search(text)
    if match:
        amount = float(match.group(1).replace(",", "."))
        unit = match.group(2).lower()
        return amount * _MINUTES_PER_UNIT["min" if unit.startswith("m") else unit[0]]
    number = parse_number(text)
    return number if number is not None and number > 0 else 0.0


def gravity_sg(text: str | None, default: float) -> float:
    """Read a gravity as specific gravity; values under 30 are taken as °Plato."""
    number = parse_number(text)
    if number is None or number <= 0:
        return default
    if 1.0 < number < 2.0:
        return number
    if number < 30:
        return 1 + number / (258.6 - (number / 258.2) * 227.1)
    return default


def _hop_kg(hop: HopEntry) -> float | None:
    kg = parse_mass_kg(hop.amount)
    if kg is None and hop.amount_grams is not None:
        kg = hop.amount_grams / 1000
    return kg


def _hop_use_and_time(hop: HopEntry) -> tuple[str, float]:
    timing = hop.time or ""
    if _FIRST_WORT_RE.search(timing):
        return "First Wort", float(BOIL_TIME_MIN)
    if _DRY_RE.search(timing):
        match = _DAYS_RE.search(timing)
        days = float((match.group(1) or match.group(2)).replace(",", ".")) if match else DEFAULT_DRY_HOP_DAYS
        return "Dry Hop", days * 1440
    minutes = hop.boil_time if hop.boil_time is not None else duration_minutes(timing)
    if minutes > 0:
        return "Boil", minutes
    return "Aroma", 0.0


def _extra_kg(extra: ExtraEntry) -> float | None:
    if isinstance(extra.amount, (int, float)):
        unit = (extra.unit or "g").strip().lower()
        if unit in ("kg", "l"):
            return float(extra.amount)
        return float(extra.amount) / 1000
    return parse_mass_kg(extra.amount)


def _extra_use(extra: ExtraEntry) -> str:
    text = f"{extra.use or ''} {extra.time or ''}".lower()
    for use in _MISC_USES:
        if use.lower() in text:
            return use
    if "ferment" in text:
        return "Primary"
    return "Boil"


def _style_type(category: StyleCategory) -> str:
    if category is StyleCategory.LAGER:
        return "Lager"
    if category is StyleCategory.WHEAT:
        return "Wheat"
    return "Ale"


def _append_style(rec: ET.Element, request: RecipeRequest, category: StyleCategory, og: float, fg: float) -> None:
    style = ET.SubElement(rec, "STYLE")
    _child(style, "NAME", request.beer_style)
    _child(style, "VERSION", 1)
    _child(style, "CATEGORY", category.value)
    _child(style, "CATEGORY_NUMBER", "")
    _child(style, "STYLE_LETTER", "")
    _child(style, "STYLE_GUIDE", "Custom")
    _child(style, "TYPE", _style_type(category))
    _child(style, "OG_MIN", _number(og - 0.010, 3))
    _child(style, "OG_MAX", _number(og + 0.010, 3))
    _child(style, "FG_MIN", _number(fg - 0.005, 3))
    _child(style, "FG_MAX", _number(fg + 0.005, 3))
    _child(style, "IBU_MIN", "0.0")
    _child(style, "IBU_MAX", "120.0")
    _child(style, "COLOR_MIN", "0.0")
    _child(style, "COLOR_MAX", "80.0")


def _append_fermentables(rec: ET.Element, recipe: SanitizedRecipe) -> None:
    fermentables = ET.SubElement(rec, "FERMENTABLES")
    for malt in recipe.malts:
        kg = parse_mass_kg(malt.amount)
        if kg is None and malt.amount_grams is not None:
            kg = malt.amount_grams / 1000
        if kg is None or not 0 < kg <= MAX_ENTRY_KG:
            continue
        fermentable = ET.SubElement(fermentables, "FERMENTABLE")
        _child(fermentable, "NAME", malt.name or "Unknown Malt")
        _child(fermentable, "VERSION", 1)
        _child(fermentable, "TYPE", "Grain")
        _child(fermentable, "AMOUNT", _number(kg, 4))
        _child(fermentable, "YIELD", "78.0")
        _child(fermentable, "COLOR", "3.0")
        _child(fermentable, "NOTES", malt.explanation or "")


def _append_hops(rec: ET.Element, recipe: SanitizedRecipe) -> None:
    hops = ET.SubElement(rec, "HOPS")
    for hop in recipe.hops:
        kg = _hop_kg(hop)
        if kg is None or not 0 < kg <= MAX_ENTRY_KG:
            continue
        use, minutes = _hop_use_and_time(hop)
        element = ET.SubElement(hops, "HOP")
        _child(element, "NAME", hop.name or "Unknown Hop")
        _child(element, "VERSION", 1)
        _child(element, "ALPHA", _number(hop.alpha or 0.0))
        _child(element, "AMOUNT", _number(kg, 4))
        _child(element, "USE", use)
        _child(element, "TIME", _number(minutes))
        _child(element, "NOTES", hop.explanation or hop.time or "")
        _child(element, "FORM", "Pellet")


def _append_miscs(rec: ET.Element, recipe: SanitizedRecipe) -> None:
    miscs = ET.SubElement(rec, "MISCS")
    for extra in recipe.extras:
        amount = _extra_kg(extra)
        if amount is None or amount <= 0:
            continue
        unit = (extra.unit or "").strip().lower()
        misc = ET.SubElement(miscs, "MISC")
        _child(misc, "NAME", extra.name or "Unknown Addition")
        _child(misc, "VERSION", 1)
        _child(misc, "TYPE", _MISC_TYPES.get(extra.type, "Other"))
        _child(misc, "USE", _extra_use(extra))
        _child(misc, "TIME", _number(duration_minutes(extra.time)))
        _child(misc, "AMOUNT", _number(amount, 4))
        _child(misc, "AMOUNT_IS_WEIGHT", "FALSE" if unit in ("ml", "l") else "TRUE")
        _child(misc, "NOTES", extra.description or "")


def _append_yeast(rec: ET.Element, recipe: SanitizedRecipe, dry: bool, style_type: str, og: float, fg: float) -> None:
    yeasts = ET.SubElement(rec, "YEASTS")
    if recipe.yeast is None:
        return
    attenuation = attenuation_pct(og, fg) if og > fg else DEFAULT_ATTENUATION
    yeast = ET.SubElement(yeasts, "YEAST")
    _child(yeast, "NAME", recipe.yeast.name or "Unknown Yeast")
    _child(yeast, "VERSION", 1)
    _child(yeast, "TYPE", "Lager" if style_type == "Lager" else "Ale")
    _child(yeast, "FORM", "Dry" if dry else "Liquid")
    _child(yeast, "AMOUNT", "0.0")
    _child(yeast, "ATTENUATION", _number(attenuation))
    _child(yeast, "NOTES", recipe.yeast.explanation or recipe.yeast.amount or "")


def _append_mash(rec: ET.Element, recipe: SanitizedRecipe, request: RecipeRequest) -> None:
    mash = ET.SubElement(rec, "MASH")
    _child(mash, "NAME", "Temperature Mash")
    _child(mash, "VERSION", 1)
    _child(mash, "GRAIN_TEMP", "20.0")
    steps = ET.SubElement(mash, "MASH_STEPS")
    for step in recipe.mash_schedule:
        temp = parse_temperature_c(step.temp, default_unit=request.temp_unit)
        if temp is None or not 0 <= temp <= 100:
            temp = DEFAULT_SACCHARIFICATION_C
        element = ET.SubElement(steps, "MASH_STEP")
        _child(element, "NAME", step.step or "Mash Step")
        _child(element, "VERSION", 1)
        _child(element, "TYPE", "Infusion")
        _child(element, "STEP_TEMP", _number(temp))
        _child(element, "STEP_TIME", _number(duration_minutes(step.time)))
        _child(element, "END_TEMP", _number(temp))
        _child(element, "DESCRIPTION", step.description or "")


def recipe_to_beerxml(recipe: SanitizedRecipe, request: RecipeRequest) -> str:
    constraints = derive_constraints(request)
    category = constraints.style.category
    og = gravity_sg(recipe.specs.og, DEFAULT_OG)
    fg = gravity_sg(recipe.specs.fg, DEFAULT_FG)
    batch = constraints.batch_liters

    root = ET.Element("RECIPES")
    rec = ET.SubElement(root, "RECIPE")
    _child(rec, "NAME", recipe.name or "Untitled Recipe")
    _child(rec, "VERSION", 1)
    _child(rec, "TYPE", "All Grain")
    _child(rec, "BREWER", BREWER_NAME)
    _child(rec, "BATCH_SIZE", _number(batch, 2))
    _child(rec, "BOIL_SIZE", _number(batch * BOIL_SIZE_FACTOR, 2))
    _child(rec, "BOIL_TIME", BOIL_TIME_MIN)
    _child(rec, "EFFICIENCY", _number(constraints.efficiency.percent))

    _append_style(rec, request, category, og, fg)
    _append_fermentables(rec, recipe)
    _append_hops(rec, recipe)
    _append_miscs(rec, recipe)
    _append_yeast(rec, recipe, constraints.yeast.category is YeastCategory.DRY_ONLY, _style_type(category), og, fg)
    _append_mash(rec, recipe, request)

    _child(rec, "NOTES", recipe.description or recipe.notes or "")
    _child(rec, "OG", _number(og, 3))
    _child(rec, "FG", _number(fg, 3))
    if recipe.conditioning_days_min is not None:
        _child(rec, "AGE", recipe.conditioning_days_min)
    carbonation = parse_number(recipe.specs.carbonation)
    if carbonation is not None and carbonation > 0:
        _child(rec, "CARBONATION", _number(carbonation / CO2_G_PER_L_PER_VOLUME))

    rough = ET.tostring(root, encoding="unicode")
    return minidom.parseString(rough).toprettyxml(indent="  ")
